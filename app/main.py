"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.middleware.sessions import SessionMiddleware

from app.config import get_settings
from app.db import close_db, init_db
from app.identity import observe_auth_state
from core.notifications import NotificationHub

logger = logging.getLogger("app")


def _log_auth_state(user) -> None:
    if user is None:
        logger.info("Session signed out")
    else:
        logger.info("Session signed in: %s", user.uid)


def _log_notification(key: str, note) -> None:
    if note is None:
        logger.debug("Notification dismissed (slot %s)", key[:8])
    else:
        logger.info("Notification [%s] %s (slot %s)", note.kind.value, note.message, key[:8])


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle hook."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    await init_db()
    unsubscribe = observe_auth_state(_log_auth_state)
    logger.info("DB ready at %s (documents: %s)", settings.db_abs_path, settings.document_store)
    yield
    unsubscribe()
    await close_db()
    logger.info("DB closed")


app = FastAPI(
    title="Bloomly",
    version="0.1.0",
    lifespan=lifespan,
)

# Session middleware (signed cookie: uid + notification slot key).
app.add_middleware(SessionMiddleware, secret_key=get_settings().secret_key)

# One notification slot per browser session, shared by every view.
app.state.notifications = NotificationHub(
    ttl=get_settings().notification_ttl_seconds,
    on_publish=_log_notification,
)

# Static files
app.mount(
    "/static",
    StaticFiles(directory=str(Path(__file__).resolve().parent / "static")),
    name="static",
)

# Routers
from app.auth import router as auth_router  # noqa: E402
from app.routes_garden import router as garden_router  # noqa: E402
from app.routes_notifications import router as notifications_router  # noqa: E402
from app.routes_player import router as player_router  # noqa: E402
from app.routes_search import router as search_router  # noqa: E402

app.include_router(auth_router)
app.include_router(search_router)
app.include_router(garden_router)
app.include_router(player_router)
app.include_router(notifications_router)


@app.get("/health")
async def health():
    """Simple health-check endpoint."""
    return JSONResponse({"status": "ok", "version": app.version})
