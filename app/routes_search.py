"""Home page: plant search and "Save to My Garden"."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, JSONResponse

from app.auth import get_current_user
from app.documents import get_document_store
from app.garden import GardenService
from app.search import run_search
from app.views import get_notifier, render
from core.errors import ValidationError
from core.models import Plant, User
from core.notifications import NotificationService

router = APIRouter(tags=["search"])


@router.get("/", response_class=HTMLResponse)
async def home(
    request: Request,
    q: str | None = None,
    notifier: NotificationService = Depends(get_notifier),
):
    """Search form; with ``?q=`` also the (capped) result cards."""
    result = None
    if q is not None:
        try:
            result = await run_search(q, notifier)
        except ValidationError:
            result = None

    return render(request, notifier, "home.html", {"search": q or "", "result": result})


@router.post("/favorites")
async def add_favorite(
    plant: Plant,
    user: User | None = Depends(get_current_user),
    notifier: NotificationService = Depends(get_notifier),
):
    """Save *plant* into the signed-in user's garden."""
    garden = GardenService(get_document_store(user), user, notifier)
    ok = await garden.add_favorite(plant)

    status_code = 200 if ok else (401 if user is None else 502)
    return JSONResponse({"ok": ok, "notification": notifier.snapshot()}, status_code=status_code)
