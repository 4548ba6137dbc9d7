"""Profile page and the garden's rename/remove endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from pydantic import BaseModel

from app.auth import get_current_user
from app.documents import get_document_store
from app.garden import GardenService
from app.views import get_notifier, render
from core.errors import NotFoundError
from core.models import User
from core.notifications import NotificationService

router = APIRouter(tags=["garden"])


class RenameRequest(BaseModel):
    name: str


def _require_user(user: User | None) -> User:
    if user is None:
        raise HTTPException(status_code=401, detail="Not logged in — please /login")
    return user


async def _loaded_garden(user: User, notifier: NotificationService) -> GardenService:
    garden = GardenService(get_document_store(user), user, notifier)
    await garden.load()
    return garden


def _garden_response(ok: bool, garden: GardenService, notifier: NotificationService) -> JSONResponse:
    return JSONResponse(
        {
            "ok": ok,
            "favorites": [fav.to_document() for fav in garden.favorites],
            "notification": notifier.snapshot(),
        },
        status_code=200 if ok else 502,
    )


# ---------------------------------------------------------------------------
# GET /profile
# ---------------------------------------------------------------------------

@router.get("/profile", response_class=HTMLResponse)
async def profile(
    request: Request,
    user: User | None = Depends(get_current_user),
    notifier: NotificationService = Depends(get_notifier),
):
    """Greeting, account details and the user's garden."""
    if user is None:
        return RedirectResponse("/login")

    garden = await _loaded_garden(user, notifier)
    return render(
        request,
        notifier,
        "profile.html",
        {"user": user.public(), "favorites": garden.favorites},
    )


# ---------------------------------------------------------------------------
# POST /garden/{plant_id}/rename, /remove
# ---------------------------------------------------------------------------

@router.post("/garden/{plant_id}/rename")
async def rename_favorite(
    plant_id: int,
    body: RenameRequest,
    user: User | None = Depends(get_current_user),
    notifier: NotificationService = Depends(get_notifier),
):
    garden = await _loaded_garden(_require_user(user), notifier)
    try:
        ok = await garden.rename(plant_id, body.name)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return _garden_response(ok, garden, notifier)


@router.post("/garden/{plant_id}/remove")
async def remove_favorite(
    plant_id: int,
    user: User | None = Depends(get_current_user),
    notifier: NotificationService = Depends(get_notifier),
):
    garden = await _loaded_garden(_require_user(user), notifier)
    try:
        ok = await garden.remove(plant_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return _garden_response(ok, garden, notifier)
