"""Ambient music widget REST API.

One ``PlaybackWidget`` per browser session, mounted on the first
``GET /player/state``.  Every response is the widget's status dict; the
``audio`` entry tells the page's ``<audio>`` element what to do.
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from app.catalog import fetch_ambient_tracks
from app.config import get_settings
from app.views import slot_key
from core.player import CommandAudioOutput, PlaybackWidget, PlayerNotReady, PlayerRegistry

router = APIRouter(prefix="/player", tags=["player"])

# Key: session slot key → PlaybackWidget
_players = PlayerRegistry()


def get_player(key: str) -> PlaybackWidget | None:
    return _players.get(key)


def drop_player(key: str) -> None:
    """Unmount and forget the widget for *key* (no-op if none)."""
    widget = _players.pop(key)
    if widget is not None:
        widget.unmount()


class SelectRequest(BaseModel):
    index: int


def _require_player(request: Request) -> PlaybackWidget:
    widget = get_player(slot_key(request))
    if widget is None:
        raise HTTPException(status_code=404, detail="Player not mounted")
    return widget


def _apply(request: Request, action) -> JSONResponse:
    widget = _require_player(request)
    try:
        action(widget)
    except PlayerNotReady as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except IndexError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return JSONResponse(widget.to_status_dict())


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.get("/state")
async def state(request: Request):
    """Return the widget status, mounting (and fetching tracks) on first call."""
    key = slot_key(request)
    widget = get_player(key)
    if widget is None:
        settings = get_settings()
        _players.prune(settings.player_idle_seconds, settings.max_players - 1)
        widget = PlaybackWidget(CommandAudioOutput(), fetch_ambient_tracks)
        _players.add(key, widget)
    await widget.ensure_mounted()
    return JSONResponse(widget.to_status_dict())


@router.post("/next")
async def next_track(request: Request):
    return _apply(request, lambda w: w.next())


@router.post("/prev")
async def prev_track(request: Request):
    return _apply(request, lambda w: w.prev())


@router.post("/toggle")
async def toggle(request: Request):
    return _apply(request, lambda w: w.toggle_play())


@router.post("/select")
async def select(request: Request, body: SelectRequest):
    return _apply(request, lambda w: w.select_track(body.index))


@router.post("/list")
async def toggle_list(request: Request):
    return _apply(request, lambda w: w.toggle_list_visible())


@router.post("/ended")
async def ended(request: Request):
    """The ``<audio>`` element finished the current track."""
    return _apply(request, lambda w: w.on_track_ended())
