"""Shared view helpers — templates, the per-session slot key, the notifier."""

from __future__ import annotations

import secrets
from pathlib import Path

from fastapi import Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from core.notifications import NotificationService

_TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"
templates = Jinja2Templates(directory=str(_TEMPLATES_DIR))


def slot_key(request: Request) -> str:
    """Random per-browser key selecting this session's notification slot and player."""
    key = request.session.get("sid")
    if not key:
        key = secrets.token_urlsafe(16)
        request.session["sid"] = key
    return key


def get_notifier(request: Request) -> NotificationService:
    """Dependency: the notification slot of the requesting browser session."""
    return request.app.state.notifications.for_key(slot_key(request))


def render(
    request: Request,
    notifier: NotificationService,
    name: str,
    context: dict | None = None,
    *,
    status_code: int = 200,
) -> HTMLResponse:
    """Render *name* with the live notification and the signed-in flag injected."""
    ctx = dict(context or {})
    ctx.setdefault("logged_in", bool(request.session.get("uid")))
    ctx["notification"] = notifier.snapshot()
    return templates.TemplateResponse(request, name, ctx, status_code=status_code)
