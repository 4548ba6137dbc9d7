"""Notification slot endpoint used by the toast's close button."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.views import get_notifier
from core.notifications import NotificationService

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.post("/dismiss")
async def dismiss(notifier: NotificationService = Depends(get_notifier)):
    """Clear this session's slot so the toast is not rendered again."""
    notifier.dismiss()
    return JSONResponse({"ok": True, "notification": None})
