"""Single-slot notification service with timed expiry.

Only one notification is live at a time.  ``show()`` replaces the slot and
re-arms the expiry deadline, so an earlier deadline can never clear a newer
message.  Expiry is evaluated lazily against an injectable clock.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from core.models import Notification, NotificationKind

logger = logging.getLogger(__name__)

DEFAULT_TTL = 3.0  # seconds

Listener = Callable[[Optional[Notification]], None]


class NotificationService:
    """Holds the current notification and its deadline."""

    def __init__(self, ttl: float = DEFAULT_TTL, clock: Callable[[], float] = time.monotonic):
        self._ttl = ttl
        self._clock = clock
        self._current: Notification | None = None
        self._expires_at = 0.0
        self._listeners: list[Listener] = []

    def show(self, message: str, kind: NotificationKind | str = NotificationKind.INFO) -> None:
        """Replace the slot and re-arm the expiry timer."""
        self._current = Notification(message=message, kind=NotificationKind(kind))
        self._expires_at = self._clock() + self._ttl
        logger.debug("notification[%s]: %s", self._current.kind.value, message)
        self._publish(self._current)

    def current(self) -> Notification | None:
        """Return the live notification, or None once its deadline passed."""
        if self._current is not None and self._clock() >= self._expires_at:
            self._current = None
        return self._current

    def remaining(self) -> float:
        """Seconds until the live notification expires (0 if none)."""
        if self.current() is None:
            return 0.0
        return max(self._expires_at - self._clock(), 0.0)

    def dismiss(self) -> None:
        if self._current is None:
            return
        self._current = None
        self._publish(None)

    def snapshot(self) -> dict | None:
        """JSON-friendly view of the slot for API responses and templates."""
        note = self.current()
        if note is None:
            return None
        return {
            "message": note.message,
            "kind": note.kind.value,
            "expires_in_ms": int(self.remaining() * 1000),
        }

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register *listener*; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self, note: Notification | None) -> None:
        for listener in list(self._listeners):
            listener(note)


class NotificationHub:
    """One ``NotificationService`` per browser session (keyed by slot key).

    *on_publish*, when given, is subscribed to every slot and called as
    ``on_publish(key, notification)``; ``None`` means the slot was dismissed.
    """

    def __init__(
        self,
        ttl: float = DEFAULT_TTL,
        clock: Callable[[], float] = time.monotonic,
        on_publish: Callable[[str, Optional[Notification]], None] | None = None,
    ):
        self.ttl = ttl
        self.clock = clock
        self._on_publish = on_publish
        self._slots: dict[str, NotificationService] = {}

    def for_key(self, key: str) -> NotificationService:
        service = self._slots.get(key)
        if service is None:
            self._prune()
            service = NotificationService(ttl=self.ttl, clock=self.clock)
            if self._on_publish is not None:
                on_publish = self._on_publish
                service.subscribe(lambda note: on_publish(key, note))
            self._slots[key] = service
        return service

    def _prune(self) -> None:
        # Idle slots hold nothing worth keeping.
        for key in [k for k, s in self._slots.items() if s.current() is None]:
            del self._slots[key]

    def __len__(self) -> int:
        return len(self._slots)
