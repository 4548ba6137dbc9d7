"""Error taxonomy shared by the views and the service clients."""

from __future__ import annotations


class BloomlyError(Exception):
    """Base class for every error the app converts into a notification."""


class AuthError(BloomlyError):
    """Bad credentials or identity-provider failure.

    The message is always generic; provider detail is logged, never shown.
    """


class NetworkError(BloomlyError):
    """A catalog or audio fetch failed (transport error or non-OK status)."""

    def __init__(self, message: str, status_code: int = 0):
        self.status_code = status_code
        super().__init__(message)


class NotFoundError(BloomlyError):
    """A document the caller expected to exist is absent."""


class ValidationError(BloomlyError):
    """Local input check failed; no remote call is attempted."""
