"""Firebase Auth (Identity Toolkit REST) client and session observer.

Functions:
- sign_in_with_password  → User
- sign_up                → User
- set_display_name       → User with the new name
- sign_in_with_idp       → User (federated, from a Google id token)
- refresh                → User with fresh tokens
- observe_auth_state     → register a callback for sign-in / sign-out

Every provider failure is raised as ``AuthError`` with a generic message; the
provider's own error code is only logged.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional
from urllib.parse import urlencode

import httpx

from app.config import get_settings
from core.errors import AuthError
from core.models import User

logger = logging.getLogger(__name__)

_IDENTITY_API = "https://identitytoolkit.googleapis.com/v1"
_SECURE_TOKEN_URL = "https://securetoken.googleapis.com/v1/token"

AuthStateCallback = Callable[[Optional[User]], None]

_observers: list[AuthStateCallback] = []


# ---------------------------------------------------------------------------
# Session observer
# ---------------------------------------------------------------------------

def observe_auth_state(callback: AuthStateCallback) -> Callable[[], None]:
    """Call *callback* with the user on every sign-in and None on sign-out.

    Returns an unsubscribe function.
    """
    _observers.append(callback)

    def unsubscribe() -> None:
        if callback in _observers:
            _observers.remove(callback)

    return unsubscribe


def notify_auth_state(user: User | None) -> None:
    for callback in list(_observers):
        callback(user)


# ---------------------------------------------------------------------------
# REST helpers
# ---------------------------------------------------------------------------

async def _post(url: str, payload: dict, *, form: bool = False) -> dict:
    try:
        async with httpx.AsyncClient() as client:
            if form:
                resp = await client.post(url, data=payload)
            else:
                resp = await client.post(url, json=payload)
    except httpx.HTTPError as exc:
        logger.warning("Identity provider unreachable: %s", exc)
        raise AuthError("Authentication failed") from exc

    if resp.status_code != 200:
        logger.info("Identity provider rejected request (%s): %s", resp.status_code, resp.text)
        raise AuthError("Authentication failed")

    try:
        data = resp.json()
    except ValueError as exc:
        raise AuthError("Authentication failed") from exc
    if not isinstance(data, dict):
        logger.info("Identity provider returned an unexpected body: %s", resp.text)
        raise AuthError("Authentication failed")
    return data


def _endpoint(method: str) -> str:
    settings = get_settings()
    return f"{_IDENTITY_API}/accounts:{method}?{urlencode({'key': settings.firebase_api_key})}"


def _user_from(data: dict, **overrides) -> User:
    """Build a User from an Identity Toolkit sign-in style response."""
    if not data.get("localId"):
        raise AuthError("Authentication failed")
    fields = {
        "uid": data["localId"],
        "display_name": data.get("displayName") or "",
        "email": data.get("email") or "",
        "id_token": data.get("idToken", ""),
        "refresh_token": data.get("refreshToken", ""),
        "expires_at": int(time.time()) + int(data.get("expiresIn", 3600)),
    }
    fields.update(overrides)
    return User(**fields)


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------

async def sign_in_with_password(email: str, password: str) -> User:
    data = await _post(
        _endpoint("signInWithPassword"),
        {"email": email, "password": password, "returnSecureToken": True},
    )
    return _user_from(data)


async def sign_up(email: str, password: str) -> User:
    data = await _post(
        _endpoint("signUp"),
        {"email": email, "password": password, "returnSecureToken": True},
    )
    return _user_from(data)


async def set_display_name(user: User, name: str) -> User:
    data = await _post(
        _endpoint("update"),
        {"idToken": user.id_token, "displayName": name, "returnSecureToken": True},
    )
    # accounts:update may omit fresh tokens; keep the ones we have.
    return user.model_copy(
        update={
            "display_name": data.get("displayName", name),
            "id_token": data.get("idToken") or user.id_token,
            "refresh_token": data.get("refreshToken") or user.refresh_token,
        }
    )


async def sign_in_with_idp(google_id_token: str, provider_id: str = "google.com") -> User:
    """Exchange a federated provider's id token for a Firebase session."""
    settings = get_settings()
    data = await _post(
        _endpoint("signInWithIdp"),
        {
            "postBody": urlencode({"id_token": google_id_token, "providerId": provider_id}),
            "requestUri": settings.base_url,
            "returnSecureToken": True,
            "returnIdpCredential": True,
        },
    )
    return _user_from(data, display_name=data.get("displayName") or data.get("fullName") or "")


async def refresh(user: User) -> User:
    """Use the refresh token to get a new id token."""
    if not user.refresh_token:
        raise AuthError("Session expired")
    settings = get_settings()
    data = await _post(
        f"{_SECURE_TOKEN_URL}?{urlencode({'key': settings.firebase_api_key})}",
        {"grant_type": "refresh_token", "refresh_token": user.refresh_token},
        form=True,
    )
    if not data.get("id_token"):
        raise AuthError("Session expired")
    return user.model_copy(
        update={
            "id_token": data["id_token"],
            "refresh_token": data.get("refresh_token", user.refresh_token),
            "expires_at": int(time.time()) + int(data.get("expires_in", 3600)),
        }
    )
