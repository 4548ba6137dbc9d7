"""Login, registration and session handling.

Email/password and sign-up go straight to the identity provider.  Google
sign-in is an OAuth 2.0 authorization-code flow with PKCE:

  1. GET /login/google  → redirect to Google with code_challenge
  2. GET /callback      → exchange code for a Google id token, then
                          exchange that for a Firebase session
  3. Tokens stored in ``users.token_data`` (JSON blob)
  4. Session cookie holds ``uid``
"""

from __future__ import annotations

import hashlib
import json
import logging
import secrets
import time
from base64 import urlsafe_b64encode
from urllib.parse import urlencode

import httpx
from fastapi import APIRouter, Depends, Form, HTTPException, Request
from fastapi.responses import RedirectResponse

from app import identity
from app.config import get_settings
from app.db import get_db
from app.routes_player import drop_player
from app.views import get_notifier, render, slot_key
from core.errors import AuthError, ValidationError
from core.models import NotificationKind, User
from core.notifications import NotificationService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])

_GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
_GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
_GOOGLE_SCOPES = "openid email profile"


# ---------------------------------------------------------------------------
# PKCE helpers
# ---------------------------------------------------------------------------

def _generate_code_verifier(length: int = 128) -> str:
    """Random URL-safe string (43-128 chars) per RFC 7636."""
    return secrets.token_urlsafe(length)[:length]


def _generate_code_challenge(verifier: str) -> str:
    """S256 code challenge = BASE64URL(SHA256(verifier))."""
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


# ---------------------------------------------------------------------------
# Session user persistence
# ---------------------------------------------------------------------------

async def save_user(user: User) -> None:
    """Upsert the user row and its provider tokens."""
    token_data = {
        "id_token": user.id_token,
        "refresh_token": user.refresh_token,
        "expires_at": user.expires_at,
    }
    db = get_db()
    await db.execute(
        """
        INSERT INTO users (uid, display_name, email, token_data)
        VALUES (?, ?, ?, ?)
        ON CONFLICT(uid)
        DO UPDATE SET display_name = excluded.display_name,
                      email        = excluded.email,
                      token_data   = excluded.token_data,
                      updated_at   = datetime('now')
        """,
        (user.uid, user.display_name, user.email, json.dumps(token_data)),
    )
    await db.commit()


async def load_user(uid: str) -> User | None:
    db = get_db()
    cursor = await db.execute(
        "SELECT uid, display_name, email, token_data FROM users WHERE uid = ?",
        (uid,),
    )
    row = await cursor.fetchone()
    if not row:
        return None
    return User(uid=row[0], display_name=row[1], email=row[2], **json.loads(row[3]))


async def get_current_user(request: Request) -> User | None:
    """Return the signed-in user, refreshing tokens within 60s of expiry."""
    uid = request.session.get("uid")
    if not uid:
        return None

    user = await load_user(uid)
    if user is None:
        request.session.pop("uid", None)
        return None

    if user.expires_at < time.time() + 60:
        try:
            user = await identity.refresh(user)
        except AuthError:
            logger.info("Session for %s could not be refreshed — signing out", uid)
            request.session.pop("uid", None)
            identity.notify_auth_state(None)
            return None
        await save_user(user)

    return user


async def _start_session(request: Request, user: User) -> None:
    await save_user(user)
    request.session["uid"] = user.uid
    identity.notify_auth_state(user)


# ---------------------------------------------------------------------------
# Email / password
# ---------------------------------------------------------------------------

@router.get("/login")
async def login_page(
    request: Request,
    user: User | None = Depends(get_current_user),
    notifier: NotificationService = Depends(get_notifier),
):
    if user:
        return RedirectResponse("/profile")
    return render(request, notifier, "login.html", {"email": ""})


@router.post("/login")
async def login(
    request: Request,
    email: str = Form(""),
    password: str = Form(""),
    notifier: NotificationService = Depends(get_notifier),
):
    try:
        user = await identity.sign_in_with_password(email, password)
    except AuthError:
        notifier.show("Invalid email or password.", NotificationKind.ERROR)
        return render(request, notifier, "login.html", {"email": email}, status_code=401)

    await _start_session(request, user)
    notifier.show("Login successful!", NotificationKind.SUCCESS)
    return RedirectResponse("/profile", status_code=303)


@router.get("/register")
async def register_page(
    request: Request,
    user: User | None = Depends(get_current_user),
    notifier: NotificationService = Depends(get_notifier),
):
    if user:
        return RedirectResponse("/profile")
    return render(request, notifier, "register.html", {"name": "", "email": "", "error": ""})


def _check_passwords(password: str, confirm: str) -> None:
    if password != confirm:
        raise ValidationError("Passwords don't match.")


@router.post("/register")
async def register(
    request: Request,
    name: str = Form(""),
    email: str = Form(""),
    password: str = Form(""),
    confirm: str = Form(""),
    notifier: NotificationService = Depends(get_notifier),
):
    context = {"name": name, "email": email}
    try:
        _check_passwords(password, confirm)
    except ValidationError as exc:
        return render(request, notifier, "register.html", {**context, "error": str(exc)}, status_code=400)

    try:
        user = await identity.sign_up(email, password)
        if name:
            user = await identity.set_display_name(user, name)
    except AuthError:
        error = "Couldn't create your account. Please try again."
        return render(request, notifier, "register.html", {**context, "error": error}, status_code=400)

    await _start_session(request, user)
    notifier.show("Account created!", NotificationKind.SUCCESS)
    return RedirectResponse("/profile", status_code=303)


# ---------------------------------------------------------------------------
# Google (federated) sign-in
# ---------------------------------------------------------------------------

@router.get("/login/google")
async def login_google(request: Request):
    """Start the Google PKCE login flow."""
    settings = get_settings()

    if not settings.google_client_id:
        raise HTTPException(status_code=500, detail="GOOGLE_CLIENT_ID not set")

    verifier = _generate_code_verifier()
    challenge = _generate_code_challenge(verifier)

    # Store verifier in session so /callback can use it.
    request.session["code_verifier"] = verifier

    params = {
        "client_id": settings.google_client_id,
        "response_type": "code",
        "redirect_uri": f"{settings.base_url}/callback",
        "scope": _GOOGLE_SCOPES,
        "code_challenge_method": "S256",
        "code_challenge": challenge,
    }
    return RedirectResponse(f"{_GOOGLE_AUTH_URL}?{urlencode(params)}")


async def _exchange_code(code: str, verifier: str) -> str:
    """Trade the authorization code for Google's id token."""
    settings = get_settings()
    try:
        async with httpx.AsyncClient() as client:
            resp = await client.post(
                _GOOGLE_TOKEN_URL,
                data={
                    "client_id": settings.google_client_id,
                    "client_secret": settings.google_client_secret,
                    "grant_type": "authorization_code",
                    "code": code,
                    "redirect_uri": f"{settings.base_url}/callback",
                    "code_verifier": verifier,
                },
            )
    except httpx.HTTPError as exc:
        raise AuthError("Google sign-in failed") from exc

    if resp.status_code != 200:
        logger.info("Google token exchange failed (%s): %s", resp.status_code, resp.text)
        raise AuthError("Google sign-in failed")

    data = resp.json()
    if "id_token" not in data:
        raise AuthError("Google sign-in failed")
    return data["id_token"]


@router.get("/callback")
async def callback(
    request: Request,
    code: str | None = None,
    error: str | None = None,
    notifier: NotificationService = Depends(get_notifier),
):
    """Handle Google's redirect after the user authorizes."""
    if error:
        logger.info("Google sign-in cancelled: %s", error)
        notifier.show("Could not sign in with Google.", NotificationKind.ERROR)
        return RedirectResponse("/login", status_code=303)
    if not code:
        raise HTTPException(status_code=400, detail="Missing authorization code")

    verifier = request.session.pop("code_verifier", None)
    if not verifier:
        raise HTTPException(status_code=400, detail="Missing code_verifier — restart login")

    try:
        google_id_token = await _exchange_code(code, verifier)
        user = await identity.sign_in_with_idp(google_id_token)
    except AuthError:
        notifier.show("Could not sign in with Google.", NotificationKind.ERROR)
        return RedirectResponse("/login", status_code=303)

    await _start_session(request, user)
    notifier.show("Signed in with Google!", NotificationKind.SUCCESS)
    return RedirectResponse("/profile", status_code=303)


# ---------------------------------------------------------------------------
# Logout
# ---------------------------------------------------------------------------

@router.api_route("/logout", methods=["GET", "POST"])
async def logout(request: Request, notifier: NotificationService = Depends(get_notifier)):
    """Clear the session (keeping the slot key) and return to the login page."""
    key = slot_key(request)
    drop_player(key)
    request.session.clear()
    request.session["sid"] = key
    identity.notify_auth_state(None)
    notifier.show("Logout successful!", NotificationKind.SUCCESS)
    return RedirectResponse("/login", status_code=303)
