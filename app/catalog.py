"""Read-only catalog clients — plants (Perenual) and ambient audio (Jamendo).

Functions:
- search_plants          → list of Plant for a free-text query
- fetch_ambient_tracks   → up to N tracks tagged for ambient/nature audio

No retries and no custom timeouts: a transport error or a non-2xx status is
raised as ``NetworkError`` and the caller decides what to show.
"""

from __future__ import annotations

import logging

import httpx

from app.config import get_settings
from core.errors import NetworkError
from core.models import Plant, Track

logger = logging.getLogger(__name__)


async def _get_json(url: str, params: dict) -> dict:
    """GET *url* and decode the JSON body, mapping every failure to NetworkError."""
    try:
        async with httpx.AsyncClient() as client:
            resp = await client.get(url, params=params)
    except httpx.HTTPError as exc:
        logger.warning("GET %s failed: %s", url, exc)
        raise NetworkError(f"Request to {url} failed") from exc

    if resp.status_code >= 400:
        logger.warning("GET %s returned %d", url, resp.status_code)
        raise NetworkError(f"{url} returned {resp.status_code}", resp.status_code)

    try:
        data = resp.json()
    except ValueError as exc:
        raise NetworkError(f"{url} returned invalid JSON", resp.status_code) from exc
    if not isinstance(data, dict):
        raise NetworkError(f"{url} returned an unexpected body", resp.status_code)
    return data


# ---------------------------------------------------------------------------
# Plant catalog
# ---------------------------------------------------------------------------

async def search_plants(query: str, *, page: int = 1) -> list[Plant]:
    """Return the catalog's first page of species matching *query*.

    Items that do not parse as a ``Plant`` are skipped.
    """
    settings = get_settings()
    params: dict = {"key": settings.perenual_api_key, "page": page}
    if query:
        params["q"] = query

    data = await _get_json(f"{settings.perenual_base_url}/species-list", params)

    plants: list[Plant] = []
    for item in data.get("data") or []:
        try:
            plants.append(Plant.model_validate(item))
        except ValueError:
            logger.debug("Skipping malformed catalog item: %r", item)
    return plants


# ---------------------------------------------------------------------------
# Audio catalog
# ---------------------------------------------------------------------------

async def fetch_ambient_tracks(limit: int | None = None) -> list[Track]:
    """Return up to *limit* tracks tagged with the configured ambient tag."""
    settings = get_settings()
    params = {
        "client_id": settings.jamendo_client_id,
        "format": "json",
        "tags": settings.ambient_tag,
        "limit": limit or settings.ambient_track_limit,
        "audioformat": settings.audio_format,
    }

    data = await _get_json(f"{settings.jamendo_base_url}/tracks/", params)

    tracks: list[Track] = []
    for item in data.get("results") or []:
        try:
            tracks.append(Track.from_catalog(item))
        except (KeyError, TypeError, ValueError):
            logger.debug("Skipping malformed track: %r", item)
    return tracks
