"""Tests for the plant and audio catalog clients (app/catalog.py).

All HTTP calls are mocked via httpx transport.
"""

from __future__ import annotations

import httpx
import pytest

from app.catalog import fetch_ambient_tracks, search_plants
from core.errors import NetworkError


@pytest.fixture(autouse=True)
def _setup_env(monkeypatch, tmp_path):
    monkeypatch.setenv("DB_PATH", str(tmp_path / "test.db"))
    monkeypatch.setenv("PERENUAL_API_KEY", "plant-key")
    monkeypatch.setenv("JAMENDO_CLIENT_ID", "jam-id")
    from app.config import get_settings
    get_settings.cache_clear()


# ---------------------------------------------------------------------------
# Helpers for mocking httpx
# ---------------------------------------------------------------------------

class MockTransport(httpx.AsyncBaseTransport):
    """Programmable transport returning canned responses per URL path."""

    def __init__(self, routes: dict[str, tuple[int, dict]]):
        self._routes = routes
        self._call_log: list[httpx.Request] = []

    async def handle_async_request(self, request: httpx.Request):
        self._call_log.append(request)
        for prefix, (status, body) in self._routes.items():
            if request.url.path.startswith(prefix):
                return httpx.Response(status, json=body)
        return httpx.Response(404, json={"error": "not found"})


def _patch_client(monkeypatch, routes):
    transport = MockTransport(routes)
    client = httpx.AsyncClient(transport=transport)
    monkeypatch.setattr("app.catalog.httpx.AsyncClient", lambda: client)
    return transport


def _plant(i: int) -> dict:
    return {
        "id": i,
        "common_name": f"tulip {i}",
        "scientific_name": f"Tulipa {i}",
        "default_image": {"medium_url": f"https://img.test/{i}.jpg", "thumbnail": None},
    }


# ---------------------------------------------------------------------------
# search_plants
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_search_plants_parses_results(monkeypatch):
    transport = _patch_client(monkeypatch, {"/api/species-list": (200, {"data": [_plant(1), _plant(2)]})})

    plants = await search_plants("tulip")

    assert [p.id for p in plants] == [1, 2]
    assert plants[0].image_url == "https://img.test/1.jpg"
    params = transport._call_log[0].url.params
    assert params["key"] == "plant-key"
    assert params["q"] == "tulip"
    assert params["page"] == "1"


@pytest.mark.asyncio
async def test_search_plants_image_falls_back_to_thumbnail(monkeypatch):
    item = {"id": 7, "common_name": None, "scientific_name": "Bellis perennis",
            "default_image": {"medium_url": None, "thumbnail": "https://img.test/t.jpg"}}
    _patch_client(monkeypatch, {"/api/species-list": (200, {"data": [item]})})

    [plant] = await search_plants("daisy")
    assert plant.image_url == "https://img.test/t.jpg"
    assert plant.label == "Bellis perennis"


@pytest.mark.asyncio
async def test_search_plants_skips_malformed_items(monkeypatch):
    _patch_client(monkeypatch, {"/api/species-list": (200, {"data": [{"common_name": "no id"}, _plant(3)]})})

    plants = await search_plants("x")
    assert [p.id for p in plants] == [3]


@pytest.mark.asyncio
async def test_search_plants_missing_data_is_empty(monkeypatch):
    _patch_client(monkeypatch, {"/api/species-list": (200, {})})
    assert await search_plants("nothing") == []


@pytest.mark.asyncio
async def test_search_plants_non_ok_raises(monkeypatch):
    _patch_client(monkeypatch, {"/api/species-list": (429, {"message": "rate limited"})})

    with pytest.raises(NetworkError) as exc_info:
        await search_plants("tulip")
    assert exc_info.value.status_code == 429


@pytest.mark.asyncio
async def test_search_plants_transport_error_raises(monkeypatch):
    class Broken(httpx.AsyncBaseTransport):
        async def handle_async_request(self, request):
            raise httpx.ConnectError("no route", request=request)

    client = httpx.AsyncClient(transport=Broken())
    monkeypatch.setattr("app.catalog.httpx.AsyncClient", lambda: client)

    with pytest.raises(NetworkError):
        await search_plants("tulip")


# ---------------------------------------------------------------------------
# fetch_ambient_tracks
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_fetch_ambient_tracks(monkeypatch):
    body = {
        "results": [
            {"id": "101", "name": "Forest Morning", "artist_name": "Leafy", "audio": "https://audio.test/101.mp3"},
            {"id": "102", "name": "Creek", "artist_name": "Stone", "audio": "https://audio.test/102.mp3"},
        ]
    }
    transport = _patch_client(monkeypatch, {"/v3.0/tracks": (200, body)})

    tracks = await fetch_ambient_tracks()

    assert [t.title for t in tracks] == ["Forest Morning", "Creek"]
    assert tracks[0].artist == "Leafy"
    assert tracks[0].audio_url == "https://audio.test/101.mp3"
    params = transport._call_log[0].url.params
    assert params["client_id"] == "jam-id"
    assert params["tags"] == "nature"
    assert params["limit"] == "20"
    assert params["audioformat"] == "mp31"


@pytest.mark.asyncio
async def test_fetch_ambient_tracks_failure(monkeypatch):
    _patch_client(monkeypatch, {"/v3.0/tracks": (500, {})})
    with pytest.raises(NetworkError):
        await fetch_ambient_tracks()


@pytest.mark.asyncio
async def test_fetch_ambient_tracks_skips_malformed_items(monkeypatch):
    body = {"results": [{"name": "no id"}, "junk", {"id": 7, "name": "Wind", "audio": "https://audio.test/7.mp3"}]}
    _patch_client(monkeypatch, {"/v3.0/tracks": (200, body)})

    tracks = await fetch_ambient_tracks()
    assert [t.id for t in tracks] == ["7"]


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [[1, 2, 3], "plain text", None])
async def test_non_object_body_is_network_error(monkeypatch, body):
    _patch_client(monkeypatch, {"/api/species-list": (200, body)})

    with pytest.raises(NetworkError):
        await search_plants("tulip")
