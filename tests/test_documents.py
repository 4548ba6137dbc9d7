"""Tests for the document stores (app/documents.py)."""

from __future__ import annotations

import json

import httpx
import pytest

from app.db import close_db, init_db
from app.documents import (
    FirestoreDocumentStore,
    SqliteDocumentStore,
    from_firestore_fields,
    get_document_store,
    to_firestore_fields,
)
from core.errors import NetworkError, NotFoundError
from core.models import User


@pytest.fixture(autouse=True)
def _env_setup(monkeypatch, tmp_path):
    monkeypatch.setenv("DB_PATH", str(tmp_path / "test.db"))
    monkeypatch.setenv("DOCUMENT_STORE", "sqlite")
    from app.config import get_settings
    get_settings.cache_clear()


@pytest.fixture
async def store():
    db = await init_db()
    yield SqliteDocumentStore(db)
    await close_db()


_ROSE = {"id": 1, "common_name": "rose", "scientific_name": "Rosa", "image": None, "custom_name": "rose"}
_FERN = {"id": 2, "common_name": "fern", "scientific_name": "Polypodiopsida", "image": None, "custom_name": "fern"}


# ---------------------------------------------------------------------------
# SQLite backend
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_read_missing_document(store):
    assert await store.read_document("users", "nobody") is None


@pytest.mark.asyncio
async def test_create_then_merge_keeps_other_fields(store):
    await store.create_or_merge_document("users", "u1", {"theme": "dark"})
    await store.create_or_merge_document("users", "u1", {"favorites": [_ROSE]})

    assert await store.read_document("users", "u1") == {"theme": "dark", "favorites": [_ROSE]}


@pytest.mark.asyncio
async def test_update_missing_document_raises(store):
    with pytest.raises(NotFoundError):
        await store.update_document("users", "ghost", {"favorites": []})
    assert await store.read_document("users", "ghost") is None


@pytest.mark.asyncio
async def test_update_replaces_array_field(store):
    await store.create_or_merge_document("users", "u1", {"theme": "dark", "favorites": [_ROSE, _FERN]})
    await store.update_document("users", "u1", {"favorites": [_FERN]})

    assert await store.read_document("users", "u1") == {"theme": "dark", "favorites": [_FERN]}


@pytest.mark.asyncio
async def test_array_append_requires_document(store):
    with pytest.raises(NotFoundError):
        await store.array_append("users", "ghost", "favorites", _ROSE)


@pytest.mark.asyncio
async def test_array_append_preserves_order(store):
    await store.create_or_merge_document("users", "u1", {"favorites": [_ROSE]})
    await store.array_append("users", "u1", "favorites", _FERN)

    assert (await store.read_document("users", "u1"))["favorites"] == [_ROSE, _FERN]


@pytest.mark.asyncio
async def test_array_append_creates_missing_field(store):
    await store.create_or_merge_document("users", "u1", {"theme": "dark"})
    await store.array_append("users", "u1", "favorites", _ROSE)

    assert await store.read_document("users", "u1") == {"theme": "dark", "favorites": [_ROSE]}


@pytest.mark.asyncio
async def test_upsert_append_creates_document(store):
    await store.upsert_append("users", "new", "favorites", _ROSE)
    assert await store.read_document("users", "new") == {"favorites": [_ROSE]}


@pytest.mark.asyncio
async def test_upsert_append_on_existing_document(store):
    await store.create_or_merge_document("users", "u1", {"theme": "dark", "favorites": [_ROSE]})
    await store.upsert_append("users", "u1", "favorites", _FERN)

    assert await store.read_document("users", "u1") == {"theme": "dark", "favorites": [_ROSE, _FERN]}


@pytest.mark.asyncio
async def test_factory_returns_sqlite_store(store):
    assert isinstance(get_document_store(None), SqliteDocumentStore)


# ---------------------------------------------------------------------------
# Firestore value codec
# ---------------------------------------------------------------------------

def test_firestore_fields_encoding():
    encoded = to_firestore_fields({"favorites": [_ROSE], "active": True, "score": 1.5})
    rose = encoded["favorites"]["arrayValue"]["values"][0]["mapValue"]["fields"]
    assert rose["id"] == {"integerValue": "1"}
    assert rose["image"] == {"nullValue": None}
    assert encoded["active"] == {"booleanValue": True}
    assert encoded["score"] == {"doubleValue": 1.5}
    assert from_firestore_fields(encoded) == {"favorites": [_ROSE], "active": True, "score": 1.5}


def test_firestore_encoding_rejects_unknown_types():
    with pytest.raises(TypeError):
        to_firestore_fields({"when": object()})


# ---------------------------------------------------------------------------
# Firestore backend (HTTP mocked)
# ---------------------------------------------------------------------------

def _install(monkeypatch, handler):
    requests: list[httpx.Request] = []
    real_client = httpx.AsyncClient

    def recording(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return handler(request)

    transport = httpx.MockTransport(recording)
    monkeypatch.setattr("app.documents.httpx.AsyncClient", lambda: real_client(transport=transport))
    return requests


def _firestore() -> FirestoreDocumentStore:
    return FirestoreDocumentStore("bloomly-test", "id-tok")


@pytest.mark.asyncio
async def test_firestore_read_missing_returns_none(monkeypatch):
    _install(monkeypatch, lambda r: httpx.Response(404, json={"error": {"status": "NOT_FOUND"}}))
    assert await _firestore().read_document("users", "u1") is None


@pytest.mark.asyncio
async def test_firestore_read_decodes_fields(monkeypatch):
    body = {"name": "x", "fields": to_firestore_fields({"favorites": [_ROSE]})}
    requests = _install(monkeypatch, lambda r: httpx.Response(200, json=body))

    data = await _firestore().read_document("users", "u1")

    assert data == {"favorites": [_ROSE]}
    assert requests[0].url.path == "/v1/projects/bloomly-test/databases/(default)/documents/users/u1"
    assert requests[0].headers["Authorization"] == "Bearer id-tok"


@pytest.mark.asyncio
async def test_firestore_update_requires_existing_document(monkeypatch):
    requests = _install(monkeypatch, lambda r: httpx.Response(404, json={}))

    with pytest.raises(NotFoundError):
        await _firestore().update_document("users", "u1", {"favorites": []})

    sent = requests[0]
    assert sent.method == "PATCH"
    assert sent.url.params["currentDocument.exists"] == "true"
    assert sent.url.params.get_list("updateMask.fieldPaths") == ["favorites"]


@pytest.mark.asyncio
async def test_firestore_merge_has_no_precondition(monkeypatch):
    requests = _install(monkeypatch, lambda r: httpx.Response(200, json={}))

    await _firestore().create_or_merge_document("users", "u1", {"favorites": [_ROSE]})

    assert "currentDocument.exists" not in requests[0].url.params
    assert json.loads(requests[0].content)["fields"] == to_firestore_fields({"favorites": [_ROSE]})


@pytest.mark.asyncio
async def test_firestore_upsert_append_is_a_single_commit(monkeypatch):
    requests = _install(monkeypatch, lambda r: httpx.Response(200, json={"writeResults": [{}]}))

    await _firestore().upsert_append("users", "u1", "favorites", _ROSE)

    assert len(requests) == 1
    assert requests[0].url.path.endswith("/documents:commit")
    [write] = json.loads(requests[0].content)["writes"]
    assert "currentDocument" not in write
    assert write["updateMask"] == {"fieldPaths": []}
    transform = write["updateTransforms"][0]
    assert transform["fieldPath"] == "favorites"
    assert transform["appendMissingElements"]["values"][0]["mapValue"]["fields"]["id"] == {"integerValue": "1"}


@pytest.mark.asyncio
async def test_firestore_array_append_missing_document(monkeypatch):
    requests = _install(monkeypatch, lambda r: httpx.Response(404, json={}))

    with pytest.raises(NotFoundError):
        await _firestore().array_append("users", "u1", "favorites", _ROSE)
    [write] = json.loads(requests[0].content)["writes"]
    assert write["currentDocument"] == {"exists": True}


@pytest.mark.asyncio
async def test_firestore_server_error_is_network_error(monkeypatch):
    _install(monkeypatch, lambda r: httpx.Response(503, text="unavailable"))
    with pytest.raises(NetworkError):
        await _firestore().read_document("users", "u1")


def test_factory_returns_firestore_store(monkeypatch):
    monkeypatch.setenv("DOCUMENT_STORE", "firestore")
    monkeypatch.setenv("FIREBASE_PROJECT_ID", "bloomly-test")
    from app.config import get_settings
    get_settings.cache_clear()

    store = get_document_store(User(uid="u1", id_token="tok"))
    assert isinstance(store, FirestoreDocumentStore)
