"""Document store — the user's profile documents live here.

Two backends share one interface:

- ``SqliteDocumentStore``: local JSON documents in the ``documents`` table,
  every operation a single SQL statement (SQLite JSON functions).
- ``FirestoreDocumentStore``: Cloud Firestore REST API, authorised with the
  signed-in user's id token.

``upsert_append`` appends to an array field, creating the document when it is
absent.  The base implementation tries the atomic append and, on
``NotFoundError``, falls back to a create-with-merge seeded with the value.
Firestore overrides it with a single commit that does both.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from typing import Any

import aiosqlite
import httpx

from app.config import get_settings
from app.db import get_db
from core.errors import NetworkError, NotFoundError
from core.models import User

logger = logging.getLogger(__name__)


class DocumentStore(ABC):
    """Minimal document-database interface used by the garden views."""

    @abstractmethod
    async def read_document(self, collection: str, doc_id: str) -> dict | None:
        """Return the document's data, or None if it does not exist."""

    @abstractmethod
    async def create_or_merge_document(self, collection: str, doc_id: str, data: dict) -> None:
        """Create the document, or merge *data* into the existing one."""

    @abstractmethod
    async def update_document(self, collection: str, doc_id: str, patch: dict) -> None:
        """Replace the top-level fields in *patch*.  Raises NotFoundError if absent."""

    @abstractmethod
    async def array_append(self, collection: str, doc_id: str, field: str, value: Any) -> None:
        """Atomically append *value* to array *field*.  Raises NotFoundError if absent."""

    async def upsert_append(self, collection: str, doc_id: str, field: str, value: Any) -> None:
        try:
            await self.array_append(collection, doc_id, field, value)
        except NotFoundError:
            logger.info("%s/%s does not exist yet — creating it", collection, doc_id)
            await self.create_or_merge_document(collection, doc_id, {field: [value]})


# ---------------------------------------------------------------------------
# SQLite backend
# ---------------------------------------------------------------------------

class SqliteDocumentStore(DocumentStore):
    def __init__(self, db: aiosqlite.Connection):
        self._db = db

    async def read_document(self, collection: str, doc_id: str) -> dict | None:
        cursor = await self._db.execute(
            "SELECT data FROM documents WHERE collection = ? AND doc_id = ?",
            (collection, doc_id),
        )
        row = await cursor.fetchone()
        if not row:
            return None
        return json.loads(row[0])

    async def create_or_merge_document(self, collection: str, doc_id: str, data: dict) -> None:
        await self._db.execute(
            """
            INSERT INTO documents (collection, doc_id, data)
            VALUES (?, ?, json(?))
            ON CONFLICT(collection, doc_id)
            DO UPDATE SET data       = json_patch(documents.data, excluded.data),
                          updated_at = datetime('now')
            """,
            (collection, doc_id, json.dumps(data)),
        )
        await self._db.commit()

    async def update_document(self, collection: str, doc_id: str, patch: dict) -> None:
        cursor = await self._db.execute(
            """
            UPDATE documents
            SET data = json_patch(data, json(?)), updated_at = datetime('now')
            WHERE collection = ? AND doc_id = ?
            """,
            (json.dumps(patch), collection, doc_id),
        )
        await self._db.commit()
        if cursor.rowcount == 0:
            raise NotFoundError(f"{collection}/{doc_id} not found")

    async def array_append(self, collection: str, doc_id: str, field: str, value: Any) -> None:
        path = f'$."{field}"'
        cursor = await self._db.execute(
            """
            UPDATE documents
            SET data = json_set(
                    data, ?,
                    json_insert(coalesce(json_extract(data, ?), json('[]')), '$[#]', json(?))
                ),
                updated_at = datetime('now')
            WHERE collection = ? AND doc_id = ?
            """,
            (path, path, json.dumps(value), collection, doc_id),
        )
        await self._db.commit()
        if cursor.rowcount == 0:
            raise NotFoundError(f"{collection}/{doc_id} not found")


# ---------------------------------------------------------------------------
# Firestore backend
# ---------------------------------------------------------------------------

_FIRESTORE_API = "https://firestore.googleapis.com/v1"


def to_firestore_value(value: Any) -> dict:
    """Encode a Python value as a Firestore REST ``Value``."""
    if value is None:
        return {"nullValue": None}
    if isinstance(value, bool):
        return {"booleanValue": value}
    if isinstance(value, int):
        return {"integerValue": str(value)}
    if isinstance(value, float):
        return {"doubleValue": value}
    if isinstance(value, str):
        return {"stringValue": value}
    if isinstance(value, (list, tuple)):
        return {"arrayValue": {"values": [to_firestore_value(v) for v in value]}}
    if isinstance(value, dict):
        return {"mapValue": {"fields": to_firestore_fields(value)}}
    raise TypeError(f"Unsupported Firestore value: {type(value).__name__}")


def to_firestore_fields(data: dict) -> dict:
    return {key: to_firestore_value(v) for key, v in data.items()}


def from_firestore_value(value: dict) -> Any:
    """Decode a Firestore REST ``Value`` into plain Python."""
    if "nullValue" in value:
        return None
    if "booleanValue" in value:
        return value["booleanValue"]
    if "integerValue" in value:
        return int(value["integerValue"])
    if "doubleValue" in value:
        return float(value["doubleValue"])
    if "arrayValue" in value:
        return [from_firestore_value(v) for v in value["arrayValue"].get("values", [])]
    if "mapValue" in value:
        return from_firestore_fields(value["mapValue"].get("fields", {}))
    for key in ("stringValue", "timestampValue", "referenceValue", "bytesValue"):
        if key in value:
            return value[key]
    return None


def from_firestore_fields(fields: dict) -> dict:
    return {key: from_firestore_value(v) for key, v in fields.items()}


class FirestoreDocumentStore(DocumentStore):
    def __init__(self, project_id: str, id_token: str, *, base_url: str = _FIRESTORE_API):
        self._root = f"projects/{project_id}/databases/(default)/documents"
        self._base_url = base_url
        self._headers = {"Authorization": f"Bearer {id_token}"} if id_token else {}

    def _name(self, collection: str, doc_id: str) -> str:
        return f"{self._root}/{collection}/{doc_id}"

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            async with httpx.AsyncClient() as client:
                resp = await client.request(method, url, headers=self._headers, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("Firestore %s %s failed: %s", method, url, exc)
            raise NetworkError("Document store unreachable") from exc
        if resp.status_code == 404:
            raise NotFoundError(url)
        if resp.status_code >= 400:
            logger.warning("Firestore %s %s returned %d: %s", method, url, resp.status_code, resp.text)
            raise NetworkError("Document store request failed", resp.status_code)
        return resp

    async def read_document(self, collection: str, doc_id: str) -> dict | None:
        url = f"{self._base_url}/{self._name(collection, doc_id)}"
        try:
            resp = await self._request("GET", url)
        except NotFoundError:
            return None
        return from_firestore_fields(resp.json().get("fields", {}))

    async def _patch(self, collection: str, doc_id: str, data: dict, *, must_exist: bool) -> None:
        url = f"{self._base_url}/{self._name(collection, doc_id)}"
        params: list[tuple[str, str]] = [("updateMask.fieldPaths", key) for key in data]
        if must_exist:
            params.append(("currentDocument.exists", "true"))
        await self._request("PATCH", url, params=params, json={"fields": to_firestore_fields(data)})

    async def create_or_merge_document(self, collection: str, doc_id: str, data: dict) -> None:
        await self._patch(collection, doc_id, data, must_exist=False)

    async def update_document(self, collection: str, doc_id: str, patch: dict) -> None:
        await self._patch(collection, doc_id, patch, must_exist=True)

    async def _commit_append(self, collection: str, doc_id: str, field: str, value: Any, *, must_exist: bool) -> None:
        write: dict[str, Any] = {
            # Empty mask: no plain fields change, only the transform applies.
            "update": {"name": self._name(collection, doc_id), "fields": {}},
            "updateMask": {"fieldPaths": []},
            "updateTransforms": [
                {
                    "fieldPath": field,
                    "appendMissingElements": {"values": [to_firestore_value(value)]},
                }
            ],
        }
        if must_exist:
            write["currentDocument"] = {"exists": True}
        await self._request("POST", f"{self._base_url}/{self._root}:commit", json={"writes": [write]})

    async def array_append(self, collection: str, doc_id: str, field: str, value: Any) -> None:
        await self._commit_append(collection, doc_id, field, value, must_exist=True)

    async def upsert_append(self, collection: str, doc_id: str, field: str, value: Any) -> None:
        await self._commit_append(collection, doc_id, field, value, must_exist=False)


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

def get_document_store(user: User | None = None) -> DocumentStore:
    """Return the configured backend, authorised for *user* where needed."""
    settings = get_settings()
    if settings.document_store == "firestore":
        return FirestoreDocumentStore(settings.firebase_project_id, user.id_token if user else "")
    return SqliteDocumentStore(get_db())
