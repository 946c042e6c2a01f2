"""
Document store over Supabase tables.

Every collection is a table with an ``id`` primary key. Organization-scoped
collections (smtp_configs, models, email_logs) carry an ``organization_id``
column; passing ``organization_id`` to a read scopes it to that tenant.

The Supabase client is synchronous, so each request runs in a worker thread.
That keeps independent reads (e.g. SMTP config + template) concurrent when
awaited together with ``asyncio.gather``.
"""

import asyncio
import logging
from typing import Any, Callable, List, Optional, Protocol, Tuple

from postgrest.exceptions import APIError

from massmail.db import get_supabase_admin

logger = logging.getLogger(__name__)


class _ServerTimestamp:
    """Placeholder resolved by the database clock when a row is written."""

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()

# Postgres accepts the special input 'now' for timestamptz columns and
# evaluates it at write time, on the database server.
_SERVER_NOW = "now"


class DocumentStoreError(Exception):
    """A request to the document store failed upstream."""

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


class DocumentStore(Protocol):
    async def get(self, collection: str, doc_id: str, organization_id: Optional[str] = None) -> Optional[dict]: ...

    async def list(self, collection: str, organization_id: Optional[str] = None) -> List[dict]: ...

    async def query(
        self,
        collection: str,
        filters: Optional[dict] = None,
        *,
        search: Optional[Tuple[str, str]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[dict]: ...

    async def count(self, collection: str, filters: Optional[dict] = None) -> int: ...

    async def create(self, collection: str, data: dict) -> dict: ...

    async def update(self, collection: str, doc_id: str, data: dict) -> Optional[dict]: ...

    async def delete(self, collection: str, doc_id: str) -> bool: ...


def resolve_server_timestamps(data: dict) -> dict:
    """Return a copy of ``data`` with SERVER_TIMESTAMP values swapped for the DB clock."""
    return {
        key: (_SERVER_NOW if value is SERVER_TIMESTAMP else value)
        for key, value in data.items()
    }


class SupabaseDocumentStore:
    """DocumentStore backed by the Supabase admin client."""

    def __init__(self, client):
        self._client = client

    async def _execute(self, build: Callable[[], Any], collection: str):
        try:
            return await asyncio.to_thread(lambda: build().execute())
        except APIError as e:
            code = getattr(e, "code", None) or "DATABASE_ERROR"
            logger.error(f"Document store request on {collection!r} failed: [{code}] {e}")
            raise DocumentStoreError(code, getattr(e, "message", None) or str(e)) from e

    def _table(self, collection: str):
        return self._client.table(collection)

    async def get(self, collection: str, doc_id: str, organization_id: Optional[str] = None) -> Optional[dict]:
        def build():
            q = self._table(collection).select("*").eq("id", doc_id)
            if organization_id is not None:
                q = q.eq("organization_id", organization_id)
            return q.limit(1)

        result = await self._execute(build, collection)
        if not result.data:
            return None
        return result.data[0]

    async def list(self, collection: str, organization_id: Optional[str] = None) -> List[dict]:
        filters = {"organization_id": organization_id} if organization_id is not None else {}
        return await self.query(collection, filters)

    async def query(
        self,
        collection: str,
        filters: Optional[dict] = None,
        *,
        search: Optional[Tuple[str, str]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[dict]:
        """
        Select rows matching every equality filter.

        ``search`` is a (column, prefix) pair matched case-insensitively
        against the start of the column value.
        """
        def build():
            q = self._table(collection).select("*")
            for column, value in (filters or {}).items():
                q = q.eq(column, value)
            if search:
                column, prefix = search
                q = q.ilike(column, f"{prefix}%")
            if order_by:
                q = q.order(order_by, desc=descending)
            if limit is not None:
                q = q.range(offset, offset + limit - 1)
            return q

        result = await self._execute(build, collection)
        return result.data or []

    async def count(self, collection: str, filters: Optional[dict] = None) -> int:
        def build():
            q = self._table(collection).select("id", count="exact")
            for column, value in (filters or {}).items():
                q = q.eq(column, value)
            return q

        result = await self._execute(build, collection)
        return result.count or 0

    async def create(self, collection: str, data: dict) -> dict:
        payload = resolve_server_timestamps(data)
        result = await self._execute(lambda: self._table(collection).insert(payload), collection)
        if not result.data:
            raise DocumentStoreError("NO_DATA", f"Insert into {collection} returned no row")
        return result.data[0]

    async def update(self, collection: str, doc_id: str, data: dict) -> Optional[dict]:
        payload = resolve_server_timestamps(data)
        result = await self._execute(
            lambda: self._table(collection).update(payload).eq("id", doc_id),
            collection,
        )
        if not result.data:
            return None
        return result.data[0]

    async def delete(self, collection: str, doc_id: str) -> bool:
        result = await self._execute(
            lambda: self._table(collection).delete().eq("id", doc_id),
            collection,
        )
        return bool(result.data)


_store: Optional[SupabaseDocumentStore] = None


def get_document_store() -> DocumentStore:
    """FastAPI dependency returning the process-wide document store."""
    global _store
    if _store is None:
        client = get_supabase_admin()
        if client is None:
            raise DocumentStoreError(
                "SERVER_MISCONFIGURED",
                "SUPABASE_SERVICE_KEY is not set",
            )
        _store = SupabaseDocumentStore(client)
    return _store
