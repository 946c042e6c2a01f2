"""
Shared fixtures: in-memory fakes for the document store, identity provider
and SMTP transport, plus a TestClient wired to them.

Tests never talk to Supabase or a real SMTP server.
"""

import asyncio
import os
import time
from typing import Optional

import jwt as pyjwt
import pytest

# Env vars must be set before importing anything from massmail
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "test-service-key")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from massmail.identity import IdentityError, WRONG_PASSWORD, EMAIL_ALREADY_IN_USE
from massmail.store import SERVER_TIMESTAMP

TEST_SECRET = "test-secret-key"
FIXED_TIMESTAMP = "2026-01-01T00:00:00+00:00"


# ---------------------------------------------------------------------------
# Document store fake
# ---------------------------------------------------------------------------

class FakeDocumentStore:
    """In-memory DocumentStore that records every call it receives."""

    def __init__(self):
        self.collections: dict[str, dict[str, dict]] = {}
        self.calls: list[tuple] = []
        self._next_id = 0

    def seed(self, collection: str, row: dict) -> dict:
        self.collections.setdefault(collection, {})[row["id"]] = dict(row)
        return row

    def rows(self, collection: str) -> list[dict]:
        return list(self.collections.get(collection, {}).values())

    @property
    def writes(self) -> list[tuple]:
        return [c for c in self.calls if c[0] in ("create", "update", "delete")]

    @staticmethod
    def _resolve(data: dict) -> dict:
        return {k: (FIXED_TIMESTAMP if v is SERVER_TIMESTAMP else v) for k, v in data.items()}

    async def get(self, collection, doc_id, organization_id=None):
        self.calls.append(("get", collection, doc_id))
        await asyncio.sleep(0)
        row = self.collections.get(collection, {}).get(doc_id)
        if row is None:
            return None
        if organization_id is not None and row.get("organization_id") != organization_id:
            return None
        return dict(row)

    async def list(self, collection, organization_id=None):
        filters = {"organization_id": organization_id} if organization_id is not None else {}
        return await self.query(collection, filters)

    async def query(self, collection, filters=None, *, search=None, order_by=None,
                    descending=False, limit=None, offset=0):
        self.calls.append(("query", collection, dict(filters or {})))
        rows = [
            dict(r) for r in self.rows(collection)
            if all(r.get(k) == v for k, v in (filters or {}).items())
        ]
        if search:
            column, prefix = search
            rows = [r for r in rows if str(r.get(column, "")).lower().startswith(prefix.lower())]
        if order_by:
            rows.sort(key=lambda r: r.get(order_by) or "", reverse=descending)
        if limit is not None:
            rows = rows[offset:offset + limit]
        return rows

    async def count(self, collection, filters=None):
        self.calls.append(("count", collection, dict(filters or {})))
        return len([
            r for r in self.rows(collection)
            if all(r.get(k) == v for k, v in (filters or {}).items())
        ])

    async def create(self, collection, data):
        self.calls.append(("create", collection, data))
        self._next_id += 1
        row = self._resolve(data)
        row.setdefault("id", f"{collection}-{self._next_id}")
        self.collections.setdefault(collection, {})[row["id"]] = row
        return dict(row)

    async def update(self, collection, doc_id, data):
        self.calls.append(("update", collection, doc_id, data))
        row = self.collections.get(collection, {}).get(doc_id)
        if row is None:
            return None
        row.update(self._resolve(data))
        return dict(row)

    async def delete(self, collection, doc_id):
        self.calls.append(("delete", collection, doc_id))
        return self.collections.get(collection, {}).pop(doc_id, None) is not None


# ---------------------------------------------------------------------------
# Identity provider fake
# ---------------------------------------------------------------------------

class FakeIdentityProvider:
    def __init__(self):
        self.accounts: dict[str, tuple[str, str]] = {}  # email -> (uid, password)
        self.deleted: list[str] = []

    def add(self, uid: str, email: str, password: str) -> None:
        self.accounts[email] = (uid, password)

    async def sign_in_with_password(self, email, password):
        account = self.accounts.get(email)
        if account is None or account[1] != password:
            raise IdentityError(WRONG_PASSWORD, "Invalid login credentials")
        return account[0]

    async def create_user(self, email, password):
        if email in self.accounts:
            raise IdentityError(EMAIL_ALREADY_IN_USE, "User already been registered")
        uid = f"uid-{len(self.accounts) + 1}"
        self.accounts[email] = (uid, password)
        return uid

    async def delete_user(self, user_id):
        self.deleted.append(user_id)


# ---------------------------------------------------------------------------
# SMTP transport fake
# ---------------------------------------------------------------------------

class FakeTransport:
    """
    Records every message; sends to addresses in ``fail_for`` raise.

    Tracks how many sends are in flight at once so batching can be asserted.
    """

    def __init__(self, fail_for=(), verify_error: Optional[Exception] = None, delay: float = 0):
        self.fail_for = set(fail_for)
        self.verify_error = verify_error
        self.delay = delay
        self.verified = 0
        self.sent = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.events: list[tuple[str, str]] = []

    async def verify(self):
        self.verified += 1
        if self.verify_error:
            raise self.verify_error

    async def send_mail(self, message):
        to = message["To"]
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        self.events.append(("start", to))
        try:
            await asyncio.sleep(self.delay)
            if to in self.fail_for:
                raise ConnectionError(f"550 mailbox unavailable: {to}")
            self.sent.append(message)
        finally:
            self.in_flight -= 1
            self.events.append(("end", to))


# ---------------------------------------------------------------------------
# Token helpers
# ---------------------------------------------------------------------------

def make_token(
    user_id: str = "user-1",
    role: str = "user",
    organization_id: Optional[str] = "org-1",
    secret: str = TEST_SECRET,
    expires_in: int = 3600,
) -> str:
    now = int(time.time())
    return pyjwt.encode(
        {
            "sub": user_id,
            "user": {
                "id": user_id,
                "email": f"{user_id}@example.com",
                "name": user_id,
                "role": role,
                "organizationId": organization_id,
            },
            "iat": now,
            "exp": now + expires_in,
        },
        secret,
        algorithm="HS256",
    )


def auth_header(**kwargs) -> dict:
    return {"Authorization": f"Bearer {make_token(**kwargs)}"}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def store():
    return FakeDocumentStore()


@pytest.fixture()
def identity():
    return FakeIdentityProvider()


@pytest.fixture()
def transport():
    return FakeTransport()


@pytest.fixture(autouse=True)
def secret_key(monkeypatch):
    monkeypatch.setattr("massmail.auth.SECRET_KEY", TEST_SECRET)


@pytest.fixture()
def client(store, identity, transport):
    """TestClient for the FastAPI app with every collaborator replaced by a fake."""
    from fastapi.testclient import TestClient

    from massmail.identity import get_identity_provider
    from massmail.main import app
    from massmail.routers.email import get_transport_factory
    from massmail.store import get_document_store

    app.dependency_overrides[get_document_store] = lambda: store
    app.dependency_overrides[get_identity_provider] = lambda: identity
    app.dependency_overrides[get_transport_factory] = lambda: (lambda config: transport)
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
