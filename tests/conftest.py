"""Test fixtures — in-memory store, a fixed signing key, and an HTTP client.

Learn: Testing pattern for the auth service:

1. Services are tested directly against InMemoryAuthStore — no database.
2. HTTP tests run the real FastAPI app through httpx's ASGITransport,
   with get_store / get_codec overridden so every request in a test sees
   the same in-memory store.
3. The SQL store has its own tests against sqlite+aiosqlite (test_sql_store.py).

bcrypt runs at its minimum cost (4 rounds) when seeding, to keep the
suite fast.
"""

import uuid
from datetime import datetime, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine

from accountgate.auth.dependencies import get_codec, get_store
from accountgate.auth.jwt import TokenCodec
from accountgate.auth.password import hash_password
from accountgate.main import app
from accountgate.services.account_service import AccountService
from accountgate.services.session_service import (
    RefreshCoordinator,
    SessionIssuer,
)
from accountgate.services.switch_service import AccountSwitcher
from accountgate.store import InMemoryAuthStore

TEST_SECRET = "test-signing-key"
PASSWORD = "correct horse battery staple"


class Clock:
    """A settable clock for codec / coordinator tests."""

    def __init__(self, now: datetime | None = None):
        self.now = now or datetime.now(timezone.utc)

    def __call__(self) -> datetime:
        return self.now


async def seed_account(
    store: InMemoryAuthStore,
    usernames: list[str],
    email: str | None = None,
    password: str = PASSWORD,
    roles: str = "user",
):
    """Create an Account with one User per username. Returns (account, users)."""
    email = email or f"acct-{uuid.uuid4().hex[:8]}@example.com"
    password_hash, salt = hash_password(password, rounds=4)
    account = await store.create_account(str(uuid.uuid4()), email, password_hash, salt)
    users = [
        await store.create_user(str(uuid.uuid4()), name, roles, account.id)
        for name in usernames
    ]
    return await store.find_account_by_id(account.id), users


@pytest.fixture()
def store():
    return InMemoryAuthStore()


@pytest.fixture()
def codec():
    return TokenCodec(TEST_SECRET)


@pytest.fixture()
def issuer(store, codec):
    return SessionIssuer(store, codec)


@pytest.fixture()
def coordinator(store, issuer):
    return RefreshCoordinator(store, issuer)


@pytest.fixture()
def switcher(store, issuer):
    return AccountSwitcher(store, issuer)


@pytest.fixture()
def accounts(store, codec):
    return AccountService(store, codec, hash_rounds=4)


@pytest_asyncio.fixture()
async def health_engine(monkeypatch):
    """Health checks hit an in-memory SQLite engine instead of Postgres."""
    engine = create_async_engine("sqlite+aiosqlite://")
    monkeypatch.setattr("accountgate.api.health.get_engine", lambda: engine)
    yield engine
    await engine.dispose()


@pytest.fixture()
def override_app(store, codec):
    """Point the app's store and codec at the test instances."""
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_codec] = lambda: codec
    yield app
    app.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def client(override_app, health_engine):
    """HTTP client against the app, sharing the test's in-memory store."""
    transport = ASGITransport(app=override_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
