"""
tests/conftest.py -- Shared test fixtures for TaskTracker tests.

This module provides:
  - _db_url(): a unique named shared-memory SQLite URL
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - user_store / tracker: isolated stores on one fresh database per test
  - api_client: TestClient over the real app with isolated stores
  - register: factory that registers a user over HTTP and returns auth headers

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

DEBUG must be set before any core/auth import so get_settings() generates a
SECRET_KEY instead of raising, and RATE_LIMIT_ENABLED=false keeps the shared
client (one IP for every request) from tripping the login/register limits.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Callable, Generator
from contextlib import asynccontextmanager

# CRITICAL: set before any core/auth import -- Settings is cached on first use.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.store import UserStore
from tracker.store import TrackerStore

# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _db_url(prefix: str) -> str:
    """Return a named shared-memory SQLite URL unique to this call."""
    return f"sqlite:///file:{prefix}_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"


def _patch_lifespan(user_store: UserStore, tracker: TrackerStore):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test stores into app.state so TestClient routes see an
    isolated test database rather than the configured DATABASE_URL.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.tracker = tracker
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Store fixtures -- fresh database per test
# ---------------------------------------------------------------------------


@pytest.fixture()
def db_url() -> str:
    return _db_url("test_store")


@pytest.fixture()
def user_store(db_url: str) -> Generator[UserStore, None, None]:
    store = UserStore(db_url=db_url)
    yield store
    store.close()


@pytest.fixture()
def tracker(db_url: str, user_store: UserStore) -> Generator[TrackerStore, None, None]:
    # Depends on user_store so the shared in-memory DB stays open for both.
    store = TrackerStore(db_url=db_url)
    yield store
    store.close()


# ---------------------------------------------------------------------------
# Module-scoped client -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client() -> Generator[TestClient, None, None]:
    """Yield a TestClient over the real app with isolated in-memory stores.

    Tests hit real route handlers, dependencies and exception handlers; only
    the database is swapped.
    """
    url = _db_url("test_api")
    user_store = UserStore(db_url=url)
    tracker = TrackerStore(db_url=url)

    app.router.lifespan_context = _patch_lifespan(user_store, tracker)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client

    tracker.close()
    user_store.close()


@pytest.fixture()
def register(api_client: TestClient) -> Callable[..., tuple[dict[str, str], dict]]:
    """Return a factory: register(name) -> (Bearer headers, user JSON).

    Emails get a random suffix so every call creates a distinct user even
    though the client and database are shared across the module. The cookie
    set by the register response is cleared so each request authenticates
    only with the headers the test passes.
    """

    def _register(name: str = "alice", password: str = "secret123") -> tuple[dict[str, str], dict]:
        email = f"{name}.{uuid.uuid4().hex[:8]}@example.com"
        resp = api_client.post(
            "/api/v1/users/register",
            json={"username": name, "email": email, "password": password},
        )
        assert resp.status_code == 201, f"Expected 201, got {resp.status_code}: {resp.text}"
        api_client.cookies.clear()
        data = resp.json()
        return {"Authorization": f"Bearer {data['access_token']}"}, data["user"]

    return _register
