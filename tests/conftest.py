"""
tests/conftest.py -- Shared test fixtures for TaskGuard.

This module provides:
  - stores:     an isolated (UserStore, TaskStore) pair on one in-memory DB
  - make_user:  factory that persists a user with the given roles
  - api_client: TestClient over the real app, wired to isolated stores

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool and the two stores
must see the same database. Plain :memory: DBs are per-connection and would
present a blank schema to each worker thread. The named URI format
(file:name?mode=memory&cache=shared&uri=true) shares one in-memory instance
across all connections in the same process. A uuid in the name keeps every
test's database separate.

Settings are read at import time by auth.tokens and api.main, so the env vars
below must be set before any app module is imported.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Callable, Generator
from contextlib import asynccontextmanager

# CRITICAL: set before any auth/core import so get_settings() sees them.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("SECRET_KEY", "test-secret-key-that-is-long-enough-for-hs256")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.models import User
from auth.store import UserStore
from auth.tokens import hash_password
from tasks.store import TaskStore

DEFAULT_PASSWORD = "pass1234"


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _memory_db_url(prefix: str) -> str:
    return f"sqlite:///file:{prefix}_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"


def _make_test_stores(prefix: str) -> tuple[UserStore, TaskStore]:
    """Create a UserStore and TaskStore sharing one named in-memory database."""
    url = _memory_db_url(prefix)
    return UserStore(db_url=url), TaskStore(db_url=url)


def _patch_lifespan(user_store: UserStore, task_store: TaskStore):
    """Return a lifespan that wires the test stores into app.state.

    Closing the stores is left to the fixture that created them.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.task_store = task_store
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def stores() -> Generator[tuple[UserStore, TaskStore], None, None]:
    """Yield an isolated (user_store, task_store) pair."""
    user_store, task_store = _make_test_stores("test_stores")
    yield user_store, task_store
    task_store.close()
    user_store.close()


@pytest.fixture
def user_store(stores: tuple[UserStore, TaskStore]) -> UserStore:
    return stores[0]


@pytest.fixture
def task_store(stores: tuple[UserStore, TaskStore]) -> TaskStore:
    return stores[1]


@pytest.fixture
def make_user(user_store: UserStore) -> Callable[..., User]:
    """Return a factory: make_user("alice", "MANAGER") -> persisted User.

    Roles default to {"USER"}. Every user gets DEFAULT_PASSWORD.
    """

    def _make(username: str, *roles: str) -> User:
        user = User(
            username=username,
            hashed_password=hash_password(DEFAULT_PASSWORD),
            roles=frozenset(roles or {"USER"}),
        )
        uid = user_store.create_user(user)
        created = user_store.get_by_id(uid)
        assert created is not None
        return created

    return _make


@pytest.fixture
def api_client(stores: tuple[UserStore, TaskStore]) -> Generator[TestClient, None, None]:
    """Yield a TestClient over the real app with isolated stores.

    Tests hit real middleware and route handlers. Seed users through the
    make_user fixture; it writes to the same database the app reads.
    """
    user_store, task_store = stores
    original = app.router.lifespan_context
    app.router.lifespan_context = _patch_lifespan(user_store, task_store)
    try:
        with TestClient(app, raise_server_exceptions=True) as client:
            yield client
    finally:
        app.router.lifespan_context = original
