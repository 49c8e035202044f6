"""
Shared fixtures.

Unit tests get a fresh sqlite:///:memory: KanbanStore per test. API tests get
one TestClient per module, backed by named shared-memory databases: the
route handlers run on worker threads, and a plain :memory: URL would hand
each thread its own empty database.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass

# Must precede the first get_settings() call, which happens at import time
# in auth.tokens and api.main.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app
from auth.models import User
from auth.store import UserStore
from auth.tokens import create_access_token, hash_password
from kanban.service import KanbanService
from kanban.store import KanbanStore

# ---------------------------------------------------------------------------
# Unit-level fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def kanban_store() -> Generator[KanbanStore, None, None]:
    store = KanbanStore("sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture
def service(kanban_store: KanbanStore) -> KanbanService:
    return KanbanService(kanban_store)


@pytest.fixture
def cascade_service(kanban_store: KanbanStore) -> KanbanService:
    return KanbanService(kanban_store, cascade_deletes=True)


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_stores(db_suffix: str) -> tuple[UserStore, KanbanStore]:
    """Open a UserStore and KanbanStore on shared-memory databases private to db_suffix."""
    auth_url = f"sqlite:///file:test_auth_{db_suffix}?mode=memory&cache=shared&uri=true"
    kanban_url = f"sqlite:///file:test_kanban_{db_suffix}?mode=memory&cache=shared&uri=true"
    return UserStore(db_url=auth_url), KanbanStore(db_url=kanban_url)


def _patch_lifespan(user_store: UserStore, kanban_store: KanbanStore):
    """Lifespan replacement that installs the given stores instead of opening configured ones."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.kanban_store = kanban_store
        app.state.service = KanbanService(kanban_store)
        yield

    return test_lifespan


@dataclass
class Account:
    """A test user plus ready-made auth headers."""

    id: str
    email: str
    password: str
    token: str

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


def _make_account(user_store: UserStore, email: str, name: str, password: str) -> Account:
    uid = user_store.create_user(User(email=email, name=name, hashed_password=hash_password(password)))
    token = create_access_token(user_id=uid, email=email, role="user", expire_seconds=3600)
    return Account(id=uid, email=email, password=password, token=token)


# ---------------------------------------------------------------------------
# Module-scoped fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client(request: pytest.FixtureRequest) -> Generator[tuple[TestClient, Account, Account], None, None]:
    """Yield (client, owner, other) for API integration tests.

    owner and other are two registered users with no shared workspace yet.
    Rate limiting is switched off so long test modules do not trip the
    per-route budgets; each client starts with a fresh limiter state.
    """
    user_store, kanban_store = _make_test_stores(request.module.__name__.rsplit(".", 1)[-1])
    owner = _make_account(user_store, "owner@deltask.io", "Olive Owner", "ownerpass123")
    other = _make_account(user_store, "other@deltask.io", "Oscar Other", "otherpass123")

    app.router.lifespan_context = _patch_lifespan(user_store, kanban_store)
    limiter.reset()
    limiter.enabled = False

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, owner, other

    limiter.enabled = True
    user_store.close()
    kanban_store.close()
