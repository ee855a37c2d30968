"""
tests/conftest.py -- Shared test fixtures for PageDesk integration tests.

This module provides:
  - _make_test_stores(): isolated in-memory identity and content DBs
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - api_client: TestClient plus bearer tokens for an admin, a limited
    manager and a user without the Admin claim
  - web_client: the same users, with follow_redirects=False for UI routes

Named shared-memory SQLite URIs (not plain :memory:) are required because
TestClient runs sync route handlers in a thread pool. Plain :memory: DBs are
per-connection and would present a blank schema to each worker thread.

DEBUG must be set before any core/auth import so get_settings() can
auto-generate SECRET_KEY instead of raising ValueError. The login rate limit
is raised so repeated logins across test modules are not throttled.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import timedelta

os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient

from asgi import app
from auth.models import Role, User
from auth.policies import Permission, permission_claim
from auth.store import IdentityStore
from auth.tokens import create_access_token
from content.store import ContentStore

ADMIN_PASSWORD = "testpass123"


class Harness:
    """Bundle of a running TestClient and the identities created for it."""

    def __init__(self, client: TestClient, store: IdentityStore, content: ContentStore) -> None:
        self.client = client
        self.store = store
        self.content = content
        self.tokens: dict[str, str] = {}
        self.ids: dict[str, int] = {}

    def bearer(self, who: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.tokens[who]}"}


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_stores(db_suffix: str) -> tuple[IdentityStore, ContentStore]:
    identity_url = f"sqlite:///file:test_identity_{db_suffix}?mode=memory&cache=shared&uri=true"
    content_url = f"sqlite:///file:test_content_{db_suffix}?mode=memory&cache=shared&uri=true"
    store = IdentityStore(identity_url, app.state.identity.options)
    content = ContentStore(content_url)
    return store, content


def _add_user(store: IdentityStore, username: str, role: str | None = None) -> tuple[int, str]:
    uid = store.create_user(User(username=username, email=f"{username}@example.com"), password=ADMIN_PASSWORD)
    if role:
        store.add_to_role(uid, role)
    token = create_access_token(uid, username, timedelta(hours=1))
    return uid, token


def _seed_users(harness: Harness) -> None:
    """Create three users:

    admin   -- SysAdmin role, every permission claim
    editor  -- Admin + Users only: may list users, nothing else
    visitor -- no roles at all
    """
    store = harness.store
    store.create_role(Role(name="SysAdmin", claims=[permission_claim(p) for p in Permission.all()]))
    store.create_role(
        Role(name="Editor", claims=[permission_claim(Permission.ADMIN), permission_claim(Permission.USERS)])
    )
    for who, role in (("admin", "SysAdmin"), ("editor", "Editor"), ("visitor", None)):
        harness.ids[who], harness.tokens[who] = _add_user(store, f"test{who}", role)


def _patch_lifespan(store: IdentityStore, content: ContentStore):
    """Return a lifespan that starts the identity module on the test store."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.identity.start(store)
        app.state.content = content
        yield

    return test_lifespan


def _harness(db_suffix: str, **client_kwargs) -> Generator[Harness, None, None]:
    store, content = _make_test_stores(db_suffix)
    app.router.lifespan_context = _patch_lifespan(store, content)
    with TestClient(app, raise_server_exceptions=True, **client_kwargs) as client:
        harness = Harness(client, store, content)
        _seed_users(harness)
        yield harness
    store.close()
    content.close()


# ---------------------------------------------------------------------------
# Module-scoped fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client(request: pytest.FixtureRequest) -> Generator[Harness, None, None]:
    yield from _harness(f"api_{request.module.__name__}")


@pytest.fixture(scope="module")
def web_client(request: pytest.FixtureRequest) -> Generator[Harness, None, None]:
    """Harness whose client does not follow redirects.

    Web tests assert on redirect Location headers, which are invisible once
    the client follows them.
    """
    yield from _harness(f"web_{request.module.__name__}", follow_redirects=False)
