"""
tests/conftest.py -- Shared test fixtures for SiteGate integration tests.

This module provides:
  - _make_test_store(): creates an isolated in-memory user DB
  - _patch_lifespan(): wires the test store into app.state, bypassing real startup
  - api_client: TestClient with admin JWT for API integration tests
  - web_client: TestClient with follow_redirects=False for page tests
  - make_user: factory for throwaway accounts with known passwords
  - outbox: the in-memory mail outbox, emptied around each test
  - settings: the Settings singleton, for monkeypatching redirect targets

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker thread.

Environment variables must be set before any app import so get_settings()
sees them: DEBUG auto-generates SECRET_KEY, EMAIL_BACKEND=memory captures
reset mails, ALLOWED_HOSTS admits TestClient's "testserver" host.
"""

from __future__ import annotations

import itertools
import os
from collections.abc import Callable, Generator
from contextlib import asynccontextmanager

os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("EMAIL_BACKEND", "memory")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost", "127.0.0.1"]')

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from asgi import app
from auth import mail
from auth.models import User
from auth.store import UserStore
from auth.tokens import create_access_token, hash_password
from core.config import Settings, get_settings

# Rate limits share one in-memory counter for the whole session; tests log in
# far more often than the production limit allows.
limiter.enabled = False

_counter = itertools.count(1)


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_store(db_suffix: str) -> UserStore:
    """Create an isolated named shared-memory SQLite store.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state (e.g. 'api', 'web').
    """
    return UserStore(db_url=f"sqlite:///file:test_auth_{db_suffix}?mode=memory&cache=shared&uri=true")


def _patch_lifespan(user_store: UserStore):
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Module-scoped fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client(request) -> Generator[tuple[TestClient, str, int], None, None]:
    """Yield (client, token, user_id) for API integration tests.

    The admin user is created before the client starts and the JWT is
    generated for use in Authorization headers.
    """
    user_store = _make_test_store(f"api_{request.module.__name__}")
    admin = User(
        username="testadmin",
        email="testadmin@example.com",
        hashed_password=hash_password("testpass123"),
        role="admin",
    )
    uid = user_store.create_user(admin)
    token = create_access_token(user_id=uid, username="testadmin", role="admin", expire_seconds=3600)

    app.router.lifespan_context = _patch_lifespan(user_store)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, token, uid

    user_store.close()


@pytest.fixture(scope="module")
def web_client(request) -> Generator[tuple[TestClient, str], None, None]:
    """Yield (client, token) for page integration tests.

    follow_redirects=False is essential: we assert on redirect *locations*
    (e.g. 302 to /accounts/login/?next=...), which are invisible once the
    client follows the redirect and returns the final 200 response.
    """
    user_store = _make_test_store(f"web_{request.module.__name__}")
    admin = User(
        username="webadmin",
        email="webadmin@example.com",
        hashed_password=hash_password("webpass123"),
        role="admin",
    )
    uid = user_store.create_user(admin)
    token = create_access_token(user_id=uid, username="webadmin", role="admin", expire_seconds=3600)

    app.router.lifespan_context = _patch_lifespan(user_store)

    with TestClient(app, follow_redirects=False, raise_server_exceptions=True) as client:
        yield client, token

    user_store.close()


@pytest.fixture(autouse=True)
def _fresh_cookie_jar(request) -> Generator[None, None, None]:
    """Clear the module client's cookie jar around every test.

    httpx keeps Set-Cookie values between requests; without this, a login in
    one test would leave the next test authenticated.
    """
    clients = []
    for name in ("web_client", "api_client"):
        if name in request.fixturenames:
            clients.append(request.getfixturevalue(name)[0])
    for client in clients:
        client.cookies.clear()
    yield
    for client in clients:
        client.cookies.clear()


# ---------------------------------------------------------------------------
# Function-scoped helpers
# ---------------------------------------------------------------------------


@pytest.fixture
def make_user() -> Callable[..., tuple[User, str]]:
    """Return a factory: make_user(store, **fields) -> (user, plain_password).

    Usernames are unique per call so tests sharing a module DB never collide.
    """

    def _make(store: UserStore, password: str = "s3cret-pass", **fields) -> tuple[User, str]:
        n = next(_counter)
        fields.setdefault("username", f"user{n}")
        fields.setdefault("email", f"user{n}@example.com")
        fields.setdefault("role", "user")
        user = User(hashed_password=hash_password(password), **fields)
        user_id = store.create_user(user)
        return store.get_by_id(user_id), password

    return _make


@pytest.fixture
def outbox() -> Generator[list, None, None]:
    mail.outbox.clear()
    yield mail.outbox
    mail.outbox.clear()


@pytest.fixture
def settings() -> Settings:
    """The live Settings singleton. Change fields with monkeypatch.setattr()."""
    return get_settings()
