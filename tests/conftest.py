"""
tests/conftest.py -- Shared test fixtures for Gatehouse.

This module provides:
  - settings:     a per-test Settings with its own JWT secret
  - clock:        a controllable clock so expiry can be tested without sleeping
  - codec/hasher: auth components built from those (bcrypt at minimum cost)
  - user_store:   an in-memory SQLite UserStore
  - api_client:   TestClient over the real app (API + web pages) with
                  follow_redirects=False and an isolated database
  - client_for:   opens the same kind of client over an app built from a
                  test's own Settings

Design: the API client uses a named shared-memory SQLite URI (not plain
:memory:) because TestClient runs sync route handlers in a thread pool. Plain
:memory: databases are per-connection and would present a blank schema to
each worker thread. Each client gets a unique name so tests never share rows.
"""

from __future__ import annotations

import uuid
from collections.abc import Generator, Iterator
from contextlib import contextmanager

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import create_app
from auth.passwords import PasswordHasher
from auth.store import UserStore
from auth.tokens import TokenCodec
from core.config import Settings
from web.routes import router as web_router

TEST_SECRET = "test-secret-0123456789abcdef0123456789abcdef"


class FakeClock:
    """Callable clock returning a settable epoch timestamp."""

    def __init__(self, start: float = 1_700_000_000) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def settings() -> Settings:
    return Settings(
        jwt_secret=TEST_SECRET,
        environment="development",
        allowed_hosts=["*"],
        database_url="sqlite:///:memory:",
        login_rate_limit="10/minute",
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def codec(settings: Settings, clock: FakeClock) -> TokenCodec:
    return TokenCodec(settings, clock=clock)


@pytest.fixture
def make_codec(clock: FakeClock):
    """Factory for codecs sharing the test clock but holding a different secret."""

    def _make(secret: str) -> TokenCodec:
        return TokenCodec(Settings(jwt_secret=secret), clock=clock)

    return _make


@pytest.fixture
def hasher() -> PasswordHasher:
    # 4 is bcrypt's minimum cost; production uses BCRYPT_ROUNDS.
    return PasswordHasher(rounds=4)


@pytest.fixture
def user_store() -> Generator[UserStore, None, None]:
    store = UserStore("sqlite:///:memory:")
    yield store
    store.close()


@contextmanager
def build_client(settings: Settings, hasher: PasswordHasher) -> Iterator[TestClient]:
    """Open a TestClient over the full app with an isolated shared-memory database.

    follow_redirects=False so tests can assert on redirect Location headers.
    The rate limiter is process-wide, so its counters are reset per client.
    """
    store = UserStore(f"sqlite:///file:test_auth_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true")
    app = create_app(settings, repository=store, hasher=hasher)
    app.include_router(web_router, tags=["Web UI"])
    limiter.reset()

    with TestClient(app, follow_redirects=False, raise_server_exceptions=True) as client:
        yield client

    store.close()


@pytest.fixture
def api_client(settings: Settings, hasher: PasswordHasher) -> Generator[TestClient, None, None]:
    with build_client(settings, hasher) as client:
        yield client


@pytest.fixture
def client_for(hasher: PasswordHasher):
    """Context-manager factory: a TestClient over an app built from the given Settings."""

    def _open(settings: Settings):
        return build_client(settings, hasher)

    return _open
