"""
tests/conftest.py -- Shared test fixtures for the session auth test suite.

This module provides:
  - FAST_HASHING / TEST_CONFIG: Argon2 parameters cheap enough for tests
  - FixedClock: a settable clock for deterministic expiry/renewal tests
  - _make_test_service(): AuthService over an isolated in-memory DB
  - _patch_lifespan(): wires the test service into app.state, bypassing real startup
  - api_client: TestClient for JSON API integration tests
  - web_client: TestClient with follow_redirects=False for form route tests

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

The DEBUG env var must be set before any core import so get_settings() does
not warn about insecure cookies while the test app is built.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

# Set before importing asgi / core so the Settings singleton sees it.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from asgi import app
from auth.config import AuthConfig, HashingParams
from auth.service import AuthService
from auth.sessions import SessionEngine
from auth.store import SQLSessionStore

# Smallest parameters argon2 accepts; production defaults take ~50ms per hash.
FAST_HASHING = HashingParams(memory_cost=8, time_cost=1, hash_length=16, parallelism=1)
TEST_CONFIG = AuthConfig(hashing=FAST_HASHING)

T0 = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


class FixedClock:
    """Callable clock for SessionEngine. Starts at T0; advance() moves it forward."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


# ---------------------------------------------------------------------------
# Service helpers
# ---------------------------------------------------------------------------


def _make_test_service(db_suffix: str, config: AuthConfig = TEST_CONFIG) -> AuthService:
    """Create an AuthService over an isolated named shared-memory SQLite DB.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state (e.g. 'api', 'web').
    """
    url = f"sqlite:///file:test_auth_{db_suffix}?mode=memory&cache=shared&uri=true"
    store = SQLSessionStore(url)
    return AuthService(SessionEngine(store, config), store, config)


def _patch_lifespan(service: AuthService):
    """Return an async context manager that replaces the real lifespan.

    Wires the pre-built test service into app.state so TestClient routes use
    the isolated test DB and fast hashing rather than the configured database.

    The purge_task is a long-sleeping coroutine that keeps asyncio happy
    (a real asyncio.Task is required; MagicMock would fail on .cancel()).
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.auth_service = service
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()

    return test_lifespan


# ---------------------------------------------------------------------------
# Unit-level fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> Generator[SQLSessionStore, None, None]:
    """Fresh SQLSessionStore on a private :memory: database."""
    s = SQLSessionStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def engine(store: SQLSessionStore, clock: FixedClock) -> SessionEngine:
    return SessionEngine(store, TEST_CONFIG, clock=clock)


@pytest.fixture
def service(engine: SessionEngine, store: SQLSessionStore) -> AuthService:
    return AuthService(engine, store, TEST_CONFIG)


# ---------------------------------------------------------------------------
# Module-scoped fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client(request) -> Generator[tuple[TestClient, AuthService], None, None]:
    """Yield (client, service) for JSON API integration tests.

    The TestClient uses the real FastAPI app with a patched lifespan so tests
    hit real route handlers and middleware but use an isolated in-memory DB.
    Each test module gets its own database.
    """
    service = _make_test_service(f"api_{request.module.__name__}")
    app.router.lifespan_context = _patch_lifespan(service)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, service

    service.store.close()


@pytest.fixture(scope="module")
def web_client(request) -> Generator[tuple[TestClient, AuthService], None, None]:
    """Yield (client, service) for form route integration tests.

    follow_redirects=False is essential for web route tests: we assert on
    redirect *locations* (e.g. 302 to /login?error=...), which are invisible
    once the client follows the redirect and returns the final response.
    """
    service = _make_test_service(f"web_{request.module.__name__}")
    app.router.lifespan_context = _patch_lifespan(service)

    with TestClient(app, follow_redirects=False, raise_server_exceptions=True) as client:
        yield client, service

    service.store.close()
