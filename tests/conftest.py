"""
tests/conftest.py -- Shared test fixtures for tracker-auth.

This module provides:
  - clock / refresh_store / engine / limiter: unit-level fixtures
  - _make_user_store(): isolated named shared-memory credential store
  - _patch_lifespan(): wires a test AuthService into app.state, bypassing real startup
  - api_client: TestClient against the real FastAPI app

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker thread.

Environment variables must be set before any api/ or core/ import so
get_settings() sees them: DEBUG lets Settings auto-generate SECRET_KEY,
ALLOWED_HOSTS admits TestClient's "testserver" Host header, and
LOGIN_RATE_LIMIT is raised so slowapi does not interfere with lockout tests.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: set before any core/api import.
os.environ.setdefault("DEBUG", "true")
os.environ["ALLOWED_HOSTS"] = '["testserver", "localhost"]'
os.environ["LOGIN_RATE_LIMIT"] = "1000/minute"

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.models import User
from auth.passwords import hash_password
from auth.ratelimit import LoginRateLimiter
from auth.refresh import RefreshTokenStore
from auth.service import AuthService
from auth.store import UserStore
from auth.tokens import AccessTokenEngine
from core.config import get_settings
from support import ACCESS_MS, REFRESH_MS, SECRET, FakeClock

# ---------------------------------------------------------------------------
# Unit-level fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def refresh_store(clock: FakeClock) -> RefreshTokenStore:
    return RefreshTokenStore(expiration_ms=REFRESH_MS, clock=clock)


@pytest.fixture
def engine(clock: FakeClock, refresh_store: RefreshTokenStore) -> AccessTokenEngine:
    return AccessTokenEngine(SECRET, expiration_ms=ACCESS_MS, refresh_store=refresh_store, clock=clock)


@pytest.fixture
def limiter(clock: FakeClock) -> LoginRateLimiter:
    return LoginRateLimiter(clock=clock)


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_user_store(db_suffix: str) -> UserStore:
    """Create an isolated named shared-memory credential store with two users.

    Users:
      - admin / admin-pass          role=DEVELOPER
      - stakeholder / stake-pass    role=STAKEHOLDER
    """
    store = UserStore(f"sqlite:///file:test_users_{db_suffix}?mode=memory&cache=shared&uri=true")
    store.seed_users(
        [
            User(username="admin", role="DEVELOPER", hashed_password=hash_password("admin-pass")),
            User(username="stakeholder", role="STAKEHOLDER", hashed_password=hash_password("stake-pass")),
        ]
    )
    return store


@pytest.fixture(scope="module")
def user_store() -> Generator[UserStore, None, None]:
    store = _make_user_store("unit")
    yield store
    store.close()


@pytest.fixture
def service(user_store: UserStore, clock: FakeClock) -> AuthService:
    """AuthService on the shared test credential store with a fake clock."""
    return AuthService.from_settings(get_settings(), user_store, clock=clock)


def _patch_lifespan(service: AuthService):
    """Return an async context manager that replaces the real lifespan.

    Wires the pre-built service into app.state and runs a real reclaimer so
    startup/shutdown ordering is exercised the same way as in production.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = service.user_store
        app.state.auth_service = service
        app.state.reclaimer = service.build_reclaimer(get_settings())
        app.state.reclaimer.start()
        yield
        await app.state.reclaimer.stop()

    return test_lifespan


# ---------------------------------------------------------------------------
# Module-scoped fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, AuthService], None, None]:
    """Yield (client, service) for API integration tests.

    The TestClient uses the real FastAPI app with a patched lifespan so
    tests hit real route handlers and middleware with an isolated store.
    """
    store = _make_user_store("api")
    service = AuthService.from_settings(get_settings(), store)

    app.router.lifespan_context = _patch_lifespan(service)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, service

    store.close()
