"""
tests/conftest.py -- Shared test fixtures for FleetAdvisor integration tests.

This module provides:
  - _make_test_store(): creates an isolated in-memory FleetStore
  - _patch_lifespan(): wires the test store into app.state, bypassing real startup
  - api_client: TestClient plus a session JWT and the backing store
  - reset_rate_limits: clears slowapi counters so tests never trip a limit

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

The DEBUG env var must be set before any auth module import so get_settings()
auto-generates SECRET_KEY in dev mode rather than raising ValueError.

TrustedHostMiddleware only admits localhost, so the client uses
base_url="http://localhost" instead of TestClient's default "testserver".
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from unittest.mock import MagicMock

# CRITICAL: Set DEBUG before any auth/core import so get_settings() can
# auto-generate SECRET_KEY in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app
from auth.tokens import create_access_token
from cmdb.store import FleetStore
from core.os_policy import DEFAULT_POLICY

# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_store(db_suffix: str) -> FleetStore:
    """Create an isolated named shared-memory SQLite store.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state (e.g. 'test_api_routes').
    """
    return FleetStore(f"sqlite:///file:test_fleet_{db_suffix}?mode=memory&cache=shared&uri=true")


def _patch_lifespan(store: FleetStore):
    """Return an async context manager that replaces the real lifespan.

    Wires the test store into app.state so routes see an isolated DB, pins
    the OS policy to the built-in table (no endoflife.date call), and mocks
    the OAuth registry to prevent real network calls.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.store = store
        app.state.os_policy = DEFAULT_POLICY
        app.state.oauth = MagicMock()
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client(request) -> Generator[tuple[TestClient, str, FleetStore], None, None]:
    """Yield (client, token, store) for API integration tests.

    One TestClient per test module: the real FastAPI app with a patched
    lifespan, so tests hit real route handlers against an in-memory store.
    The token is a session JWT as the OIDC callback would mint it; send it
    as "Authorization: Bearer <token>".
    """
    store = _make_test_store(request.module.__name__.rsplit(".", 1)[-1])
    token = create_access_token("test-sub", "google", "tester@example.edu", "Tester", expire_seconds=3600)

    app.router.lifespan_context = _patch_lifespan(store)

    with TestClient(app, base_url="http://localhost", raise_server_exceptions=True) as client:
        yield client, token, store

    store.close()


@pytest.fixture(autouse=True)
def reset_rate_limits() -> None:
    """In-memory limiter counters persist across tests; start each one clean."""
    limiter.reset()
