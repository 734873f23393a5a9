"""
tests/conftest.py -- Shared test fixtures for SheetShelf tests.

This module provides:
  - _make_test_stores(): isolated in-memory DBs for users and library
  - _patch_lifespan(): wires test stores and a mock catalog into app.state
  - api_client: TestClient plus an admin token and the mock catalog
  - catalog: the mock catalog, reset after each test
  - user_store / library_store / directory: per-test stores and services
    for unit tests that do not need HTTP

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
for the TestClient because route handlers run in a thread pool. Plain
:memory: DBs are per-connection and would present a blank schema to each
worker thread.

Environment variables must be set before any auth/core import:
  DEBUG=true               -- get_settings() auto-generates SECRET_KEY
  BCRYPT_ROUNDS=4          -- the minimum cost; keeps hashing fast in tests
  LOGIN_RATE_LIMIT         -- high enough that login-heavy tests never hit 429
  ALLOWED_HOSTS            -- TestClient sends Host: testserver
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from unittest.mock import MagicMock

# CRITICAL: Set env before any auth/core import -- settings are read once.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost"]')

import pytest
from fastapi.testclient import TestClient

from api.main import app, wire_services
from auth.store import UserStore
from core.catalog import CatalogClient
from library.directory import UserDirectory
from library.manager import LibraryManager
from library.store import LibraryStore

ADMIN_USERNAME = "testadmin"
ADMIN_PASSWORD = "testpass123"

# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_stores(db_suffix: str) -> tuple[UserStore, LibraryStore]:
    """Create isolated named shared-memory SQLite stores.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state.
    """
    url = f"sqlite:///file:test_sheetshelf_{db_suffix}?mode=memory&cache=shared&uri=true"
    return UserStore(db_url=url), LibraryStore(db_url=url)


def _mock_catalog() -> MagicMock:
    catalog = MagicMock(spec=CatalogClient)
    catalog.work_detail.return_value = None
    return catalog


def _patch_lifespan(user_store: UserStore, library_store: LibraryStore, catalog: MagicMock):
    """Return an async context manager that replaces the real lifespan.

    No real catalog client, no cache file, no purge task: the mock catalog
    stands in for Open Opus so nothing leaves the process.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        wire_services(app, user_store, library_store, catalog)
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Module-scoped HTTP fixture -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, str, MagicMock], None, None]:
    """Yield (client, admin_token, catalog) for API integration tests.

    The admin is registered through UserDirectory before the client starts,
    so its token is a real signed JWT.
    """
    user_store, library_store = _make_test_stores(f"api_{uuid.uuid4().hex}")
    catalog = _mock_catalog()

    directory = UserDirectory(user_store, LibraryManager(user_store, library_store, catalog))
    _admin, token = directory.register(
        username=ADMIN_USERNAME,
        name="Test Admin",
        email="admin@example.com",
        password=ADMIN_PASSWORD,
        is_admin=True,
    )

    app.router.lifespan_context = _patch_lifespan(user_store, library_store, catalog)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, token, catalog

    library_store.close()
    user_store.close()


@pytest.fixture
def catalog(api_client) -> Generator[MagicMock, None, None]:
    """The API's mock catalog, reset to "every lookup fails" after each test."""
    _client, _token, mock = api_client
    yield mock
    mock.reset_mock(return_value=True, side_effect=True)
    mock.work_detail.return_value = None


# ---------------------------------------------------------------------------
# Function-scoped unit fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def user_store() -> Generator[UserStore, None, None]:
    store = UserStore("sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture
def library_store() -> Generator[LibraryStore, None, None]:
    store = LibraryStore("sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture
def unit_catalog() -> MagicMock:
    return _mock_catalog()


@pytest.fixture
def manager(user_store: UserStore, library_store: LibraryStore, unit_catalog: MagicMock) -> LibraryManager:
    return LibraryManager(user_store, library_store, unit_catalog, max_workers=4)


@pytest.fixture
def directory(user_store: UserStore, manager: LibraryManager) -> UserDirectory:
    return UserDirectory(user_store, manager)
