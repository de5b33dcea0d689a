"""Integration test fixtures for the entry store, the service and Meilisearch."""

from __future__ import annotations

import os
from typing import AsyncIterator
from uuid import uuid4

import pytest
from httpx import ASGITransport, AsyncClient

from fairsearch.core.models import NewEntry
from fairsearch.core.types import Category
from fairsearch.db.repositories.entry import EntryStore
from fairsearch.db.session import DatabaseManager
from fairsearch.search.memory import MemoryIndexBackend
from fairsearch.services.search import DirectorySearchService
from fairsearch.sync.coordinator import RetryPolicy
from fairsearch.sync.feed import ChangeFeed

# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
def database_url(tmp_path) -> str:
    """Get test database URL from environment or use a throwaway SQLite file."""
    return os.getenv("TEST_DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'entries.db'}")


@pytest.fixture
async def db(database_url: str) -> AsyncIterator[DatabaseManager]:
    """
    Create a fresh database for each test.

    Each test gets its own engine to avoid event loop mismatch issues
    with pooled connections.
    """
    async with DatabaseManager(database_url) as manager:
        await manager.create_all()
        yield manager


@pytest.fixture
def change_feed() -> ChangeFeed:
    return ChangeFeed()


@pytest.fixture
def entry_store(db: DatabaseManager, change_feed: ChangeFeed) -> EntryStore:
    """Store that announces its commits on the change feed."""
    return EntryStore(db, change_feed, scan_batch_size=2)


# ============================================================================
# Sample Data Fixtures
# ============================================================================


def _new_entry(**overrides) -> NewEntry:
    data = {
        "title": "Sonnenstrom Energy Cooperative",
        "description": "Community owned solar panels on school roofs",
        "tags": ["Solar", "community"],
        "category": Category.ENERGY,
        "lat": 48.7758,
        "lon": 9.1829,
        "avg_rating": 1.5,
        "city": "Stuttgart",
    }
    data.update(overrides)
    return NewEntry(**data)


@pytest.fixture
def new_entry():
    """Factory for NewEntry payloads."""
    return _new_entry


@pytest.fixture
async def sample_entries(db: DatabaseManager):
    """Create a handful of entries in the store, without feed notifications."""
    store = EntryStore(db)
    entries = [
        await store.create(_new_entry(id="solar-coop")),
        await store.create(
            _new_entry(
                id="repair-cafe",
                title="Repair Café West",
                description="Fix electronics and bikes together",
                tags=["repair", "community"],
                category=Category.COMMUNITY,
                lat=48.78,
                lon=9.15,
                avg_rating=1.0,
            )
        ),
        await store.create(
            _new_entry(
                id="bio-market",
                title="Organic Farmers Market",
                description="Regional organic food every Saturday",
                tags=["bio", "regional"],
                category=Category.FOOD,
                lat=52.52,
                lon=13.405,
                avg_rating=0.5,
                city="Berlin",
            )
        ),
    ]
    return entries


# ============================================================================
# Service Fixtures
# ============================================================================


@pytest.fixture
async def search_service(
    db: DatabaseManager,
    entry_store: EntryStore,
    change_feed: ChangeFeed,
    sample_entries,
) -> AsyncIterator[DirectorySearchService]:
    """Started service on the in-process index, reconciled with the sample entries."""
    service = DirectorySearchService(
        MemoryIndexBackend(),
        entry_store,
        change_feed,
        commit_batch_size=1,
        commit_interval=0.05,
        retry=RetryPolicy(timeout=1.0, max_attempts=2, initial_delay=0.0),
        index_open_delay=0.0,
    )
    await service.start()
    yield service
    await service.stop()


# ============================================================================
# FastAPI Test Client Fixtures
# ============================================================================


@pytest.fixture
async def test_app(search_service: DirectorySearchService):
    """Create test FastAPI application with the started service."""
    from fastapi import FastAPI

    from fairsearch.api.app import (
        index_error_handler,
        invalid_query_handler,
        not_found_handler,
        reconciliation_error_handler,
    )
    from fairsearch.api.dependencies import get_search_service
    from fairsearch.api.routes import admin_router, health_router, search_router
    from fairsearch.core.exceptions import (
        IndexEngineError,
        InvalidQuery,
        NotFoundError,
        ReconciliationError,
    )

    # Create a minimal app for testing
    app = FastAPI()
    app.include_router(health_router, prefix="/api/v1")
    app.include_router(search_router, prefix="/api/v1")
    app.include_router(admin_router, prefix="/api/v1")

    app.add_exception_handler(InvalidQuery, invalid_query_handler)
    app.add_exception_handler(IndexEngineError, index_error_handler)
    app.add_exception_handler(ReconciliationError, reconciliation_error_handler)
    app.add_exception_handler(NotFoundError, not_found_handler)

    # Store in app state (for routes that access state directly)
    app.state.search_service = search_service

    # Override dependency injection functions
    async def override_search_service():
        return search_service

    app.dependency_overrides[get_search_service] = override_search_service

    yield app

    # Cleanup
    app.dependency_overrides.clear()


@pytest.fixture
async def test_client(test_app) -> AsyncIterator[AsyncClient]:
    """Create async HTTP test client."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


# ============================================================================
# Meilisearch Fixtures (Optional - skipped if not available)
# ============================================================================


@pytest.fixture
def meilisearch_url() -> str:
    """Get test Meilisearch URL from environment or use default."""
    return os.getenv("TEST_MEILISEARCH_URL", "http://localhost:7700")


@pytest.fixture
def meilisearch_key() -> str | None:
    """Get test Meilisearch key from environment."""
    return os.getenv("TEST_MEILISEARCH_KEY")


@pytest.fixture
async def search_client(meilisearch_url: str, meilisearch_key: str | None):
    """Create Meilisearch client on a throwaway index (optional)."""
    from fairsearch.search.client import AsyncMeilisearchClient

    async with AsyncMeilisearchClient(
        meilisearch_url,
        meilisearch_key,
        index_name=f"entries_test_{uuid4().hex[:8]}",
    ) as client:
        if not await client.health():
            pytest.skip("Meilisearch not available for integration tests")

        yield client

        # Cleanup - delete test index
        try:
            raw = await client._get_client()
            await raw.index(client.index_name).delete()
        except Exception:
            pass


# ============================================================================
# Marker Registration
# ============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: mark test as an integration test requiring external services",
    )
    config.addinivalue_line(
        "markers",
        "requires_db: mark test as requiring database connection",
    )
    config.addinivalue_line(
        "markers",
        "requires_meilisearch: mark test as requiring Meilisearch connection",
    )
