"""Shared test fixtures for all tests."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from typing import Any

import pytest

from fairsearch.config import FairSearchSettings
from fairsearch.core.exceptions import StoreError
from fairsearch.core.models import ChangeNotification, EntryRecord
from fairsearch.core.types import Category, ChangeOperation
from fairsearch.search.indexer import IndexWriter
from fairsearch.search.memory import MemoryIndexBackend
from fairsearch.search.planner import QueryPlanner
from fairsearch.search.searcher import Searcher
from fairsearch.sync.coordinator import ConsistencyCoordinator, RetryPolicy
from fairsearch.sync.feed import ChangeFeed

RecordFactory = Callable[..., EntryRecord]


# ============================================================================
# In-memory Store
# ============================================================================


class InMemoryEntrySource:
    """
    Dict-backed entry store for tests.

    ``put``/``delete`` behave like committed transactions and announce
    themselves on the feed when one is attached.
    """

    def __init__(self, feed: ChangeFeed | None = None) -> None:
        self.records: dict[str, EntryRecord] = {}
        self.feed = feed
        self.get_calls: list[str] = []
        self.fail_scan_after: int | None = None

    async def get(self, entry_id: str) -> EntryRecord | None:
        self.get_calls.append(entry_id)
        return self.records.get(entry_id)

    async def scan_all(self) -> AsyncIterator[EntryRecord]:
        for position, entry_id in enumerate(sorted(self.records)):
            if self.fail_scan_after is not None and position >= self.fail_scan_after:
                raise StoreError("connection lost")
            record = self.records.get(entry_id)
            if record is not None:
                yield record

    def put(self, record: EntryRecord, publish: bool = True) -> EntryRecord:
        operation = ChangeOperation.UPDATE if record.id in self.records else ChangeOperation.CREATE
        self.records[record.id] = record
        if publish and self.feed is not None:
            self.feed.publish_nowait(
                ChangeNotification(entry_id=record.id, version=record.version, operation=operation)
            )
        return record

    def delete(self, entry_id: str, publish: bool = True) -> None:
        record = self.records.pop(entry_id)
        if publish and self.feed is not None:
            self.feed.publish_nowait(
                ChangeNotification(
                    entry_id=entry_id,
                    version=record.version,
                    operation=ChangeOperation.DELETE,
                )
            )


# ============================================================================
# Sample Data Fixtures
# ============================================================================


@pytest.fixture
def make_record() -> RecordFactory:
    """Factory for entry records with sensible defaults."""
    counter = {"n": 0}

    def _make(**overrides: Any) -> EntryRecord:
        counter["n"] += 1
        data: dict[str, Any] = {
            "id": f"e{counter['n']:03d}",
            "version": 0,
            "title": f"Entry {counter['n']}",
            "description": "",
            "tags": [],
            "category": Category.OTHER,
            "lat": 48.0,
            "lon": 9.0,
            "avg_rating": 0.0,
        }
        data.update(overrides)
        return EntryRecord(**data)

    return _make


@pytest.fixture
def solar_coop(make_record: RecordFactory) -> EntryRecord:
    """A fully populated entry."""
    return make_record(
        id="solar-coop",
        version=3,
        title="Sonnenstrom Energy Cooperative",
        description="Community owned solar panels on school roofs",
        tags=["Solar", "#community", " energy  transition "],
        category=Category.ENERGY,
        lat=48.7758,
        lon=9.1829,
        avg_rating=1.5,
        street="Marktplatz 1",
        zip="70173",
        city="Stuttgart",
        country="Germany",
    )


# ============================================================================
# Engine Fixtures
# ============================================================================


@pytest.fixture
async def memory_backend() -> AsyncIterator[MemoryIndexBackend]:
    """Opened in-process index without persistence."""
    backend = MemoryIndexBackend()
    await backend.open()
    yield backend
    await backend.close()


@pytest.fixture
def planner() -> QueryPlanner:
    return QueryPlanner(max_page_size=100, default_page_size=20)


@pytest.fixture
def writer(memory_backend: MemoryIndexBackend) -> IndexWriter:
    """Writer that never commits on its own."""
    return IndexWriter(memory_backend, commit_batch_size=10_000, commit_interval=60.0)


@pytest.fixture
def searcher(memory_backend: MemoryIndexBackend, planner: QueryPlanner) -> Searcher:
    return Searcher(memory_backend, planner)


@pytest.fixture
def feed() -> ChangeFeed:
    return ChangeFeed()


@pytest.fixture
def source(feed: ChangeFeed) -> InMemoryEntrySource:
    return InMemoryEntrySource(feed)


@pytest.fixture
def fast_retry() -> RetryPolicy:
    """Retry policy without real waiting."""
    return RetryPolicy(timeout=0.5, max_attempts=3, initial_delay=0.0, max_delay=0.0)


@pytest.fixture
def coordinator(
    source: InMemoryEntrySource,
    writer: IndexWriter,
    feed: ChangeFeed,
    fast_retry: RetryPolicy,
) -> ConsistencyCoordinator:
    return ConsistencyCoordinator(
        source,
        writer,
        feed,
        retry=fast_retry,
        concurrency=4,
        escalation_threshold=3,
    )


# ============================================================================
# Settings Fixtures
# ============================================================================


@pytest.fixture
def mock_settings() -> FairSearchSettings:
    """Create mock settings for testing."""
    return FairSearchSettings(
        database_url="sqlite+aiosqlite:///:memory:",
        search_backend="memory",
        index_path=None,
        meilisearch_url="http://localhost:7700",
        meilisearch_key="test-master-key",
        commit_batch_size=10,
        commit_interval=0.05,
        write_timeout=0.5,
        write_retries=2,
        retry_backoff=0.0,
        index_open_retries=2,
        reconcile_on_startup=True,
        debug=True,
        log_level="DEBUG",
    )
