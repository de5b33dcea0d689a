"""Directory search service: wires the store, the index and the coordinator."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from fairsearch.config import FairSearchSettings
from fairsearch.core.exceptions import IndexOpenError, ReconciliationError
from fairsearch.core.geo import BoundingBox
from fairsearch.core.models import EntryRecord, Page, Query, ReconciliationReport, ScoredEntryId
from fairsearch.core.types import SearchBackendName
from fairsearch.db.repositories.entry import EntryStore
from fairsearch.db.session import DatabaseManager
from fairsearch.search.backend import IndexBackend
from fairsearch.search.client import AsyncMeilisearchClient
from fairsearch.search.indexer import IndexWriter
from fairsearch.search.meili import MeilisearchBackend
from fairsearch.search.memory import MemoryIndexBackend
from fairsearch.search.planner import QueryPlanner
from fairsearch.search.searcher import Searcher
from fairsearch.sync.alerts import AlertSink
from fairsearch.sync.coordinator import ConsistencyCoordinator, RetryPolicy
from fairsearch.sync.feed import ChangeFeed
from fairsearch.sync.store import EntrySource

logger = logging.getLogger(__name__)


@dataclass
class EntryHit:
    """A search hit together with the entry it refers to."""

    record: EntryRecord
    score: float


def create_backend(settings: FairSearchSettings) -> IndexBackend:
    """Build the index storage engine selected by configuration."""
    if settings.search_backend == SearchBackendName.MEILISEARCH:
        if not settings.meilisearch_url:
            raise IndexOpenError("search_backend is meilisearch but meilisearch_url is not set")
        client = AsyncMeilisearchClient(
            settings.meilisearch_url,
            settings.meilisearch_key,
            index_name=settings.meilisearch_index,
        )
        return MeilisearchBackend(client)
    return MemoryIndexBackend(settings.index_path)


class DirectorySearchService:
    """
    Search-and-consistency engine of the directory.

    Answers structured queries from the index and keeps the index in step
    with the store: live changes arrive on the change feed, and a
    reconciliation pass heals anything missed (run on startup and on demand).
    """

    def __init__(
        self,
        backend: IndexBackend,
        store: EntrySource,
        feed: ChangeFeed,
        *,
        max_page_size: int = 100,
        default_page_size: int = 20,
        commit_batch_size: int = 100,
        commit_interval: float = 1.0,
        retry: RetryPolicy | None = None,
        concurrency: int = 8,
        escalation_threshold: int = 3,
        alerts: AlertSink | None = None,
        index_open_retries: int = 3,
        index_open_delay: float = 0.5,
        reconcile_on_startup: bool = True,
        db: DatabaseManager | None = None,
    ) -> None:
        self._backend = backend
        self._store = store
        self._feed = feed
        self._db = db
        self._index_open_retries = index_open_retries
        self._index_open_delay = index_open_delay
        self._reconcile_on_startup = reconcile_on_startup

        self._planner = QueryPlanner(max_page_size=max_page_size, default_page_size=default_page_size)
        self._searcher = Searcher(backend, self._planner)
        self._writer = IndexWriter(
            backend,
            commit_batch_size=commit_batch_size,
            commit_interval=commit_interval,
        )
        self._coordinator = ConsistencyCoordinator(
            store,
            self._writer,
            feed,
            alerts=alerts,
            retry=retry,
            concurrency=concurrency,
            escalation_threshold=escalation_threshold,
        )
        self._ready = False

    @classmethod
    def from_settings(cls, settings: FairSearchSettings) -> DirectorySearchService:
        """Build the service and its collaborators from configuration."""
        db = DatabaseManager(settings.database_url, echo=settings.debug)
        feed = ChangeFeed()
        store = EntryStore(db, feed)
        retry = RetryPolicy(
            timeout=settings.write_timeout,
            max_attempts=settings.write_retries,
            initial_delay=settings.retry_backoff,
        )
        return cls(
            create_backend(settings),
            store,
            feed,
            max_page_size=settings.max_page_size,
            default_page_size=settings.default_page_size,
            commit_batch_size=settings.commit_batch_size,
            commit_interval=settings.commit_interval,
            retry=retry,
            concurrency=settings.coordinator_concurrency,
            escalation_threshold=settings.escalation_threshold,
            index_open_retries=settings.index_open_retries,
            reconcile_on_startup=settings.reconcile_on_startup,
            db=db,
        )

    @property
    def store(self) -> EntrySource:
        return self._store

    @property
    def feed(self) -> ChangeFeed:
        return self._feed

    @property
    def backend(self) -> IndexBackend:
        return self._backend

    @property
    def writer(self) -> IndexWriter:
        return self._writer

    @property
    def coordinator(self) -> ConsistencyCoordinator:
        return self._coordinator

    @property
    def is_ready(self) -> bool:
        return self._ready

    # Lifecycle

    async def start(self) -> None:
        """
        Open the index and start keeping it consistent.

        Raises:
            IndexOpenError: If the index cannot be opened; the service must not serve
        """
        if self._db is not None:
            await self._db.create_all()
        await self._open_index()
        await self._writer.start()
        seeded = await self._coordinator.seed_ledger()
        logger.info(f"Ledger seeded with {seeded} indexed entries")
        await self._coordinator.start()
        if self._reconcile_on_startup:
            try:
                await self._coordinator.reconcile()
            except ReconciliationError as e:
                # Live changes keep flowing; the next pass can heal the drift
                logger.error(
                    f"Startup reconciliation failed, serving the current index: {e.message}"
                )
        self._ready = True
        logger.info("Directory search service started")

    async def _open_index(self) -> None:
        last_error: Exception | None = None
        for attempt in range(1, self._index_open_retries + 1):
            try:
                await self._backend.open()
                logger.info(f"Opened {self._backend.name} index (attempt {attempt})")
                return
            except IndexOpenError as e:
                last_error = e
                logger.error(
                    f"Opening {self._backend.name} index failed "
                    f"(attempt {attempt}/{self._index_open_retries}): {e.message}"
                )
            if attempt < self._index_open_retries:
                await asyncio.sleep(self._index_open_delay * attempt)

        raise IndexOpenError(
            f"Could not open {self._backend.name} index after {self._index_open_retries} attempts",
            attempts=self._index_open_retries,
            details={"error": str(last_error)},
        ) from last_error

    async def stop(self) -> None:
        """Stop consuming changes, flush pending writes and release resources."""
        self._ready = False
        await self._coordinator.stop()
        await self._writer.stop()
        await self._backend.close()
        if self._db is not None:
            await self._db.close()
        logger.info("Directory search service stopped")

    async def health(self) -> bool:
        return await self._backend.health()

    # Queries

    async def search(self, query: Query) -> Page[ScoredEntryId]:
        return await self._searcher.search(query)

    async def global_search(self, text: str, limit: int | None = None) -> Page[ScoredEntryId]:
        return await self._searcher.global_search(text, limit)

    async def search_surroundings(self, query: Query) -> Page[ScoredEntryId]:
        return await self._searcher.search_surroundings(query)

    async def search_entries(self, query: Query) -> Page[EntryHit]:
        """
        Search and load the full records of the hits.

        Hits whose entry was deleted after the index answered are dropped.
        """
        page = await self._searcher.search(query)
        records = await asyncio.gather(*(self._store.get(hit.id) for hit in page.items))
        items = [
            EntryHit(record=record, score=hit.score)
            for hit, record in zip(page.items, records)
            if record is not None
        ]
        return Page[EntryHit](items=items, total=page.total, offset=page.offset, limit=page.limit)

    # Consistency

    async def reconcile(self, bbox: BoundingBox | None = None) -> ReconciliationReport:
        return await self._coordinator.reconcile(bbox)

    async def rebuild(self) -> ReconciliationReport:
        return await self._coordinator.rebuild()
