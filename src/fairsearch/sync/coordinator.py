"""Keeps the index consistent with the entry store."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from fairsearch.core.exceptions import FairSearchError, IndexWriteError
from fairsearch.core.geo import BoundingBox
from fairsearch.core.models import ChangeNotification, EntryRecord, ReconciliationReport
from fairsearch.core.types import ChangeOperation, IndexOperation, ReconcileAction, WriteOutcome
from fairsearch.search.indexer import IndexWriter
from fairsearch.sync.alerts import Alert, AlertSink, LoggingAlertSink
from fairsearch.sync.feed import ChangeFeed
from fairsearch.sync.ledger import ReconciliationLedger
from fairsearch.sync.locks import KeyedLock
from fairsearch.sync.reconciliation import Reconciler
from fairsearch.sync.store import EntrySource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """Timeout and bounded exponential backoff for a single index write."""

    timeout: float = 5.0
    max_attempts: int = 3
    initial_delay: float = 0.1
    backoff_factor: float = 2.0
    max_delay: float = 5.0

    def delay(self, attempt: int) -> float:
        """Delay before retrying after failed ``attempt`` (1-based)."""
        return min(self.max_delay, self.initial_delay * self.backoff_factor ** (attempt - 1))


class ConsistencyCoordinator:
    """
    Drives exactly one index mutation per committed store change.

    Writes for one id are serialized in arrival order; writes for different
    ids run concurrently up to ``concurrency``. Conflicts are resolved by
    version number, never by arrival order: the ledger remembers the last
    version indexed per id and anything older is skipped.

    A write that times out or fails is retried per the retry policy. After
    ``escalation_threshold`` consecutive failures for the same id an alert is
    raised and the current operation gives up on that id.
    """

    def __init__(
        self,
        store: EntrySource,
        writer: IndexWriter,
        feed: ChangeFeed,
        *,
        ledger: ReconciliationLedger | None = None,
        alerts: AlertSink | None = None,
        retry: RetryPolicy | None = None,
        concurrency: int = 8,
        escalation_threshold: int = 3,
    ) -> None:
        self._store = store
        self._writer = writer
        self._feed = feed
        self._ledger = ledger or ReconciliationLedger()
        self._alerts = alerts or LoggingAlertSink()
        self._retry = retry or RetryPolicy()
        self._concurrency = concurrency
        self._escalation_threshold = escalation_threshold

        self._locks = KeyedLock()
        self._semaphore = asyncio.Semaphore(concurrency)
        self._failures: dict[str, int] = {}
        self._escalated: set[str] = set()
        self._inflight: set[asyncio.Task] = set()
        self._consumer: asyncio.Task | None = None

        self._reconciler = Reconciler(self)
        self._reconcile_task: asyncio.Task | None = None
        self._reconcile_scope: tuple[BoundingBox | None, bool] | None = None

    @property
    def store(self) -> EntrySource:
        return self._store

    @property
    def writer(self) -> IndexWriter:
        return self._writer

    @property
    def ledger(self) -> ReconciliationLedger:
        return self._ledger

    @property
    def escalated_ids(self) -> set[str]:
        return set(self._escalated)

    def consecutive_failures(self, entry_id: str) -> int:
        return self._failures.get(entry_id, 0)

    @property
    def is_running(self) -> bool:
        return self._consumer is not None and not self._consumer.done()

    @property
    def reconciling(self) -> bool:
        return self._reconcile_task is not None and not self._reconcile_task.done()

    async def seed_ledger(self) -> int:
        """Load the ledger from the index, staged writes included."""
        versions = await self._writer.indexed_versions(include_pending=True)
        self._ledger.seed(versions)
        return len(versions)

    # Live change handling

    async def handle(self, notification: ChangeNotification) -> WriteOutcome:
        """
        Apply one change notification to the index.

        Create/update notifications re-read the committed record, so the index
        always receives the store's current state. A notification older than
        the ledger's version for the id is skipped.
        """
        entry_id = notification.entry_id
        async with self._locks.acquire(entry_id):
            if notification.operation == ChangeOperation.DELETE:
                return await self._remove_locked(entry_id)

            recorded = self._ledger.get(entry_id)
            if recorded is not None and notification.version < recorded:
                logger.debug(
                    f"Skipping out-of-order {notification.operation} for {entry_id}: "
                    f"v{notification.version} < indexed v{recorded}"
                )
                return WriteOutcome.STALE

            record = await self._store.get(entry_id)
            if record is None:
                logger.debug(f"{entry_id} no longer in store, removing from index")
                return await self._remove_locked(entry_id)
            return await self._upsert_locked(record)

    async def _upsert_locked(self, record: EntryRecord) -> WriteOutcome:
        # Compare-and-swap against the ledger under the id lock
        recorded = self._ledger.get(record.id)
        if recorded is not None and recorded >= record.version:
            logger.debug(f"{record.id} already indexed at v{recorded}")
            return WriteOutcome.STALE

        outcome = await self._with_retries(
            IndexOperation.UPSERT, record.id, lambda: self._writer.upsert(record)
        )
        if outcome == WriteOutcome.APPLIED:
            self._ledger.record(record.id, record.version)
        else:
            indexed = await self._writer.indexed_version(record.id)
            if indexed is not None:
                self._ledger.record(record.id, indexed)
        return outcome

    async def _remove_locked(self, entry_id: str) -> WriteOutcome:
        outcome = await self._with_retries(
            IndexOperation.REMOVE, entry_id, lambda: self._writer.remove(entry_id)
        )
        self._ledger.clear(entry_id)
        return outcome

    async def _with_retries(
        self,
        operation: IndexOperation,
        entry_id: str,
        write: Callable[[], Awaitable[WriteOutcome]],
    ) -> WriteOutcome:
        """
        Run an index write with a timeout and bounded retries.

        Raises:
            IndexWriteError: When attempts are exhausted or the id escalates
        """
        # Escalated ids get a single attempt until one succeeds
        max_attempts = 1 if entry_id in self._escalated else self._retry.max_attempts
        attempt = 0
        while True:
            attempt += 1
            try:
                outcome = await asyncio.wait_for(write(), timeout=self._retry.timeout)
            except (IndexWriteError, TimeoutError) as e:
                message = str(e) or f"timed out after {self._retry.timeout}s"
                failures = self._failures.get(entry_id, 0) + 1
                self._failures[entry_id] = failures
                logger.warning(
                    f"Index {operation} for {entry_id} failed "
                    f"(attempt {attempt}/{max_attempts}, {failures} consecutive): {message}"
                )

                if failures >= self._escalation_threshold:
                    if entry_id not in self._escalated:
                        self._escalated.add(entry_id)
                        logger.error(f"Escalating {entry_id} after {failures} consecutive failures")
                        await self._alerts.alert(
                            Alert(
                                entry_id=entry_id,
                                operation=operation,
                                consecutive_failures=failures,
                                message=message,
                            )
                        )
                    raise IndexWriteError(
                        f"Index {operation} for {entry_id} escalated: {message}",
                        entry_id=entry_id,
                        details={"escalated": True, "consecutive_failures": failures},
                    ) from e

                if attempt >= max_attempts:
                    raise IndexWriteError(
                        f"Index {operation} for {entry_id} failed after {attempt} attempts: {message}",
                        entry_id=entry_id,
                        details={"escalated": False, "consecutive_failures": failures},
                    ) from e

                await asyncio.sleep(self._retry.delay(attempt))
            else:
                if self._failures.pop(entry_id, None) is not None:
                    self._escalated.discard(entry_id)
                return outcome

    # Reconciliation hooks (called by Reconciler)

    async def reconcile_record(self, record: EntryRecord) -> ReconcileAction:
        """
        Bring one scanned record into the index if it is missing or stale.

        The scanned copy may be older than the store by the time the id lock
        is held, so the store is re-read first. An entry deleted since the
        scan is removed rather than written back.
        """
        async with self._locks.acquire(record.id):
            recorded = self._ledger.get(record.id)
            if recorded is not None and recorded >= record.version:
                return ReconcileAction.UNCHANGED

            current = await self._store.get(record.id)
            if current is None:
                logger.debug(f"{record.id} deleted since it was scanned, not re-indexing")
                outcome = await self._remove_locked(record.id)
                if outcome == WriteOutcome.APPLIED:
                    return ReconcileAction.REMOVED
                return ReconcileAction.UNCHANGED
            if current.version > record.version:
                record = current

            outcome = await self._upsert_locked(record)
            if outcome != WriteOutcome.APPLIED:
                return ReconcileAction.UNCHANGED
            return ReconcileAction.INSERTED if recorded is None else ReconcileAction.UPDATED

    async def reconcile_removal(self, entry_id: str) -> bool:
        """
        Remove an index document whose id is absent from the store.

        The store is re-checked under the id lock first, so an entry created
        while the scan was running is left alone.

        Returns:
            True if a document was removed
        """
        async with self._locks.acquire(entry_id):
            if await self._store.get(entry_id) is not None:
                logger.debug(f"{entry_id} reappeared in store, keeping it indexed")
                return False
            outcome = await self._remove_locked(entry_id)
            return outcome == WriteOutcome.APPLIED

    async def reconcile(self, bbox: BoundingBox | None = None) -> ReconciliationReport:
        """
        Reconcile the index against the store.

        At most one pass runs at a time. A caller asking for the scope of the
        running pass joins it; a caller asking for a different scope waits for
        it to finish and then starts its own.
        """
        return await self._run_pass(bbox, rebuild=False)

    async def rebuild(self) -> ReconciliationReport:
        """Clear the index and re-index every store record."""
        return await self._run_pass(None, rebuild=True)

    async def _run_pass(self, bbox: BoundingBox | None, rebuild: bool) -> ReconciliationReport:
        scope = (bbox, rebuild)
        while True:
            task = self._reconcile_task
            if task is None or task.done():
                task = asyncio.create_task(
                    self._reconciler.run(bbox, rebuild=rebuild), name="reconcile"
                )
                self._reconcile_task = task
                self._reconcile_scope = scope
                break
            if self._reconcile_scope == scope:
                logger.info("Joining running reconciliation pass")
                break
            await asyncio.wait({task})
        # Cancelling one waiter does not cancel the pass other callers share
        return await asyncio.shield(task)

    async def cancel_reconcile(self) -> None:
        task = self._reconcile_task
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    # Feed consumption

    async def run(self) -> None:
        """Consume the change feed until it is closed."""
        logger.info(f"Coordinator consuming change feed (concurrency {self._concurrency})")
        while True:
            notification = await self._feed.get()
            if notification is None:
                self._feed.task_done()
                break
            await self._semaphore.acquire()
            task = asyncio.create_task(self._dispatch(notification))
            self._inflight.add(task)
            task.add_done_callback(self._inflight.discard)

        if self._inflight:
            await asyncio.gather(*self._inflight, return_exceptions=True)
        logger.info("Coordinator stopped consuming change feed")

    async def _dispatch(self, notification: ChangeNotification) -> None:
        try:
            outcome = await self.handle(notification)
            logger.debug(
                f"{notification.operation} {notification.entry_id} v{notification.version}: {outcome}"
            )
        except FairSearchError as e:
            logger.error(
                f"Failed to apply {notification.operation} for {notification.entry_id}: {e.message}"
            )
        except Exception:
            logger.exception(f"Unexpected error applying {notification.operation} for {notification.entry_id}")
        finally:
            self._semaphore.release()
            self._feed.task_done()

    async def start(self) -> None:
        if not self.is_running:
            self._consumer = asyncio.create_task(self.run(), name="coordinator")

    async def drain(self) -> None:
        """Wait until every notification published so far has been applied."""
        await self._feed.join()

    async def stop(self) -> None:
        """Cancel reconciliation, close the feed and finish in-flight writes."""
        await self.cancel_reconcile()
        self._feed.close()
        if self._consumer is not None:
            await self._consumer
            self._consumer = None
