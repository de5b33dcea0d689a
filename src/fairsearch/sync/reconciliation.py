"""Full reconciliation pass of the index against the store."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from fairsearch.core.exceptions import FairSearchError, IndexWriteError, ReconciliationError
from fairsearch.core.geo import BoundingBox
from fairsearch.core.models import ReconciliationFailure, ReconciliationReport
from fairsearch.core.types import IndexOperation, ReconcileAction

if TYPE_CHECKING:
    from fairsearch.sync.coordinator import ConsistencyCoordinator

logger = logging.getLogger(__name__)


def _failure(entry_id: str, operation: IndexOperation, error: FairSearchError) -> ReconciliationFailure:
    return ReconciliationFailure(
        entry_id=entry_id,
        operation=operation,
        message=error.message,
        escalated=bool(error.details.get("escalated", False)),
    )


class Reconciler:
    """
    Heals drift between the store and the index.

    Every store record missing from the index is inserted, every record
    indexed at an older version is updated, and every index document whose id
    is gone from the store is removed. Records already current are not
    touched. The pass holds no global lock: each write goes through the
    coordinator, which re-checks the ledger under the id lock.
    """

    def __init__(self, coordinator: ConsistencyCoordinator) -> None:
        self._coordinator = coordinator

    async def run(
        self,
        bbox: BoundingBox | None = None,
        *,
        rebuild: bool = False,
    ) -> ReconciliationReport:
        """
        Run one pass.

        Args:
            bbox: Only reconcile store records inside this box
            rebuild: Clear the index first so every record is re-inserted

        Raises:
            ReconciliationError: If the store scan or the final commit fails
        """
        coordinator = self._coordinator
        writer = coordinator.writer
        report = ReconciliationReport(bbox=str(bbox) if bbox is not None else None)
        scope = f"within {bbox}" if bbox is not None else "all entries"
        logger.info(f"Reconciliation started ({scope}{', rebuild' if rebuild else ''})")

        try:
            if rebuild:
                await writer.clear()
            indexed = await writer.indexed_versions(include_pending=True)
            coordinator.ledger.seed(indexed)

            seen: set[str] = set()
            try:
                async for record in coordinator.store.scan_all():
                    seen.add(record.id)
                    if bbox is not None and not bbox.contains(record.lat, record.lon):
                        continue
                    report.scanned += 1
                    try:
                        action = await coordinator.reconcile_record(record)
                    except FairSearchError as e:
                        logger.warning(f"Reconciliation skipped {record.id}: {e.message}")
                        report.add_failure(_failure(record.id, IndexOperation.UPSERT, e))
                        continue
                    report.count(action)
            except FairSearchError as e:
                if isinstance(e, ReconciliationError):
                    raise
                raise ReconciliationError(f"Store scan failed: {e.message}") from e

            # Orphans are judged against the index state read at the start, so
            # entries created during the scan are never mistaken for them
            for entry_id in sorted(set(indexed) - seen):
                try:
                    removed = await coordinator.reconcile_removal(entry_id)
                except FairSearchError as e:
                    logger.warning(f"Reconciliation could not remove {entry_id}: {e.message}")
                    report.add_failure(_failure(entry_id, IndexOperation.REMOVE, e))
                    continue
                if removed:
                    report.count(ReconcileAction.REMOVED)

            try:
                await writer.commit()
            except IndexWriteError as e:
                raise ReconciliationError(f"Final commit failed: {e.message}") from e
        except asyncio.CancelledError:
            report.cancelled = True
            logger.warning(
                f"Reconciliation cancelled after {report.scanned} records "
                f"({report.inserted} inserted, {report.updated} updated)"
            )
            raise
        finally:
            report.finished_at = datetime.now(timezone.utc)

        logger.info(
            f"Reconciliation finished: scanned={report.scanned} inserted={report.inserted} "
            f"updated={report.updated} removed={report.removed} unchanged={report.unchanged} "
            f"failed={report.failed}"
        )
        return report
