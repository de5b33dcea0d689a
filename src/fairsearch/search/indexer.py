"""Index writer: turns entry records into index mutations."""

from __future__ import annotations

import asyncio
import contextlib
import logging

from fairsearch.core.exceptions import IndexEngineError, IndexWriteError
from fairsearch.core.models import EntryRecord, IndexDocument
from fairsearch.core.types import WriteOutcome
from fairsearch.search.backend import IndexBackend

logger = logging.getLogger(__name__)


class IndexWriter:
    """
    Service for writing entries into the index.

    Writes are buffered by the backend and become searchable on commit. A
    commit happens automatically once ``commit_batch_size`` writes are pending
    and, while the background flusher runs, every ``commit_interval`` seconds.
    """

    def __init__(
        self,
        backend: IndexBackend,
        *,
        commit_batch_size: int = 100,
        commit_interval: float = 1.0,
    ) -> None:
        """
        Initialize the writer.

        Args:
            backend: Storage engine to write into
            commit_batch_size: Pending writes that trigger a commit
            commit_interval: Seconds between background commits
        """
        self._backend = backend
        self._commit_batch_size = commit_batch_size
        self._commit_interval = commit_interval
        self._flush_task: asyncio.Task | None = None

    @property
    def backend(self) -> IndexBackend:
        return self._backend

    @property
    def pending_count(self) -> int:
        return self._backend.pending_count

    async def upsert(self, record: EntryRecord) -> WriteOutcome:
        """
        Index a record, replacing any document for the same id.

        Returns:
            APPLIED, or STALE when the index already holds this or a newer version

        Raises:
            IndexWriteError: If the document cannot be built or staged
        """
        try:
            doc = IndexDocument.from_record(record)
        except (TypeError, ValueError) as e:
            raise IndexWriteError(
                f"Cannot build index document for {record.id}: {e}",
                entry_id=record.id,
            ) from e

        try:
            staged = await self._backend.stage_upsert(doc)
        except IndexEngineError:
            raise
        except Exception as e:
            raise IndexWriteError(f"Failed to stage {record.id}: {e}", entry_id=record.id) from e

        if not staged:
            logger.debug(f"Skipped stale write for {record.id} at version {record.version}")
            return WriteOutcome.STALE

        logger.debug(f"Staged {record.id} at version {record.version}")
        await self._maybe_commit()
        return WriteOutcome.APPLIED

    async def remove(self, entry_id: str) -> WriteOutcome:
        """
        Remove the document for ``entry_id``. Unknown ids are not an error.

        Returns:
            APPLIED, or NOOP when nothing was indexed for the id
        """
        try:
            staged = await self._backend.stage_delete(entry_id)
        except IndexEngineError:
            raise
        except Exception as e:
            raise IndexWriteError(f"Failed to stage removal of {entry_id}: {e}", entry_id=entry_id) from e

        if not staged:
            logger.debug(f"Nothing to remove for {entry_id}")
            return WriteOutcome.NOOP

        logger.debug(f"Staged removal of {entry_id}")
        await self._maybe_commit()
        return WriteOutcome.APPLIED

    async def commit(self) -> int:
        """
        Make buffered writes visible to searches.

        Returns:
            Number of writes committed
        """
        try:
            count = await self._backend.commit()
        except IndexEngineError:
            raise
        except Exception as e:
            raise IndexWriteError(f"Commit failed: {e}") from e
        if count:
            logger.debug(f"Committed {count} index writes")
        return count

    async def _maybe_commit(self) -> None:
        if self._backend.pending_count < self._commit_batch_size:
            return
        try:
            await self.commit()
        except IndexWriteError as e:
            # The write is staged and stays pending for the next commit
            logger.warning(
                f"Automatic commit failed, keeping {self.pending_count} writes pending: {e.message}"
            )

    async def indexed_version(self, entry_id: str) -> int | None:
        """Latest version held for ``entry_id``, pending writes included."""
        return await self._backend.get_version(entry_id)

    async def indexed_versions(self, include_pending: bool = False) -> dict[str, int]:
        """Map of id to indexed version, by default committed documents only."""
        return await self._backend.versions(include_pending=include_pending)

    async def clear(self) -> None:
        """Remove every document from the index."""
        await self._backend.clear()

    # Background flushing

    async def start(self) -> None:
        """Start the background commit loop."""
        if self._flush_task is None or self._flush_task.done():
            self._flush_task = asyncio.create_task(self._flush_loop(), name="index-flush")
            logger.info(f"Index flusher started (every {self._commit_interval}s)")

    async def stop(self) -> None:
        """Stop the background loop and commit whatever is still pending."""
        if self._flush_task is not None:
            self._flush_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._flush_task
            self._flush_task = None
        await self.commit()
        logger.info("Index flusher stopped")

    async def _flush_loop(self) -> None:
        while True:
            await asyncio.sleep(self._commit_interval)
            if not self._backend.pending_count:
                continue
            try:
                await self.commit()
            except IndexWriteError as e:
                # Pending writes are kept and retried on the next tick
                logger.error(f"Background commit failed: {e}")
