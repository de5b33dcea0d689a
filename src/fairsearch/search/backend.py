"""Storage engine interface shared by the index writer and reader."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from fairsearch.core.models import IndexDocument, ScoredEntryId

if TYPE_CHECKING:
    from fairsearch.search.planner import QueryPlan

logger = logging.getLogger(__name__)


class IndexBackend(ABC):
    """
    Base class for index storage engines.

    Writes are staged in a pending buffer (``None`` marks a deletion) and only
    become visible to queries on ``commit``. Staging and committing share one
    lock; queries never take it.
    """

    name: str = "abstract"

    def __init__(self) -> None:
        self._pending: dict[str, IndexDocument | None] = {}
        self._write_lock = asyncio.Lock()

    # Lifecycle

    @abstractmethod
    async def open(self) -> None:
        """Open or create the index. Raises IndexOpenError on failure."""

    async def close(self) -> None:
        """Release engine resources. Uncommitted writes are dropped."""
        self._pending.clear()

    async def health(self) -> bool:
        return True

    # Committed state

    @abstractmethod
    def _committed_version(self, entry_id: str) -> int | None:
        """Version of the committed document for ``entry_id``."""

    @abstractmethod
    def _committed_versions(self) -> dict[str, int]:
        """Versions of all committed documents."""

    @abstractmethod
    async def get_document(self, entry_id: str) -> IndexDocument | None:
        """Fetch a committed document."""

    @abstractmethod
    async def _apply(self, batch: dict[str, IndexDocument | None]) -> None:
        """Make a batch of staged writes visible. Must be all-or-nothing."""

    @abstractmethod
    async def _clear(self) -> None:
        """Drop every committed document."""

    @abstractmethod
    async def execute(self, plan: QueryPlan) -> tuple[list[ScoredEntryId], int]:
        """
        Run a validated query plan.

        Returns:
            The requested page of ranked hits and the total number of matches
        """

    # Writes

    def _current_version(self, entry_id: str) -> int | None:
        if entry_id in self._pending:
            doc = self._pending[entry_id]
            return doc.version if doc is not None else None
        return self._committed_version(entry_id)

    async def get_version(self, entry_id: str) -> int | None:
        """Latest known version for ``entry_id``, pending writes included."""
        async with self._write_lock:
            return self._current_version(entry_id)

    async def stage_upsert(self, doc: IndexDocument) -> bool:
        """
        Stage a document unless an equal or newer version is already held.

        Returns:
            True if the document was staged, False if it was stale
        """
        async with self._write_lock:
            current = self._current_version(doc.id)
            if current is not None and current >= doc.version:
                return False
            self._pending[doc.id] = doc
            return True

    async def stage_delete(self, entry_id: str) -> bool:
        """
        Stage a deletion.

        Returns:
            True if a document existed, False otherwise
        """
        async with self._write_lock:
            if self._current_version(entry_id) is None:
                return False
            self._pending[entry_id] = None
            return True

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def commit(self) -> int:
        """
        Apply all staged writes.

        On failure the staged writes are kept so the next commit retries them.

        Returns:
            Number of writes applied
        """
        async with self._write_lock:
            if not self._pending:
                return 0
            batch = dict(self._pending)
            await self._apply(batch)
            self._pending.clear()
            logger.debug(f"{self.name}: committed {len(batch)} writes")
            return len(batch)

    async def clear(self) -> None:
        """Drop staged writes and all committed documents."""
        async with self._write_lock:
            self._pending.clear()
            await self._clear()
            logger.info(f"{self.name}: index cleared")

    async def versions(self, include_pending: bool = False) -> dict[str, int]:
        """Map of id to indexed version."""
        async with self._write_lock:
            result = self._committed_versions()
            if include_pending:
                for entry_id, doc in self._pending.items():
                    if doc is None:
                        result.pop(entry_id, None)
                    else:
                        result[entry_id] = doc.version
            return result

    async def document_count(self) -> int:
        return len(self._committed_versions())
