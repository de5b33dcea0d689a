"""Unit test fixtures with fault injection."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

import pytest

from fairsearch.core.exceptions import IndexReadError, IndexWriteError
from fairsearch.core.models import IndexDocument, ScoredEntryId
from fairsearch.search.indexer import IndexWriter
from fairsearch.search.memory import MemoryIndexBackend
from fairsearch.search.planner import QueryPlan

# ============================================================================
# Faulty Backend
# ============================================================================


class FaultyBackend(MemoryIndexBackend):
    """In-process backend whose writes and reads can be made to fail or stall.

    ``fail_writes`` is the number of upcoming stage calls that raise,
    ``stall_writes`` the number that sleep past any sensible timeout.
    Setting ``fail_writes`` to -1 makes every write fail. Ids in
    ``fail_ids`` always fail and ids in ``stall_ids`` always stall.
    ``fail_commits`` is the number of upcoming commits that raise.
    """

    def __init__(self) -> None:
        super().__init__()
        self.fail_writes = 0
        self.stall_writes = 0
        self.stall_seconds = 10.0
        self.fail_ids: set[str] = set()
        self.stall_ids: set[str] = set()
        self.fail_reads = False
        self.fail_commits = 0
        self.write_attempts: list[str] = []

    async def _inject(self, entry_id: str) -> None:
        self.write_attempts.append(entry_id)
        if entry_id in self.stall_ids:
            await asyncio.sleep(self.stall_seconds)
        elif self.stall_writes:
            self.stall_writes -= 1
            await asyncio.sleep(self.stall_seconds)
        if entry_id in self.fail_ids:
            raise IndexWriteError(f"injected failure for {entry_id}", entry_id=entry_id)
        if self.fail_writes:
            if self.fail_writes > 0:
                self.fail_writes -= 1
            raise IndexWriteError(f"injected failure for {entry_id}", entry_id=entry_id)

    async def stage_upsert(self, doc: IndexDocument) -> bool:
        await self._inject(doc.id)
        return await super().stage_upsert(doc)

    async def stage_delete(self, entry_id: str) -> bool:
        await self._inject(entry_id)
        return await super().stage_delete(entry_id)

    async def _apply(self, batch: dict[str, IndexDocument | None]) -> None:
        if self.fail_commits:
            self.fail_commits -= 1
            raise IndexWriteError("injected commit failure")
        await super()._apply(batch)

    async def execute(self, plan: QueryPlan) -> tuple[list[ScoredEntryId], int]:
        if self.fail_reads:
            raise IndexReadError("injected read failure")
        return await super().execute(plan)


@pytest.fixture
async def faulty_backend() -> AsyncIterator[FaultyBackend]:
    backend = FaultyBackend()
    await backend.open()
    yield backend
    await backend.close()


@pytest.fixture
def faulty_writer(faulty_backend: FaultyBackend) -> IndexWriter:
    return IndexWriter(faulty_backend, commit_batch_size=10_000, commit_interval=60.0)
