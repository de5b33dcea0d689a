"""Interface the coordinator needs from the relational store."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Protocol, runtime_checkable

from fairsearch.core.models import EntryRecord


@runtime_checkable
class EntrySource(Protocol):
    """Read access to the source of truth for entries."""

    async def get(self, entry_id: str) -> EntryRecord | None:
        """Committed record for ``entry_id``, or None if it does not exist."""
        ...

    def scan_all(self) -> AsyncIterator[EntryRecord]:
        """Iterate over every committed record."""
        ...
