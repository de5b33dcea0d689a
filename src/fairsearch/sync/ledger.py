"""Per-id record of the last version written to the index."""

from __future__ import annotations

import logging
from collections.abc import Mapping

from fairsearch.core.types import EntryState

logger = logging.getLogger(__name__)


class ReconciliationLedger:
    """
    Tracks, per entry id, the last version successfully indexed.

    Held in memory only. It is seeded from the index when the service starts
    and at the beginning of every reconciliation pass, so it can always be
    rebuilt from the index and the store.
    """

    def __init__(self) -> None:
        self._versions: dict[str, int] = {}
        self._deleted: set[str] = set()

    def get(self, entry_id: str) -> int | None:
        return self._versions.get(entry_id)

    def state(self, entry_id: str) -> EntryState:
        if entry_id in self._versions:
            return EntryState.INDEXED
        if entry_id in self._deleted:
            return EntryState.DELETED
        return EntryState.UNTRACKED

    def record(self, entry_id: str, version: int) -> bool:
        """
        Record that ``version`` is indexed. Never moves an id backwards.

        Returns:
            True if the recorded version changed
        """
        current = self._versions.get(entry_id)
        if current is not None and current >= version:
            return False
        self._versions[entry_id] = version
        self._deleted.discard(entry_id)
        return True

    def clear(self, entry_id: str) -> None:
        """Mark an id as deleted from the index."""
        self._versions.pop(entry_id, None)
        self._deleted.add(entry_id)

    def seed(self, versions: Mapping[str, int]) -> None:
        """Replace the ledger contents with the given index state."""
        self._versions = dict(versions)
        self._deleted.clear()
        logger.debug(f"Ledger seeded with {len(self._versions)} entries")

    def ids(self) -> set[str]:
        return set(self._versions)

    def snapshot(self) -> dict[str, int]:
        return dict(self._versions)

    def __len__(self) -> int:
        return len(self._versions)

    def __contains__(self, entry_id: object) -> bool:
        return entry_id in self._versions
