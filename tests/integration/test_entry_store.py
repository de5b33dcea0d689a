"""Integration tests for the entry store on a real database."""

from __future__ import annotations

import pytest

from fairsearch.core.exceptions import NotFoundError
from fairsearch.core.models import EntryUpdate, Query
from fairsearch.core.types import Category, ChangeOperation
from fairsearch.db.repositories.entry import EntryRepository, EntryStore
from fairsearch.db.session import DatabaseManager
from fairsearch.services.search import DirectorySearchService
from fairsearch.sync.feed import ChangeFeed

pytestmark = [pytest.mark.integration, pytest.mark.requires_db]


# ============================================================================
# Basic CRUD Tests
# ============================================================================


class TestEntryStoreCRUD:
    """Tests for creating, reading, updating and deleting entries."""

    async def test_create_entry(self, entry_store: EntryStore, new_entry):
        """A new entry should start at version 0 with normalized tags."""
        record = await entry_store.create(new_entry(id="solar-coop", tags=["Solar", "#community", "solar"]))

        assert record.id == "solar-coop"
        assert record.version == 0
        assert record.tags == frozenset({"solar", "community"})
        assert record.category == Category.ENERGY
        assert record.created_at is not None

    async def test_create_generates_id(self, entry_store: EntryStore, new_entry):
        record = await entry_store.create(new_entry())
        assert record.id
        assert await entry_store.get(record.id) == record

    async def test_get_nonexistent(self, entry_store: EntryStore):
        """Should return None for a missing entry."""
        assert await entry_store.get("missing") is None

    async def test_update_increments_version(self, entry_store: EntryStore, new_entry):
        """Every update should bump the version by one."""
        created = await entry_store.create(new_entry(id="a"))

        first = await entry_store.update("a", EntryUpdate(title="Renamed"))
        second = await entry_store.update("a", EntryUpdate(tags=["Bio"]))

        assert (created.version, first.version, second.version) == (0, 1, 2)
        assert second.title == "Renamed"
        assert second.tags == frozenset({"bio"})

    async def test_set_rating(self, entry_store: EntryStore, new_entry):
        await entry_store.create(new_entry(id="a", avg_rating=0.0))
        record = await entry_store.set_rating("a", 1.75)
        assert record.avg_rating == 1.75
        assert record.version == 1

    async def test_update_nonexistent(self, entry_store: EntryStore):
        """Updating a missing entry should raise NotFoundError."""
        with pytest.raises(NotFoundError):
            await entry_store.update("missing", EntryUpdate(title="x"))

    async def test_delete(self, entry_store: EntryStore, new_entry):
        await entry_store.create(new_entry(id="a"))

        assert await entry_store.delete("a") is True
        assert await entry_store.get("a") is None
        assert await entry_store.delete("a") is False


# ============================================================================
# Scan Tests
# ============================================================================


class TestEntryStoreScan:
    """Tests for bulk reads."""

    async def test_scan_all_in_id_order(self, entry_store: EntryStore, new_entry):
        """Scanning should page through every entry in id order."""
        for entry_id in ["e", "b", "d", "a", "c"]:
            await entry_store.create(new_entry(id=entry_id))

        ids = [record.id async for record in entry_store.scan_all()]
        assert ids == ["a", "b", "c", "d", "e"]

    async def test_scan_empty(self, entry_store: EntryStore):
        assert [record async for record in entry_store.scan_all()] == []

    async def test_count_and_get_many(self, entry_store: EntryStore, new_entry):
        for entry_id in ["a", "b", "c"]:
            await entry_store.create(new_entry(id=entry_id))

        assert await entry_store.count() == 3
        found = await entry_store.get_many(["a", "c", "missing"])
        assert set(found) == {"a", "c"}

    async def test_repository_scan_after(self, db: DatabaseManager, entry_store: EntryStore, new_entry):
        for entry_id in ["a", "b", "c"]:
            await entry_store.create(new_entry(id=entry_id))

        async with db.session() as session:
            models = await EntryRepository(session).scan(after_id="a", limit=1)
        assert [m.id for m in models] == ["b"]


# ============================================================================
# Change Feed Tests
# ============================================================================


class TestEntryStoreNotifications:
    """Tests that committed mutations are announced on the feed."""

    async def test_mutations_published(self, entry_store: EntryStore, change_feed: ChangeFeed, new_entry):
        await entry_store.create(new_entry(id="a"))
        await entry_store.update("a", EntryUpdate(title="Renamed"))
        await entry_store.delete("a")

        notifications = [await change_feed.get() for _ in range(3)]
        assert [(n.operation, n.version) for n in notifications] == [
            (ChangeOperation.CREATE, 0),
            (ChangeOperation.UPDATE, 1),
            (ChangeOperation.DELETE, 1),
        ]
        assert {n.entry_id for n in notifications} == {"a"}

    async def test_failed_update_not_published(self, entry_store: EntryStore, change_feed: ChangeFeed):
        with pytest.raises(NotFoundError):
            await entry_store.update("missing", EntryUpdate(title="x"))
        assert change_feed.qsize() == 0

    async def test_store_without_feed(self, db: DatabaseManager, new_entry):
        store = EntryStore(db)
        record = await store.create(new_entry(id="quiet"))
        assert record.version == 0


# ============================================================================
# End-to-End Tests
# ============================================================================


class TestStoreToSearch:
    """Tests that store changes become searchable through the coordinator."""

    async def test_startup_reconcile_indexes_existing(self, search_service: DirectorySearchService):
        page = await search_service.search(Query())
        assert page.total == 3
        assert page.ids == ["solar-coop", "repair-cafe", "bio-market"]

    async def test_live_changes(self, search_service: DirectorySearchService, entry_store: EntryStore, new_entry):
        """Creates, updates and deletes should reach the index."""
        await entry_store.create(new_entry(id="bakery", title="Zero Waste Bakery", tags=["bakery"]))
        await search_service.coordinator.drain()
        assert (await search_service.search(Query(text="bakery"))).ids == ["bakery"]

        await entry_store.update("bakery", EntryUpdate(title="Unpackaged Grocery", tags=["grocery"]))
        await search_service.coordinator.drain()
        assert (await search_service.search(Query(text="bakery"))).total == 0
        assert (await search_service.search(Query(text="grocery"))).ids == ["bakery"]
        assert await search_service.writer.indexed_version("bakery") == 1

        await entry_store.delete("bakery")
        await search_service.coordinator.drain()
        assert (await search_service.search(Query(text="grocery"))).total == 0

    async def test_rating_change_reorders(self, search_service: DirectorySearchService, entry_store: EntryStore):
        """A new rating should be reflected in the tie-break order."""
        await entry_store.set_rating("bio-market", 2.0)
        await search_service.coordinator.drain()

        page = await search_service.search(Query())
        assert page.ids[0] == "bio-market"

    async def test_hydrated_hits(self, search_service: DirectorySearchService):
        page = await search_service.search_entries(Query(text="repair"))
        assert [hit.record.id for hit in page.items] == ["repair-cafe"]
        assert page.items[0].record.title == "Repair Café West"
