"""Entry repository and the store adapter built on it."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from fairsearch.core.exceptions import NotFoundError, StoreError
from fairsearch.core.models import ChangeNotification, EntryRecord, EntryUpdate, NewEntry
from fairsearch.core.normalization import normalize_tags
from fairsearch.core.types import ChangeOperation
from fairsearch.db.models.entry import EntryModel
from fairsearch.db.repositories.base import BaseRepository
from fairsearch.db.session import DatabaseManager
from fairsearch.sync.feed import ChangeFeed

logger = logging.getLogger(__name__)


class EntryRepository(BaseRepository[EntryModel]):
    """Repository for Entry entities with specialized queries."""

    model = EntryModel

    async def scan(self, *, after_id: str | None = None, limit: int = 500) -> Sequence[EntryModel]:
        """Keyset page of entries ordered by id."""
        stmt = select(EntryModel).order_by(EntryModel.id).limit(limit)
        if after_id is not None:
            stmt = stmt.where(EntryModel.id > after_id)
        result = await self._session.execute(stmt)
        return result.scalars().all()

    async def count(self) -> int:
        result = await self._session.execute(select(func.count()).select_from(EntryModel))
        return result.scalar_one()


class EntryStore:
    """
    The relational store of entries as seen by the search engine.

    Every committed create/update/delete is announced on the change feed
    after the transaction commits.
    """

    def __init__(
        self,
        db: DatabaseManager,
        feed: ChangeFeed | None = None,
        *,
        scan_batch_size: int = 500,
    ) -> None:
        self._db = db
        self._feed = feed
        self._scan_batch_size = scan_batch_size

    async def _publish(self, record: EntryRecord, operation: ChangeOperation) -> None:
        if self._feed is None:
            return
        await self._feed.publish(
            ChangeNotification(entry_id=record.id, version=record.version, operation=operation)
        )

    async def get(self, entry_id: str) -> EntryRecord | None:
        try:
            async with self._db.session() as session:
                model = await EntryRepository(session).get(entry_id)
                return EntryRecord.model_validate(model) if model is not None else None
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to read entry {entry_id}: {e}") from e

    async def get_many(self, entry_ids: list[str]) -> dict[str, EntryRecord]:
        try:
            async with self._db.session() as session:
                models = await EntryRepository(session).get_many(entry_ids)
                return {m.id: EntryRecord.model_validate(m) for m in models}
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to read entries: {e}") from e

    async def scan_all(self) -> AsyncIterator[EntryRecord]:
        """Iterate over all entries in id order, one short transaction per batch."""
        after_id: str | None = None
        while True:
            try:
                async with self._db.session() as session:
                    models = await EntryRepository(session).scan(
                        after_id=after_id, limit=self._scan_batch_size
                    )
                    batch = [EntryRecord.model_validate(m) for m in models]
            except SQLAlchemyError as e:
                raise StoreError(f"Failed to scan entries after {after_id}: {e}") from e

            for record in batch:
                yield record
            if len(batch) < self._scan_batch_size:
                return
            after_id = batch[-1].id

    async def count(self) -> int:
        try:
            async with self._db.session() as session:
                return await EntryRepository(session).count()
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to count entries: {e}") from e

    async def create(self, new: NewEntry) -> EntryRecord:
        data = new.model_dump(exclude_none=True)
        data["tags"] = sorted(normalize_tags(new.tags))
        try:
            async with self._db.session() as session:
                model = await EntryRepository(session).create(EntryModel(**data))
                record = EntryRecord.model_validate(model)
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to create entry: {e}") from e

        logger.debug(f"Created entry {record.id}")
        await self._publish(record, ChangeOperation.CREATE)
        return record

    async def update(self, entry_id: str, update: EntryUpdate) -> EntryRecord:
        changes = update.changes()
        if "tags" in changes:
            changes["tags"] = sorted(normalize_tags(changes["tags"]))
        return await self._modify(entry_id, changes)

    async def set_rating(self, entry_id: str, avg_rating: float) -> EntryRecord:
        """Store a recomputed average rating."""
        return await self._modify(entry_id, {"avg_rating": avg_rating})

    async def _modify(self, entry_id: str, changes: dict) -> EntryRecord:
        try:
            async with self._db.session() as session:
                repo = EntryRepository(session)
                model = await repo.get(entry_id)
                if model is None:
                    raise NotFoundError(f"Entry {entry_id} not found")
                for key, value in changes.items():
                    setattr(model, key, value)
                model = await repo.update(model)
                record = EntryRecord.model_validate(model)
        except StaleDataError as e:
            raise StoreError(f"Concurrent update of entry {entry_id}") from e
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to update entry {entry_id}: {e}") from e

        logger.debug(f"Updated entry {entry_id} to version {record.version}")
        await self._publish(record, ChangeOperation.UPDATE)
        return record

    async def delete(self, entry_id: str) -> bool:
        try:
            async with self._db.session() as session:
                model = await EntryRepository(session).get(entry_id)
                if model is None:
                    return False
                record = EntryRecord.model_validate(model)
                await session.delete(model)
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to delete entry {entry_id}: {e}") from e

        logger.debug(f"Deleted entry {entry_id}")
        await self._publish(record, ChangeOperation.DELETE)
        return True
