"""In-process change feed between the store and the coordinator."""

from __future__ import annotations

import asyncio
import logging

from fairsearch.core.models import ChangeNotification

logger = logging.getLogger(__name__)


class ChangeFeed:
    """
    FIFO queue of committed store mutations.

    ``close`` enqueues an end marker; ``get`` returns None once the consumer
    reaches it.
    """

    def __init__(self, maxsize: int = 0) -> None:
        self._queue: asyncio.Queue[ChangeNotification | None] = asyncio.Queue(maxsize=maxsize)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def qsize(self) -> int:
        return self._queue.qsize()

    def publish_nowait(self, notification: ChangeNotification) -> None:
        if self._closed:
            logger.warning(f"Change feed closed, dropping {notification.operation} {notification.entry_id}")
            return
        self._queue.put_nowait(notification)

    async def publish(self, notification: ChangeNotification) -> None:
        if self._closed:
            logger.warning(f"Change feed closed, dropping {notification.operation} {notification.entry_id}")
            return
        await self._queue.put(notification)

    async def get(self) -> ChangeNotification | None:
        return await self._queue.get()

    def task_done(self) -> None:
        self._queue.task_done()

    async def join(self) -> None:
        """Wait until every published notification has been processed."""
        await self._queue.join()

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(None)
