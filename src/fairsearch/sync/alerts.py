"""Operator alerts for entries that keep failing to index."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Protocol

from fairsearch.core.types import IndexOperation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Alert:
    """An id that failed to index too many times in a row."""

    entry_id: str
    operation: IndexOperation
    consecutive_failures: int
    message: str
    raised_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class AlertSink(Protocol):
    async def alert(self, alert: Alert) -> None: ...


class LoggingAlertSink:
    """Reports alerts on the log at CRITICAL level."""

    async def alert(self, alert: Alert) -> None:
        logger.critical(
            f"Index {alert.operation} for {alert.entry_id} failed "
            f"{alert.consecutive_failures} times in a row: {alert.message}"
        )
