"""Custom exception hierarchy for fairsearch."""

from typing import Any


class FairSearchError(Exception):
    """Base exception for all fairsearch errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class InvalidQuery(FairSearchError):
    """Malformed search query. User-correctable."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.field = field


class IndexEngineError(FairSearchError):
    """Failure inside the index storage engine."""

    pass


class IndexWriteError(IndexEngineError):
    """Index write (stage, serialize or commit) failed."""

    def __init__(
        self,
        message: str,
        entry_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.entry_id = entry_id


class IndexReadError(IndexEngineError):
    """Index query failed. No partial results are returned."""

    pass


class IndexOpenError(IndexEngineError):
    """The index could not be opened."""

    def __init__(
        self,
        message: str,
        attempts: int = 1,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.attempts = attempts


class StoreError(FairSearchError):
    """Relational store operation failed."""

    pass


class NotFoundError(FairSearchError):
    """Resource not found."""

    pass


class ReconciliationError(FairSearchError):
    """A reconciliation pass could not run to completion."""

    pass
