"""Response schemas for API endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import Field

from fairsearch.api.schemas.base import APIBaseSchema, PaginatedResponse
from fairsearch.core.types import Category, IndexOperation


class SearchHitResponse(APIBaseSchema):
    """A ranked entry id."""

    id: str
    score: float
    rating: float


class SearchResponse(PaginatedResponse):
    """Ranked page of entry ids."""

    results: list[SearchHitResponse]


class EntryResponse(APIBaseSchema):
    """Directory entry."""

    id: str
    version: int
    title: str
    description: str
    tags: list[str] = Field(default_factory=list)
    category: Category
    lat: float
    lon: float
    avg_rating: float
    street: str | None = None
    zip: str | None = None
    city: str | None = None
    country: str | None = None


class SearchEntryResult(APIBaseSchema):
    """A search hit with its entry."""

    score: float
    entry: EntryResponse


class SearchEntriesResponse(PaginatedResponse):
    """Ranked page of entries."""

    results: list[SearchEntryResult]


class ReconciliationFailureResponse(APIBaseSchema):
    """An entry reconciliation could not fix."""

    entry_id: str
    operation: IndexOperation
    message: str
    escalated: bool


class ReconciliationReportResponse(APIBaseSchema):
    """Outcome of a reconciliation pass."""

    scanned: int
    inserted: int
    updated: int
    removed: int
    unchanged: int
    failed: int
    failures: list[ReconciliationFailureResponse]
    bbox: str | None = None
    cancelled: bool
    started_at: datetime
    finished_at: datetime | None = None


class HealthResponse(APIBaseSchema):
    """Health check response."""

    status: Literal["healthy", "degraded", "unhealthy"]
    version: str
    services: dict[str, Literal["up", "down", "unknown"]]
