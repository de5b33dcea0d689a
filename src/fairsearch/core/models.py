"""Domain models for directory entries and the search engine around them."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .geo import BoundingBox
from .normalization import normalize_tags, tokenize
from .types import Category, ChangeOperation, IndexOperation, ReconcileAction

RATING_MIN = -1.0
RATING_MAX = 2.0

T = TypeVar("T")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EntryRecord(BaseModel):
    """
    Canonical representation of a searchable directory entry.

    The relational store owns these records. ``version`` strictly increases on
    every update so that index writes produced by older versions can be
    detected and discarded.
    """

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: str = Field(..., min_length=1, description="Opaque, immutable identifier")
    version: int = Field(default=0, ge=0, description="Per-id revision counter")
    title: str = Field(..., description="Display name")
    description: str = Field(default="", description="Free-text description")
    tags: frozenset[str] = Field(default_factory=frozenset, description="Normalized tags")
    category: Category = Field(default=Category.OTHER, description="Directory category")
    lat: float = Field(..., ge=-90.0, le=90.0, description="Latitude in degrees")
    lon: float = Field(..., ge=-180.0, le=180.0, description="Longitude in degrees")
    avg_rating: float = Field(
        default=0.0, ge=RATING_MIN, le=RATING_MAX, description="Aggregate rating"
    )

    # Address
    street: str | None = Field(default=None, description="Street and number")
    zip: str | None = Field(default=None, description="Postal code")
    city: str | None = Field(default=None, description="City")
    country: str | None = Field(default=None, description="Country")

    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @field_validator("tags", mode="before")
    @classmethod
    def _normalize_tags(cls, value: Any) -> frozenset[str]:
        if value is None:
            return frozenset()
        if isinstance(value, str):
            value = [value]
        return normalize_tags(value)

    @property
    def address(self) -> str:
        """Address parts joined into one searchable line."""
        parts = [self.street, self.zip, self.city, self.country]
        return " ".join(p for p in parts if p)


class NewEntry(BaseModel):
    """Payload for creating an entry in the store."""

    id: str | None = Field(default=None, description="Explicit id (generated when omitted)")
    title: str
    description: str = ""
    tags: list[str] = Field(default_factory=list)
    category: Category = Category.OTHER
    lat: float = Field(..., ge=-90.0, le=90.0)
    lon: float = Field(..., ge=-180.0, le=180.0)
    avg_rating: float = Field(default=0.0, ge=RATING_MIN, le=RATING_MAX)
    street: str | None = None
    zip: str | None = None
    city: str | None = None
    country: str | None = None


class EntryUpdate(BaseModel):
    """Partial update of an entry. Fields left as None are unchanged."""

    title: str | None = None
    description: str | None = None
    tags: list[str] | None = None
    category: Category | None = None
    lat: float | None = Field(default=None, ge=-90.0, le=90.0)
    lon: float | None = Field(default=None, ge=-180.0, le=180.0)
    street: str | None = None
    zip: str | None = None
    city: str | None = None
    country: str | None = None

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class IndexDocument(BaseModel):
    """
    Index-native projection of an EntryRecord.

    Carries the raw text (for engines that analyze text themselves) and the
    analyzed terms (for the in-process engine), the tag facet, the point and
    the version that produced it.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    version: int
    title: str
    description: str = ""
    address: str = ""
    title_terms: tuple[str, ...] = ()
    description_terms: tuple[str, ...] = ()
    address_terms: tuple[str, ...] = ()
    tags: frozenset[str] = frozenset()
    category: Category
    lat: float
    lon: float
    avg_rating: float = 0.0

    @classmethod
    def from_record(cls, record: EntryRecord) -> IndexDocument:
        address = record.address
        return cls(
            id=record.id,
            version=record.version,
            title=record.title,
            description=record.description,
            address=address,
            title_terms=tuple(tokenize(record.title)),
            description_terms=tuple(tokenize(record.description)),
            address_terms=tuple(tokenize(address)),
            tags=record.tags,
            category=record.category,
            lat=record.lat,
            lon=record.lon,
            avg_rating=record.avg_rating,
        )

    def field_terms(self) -> dict[str, tuple[str, ...]]:
        """Analyzed terms per scored field."""
        return {
            "title": self.title_terms,
            "description": self.description_terms,
            "address": self.address_terms,
            "tags": tuple(sorted(self.tags)),
        }

    def to_dict(self) -> dict[str, Any]:
        data = self.model_dump(mode="json")
        data["tags"] = sorted(self.tags)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> IndexDocument:
        return cls.model_validate(data)

    def to_search_document(self) -> dict[str, Any]:
        """Flat document for external search engines."""
        return {
            "id": self.id,
            "version": self.version,
            "title": self.title,
            "description": self.description,
            "address": self.address,
            "tags": sorted(self.tags),
            "category": self.category.value,
            "lat": self.lat,
            "lon": self.lon,
            "avg_rating": self.avg_rating,
        }

    @classmethod
    def from_search_document(cls, data: dict[str, Any]) -> IndexDocument:
        title = data.get("title") or ""
        description = data.get("description") or ""
        address = data.get("address") or ""
        return cls(
            id=data["id"],
            version=data.get("version", 0),
            title=title,
            description=description,
            address=address,
            title_terms=tuple(tokenize(title)),
            description_terms=tuple(tokenize(description)),
            address_terms=tuple(tokenize(address)),
            tags=frozenset(data.get("tags") or ()),
            category=data.get("category", Category.OTHER),
            lat=data["lat"],
            lon=data["lon"],
            avg_rating=data.get("avg_rating", 0.0),
        )


class Query(BaseModel):
    """
    Structured search query.

    Values are not range-checked here; the query planner validates them and
    raises InvalidQuery so that malformed input is reported consistently.
    """

    text: str | None = Field(default=None, description="Free text, may contain #tags")
    tags: frozenset[str] = Field(default_factory=frozenset, description="Required tags (AND)")
    category: Category | None = Field(default=None)
    bbox: BoundingBox | None = Field(default=None)
    min_rating: float | None = Field(default=None, description="Rating floor (inclusive)")
    ids: frozenset[str] | None = Field(default=None, description="Restrict to these ids")
    offset: int = Field(default=0)
    limit: int | None = Field(default=None, description="Page size (default when omitted)")

    @property
    def is_empty(self) -> bool:
        return (
            not (self.text and self.text.strip())
            and not self.tags
            and self.category is None
            and self.bbox is None
            and self.min_rating is None
            and self.ids is None
        )


class ScoredEntryId(BaseModel):
    """One search hit."""

    model_config = ConfigDict(frozen=True)

    id: str
    score: float = 0.0
    rating: float = 0.0


class Page(BaseModel, Generic[T]):
    """A page of results plus the total number of matches."""

    items: list[T] = Field(default_factory=list)
    total: int = 0
    offset: int = 0
    limit: int = 0

    @property
    def has_more(self) -> bool:
        return self.offset + len(self.items) < self.total

    @property
    def ids(self) -> list[str]:
        return [getattr(item, "id") for item in self.items]


class ChangeNotification(BaseModel):
    """A committed store mutation announced on the change feed."""

    model_config = ConfigDict(frozen=True)

    entry_id: str
    version: int = Field(..., ge=0)
    operation: ChangeOperation


class ReconciliationFailure(BaseModel):
    """A per-id failure recorded during reconciliation."""

    model_config = ConfigDict(frozen=True)

    entry_id: str
    operation: IndexOperation
    message: str
    escalated: bool = False


class ReconciliationReport(BaseModel):
    """Outcome of one reconciliation pass."""

    scanned: int = 0
    inserted: int = 0
    updated: int = 0
    removed: int = 0
    unchanged: int = 0
    failed: int = 0
    failures: list[ReconciliationFailure] = Field(default_factory=list)
    bbox: str | None = None
    cancelled: bool = False
    started_at: datetime = Field(default_factory=_utcnow)
    finished_at: datetime | None = None

    def count(self, action: ReconcileAction) -> None:
        match action:
            case ReconcileAction.INSERTED:
                self.inserted += 1
            case ReconcileAction.UPDATED:
                self.updated += 1
            case ReconcileAction.REMOVED:
                self.removed += 1
            case ReconcileAction.UNCHANGED:
                self.unchanged += 1

    def add_failure(self, failure: ReconciliationFailure) -> None:
        self.failed += 1
        self.failures.append(failure)

    @property
    def escalated_ids(self) -> list[str]:
        return [f.entry_id for f in self.failures if f.escalated]

    @property
    def duration_seconds(self) -> float | None:
        if self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()
