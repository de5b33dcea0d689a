"""Core types, models, and utilities."""

from .exceptions import (
    FairSearchError,
    IndexEngineError,
    IndexOpenError,
    IndexReadError,
    IndexWriteError,
    InvalidQuery,
    NotFoundError,
    ReconciliationError,
    StoreError,
)
from .geo import BoundingBox, MapPoint, bbox_around, extend_bbox, haversine_km, within_radius
from .models import (
    ChangeNotification,
    EntryRecord,
    EntryUpdate,
    IndexDocument,
    NewEntry,
    Page,
    Query,
    ReconciliationFailure,
    ReconciliationReport,
    ScoredEntryId,
)
from .normalization import (
    extract_hash_tags,
    normalize_tag,
    normalize_tags,
    normalize_text,
    remove_hash_tags,
    tokenize,
)
from .types import (
    Category,
    ChangeOperation,
    EntryState,
    IndexOperation,
    ReconcileAction,
    SearchBackendName,
    WriteOutcome,
)

__all__ = [
    # Types
    "Category",
    "ChangeOperation",
    "EntryState",
    "IndexOperation",
    "ReconcileAction",
    "SearchBackendName",
    "WriteOutcome",
    # Geo
    "BoundingBox",
    "MapPoint",
    "bbox_around",
    "extend_bbox",
    "haversine_km",
    "within_radius",
    # Models
    "ChangeNotification",
    "EntryRecord",
    "EntryUpdate",
    "IndexDocument",
    "NewEntry",
    "Page",
    "Query",
    "ReconciliationFailure",
    "ReconciliationReport",
    "ScoredEntryId",
    # Normalization
    "extract_hash_tags",
    "normalize_tag",
    "normalize_tags",
    "normalize_text",
    "remove_hash_tags",
    "tokenize",
    # Exceptions
    "FairSearchError",
    "IndexEngineError",
    "IndexOpenError",
    "IndexReadError",
    "IndexWriteError",
    "InvalidQuery",
    "NotFoundError",
    "ReconciliationError",
    "StoreError",
]
