"""API schema definitions."""

from fairsearch.api.schemas.base import (
    APIBaseSchema,
    APIError,
    ErrorDetail,
    PaginatedResponse,
)
from fairsearch.api.schemas.requests import ReconcileRequest
from fairsearch.api.schemas.responses import (
    EntryResponse,
    HealthResponse,
    ReconciliationFailureResponse,
    ReconciliationReportResponse,
    SearchEntriesResponse,
    SearchEntryResult,
    SearchHitResponse,
    SearchResponse,
)

__all__ = [
    # Base
    "APIBaseSchema",
    "APIError",
    "ErrorDetail",
    "PaginatedResponse",
    # Requests
    "ReconcileRequest",
    # Responses
    "EntryResponse",
    "HealthResponse",
    "ReconciliationFailureResponse",
    "ReconciliationReportResponse",
    "SearchEntriesResponse",
    "SearchEntryResult",
    "SearchHitResponse",
    "SearchResponse",
]
