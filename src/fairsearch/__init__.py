"""Fairsearch - search and index consistency engine for a sustainability directory."""

from fairsearch.core.geo import BoundingBox, MapPoint
from fairsearch.core.models import EntryRecord, Page, Query, ReconciliationReport, ScoredEntryId
from fairsearch.core.types import Category, ChangeOperation
from fairsearch.services.search import DirectorySearchService

__version__ = "0.1.0"
__all__ = [
    # Service
    "DirectorySearchService",
    # Types
    "Category",
    "ChangeOperation",
    # Models
    "BoundingBox",
    "EntryRecord",
    "MapPoint",
    "Page",
    "Query",
    "ReconciliationReport",
    "ScoredEntryId",
    # Version
    "__version__",
]
