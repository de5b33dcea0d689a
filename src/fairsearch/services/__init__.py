"""Service layer."""

from fairsearch.services.search import DirectorySearchService, EntryHit, create_backend

__all__ = [
    "DirectorySearchService",
    "EntryHit",
    "create_backend",
]
