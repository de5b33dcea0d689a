"""FastAPI dependency injection."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request

from fairsearch.services.search import DirectorySearchService


async def get_search_service(request: Request) -> DirectorySearchService:
    """Get the directory search service from app state."""
    service = getattr(request.app.state, "search_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Search service not available")
    return service


# Type aliases for cleaner dependency injection
SearchSvc = Annotated[DirectorySearchService, Depends(get_search_service)]
