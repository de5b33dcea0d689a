"""Search endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Query as QueryParam

from fairsearch.api.dependencies import SearchSvc
from fairsearch.api.schemas import (
    EntryResponse,
    SearchEntriesResponse,
    SearchEntryResult,
    SearchHitResponse,
    SearchResponse,
)
from fairsearch.core.exceptions import InvalidQuery
from fairsearch.core.geo import BoundingBox
from fairsearch.core.models import EntryRecord, Page, Query, ScoredEntryId
from fairsearch.core.types import Category

router = APIRouter(prefix="/search", tags=["search"])

BBOX_DESCRIPTION = "Bounding box 'minLat,minLon,maxLat,maxLon'; minLon > maxLon crosses the antimeridian"


def parse_bbox(value: str | None) -> BoundingBox | None:
    if value is None or not value.strip():
        return None
    try:
        return BoundingBox.parse(value)
    except ValueError as e:
        raise InvalidQuery(f"Invalid bbox {value!r}: {e}", field="bbox") from e


def split_tags(values: list[str]) -> list[str]:
    """Accept both repeated ``tags`` parameters and comma-separated lists."""
    return [part for value in values for part in value.split(",") if part.strip()]


def entry_response(record: EntryRecord) -> EntryResponse:
    return EntryResponse.model_validate({**record.model_dump(), "tags": sorted(record.tags)})


def hits_response(page: Page[ScoredEntryId]) -> SearchResponse:
    return SearchResponse(
        total=page.total,
        offset=page.offset,
        limit=page.limit,
        has_more=page.has_more,
        results=[SearchHitResponse.model_validate(hit) for hit in page.items],
    )


def build_query(
    text: str | None,
    tags: list[str],
    category: Category | None,
    bbox: str | None,
    min_rating: float | None,
    offset: int,
    limit: int | None,
) -> Query:
    return Query(
        text=text,
        tags=frozenset(split_tags(tags)),
        category=category,
        bbox=parse_bbox(bbox),
        min_rating=min_rating,
        offset=offset,
        limit=limit,
    )


@router.get(
    "",
    response_model=SearchResponse,
    operation_id="search",
    summary="Search entries",
    description="Ranked, paginated search by text, tags, category, bounding box and rating.",
)
async def search(
    search_service: SearchSvc,
    text: str | None = QueryParam(None, max_length=500, description="Free text, may contain #tags"),
    tags: list[str] = QueryParam([], description="Required tags"),
    category: Category | None = QueryParam(None),
    bbox: str | None = QueryParam(None, description=BBOX_DESCRIPTION),
    min_rating: float | None = QueryParam(None, alias="minRating"),
    offset: int = QueryParam(0, description="Results to skip"),
    limit: int | None = QueryParam(None, description="Results per page"),
) -> SearchResponse:
    """Search for entries and return ranked ids."""
    query = build_query(text, tags, category, bbox, min_rating, offset, limit)
    page = await search_service.search(query)
    return hits_response(page)


@router.get(
    "/entries",
    response_model=SearchEntriesResponse,
    operation_id="searchEntriesWithRecords",
    summary="Search entries with records",
    description="Like search, but returns the full entry for every hit.",
)
async def search_entries(
    search_service: SearchSvc,
    text: str | None = QueryParam(None, max_length=500),
    tags: list[str] = QueryParam([]),
    category: Category | None = QueryParam(None),
    bbox: str | None = QueryParam(None, description=BBOX_DESCRIPTION),
    min_rating: float | None = QueryParam(None, alias="minRating"),
    offset: int = QueryParam(0),
    limit: int | None = QueryParam(None),
) -> SearchEntriesResponse:
    """Search for entries and load their records."""
    query = build_query(text, tags, category, bbox, min_rating, offset, limit)
    page = await search_service.search_entries(query)
    return SearchEntriesResponse(
        total=page.total,
        offset=page.offset,
        limit=page.limit,
        has_more=page.has_more,
        results=[
            SearchEntryResult(score=hit.score, entry=entry_response(hit.record))
            for hit in page.items
        ],
    )


@router.get(
    "/global",
    response_model=SearchResponse,
    operation_id="globalSearch",
    summary="Global text search",
    description="Free-text search over all entries without filters.",
)
async def global_search(
    search_service: SearchSvc,
    text: str = QueryParam(..., min_length=1, max_length=500),
    limit: int | None = QueryParam(None),
) -> SearchResponse:
    """Search all entries by text."""
    page = await search_service.global_search(text, limit)
    return hits_response(page)


@router.get(
    "/surroundings",
    response_model=SearchResponse,
    operation_id="searchSurroundings",
    summary="Search around a bounding box",
    description="Entries just outside the given box, within the box grown by its own size.",
)
async def search_surroundings(
    search_service: SearchSvc,
    bbox: str = QueryParam(..., description=BBOX_DESCRIPTION),
    text: str | None = QueryParam(None, max_length=500),
    tags: list[str] = QueryParam([]),
    category: Category | None = QueryParam(None),
    min_rating: float | None = QueryParam(None, alias="minRating"),
    offset: int = QueryParam(0),
    limit: int | None = QueryParam(None),
) -> SearchResponse:
    """Search the surroundings of a box."""
    query = build_query(text, tags, category, bbox, min_rating, offset, limit)
    page = await search_service.search_surroundings(query)
    return hits_response(page)
