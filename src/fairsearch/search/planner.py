"""Query validation and normalization."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

from fairsearch.core.exceptions import InvalidQuery
from fairsearch.core.geo import BoundingBox
from fairsearch.core.models import IndexDocument, Query
from fairsearch.core.normalization import (
    extract_hash_tags,
    normalize_tags,
    remove_hash_tags,
    tokenize,
)
from fairsearch.core.types import Category

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueryPlan:
    """A validated query in the form storage engines execute."""

    text: str
    terms: tuple[str, ...]
    tags: frozenset[str]
    category: Category | None
    bbox: BoundingBox | None
    min_rating: float | None
    ids: frozenset[str] | None
    offset: int
    limit: int
    exclude_bbox: BoundingBox | None = None

    @property
    def has_text(self) -> bool:
        return bool(self.terms)

    @property
    def matches_nothing(self) -> bool:
        return self.ids is not None and not self.ids

    def matches_filters(self, doc: IndexDocument) -> bool:
        """Conjunction of every non-text filter."""
        if self.ids is not None and doc.id not in self.ids:
            return False
        if self.tags and not self.tags <= doc.tags:
            return False
        if self.category is not None and doc.category != self.category:
            return False
        if self.min_rating is not None and doc.avg_rating < self.min_rating:
            return False
        if self.bbox is not None and not self.bbox.contains(doc.lat, doc.lon):
            return False
        if self.exclude_bbox is not None and self.exclude_bbox.contains(doc.lat, doc.lon):
            return False
        return True


class QueryPlanner:
    """
    Compiles a Query into a QueryPlan.

    ``#tags`` written in the free text become required tags and are removed
    from the text that is scored.
    """

    def __init__(self, max_page_size: int = 100, default_page_size: int = 20) -> None:
        self._max_page_size = max_page_size
        self._default_page_size = min(default_page_size, max_page_size)

    @property
    def max_page_size(self) -> int:
        return self._max_page_size

    def plan(self, query: Query) -> QueryPlan:
        """
        Validate and normalize a query.

        Raises:
            InvalidQuery: If pagination, bounding box or rating floor are malformed
        """
        if query.offset < 0:
            raise InvalidQuery("offset must not be negative", field="offset")

        limit = self._default_page_size if query.limit is None else query.limit
        if limit < 0:
            raise InvalidQuery("limit must not be negative", field="limit")
        if limit > self._max_page_size:
            raise InvalidQuery(
                f"limit must not exceed {self._max_page_size}",
                field="limit",
                details={"max_page_size": self._max_page_size},
            )

        if query.bbox is not None:
            problems = query.bbox.problems()
            if problems:
                raise InvalidQuery(
                    f"Invalid bounding box: {'; '.join(problems)}",
                    field="bbox",
                    details={"problems": problems},
                )

        if query.min_rating is not None and not math.isfinite(query.min_rating):
            raise InvalidQuery("min_rating must be a finite number", field="min_rating")

        raw_text = query.text or ""
        hash_tags = extract_hash_tags(raw_text)
        text = remove_hash_tags(raw_text)
        tags = normalize_tags(query.tags) | frozenset(hash_tags)

        plan = QueryPlan(
            text=text,
            terms=tuple(tokenize(text)),
            tags=tags,
            category=query.category,
            bbox=query.bbox,
            min_rating=query.min_rating,
            ids=frozenset(query.ids) if query.ids is not None else None,
            offset=query.offset,
            limit=limit,
        )
        logger.debug(
            f"Planned query: terms={plan.terms} tags={sorted(plan.tags)} "
            f"category={plan.category} bbox={plan.bbox} offset={plan.offset} limit={plan.limit}"
        )
        return plan
