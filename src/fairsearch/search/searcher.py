"""Search query service."""

from __future__ import annotations

import dataclasses
import logging

from fairsearch.core.exceptions import IndexReadError, InvalidQuery
from fairsearch.core.geo import extend_bbox
from fairsearch.core.models import Page, Query, ScoredEntryId
from fairsearch.search.backend import IndexBackend
from fairsearch.search.planner import QueryPlan, QueryPlanner

logger = logging.getLogger(__name__)


class Searcher:
    """
    Service for answering structured queries against the index.

    A query either fully succeeds or raises; engine failures surface as
    IndexReadError and never produce a partial page.
    """

    def __init__(self, backend: IndexBackend, planner: QueryPlanner | None = None) -> None:
        """
        Initialize the searcher.

        Args:
            backend: Storage engine to query
            planner: Query planner (defaults to the standard page limits)
        """
        self._backend = backend
        self._planner = planner or QueryPlanner()

    @property
    def planner(self) -> QueryPlanner:
        return self._planner

    async def search(self, query: Query) -> Page[ScoredEntryId]:
        """
        Search entries.

        Raises:
            InvalidQuery: If the query is malformed
            IndexReadError: If the index cannot answer
        """
        plan = self._planner.plan(query)
        return await self._execute(plan)

    async def global_search(self, text: str, limit: int | None = None) -> Page[ScoredEntryId]:
        """Free-text search over every entry, without filters."""
        return await self.search(Query(text=text, limit=limit))

    async def search_surroundings(self, query: Query) -> Page[ScoredEntryId]:
        """
        Search the area around ``query.bbox``.

        Matches lie in the box grown by its own size on every side but
        outside the original box.
        """
        if query.bbox is None:
            raise InvalidQuery("A bounding box is required to search surroundings", field="bbox")
        plan = self._planner.plan(query)
        plan = dataclasses.replace(plan, bbox=extend_bbox(query.bbox), exclude_bbox=query.bbox)
        return await self._execute(plan)

    async def _execute(self, plan: QueryPlan) -> Page[ScoredEntryId]:
        try:
            hits, total = await self._backend.execute(plan)
        except IndexReadError:
            raise
        except Exception as e:
            logger.error(f"Search failed on {self._backend.name}: {e}")
            raise IndexReadError(
                f"Search failed: {e}",
                details={"backend": self._backend.name},
            ) from e

        logger.debug(f"Search returned {len(hits)} of {total} hits")
        return Page[ScoredEntryId](items=hits, total=total, offset=plan.offset, limit=plan.limit)
