"""Meilisearch storage engine."""

from __future__ import annotations

import logging

from fairsearch.core.exceptions import IndexOpenError, IndexReadError, IndexWriteError
from fairsearch.core.geo import BoundingBox
from fairsearch.core.models import IndexDocument, ScoredEntryId
from fairsearch.search.backend import IndexBackend
from fairsearch.search.client import AsyncMeilisearchClient
from fairsearch.search.planner import QueryPlan

logger = logging.getLogger(__name__)

# Applied after Meilisearch's relevance rules; decides order when text is absent
SORT = ["avg_rating:desc", "id:asc"]

HIT_ATTRIBUTES = ["id", "avg_rating"]


def _quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _number(value: float) -> str:
    """Fixed-point rendering; Meilisearch filters reject exponent notation."""
    text = f"{float(value):.10f}".rstrip("0")
    if text.endswith("."):
        text += "0"
    return "0.0" if text == "-0.0" else text


def _bbox_expression(bbox: BoundingBox) -> str:
    lon_parts = [
        f"(lon >= {_number(lo)} AND lon <= {_number(hi)})" for lo, hi in bbox.longitude_ranges
    ]
    lon_expr = " OR ".join(lon_parts)
    return f"(lat >= {_number(bbox.min_lat)} AND lat <= {_number(bbox.max_lat)} AND ({lon_expr}))"


def build_filter(plan: QueryPlan) -> list[str] | None:
    """Translate plan filters into Meilisearch filter expressions (ANDed)."""
    expressions = []

    if plan.ids is not None:
        expressions.append(f"id IN [{', '.join(_quote(i) for i in sorted(plan.ids))}]")

    for tag in sorted(plan.tags):
        expressions.append(f"tags = {_quote(tag)}")

    if plan.category is not None:
        expressions.append(f"category = {_quote(plan.category.value)}")

    if plan.min_rating is not None:
        expressions.append(f"avg_rating >= {_number(plan.min_rating)}")

    if plan.bbox is not None:
        expressions.append(_bbox_expression(plan.bbox))

    if plan.exclude_bbox is not None:
        expressions.append(f"NOT {_bbox_expression(plan.exclude_bbox)}")

    return expressions if expressions else None


class MeilisearchBackend(IndexBackend):
    """
    Index storage on a Meilisearch server.

    Staged writes are sent on commit and awaited until Meilisearch reports the
    tasks processed, which is when they become searchable. The version of every
    committed document is mirrored locally so staleness checks need no round
    trip.
    """

    name = "meilisearch"

    def __init__(self, client: AsyncMeilisearchClient, task_timeout_ms: int = 30000) -> None:
        super().__init__()
        self._client = client
        self._task_timeout_ms = task_timeout_ms
        self._versions: dict[str, int] = {}

    async def open(self) -> None:
        if not await self._client.health():
            raise IndexOpenError("Meilisearch is not available")
        try:
            await self._client.setup_index()
            self._versions = await self._client.fetch_versions()
        except Exception as e:
            raise IndexOpenError(f"Cannot open Meilisearch index: {e}") from e
        logger.info(
            f"Opened Meilisearch index {self._client.index_name} "
            f"with {len(self._versions)} documents"
        )

    async def close(self) -> None:
        await super().close()
        await self._client.close()

    async def health(self) -> bool:
        return await self._client.health()

    def _committed_version(self, entry_id: str) -> int | None:
        return self._versions.get(entry_id)

    def _committed_versions(self) -> dict[str, int]:
        return dict(self._versions)

    async def get_document(self, entry_id: str) -> IndexDocument | None:
        data = await self._client.get_document(entry_id)
        if data is None:
            return None
        return IndexDocument.from_search_document(data)

    async def _apply(self, batch: dict[str, IndexDocument | None]) -> None:
        upserts = [doc.to_search_document() for doc in batch.values() if doc is not None]
        deletes = [entry_id for entry_id, doc in batch.items() if doc is None]

        try:
            tasks = []
            if upserts:
                tasks.append(await self._client.add_documents(upserts))
            if deletes:
                tasks.append(await self._client.delete_documents(deletes))
            for task in tasks:
                result = await self._client.wait_for_task(task, timeout_ms=self._task_timeout_ms)
                if result.status != "succeeded":
                    raise IndexWriteError(
                        f"Meilisearch task {task.task_uid} {result.status}",
                        details={"error": result.error},
                    )
        except IndexWriteError:
            raise
        except Exception as e:
            raise IndexWriteError(
                f"Meilisearch commit failed: {e}",
                details={"upserts": len(upserts), "deletes": len(deletes)},
            ) from e

        for entry_id, doc in batch.items():
            if doc is None:
                self._versions.pop(entry_id, None)
            else:
                self._versions[entry_id] = doc.version

    async def _clear(self) -> None:
        try:
            task = await self._client.delete_all_documents()
            await self._client.wait_for_task(task, timeout_ms=self._task_timeout_ms)
        except Exception as e:
            raise IndexWriteError(f"Meilisearch clear failed: {e}") from e
        self._versions.clear()

    async def execute(self, plan: QueryPlan) -> tuple[list[ScoredEntryId], int]:
        if plan.matches_nothing:
            return [], 0

        text = plan.text if plan.has_text else ""
        options = {
            "filter": build_filter(plan),
            "sort": SORT,
            "attributes_to_retrieve": HIT_ATTRIBUTES,
            "show_ranking_score": plan.has_text,
        }
        try:
            if plan.limit > 0 and plan.offset % plan.limit == 0:
                # Page aligned: one exhaustive search returns the page and the exact count
                results = await self._client.search(
                    text,
                    page=plan.offset // plan.limit + 1,
                    hits_per_page=plan.limit,
                    **options,
                )
                counted = results
            else:
                results = await self._client.search(
                    text, offset=plan.offset, limit=plan.limit, **options
                )
                counted = await self._client.search(text, page=1, hits_per_page=0, **options)
        except Exception as e:
            raise IndexReadError(f"Meilisearch search failed: {e}") from e

        hits = []
        for hit in results.hits:
            try:
                hits.append(
                    ScoredEntryId(
                        id=str(hit["id"]),
                        score=float(hit.get("_rankingScore", 0.0)) if plan.has_text else 0.0,
                        rating=float(hit.get("avg_rating", 0.0)),
                    )
                )
            except (KeyError, TypeError, ValueError) as e:
                # A malformed hit fails the whole query rather than shortening the page
                raise IndexReadError(f"Invalid hit in search results: {e}") from e

        total = counted.total_hits
        if total is None:
            total = plan.offset + len(hits)
        return hits, total
