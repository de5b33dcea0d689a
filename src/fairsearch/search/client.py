"""Async Meilisearch client wrapper."""

from __future__ import annotations

import logging
from typing import Any

from meilisearch_python_sdk import AsyncClient
from meilisearch_python_sdk.errors import MeilisearchApiError
from meilisearch_python_sdk.models.search import SearchResults
from meilisearch_python_sdk.models.settings import MeilisearchSettings, Pagination
from meilisearch_python_sdk.models.task import TaskInfo, TaskResult

logger = logging.getLogger(__name__)


# Index configuration
DEFAULT_INDEX = "entries"

# Upper bound for paging and exact hit counts; Meilisearch defaults to 1000
MAX_TOTAL_HITS = 1_000_000

ENTRIES_SETTINGS = MeilisearchSettings(
    searchable_attributes=["title", "tags", "description", "address"],
    filterable_attributes=["id", "tags", "category", "lat", "lon", "avg_rating"],
    sortable_attributes=["avg_rating", "id"],
    displayed_attributes=[
        "id",
        "version",
        "title",
        "description",
        "address",
        "tags",
        "category",
        "lat",
        "lon",
        "avg_rating",
    ],
    ranking_rules=["words", "typo", "proximity", "attribute", "exactness", "sort"],
    pagination=Pagination(max_total_hits=MAX_TOTAL_HITS),
)

DOCUMENTS_PAGE_SIZE = 1000


class AsyncMeilisearchClient:
    """
    Async wrapper for Meilisearch operations on the entries index.

    Provides methods for index management, document indexing, and search.
    """

    def __init__(
        self,
        url: str,
        api_key: str | None = None,
        index_name: str = DEFAULT_INDEX,
    ) -> None:
        """
        Initialize the Meilisearch client.

        Args:
            url: Meilisearch server URL
            api_key: Optional API key for authentication
            index_name: Uid of the entries index
        """
        self._url = url
        self._api_key = api_key
        self._index_name = index_name
        self._client: AsyncClient | None = None

    @property
    def index_name(self) -> str:
        return self._index_name

    async def _get_client(self) -> AsyncClient:
        """Get or create the async client."""
        if self._client is None:
            self._client = AsyncClient(self._url, self._api_key)
        return self._client

    async def close(self) -> None:
        """Close the client connection."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def health(self) -> bool:
        """Check if Meilisearch is healthy."""
        try:
            client = await self._get_client()
            health = await client.health()
            return health.status == "available"
        except Exception as e:
            logger.warning(f"Meilisearch health check failed: {e}")
            return False

    async def setup_index(self) -> None:
        """Create and configure the entries index if it doesn't exist."""
        client = await self._get_client()

        try:
            index = await client.get_index(self._index_name)
        except MeilisearchApiError:
            logger.info(f"Creating index: {self._index_name}")
            index = await client.create_index(self._index_name, primary_key="id")

        task = await index.update_settings(ENTRIES_SETTINGS)
        await self.wait_for_task(task)
        logger.info(f"Configured index: {self._index_name}")

    async def add_documents(self, documents: list[dict[str, Any]]) -> TaskInfo:
        """
        Add or replace documents.

        Args:
            documents: List of documents to add/replace

        Returns:
            Task info for tracking the operation
        """
        client = await self._get_client()
        index = client.index(self._index_name)
        return await index.add_documents(documents, primary_key="id")

    async def delete_documents(self, document_ids: list[str]) -> TaskInfo:
        """
        Delete documents.

        Args:
            document_ids: List of document IDs to delete

        Returns:
            Task info for tracking the operation
        """
        client = await self._get_client()
        index = client.index(self._index_name)
        return await index.delete_documents(document_ids)

    async def search(
        self,
        query: str,
        *,
        filter: str | list[str] | None = None,
        sort: list[str] | None = None,
        offset: int = 0,
        limit: int = 20,
        page: int | None = None,
        hits_per_page: int | None = None,
        attributes_to_retrieve: list[str] | None = None,
        show_ranking_score: bool = False,
    ) -> SearchResults:
        """
        Search documents.

        Args:
            query: Search query string
            filter: Filter expression (e.g., "avg_rating >= 1")
            sort: Sort criteria (e.g., ["avg_rating:desc"])
            offset: Number of results to skip
            limit: Maximum number of results
            page: 1-based page number; switches to exhaustive counting
            hits_per_page: Page size, 0 only counts matches
            attributes_to_retrieve: Specific attributes to return
            show_ranking_score: Include ``_rankingScore`` in each hit

        Returns:
            Search results with hits and metadata
        """
        client = await self._get_client()
        index = client.index(self._index_name)

        return await index.search(
            query,
            filter=filter,
            sort=sort,
            offset=offset,
            limit=limit,
            page=page,
            hits_per_page=hits_per_page,
            attributes_to_retrieve=attributes_to_retrieve,
            show_ranking_score=show_ranking_score,
        )

    async def get_document(self, document_id: str) -> dict[str, Any] | None:
        """
        Get a single document by ID.

        Returns:
            Document data or None if not found
        """
        client = await self._get_client()
        index = client.index(self._index_name)
        try:
            return await index.get_document(document_id)
        except MeilisearchApiError as e:
            if e.status_code == 404:
                return None
            raise

    async def fetch_versions(self) -> dict[str, int]:
        """Page through the index and collect every document's version."""
        client = await self._get_client()
        index = client.index(self._index_name)
        versions: dict[str, int] = {}
        offset = 0
        while True:
            page = await index.get_documents(
                offset=offset,
                limit=DOCUMENTS_PAGE_SIZE,
                fields=["id", "version"],
            )
            for doc in page.results:
                versions[str(doc["id"])] = int(doc.get("version", 0))
            offset += len(page.results)
            if not page.results or offset >= page.total:
                break
        return versions

    async def delete_all_documents(self) -> TaskInfo:
        """Delete all documents from the index."""
        client = await self._get_client()
        index = client.index(self._index_name)
        return await index.delete_all_documents()

    async def wait_for_task(self, task_info: TaskInfo, timeout_ms: int = 30000) -> TaskResult:
        """Wait for a task to complete."""
        client = await self._get_client()
        return await client.wait_for_task(task_info.task_uid, timeout_in_ms=timeout_ms)

    async def __aenter__(self) -> AsyncMeilisearchClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
