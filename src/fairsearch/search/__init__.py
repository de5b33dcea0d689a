"""Search layer: index storage engines, writer, planner and reader."""

from fairsearch.search.backend import IndexBackend
from fairsearch.search.client import DEFAULT_INDEX, AsyncMeilisearchClient
from fairsearch.search.indexer import IndexWriter
from fairsearch.search.meili import MeilisearchBackend
from fairsearch.search.memory import MemoryIndexBackend
from fairsearch.search.planner import QueryPlan, QueryPlanner
from fairsearch.search.ranking import compare, rank, ranking_key
from fairsearch.search.searcher import Searcher

__all__ = [
    # Engines
    "IndexBackend",
    "MemoryIndexBackend",
    "MeilisearchBackend",
    # Client
    "AsyncMeilisearchClient",
    "DEFAULT_INDEX",
    # Writer
    "IndexWriter",
    # Reader
    "QueryPlan",
    "QueryPlanner",
    "Searcher",
    # Ranking
    "compare",
    "rank",
    "ranking_key",
]
