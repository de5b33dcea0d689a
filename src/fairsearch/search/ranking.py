"""Relevance scoring and result ordering.

Ordering is a pure comparator over ``(score, rating, id)``: descending score,
then descending rating, then ascending id. Without free text every hit scores
0, so results come out by rating and then id.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from typing import Protocol, TypeVar

# Per-field weight applied to the BM25 contribution of a term
FIELD_BOOSTS: dict[str, float] = {
    "title": 2.0,
    "description": 1.0,
    "address": 0.5,
    "tags": 1.5,
}

BM25_K1 = 1.2
BM25_B = 0.75


class Rankable(Protocol):
    id: str
    score: float
    rating: float


R = TypeVar("R", bound=Rankable)


def ranking_key(hit: Rankable) -> tuple[float, float, str]:
    """Sort key implementing score desc, rating desc, id asc."""
    return (-hit.score, -hit.rating, hit.id)


def compare(a: Rankable, b: Rankable) -> int:
    """Three-way comparison consistent with ``ranking_key``."""
    ka, kb = ranking_key(a), ranking_key(b)
    if ka < kb:
        return -1
    if ka > kb:
        return 1
    return 0


def rank(hits: Iterable[R]) -> list[R]:
    return sorted(hits, key=ranking_key)


def paginate(ranked: Sequence[R], offset: int, limit: int) -> list[R]:
    """Slice a ranked sequence. Past the end yields an empty list."""
    if offset >= len(ranked) or limit <= 0:
        return []
    return list(ranked[offset : offset + limit])


def idf(doc_count: int, doc_freq: int) -> float:
    """BM25 inverse document frequency. Always positive."""
    return math.log(1.0 + (doc_count - doc_freq + 0.5) / (doc_freq + 0.5))


def bm25(
    tf: int,
    field_length: int,
    avg_field_length: float,
    idf_value: float,
    k1: float = BM25_K1,
    b: float = BM25_B,
) -> float:
    """BM25 contribution of one term in one field of one document."""
    if tf <= 0:
        return 0.0
    if avg_field_length > 0:
        norm = k1 * (1.0 - b + b * field_length / avg_field_length)
    else:
        norm = k1
    return idf_value * (tf * (k1 + 1.0)) / (tf + norm)
