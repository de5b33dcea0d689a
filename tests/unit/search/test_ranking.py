"""Tests for ranking and pagination helpers."""

from __future__ import annotations

import math

import pytest

from fairsearch.core.models import ScoredEntryId
from fairsearch.search.ranking import bm25, compare, idf, paginate, rank, ranking_key

# ============================================================================
# Ordering Tests
# ============================================================================


class TestRank:
    """Tests for the (score, rating, id) ordering."""

    def test_score_first(self):
        """Higher score should come first regardless of rating."""
        hits = [
            ScoredEntryId(id="a", score=1.0, rating=2.0),
            ScoredEntryId(id="b", score=2.0, rating=-1.0),
        ]
        assert [h.id for h in rank(hits)] == ["b", "a"]

    def test_rating_breaks_score_ties(self):
        """Equal scores should be ordered by rating descending."""
        hits = [
            ScoredEntryId(id="a", score=1.0, rating=0.5),
            ScoredEntryId(id="b", score=1.0, rating=1.5),
        ]
        assert [h.id for h in rank(hits)] == ["b", "a"]

    def test_id_breaks_full_ties(self):
        """Equal score and rating should be ordered by id ascending."""
        hits = [ScoredEntryId(id=i, score=0.0, rating=1.0) for i in ("c", "a", "b")]
        assert [h.id for h in rank(hits)] == ["a", "b", "c"]

    def test_deterministic(self):
        """Input order should not affect the result."""
        hits = [
            ScoredEntryId(id="x", score=0.3, rating=1.0),
            ScoredEntryId(id="y", score=0.3, rating=1.0),
            ScoredEntryId(id="z", score=0.9, rating=-1.0),
        ]
        assert rank(hits) == rank(list(reversed(hits)))

    def test_compare(self):
        """compare should agree with ranking_key."""
        a = ScoredEntryId(id="a", score=1.0)
        b = ScoredEntryId(id="b", score=1.0)
        assert compare(a, b) == -1
        assert compare(b, a) == 1
        assert compare(a, a) == 0
        assert ranking_key(a) == (-1.0, -0.0, "a")


# ============================================================================
# Pagination Tests
# ============================================================================


class TestPaginate:
    """Tests for paginate."""

    @pytest.fixture
    def ranked(self) -> list[int]:
        return list(range(25))

    def test_first_page(self, ranked: list[int]):
        assert paginate(ranked, 0, 10) == list(range(10))

    def test_last_partial_page(self, ranked: list[int]):
        """The final page should hold the remainder."""
        assert paginate(ranked, 20, 10) == [20, 21, 22, 23, 24]

    def test_past_end(self, ranked: list[int]):
        """An offset past the end should give an empty page."""
        assert paginate(ranked, 30, 10) == []
        assert paginate(ranked, 25, 10) == []

    def test_zero_limit(self, ranked: list[int]):
        """A zero limit should give an empty page."""
        assert paginate(ranked, 0, 0) == []


# ============================================================================
# BM25 Tests
# ============================================================================


class TestBM25:
    """Tests for the scoring primitives."""

    def test_idf_positive(self):
        """IDF should stay positive even for terms in every document."""
        assert idf(10, 10) > 0
        assert idf(1, 1) == pytest.approx(math.log(1 + 0.5 / 1.5))

    def test_idf_rare_terms_weigh_more(self):
        """Rarer terms should have a higher IDF."""
        assert idf(100, 1) > idf(100, 50)

    def test_zero_tf(self):
        """Absent terms contribute nothing."""
        assert bm25(0, 10, 10.0, 1.0) == 0.0

    def test_saturation(self):
        """Repeating a term should help less each time."""
        one = bm25(1, 10, 10.0, 1.0)
        two = bm25(2, 10, 10.0, 1.0)
        three = bm25(3, 10, 10.0, 1.0)
        assert one < two < three
        assert (two - one) > (three - two)

    def test_length_normalization(self):
        """The same term frequency in a shorter field should score higher."""
        assert bm25(1, 5, 10.0, 1.0) > bm25(1, 20, 10.0, 1.0)

    def test_empty_average(self):
        """A zero average length should not divide by zero."""
        assert bm25(1, 0, 0.0, 1.0) == pytest.approx(2.2 / 2.2)
