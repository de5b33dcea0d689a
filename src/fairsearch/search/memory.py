"""In-process inverted index with snapshot isolation.

Each commit builds a new immutable snapshot from the previous one and swaps the
reference in a single assignment, so readers always see a complete committed
state and never wait for writers.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from fairsearch.core.exceptions import IndexOpenError, IndexWriteError
from fairsearch.core.models import IndexDocument, ScoredEntryId
from fairsearch.core.types import Category
from fairsearch.search.backend import IndexBackend
from fairsearch.search.planner import QueryPlan
from fairsearch.search.ranking import FIELD_BOOSTS, bm25, idf, paginate, rank

logger = logging.getLogger(__name__)

SNAPSHOT_FILE = "snapshot.json"
SNAPSHOT_FORMAT = 1


@dataclass(frozen=True)
class _Snapshot:
    """Committed index state. Never mutated once built."""

    documents: dict[str, IndexDocument] = field(default_factory=dict)
    # field -> term -> {doc_id: term frequency}
    postings: dict[str, dict[str, dict[str, int]]] = field(default_factory=dict)
    # field -> doc_id -> number of terms
    field_lengths: dict[str, dict[str, int]] = field(default_factory=dict)
    field_totals: dict[str, int] = field(default_factory=dict)
    tag_index: dict[str, set[str]] = field(default_factory=dict)
    category_index: dict[Category, set[str]] = field(default_factory=dict)

    def average_length(self, field_name: str) -> float:
        if not self.documents:
            return 0.0
        return self.field_totals.get(field_name, 0) / len(self.documents)


class _SnapshotBuilder:
    """Copy-on-write editor producing the next snapshot from a base one."""

    def __init__(self, base: _Snapshot) -> None:
        self._documents = dict(base.documents)
        self._postings = {f: dict(terms) for f, terms in base.postings.items()}
        self._field_lengths = {f: dict(lengths) for f, lengths in base.field_lengths.items()}
        self._field_totals = dict(base.field_totals)
        self._tag_index = dict(base.tag_index)
        self._category_index = dict(base.category_index)
        self._owned: set[tuple[int, Any]] = set()

    def _own(self, table: dict, key: Any, factory: type) -> Any:
        """Return a private copy of ``table[key]`` that is safe to mutate."""
        marker = (id(table), key)
        if marker not in self._owned:
            table[key] = factory(table.get(key, ()))
            self._owned.add(marker)
        elif key not in table:
            table[key] = factory()
        return table[key]

    def add(self, doc: IndexDocument) -> None:
        self.remove(doc.id)
        self._documents[doc.id] = doc
        for field_name, terms in doc.field_terms().items():
            frequencies: dict[str, int] = defaultdict(int)
            for term in terms:
                frequencies[term] += 1
            postings = self._postings.setdefault(field_name, {})
            for term, tf in frequencies.items():
                self._own(postings, term, dict)[doc.id] = tf
            self._field_lengths.setdefault(field_name, {})[doc.id] = len(terms)
            self._field_totals[field_name] = self._field_totals.get(field_name, 0) + len(terms)
        for tag in doc.tags:
            self._own(self._tag_index, tag, set).add(doc.id)
        self._own(self._category_index, doc.category, set).add(doc.id)

    def remove(self, doc_id: str) -> None:
        doc = self._documents.pop(doc_id, None)
        if doc is None:
            return
        for field_name, terms in doc.field_terms().items():
            postings = self._postings.get(field_name, {})
            for term in set(terms):
                posting = self._own(postings, term, dict)
                posting.pop(doc_id, None)
                if not posting:
                    del postings[term]
            length = self._field_lengths.get(field_name, {}).pop(doc_id, 0)
            self._field_totals[field_name] = self._field_totals.get(field_name, 0) - length
        for tag in doc.tags:
            members = self._own(self._tag_index, tag, set)
            members.discard(doc_id)
            if not members:
                del self._tag_index[tag]
        members = self._own(self._category_index, doc.category, set)
        members.discard(doc_id)
        if not members:
            del self._category_index[doc.category]

    def build(self) -> _Snapshot:
        return _Snapshot(
            documents=self._documents,
            postings=self._postings,
            field_lengths=self._field_lengths,
            field_totals=self._field_totals,
            tag_index=self._tag_index,
            category_index=self._category_index,
        )


class MemoryIndexBackend(IndexBackend):
    """
    Inverted index held in process memory.

    When ``index_path`` is set, every commit also writes the committed
    documents to a JSON snapshot there (temp file + atomic rename) and ``open``
    restores from it. A commit whose snapshot cannot be written is not made
    visible and its writes stay pending.
    """

    name = "memory"

    def __init__(self, index_path: str | Path | None = None) -> None:
        super().__init__()
        self._path = Path(index_path) if index_path else None
        self._snapshot = _Snapshot()
        self._opened = False

    @property
    def snapshot_file(self) -> Path | None:
        return self._path / SNAPSHOT_FILE if self._path else None

    async def open(self) -> None:
        if self._path is not None:
            try:
                documents = await asyncio.to_thread(self._read_snapshot)
            except OSError as e:
                raise IndexOpenError(
                    f"Cannot read index snapshot: {e}",
                    details={"path": str(self._path)},
                ) from e
            except (ValueError, KeyError, TypeError, AttributeError) as e:
                # json.JSONDecodeError and pydantic ValidationError are ValueErrors
                raise IndexOpenError(
                    f"Corrupt index snapshot: {e}",
                    details={"path": str(self._path)},
                ) from e
            builder = _SnapshotBuilder(_Snapshot())
            for doc in documents:
                builder.add(doc)
            self._snapshot = builder.build()
            logger.info(f"Restored {len(documents)} documents from {self.snapshot_file}")
        self._opened = True

    async def close(self) -> None:
        await super().close()
        self._opened = False

    async def health(self) -> bool:
        return self._opened

    def _read_snapshot(self) -> list[IndexDocument]:
        assert self._path is not None
        self._path.mkdir(parents=True, exist_ok=True)
        snapshot_file = self._path / SNAPSHOT_FILE
        if not snapshot_file.exists():
            return []
        data = json.loads(snapshot_file.read_text(encoding="utf-8"))
        if data.get("format") != SNAPSHOT_FORMAT:
            raise ValueError(f"Unsupported snapshot format: {data.get('format')!r}")
        try:
            return [IndexDocument.from_dict(item) for item in data["documents"]]
        except ValidationError as e:
            raise ValueError(str(e)) from e

    def _write_snapshot(self, snapshot: _Snapshot) -> None:
        assert self._path is not None
        self._path.mkdir(parents=True, exist_ok=True)
        payload = {
            "format": SNAPSHOT_FORMAT,
            "documents": [snapshot.documents[k].to_dict() for k in sorted(snapshot.documents)],
        }
        target = self._path / SNAPSHOT_FILE
        tmp = target.with_suffix(".json.tmp")
        tmp.write_text(json.dumps(payload), encoding="utf-8")
        os.replace(tmp, target)

    def _committed_version(self, entry_id: str) -> int | None:
        doc = self._snapshot.documents.get(entry_id)
        return doc.version if doc is not None else None

    def _committed_versions(self) -> dict[str, int]:
        return {doc_id: doc.version for doc_id, doc in self._snapshot.documents.items()}

    async def get_document(self, entry_id: str) -> IndexDocument | None:
        return self._snapshot.documents.get(entry_id)

    async def _apply(self, batch: dict[str, IndexDocument | None]) -> None:
        builder = _SnapshotBuilder(self._snapshot)
        for entry_id, doc in batch.items():
            if doc is None:
                builder.remove(entry_id)
            else:
                builder.add(doc)
        snapshot = builder.build()
        if self._path is not None:
            try:
                await asyncio.to_thread(self._write_snapshot, snapshot)
            except OSError as e:
                raise IndexWriteError(
                    f"Cannot persist index snapshot: {e}",
                    details={"path": str(self._path), "batch_size": len(batch)},
                ) from e
        self._snapshot = snapshot

    async def _clear(self) -> None:
        snapshot = _Snapshot()
        if self._path is not None:
            try:
                await asyncio.to_thread(self._write_snapshot, snapshot)
            except OSError as e:
                raise IndexWriteError(f"Cannot persist index snapshot: {e}") from e
        self._snapshot = snapshot

    async def execute(self, plan: QueryPlan) -> tuple[list[ScoredEntryId], int]:
        # Pin one snapshot for the whole query
        snapshot = self._snapshot
        if plan.matches_nothing:
            return [], 0

        candidates = self._candidates(snapshot, plan)
        if plan.has_text:
            scores = self._score(snapshot, plan.terms, candidates)
            ids = scores.keys()
        else:
            scores = {}
            ids = candidates if candidates is not None else snapshot.documents.keys()

        hits = []
        for doc_id in ids:
            doc = snapshot.documents.get(doc_id)
            if doc is None or not plan.matches_filters(doc):
                continue
            hits.append(ScoredEntryId(id=doc_id, score=scores.get(doc_id, 0.0), rating=doc.avg_rating))

        ranked = rank(hits)
        return paginate(ranked, plan.offset, plan.limit), len(ranked)

    def _candidates(self, snapshot: _Snapshot, plan: QueryPlan) -> set[str] | None:
        """Narrow by the exact-match indexes. None means every document."""
        candidates: set[str] | None = set(plan.ids) if plan.ids is not None else None
        for tag in plan.tags:
            members = snapshot.tag_index.get(tag, set())
            candidates = set(members) if candidates is None else candidates & members
            if not candidates:
                return set()
        if plan.category is not None:
            members = snapshot.category_index.get(plan.category, set())
            candidates = set(members) if candidates is None else candidates & members
        return candidates

    def _score(
        self,
        snapshot: _Snapshot,
        terms: tuple[str, ...],
        candidates: set[str] | None,
    ) -> dict[str, float]:
        """BM25 across the boosted fields. Only documents hit by a term appear."""
        doc_count = len(snapshot.documents)
        scores: dict[str, float] = defaultdict(float)
        unique_terms = sorted(set(terms))
        for field_name, boost in FIELD_BOOSTS.items():
            postings = snapshot.postings.get(field_name, {})
            lengths = snapshot.field_lengths.get(field_name, {})
            avg_length = snapshot.average_length(field_name)
            for term in unique_terms:
                posting = postings.get(term)
                if not posting:
                    continue
                term_idf = idf(doc_count, len(posting))
                for doc_id, tf in posting.items():
                    if candidates is not None and doc_id not in candidates:
                        continue
                    scores[doc_id] += boost * bm25(tf, lengths.get(doc_id, 0), avg_length, term_idf)
        return dict(scores)
