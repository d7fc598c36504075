"""
In-memory storage backend.

Implements the same interface as ``DuckDBStorage`` without any files. Used
for tests, development, and small ephemeral corpora.
"""

from __future__ import annotations

import copy
import itertools
import threading
from collections.abc import Sequence
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any

import numpy as np

from ..distance import similarities
from ..errors import DuplicateDocumentError
from ..filters import MetadataFilter, matches_all
from .base import DocumentRecord, ScoredRecord, check_schema, rank_scored
from .text import query_terms, term_coverage


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class InMemoryStorage:
    """Dictionary-backed persistence with exact-scan ranking."""

    name = "memory"

    def __init__(self) -> None:
        self._records: dict[str, DocumentRecord] = {}
        self._seq = itertools.count(1)
        self._lock = threading.Lock()
        self.dimensions: int | None = None
        self.metric: str = "cosine"

    def create_schema(self, dimensions: int, metric: str) -> None:
        with self._lock:
            if self._records and self.dimensions is not None:
                check_schema(self.dimensions, self.metric, dimensions, metric)
            self.dimensions = dimensions
            self.metric = metric

    def insert_rows(self, records: Sequence[DocumentRecord]) -> None:
        with self._lock:
            existing = [record.id for record in records if record.id in self._records]
            if existing:
                raise DuplicateDocumentError(
                    "Documents already exist.", operation="insert", document_ids=existing
                )
            timestamp = _now()
            for record in records:
                self._records[record.id] = replace(
                    record,
                    metadata=copy.deepcopy(record.metadata),
                    embedding=list(record.embedding),
                    seq=next(self._seq),
                    created_at=timestamp,
                    updated_at=timestamp,
                )

    def select_by_id(self, doc_id: str) -> DocumentRecord | None:
        with self._lock:
            record = self._records.get(doc_id)
            return _copy(record) if record is not None else None

    def update_row(
        self,
        doc_id: str,
        *,
        content: str | None = None,
        metadata: dict[str, Any] | None = None,
        embedding: list[float] | None = None,
    ) -> DocumentRecord | None:
        with self._lock:
            record = self._records.get(doc_id)
            if record is None:
                return None
            changes: dict[str, Any] = {"updated_at": _now()}
            if content is not None:
                changes["content"] = content
            if metadata is not None:
                changes["metadata"] = copy.deepcopy(metadata)
            if embedding is not None:
                changes["embedding"] = list(embedding)
            updated = replace(record, **changes)
            self._records[doc_id] = updated
            return _copy(updated)

    def delete_row(self, doc_id: str) -> bool:
        with self._lock:
            return self._records.pop(doc_id, None) is not None

    def delete_where(self, filters: Sequence[MetadataFilter]) -> int:
        with self._lock:
            doomed = [
                doc_id
                for doc_id, record in self._records.items()
                if matches_all(record.metadata, filters)
            ]
            for doc_id in doomed:
                del self._records[doc_id]
            return len(doomed)

    def vector_top_k(
        self,
        query_vector: Sequence[float],
        k: int,
        filters: Sequence[MetadataFilter] = (),
        min_similarity: float | None = None,
    ) -> list[ScoredRecord]:
        with self._lock:
            candidates = [
                record
                for record in self._records.values()
                if matches_all(record.metadata, filters)
            ]
        if not candidates:
            return []
        matrix = np.asarray([record.embedding for record in candidates], dtype=np.float64)
        scores = similarities(self.metric, query_vector, matrix)  # type: ignore[arg-type]
        scored = [
            ScoredRecord(record=_copy(record), score=float(score))
            for record, score in zip(candidates, scores)
            if min_similarity is None or score >= min_similarity
        ]
        return rank_scored(scored, k)

    def text_top_k(
        self,
        query_text: str,
        k: int,
        filters: Sequence[MetadataFilter] = (),
    ) -> list[ScoredRecord]:
        terms = query_terms(query_text)
        if not terms:
            return []
        with self._lock:
            candidates = list(self._records.values())
        scored: list[ScoredRecord] = []
        for record in candidates:
            rank = term_coverage(record.content, terms)
            if rank > 0 and matches_all(record.metadata, filters):
                scored.append(ScoredRecord(record=_copy(record), score=rank))
        return rank_scored(scored, k)

    def count(self) -> int:
        with self._lock:
            return len(self._records)

    def truncate(self) -> None:
        with self._lock:
            self._records.clear()

    def close(self) -> None:
        return None


def _copy(record: DocumentRecord) -> DocumentRecord:
    return replace(
        record,
        metadata=copy.deepcopy(record.metadata),
        embedding=list(record.embedding),
    )
