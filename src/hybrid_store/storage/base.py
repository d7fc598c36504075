"""
Storage interfaces and data models for document persistence.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from ..errors import DimensionMismatchError, ValidationError
from ..filters import MetadataFilter


@dataclass(frozen=True)
class DocumentRecord:
    """A persisted document row.

    ``seq`` is assigned by the backend on insert and orders ties by insertion.
    """

    id: str
    content: str
    metadata: dict[str, Any]
    embedding: list[float]
    seq: int = 0
    created_at: str | None = None
    updated_at: str | None = None


@dataclass(frozen=True)
class ScoredRecord:
    """A record with the score a ranking query assigned to it."""

    record: DocumentRecord
    score: float


def check_schema(
    stored_dimensions: int, stored_metric: str, dimensions: int, metric: str
) -> None:
    """Reject reopening stored documents with a different vector layout."""
    if stored_dimensions != dimensions:
        raise DimensionMismatchError(stored_dimensions, dimensions, operation="create_schema")
    if stored_metric != metric:
        raise ValidationError(
            f"Store was created with distance metric {stored_metric!r}, not {metric!r}.",
            operation="create_schema",
        )


def rank_scored(scored: Sequence[ScoredRecord], k: int) -> list[ScoredRecord]:
    """Order by score descending, then insertion order, and keep the first *k*."""
    ordered = sorted(scored, key=lambda item: (-item.score, item.record.seq))
    return ordered[: max(k, 0)]


class StorageBackend(Protocol):
    """Protocol for the persistence operations the store depends on.

    Implementations are synchronous; the store runs them off the event loop.
    Ranking queries return results ordered by score descending, then by
    insertion order.
    """

    name: str

    def create_schema(self, dimensions: int, metric: str) -> None:
        """Create tables, or verify an existing schema matches."""

    def insert_rows(self, records: Sequence[DocumentRecord]) -> None:
        """Insert all records or none. Raise ``DuplicateDocumentError`` on existing ids."""

    def select_by_id(self, doc_id: str) -> DocumentRecord | None:
        """Return the record for *doc_id* if present."""

    def update_row(
        self,
        doc_id: str,
        *,
        content: str | None = None,
        metadata: dict[str, Any] | None = None,
        embedding: list[float] | None = None,
    ) -> DocumentRecord | None:
        """Apply the given fields; return the updated record or None if absent."""

    def delete_row(self, doc_id: str) -> bool:
        """Delete a record. Return True if one was deleted."""

    def delete_where(self, filters: Sequence[MetadataFilter]) -> int:
        """Delete all records matching *filters*. Return count deleted."""

    def vector_top_k(
        self,
        query_vector: Sequence[float],
        k: int,
        filters: Sequence[MetadataFilter] = (),
        min_similarity: float | None = None,
    ) -> list[ScoredRecord]:
        """Rank records by similarity to *query_vector*."""

    def text_top_k(
        self,
        query_text: str,
        k: int,
        filters: Sequence[MetadataFilter] = (),
    ) -> list[ScoredRecord]:
        """Rank records by text relevance to *query_text*; rank > 0 only."""

    def count(self) -> int:
        """Number of stored records."""

    def truncate(self) -> None:
        """Remove all records."""

    def close(self) -> None:
        """Release resources."""
