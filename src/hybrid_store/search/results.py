"""
Conversion of ranked storage records into caller-facing results.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass

from ..models import HybridSearchOptions, SearchOptions, SearchResult
from ..storage import DocumentRecord


@dataclass(frozen=True)
class Projection:
    """Which optional document fields a result carries."""

    content: bool = True
    metadata: bool = True
    embedding: bool = False

    @classmethod
    def of(cls, options: SearchOptions | HybridSearchOptions) -> Projection:
        return cls(
            content=options.include_content,
            metadata=options.include_metadata,
            embedding=options.include_embedding,
        )


def make_result(
    record: DocumentRecord,
    projection: Projection,
    *,
    similarity: float | None = None,
    text_rank: float | None = None,
    vector_rank: float | None = None,
    fused_score: float | None = None,
) -> SearchResult:
    return SearchResult(
        id=record.id,
        content=record.content if projection.content else None,
        metadata=copy.deepcopy(record.metadata) if projection.metadata else None,
        embedding=list(record.embedding) if projection.embedding else None,
        similarity=similarity,
        text_rank=text_rank,
        vector_rank=vector_rank,
        fused_score=fused_score,
    )
