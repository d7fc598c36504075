"""
Weighted score fusion for merging lexical and vector result sets.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from ..storage import DocumentRecord, ScoredRecord


@dataclass(frozen=True)
class FusedCandidate:
    """Merged retrieval candidate for a document."""

    record: DocumentRecord
    text_rank: float
    vector_rank: float
    text_weight: float
    vector_weight: float

    @property
    def fused_score(self) -> float:
        return self.text_weight * self.text_rank + self.vector_weight * self.vector_rank


def fuse_rankings(
    text_hits: Sequence[ScoredRecord],
    vector_hits: Sequence[ScoredRecord],
    *,
    text_weight: float = 0.5,
    vector_weight: float = 0.5,
    limit: int,
) -> list[FusedCandidate]:
    """Union both result sets, score them, and keep the best *limit*.

    A document missing from one side gets exactly 0 for that side's rank.
    """
    records: dict[str, DocumentRecord] = {}
    text_ranks: dict[str, float] = {}
    vector_ranks: dict[str, float] = {}

    for hit in text_hits:
        records.setdefault(hit.record.id, hit.record)
        text_ranks[hit.record.id] = float(hit.score)
    for hit in vector_hits:
        records.setdefault(hit.record.id, hit.record)
        vector_ranks[hit.record.id] = float(hit.score)

    candidates = [
        FusedCandidate(
            record=record,
            text_rank=text_ranks.get(doc_id, 0.0),
            vector_rank=vector_ranks.get(doc_id, 0.0),
            text_weight=text_weight,
            vector_weight=vector_weight,
        )
        for doc_id, record in records.items()
    ]
    return rank_candidates(candidates, limit=limit)


def rank_candidates(
    candidates: Sequence[FusedCandidate], *, limit: int
) -> list[FusedCandidate]:
    """Sort by fused score descending, then insertion order, and apply limit."""
    ordered = sorted(
        candidates,
        key=lambda candidate: (-candidate.fused_score, candidate.record.seq),
    )
    return ordered[: max(limit, 1)]
