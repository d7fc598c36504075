"""
Hybrid retrieval: lexical and vector rankings fused into one ordered list.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import Callable

from ..filters import build_filters
from ..logs import get_logger
from ..models import HybridSearchOptions, SearchResult
from ..storage import ScoredRecord
from .fusion import fuse_rankings
from .lexical import LexicalSearchEngine
from .results import Projection, make_result
from .similarity import SimilaritySearchEngine

logger = get_logger("search.hybrid")

QueryEmbedder = Callable[[str], Awaitable[list[float]]]


class HybridSearchEngine:
    """Concurrent lexical + vector retrieval merged by weighted score fusion."""

    def __init__(
        self,
        *,
        lexical: LexicalSearchEngine,
        similarity: SimilaritySearchEngine,
        embed_query: QueryEmbedder,
    ) -> None:
        self.lexical = lexical
        self.similarity = similarity
        self._embed_query = embed_query

    async def search(
        self,
        query_text: str,
        options: HybridSearchOptions | None = None,
    ) -> list[SearchResult]:
        opts = HybridSearchOptions.parse(options)
        filters = build_filters(opts.filter)

        query_vector = await self._embed_query(query_text)

        text_hits, vector_hits = await asyncio.gather(
            self.lexical.rank(query_text, limit=opts.limit, filters=filters),
            self.similarity.rank(query_vector, limit=opts.limit, filters=filters),
            return_exceptions=True,
        )
        text_hits = self._settle("text", text_hits, vector_hits, opts)
        vector_hits = self._settle("vector", vector_hits, text_hits, opts)

        fused = fuse_rankings(
            text_hits,
            vector_hits,
            text_weight=opts.text_weight,
            vector_weight=opts.vector_weight,
            limit=opts.limit,
        )
        logger.debug(
            "Hybrid search completed",
            text_hits=len(text_hits),
            vector_hits=len(vector_hits),
            fused=len(fused),
            text_weight=opts.text_weight,
            vector_weight=opts.vector_weight,
        )

        projection = Projection.of(opts)
        return [
            make_result(
                candidate.record,
                projection,
                similarity=candidate.vector_rank,
                text_rank=candidate.text_rank,
                vector_rank=candidate.vector_rank,
                fused_score=candidate.fused_score,
            )
            for candidate in fused
        ]

    @staticmethod
    def _settle(
        side: str,
        outcome: list[ScoredRecord] | BaseException,
        other: list[ScoredRecord] | BaseException,
        opts: HybridSearchOptions,
    ) -> list[ScoredRecord]:
        if not isinstance(outcome, BaseException):
            return outcome
        if not isinstance(outcome, Exception):
            raise outcome
        if not opts.degrade_on_partial_failure or isinstance(other, BaseException):
            raise outcome
        logger.warning(
            "Hybrid search degraded to single-mode ranking",
            failed_side=side,
            error=str(outcome),
        )
        return []
