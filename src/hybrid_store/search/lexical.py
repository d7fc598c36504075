"""
Lexical search engine: a thin adapter over the backend's text ranking.
"""

from __future__ import annotations

from collections.abc import Sequence

from ..errors import ValidationError
from ..filters import MetadataFilter
from ..logs import get_logger
from ..runtime import run_storage
from ..storage import ScoredRecord, StorageBackend

logger = get_logger("search.lexical")


class LexicalSearchEngine:
    """Rank documents by text relevance (non-negative, higher is better)."""

    def __init__(self, storage: StorageBackend, *, timeout: float | None = None) -> None:
        self.storage = storage
        self.timeout = timeout

    async def search(
        self,
        query_text: str,
        *,
        limit: int = 10,
        filters: Sequence[MetadataFilter] = (),
    ) -> list[tuple[str, float]]:
        """Return ``(id, text_rank)`` pairs in rank order."""
        hits = await self.rank(query_text, limit=limit, filters=filters)
        return [(hit.record.id, hit.score) for hit in hits]

    async def rank(
        self,
        query_text: str,
        *,
        limit: int,
        filters: Sequence[MetadataFilter] = (),
    ) -> list[ScoredRecord]:
        if limit < 1:
            raise ValidationError(f"limit must be at least 1, got {limit}", operation="text_search")
        if not query_text.strip():
            return []
        hits = await run_storage(
            "text_top_k",
            self.storage.text_top_k,
            query_text,
            limit,
            filters,
            timeout=self.timeout,
        )
        logger.debug("Text search completed", limit=limit, filters=len(filters), hits=len(hits))
        return hits
