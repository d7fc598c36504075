"""
Vector similarity search engine.

Ranks stored embeddings against a query vector under the store's distance
metric, after metadata filtering and with an optional minimum similarity.
"""

from __future__ import annotations

from collections.abc import Sequence

from ..errors import DimensionMismatchError
from ..filters import MetadataFilter, build_filters
from ..logs import get_logger
from ..models import SearchOptions, SearchResult, validate_vector
from ..runtime import run_storage
from ..storage import ScoredRecord, StorageBackend
from .results import Projection, make_result

logger = get_logger("search.similarity")


class SimilaritySearchEngine:
    """Search stored embeddings by similarity to a query vector."""

    def __init__(
        self,
        storage: StorageBackend,
        *,
        dimensions: int,
        timeout: float | None = None,
    ) -> None:
        self.storage = storage
        self.dimensions = dimensions
        self.timeout = timeout

    async def search(
        self,
        query_vector: Sequence[float],
        options: SearchOptions | None = None,
    ) -> list[SearchResult]:
        """Return hits by descending ``similarity``; ties keep insertion order."""
        opts = SearchOptions.parse(options)
        filters = build_filters(opts.filter)
        hits = await self.rank(
            query_vector,
            limit=opts.limit,
            filters=filters,
            threshold=opts.threshold,
        )
        projection = Projection.of(opts)
        return [make_result(hit.record, projection, similarity=hit.score) for hit in hits]

    async def rank(
        self,
        query_vector: Sequence[float],
        *,
        limit: int,
        filters: Sequence[MetadataFilter] = (),
        threshold: float | None = None,
    ) -> list[ScoredRecord]:
        vector = validate_vector(query_vector, name="query vector")
        if len(vector) != self.dimensions:
            raise DimensionMismatchError(self.dimensions, len(vector), operation="search")

        hits = await run_storage(
            "vector_top_k",
            self.storage.vector_top_k,
            vector,
            limit,
            filters,
            threshold,
            timeout=self.timeout,
        )
        logger.debug(
            "Vector search completed",
            limit=limit,
            filters=len(filters),
            threshold=threshold,
            hits=len(hits),
        )
        return hits
