"""
Embedding providers for vector-based semantic search.

``EmbeddingProvider`` is the contract the store consumes. ``GenAIEmbeddingProvider``
wraps the Google GenAI embedding API with configurable model, dimensions, and
batch size.
"""

from __future__ import annotations

import os
from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable

from google.genai import Client as GenAIClient

from .errors import EmbeddingError
from .logs import get_logger

logger = get_logger("embeddings")

ENV_EMBEDDING_MODEL = "HYBRID_STORE_EMBEDDING_MODEL"
ENV_EMBEDDING_DIM = "HYBRID_STORE_EMBEDDING_DIM"
ENV_EMBEDDING_BATCH_SIZE = "HYBRID_STORE_EMBEDDING_BATCH_SIZE"

_DEFAULT_MODEL = "gemini-embedding-001"
_DEFAULT_DIM = 768
_DEFAULT_BATCH_SIZE = 50


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Turns texts into fixed-length vectors, one per text, in input order."""

    async def embed(self, texts: Sequence[str]) -> list[list[float]]:
        """Embed *texts*; raise ``EmbeddingError`` on failure."""
        ...

    def get_dimensions(self) -> int:
        """Length of every vector this provider returns."""
        ...


def check_embeddings(
    vectors: Sequence[Sequence[float]],
    *,
    expected_count: int,
    dimensions: int,
) -> list[list[float]]:
    """Validate a provider response and return it as plain float lists."""
    if len(vectors) != expected_count:
        raise EmbeddingError(
            f"Embedding provider returned {len(vectors)} vectors for {expected_count} texts.",
            operation="embed",
        )
    checked: list[list[float]] = []
    for position, vector in enumerate(vectors):
        values = [float(v) for v in vector]
        if len(values) != dimensions:
            raise EmbeddingError(
                f"Embedding provider returned a vector of length {len(values)} "
                f"at position {position}; expected {dimensions}.",
                operation="embed",
            )
        checked.append(values)
    return checked


class GenAIEmbeddingProvider:
    """Generate text embeddings via Google GenAI."""

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str | None = None,
        dim: int | None = None,
        batch_size: int | None = None,
        task_type: str = "RETRIEVAL_DOCUMENT",
        client: Any | None = None,
    ) -> None:
        self.model = model or os.getenv(ENV_EMBEDDING_MODEL, _DEFAULT_MODEL)
        self.dim = dim or int(os.getenv(ENV_EMBEDDING_DIM, str(_DEFAULT_DIM)))
        self.batch_size = batch_size or int(
            os.getenv(ENV_EMBEDDING_BATCH_SIZE, str(_DEFAULT_BATCH_SIZE))
        )
        self.task_type = task_type

        if client is not None:
            self._client = client
        else:
            resolved_key = api_key or os.getenv("GOOGLE_API_KEY")
            if resolved_key is None:
                raise ValueError(
                    "GOOGLE_API_KEY not found. "
                    "Provide api_key or set the environment variable."
                )
            self._client = GenAIClient(api_key=resolved_key)

    @property
    def cache_namespace(self) -> str:
        return f"genai:{self.model}:{self.dim}:{self.task_type}"

    def get_dimensions(self) -> int:
        return self.dim

    async def embed(self, texts: Sequence[str]) -> list[list[float]]:
        """Embed a list of texts in batches.

        Returns a list of embedding vectors in the same order as *texts*.
        """
        all_embeddings: list[list[float]] = []
        for start in range(0, len(texts), self.batch_size):
            batch = list(texts[start : start + self.batch_size])
            try:
                result = await self._client.aio.models.embed_content(
                    model=self.model,
                    contents=batch,
                    config={
                        "task_type": self.task_type,
                        "output_dimensionality": self.dim,
                    },
                )
            except Exception as exc:
                logger.error(
                    "Embedding request failed",
                    model=self.model,
                    batch_start=start,
                    batch_size=len(batch),
                    error=str(exc),
                )
                raise EmbeddingError(
                    f"Embedding request to {self.model} failed: {exc}",
                    operation="embed",
                ) from exc
            for emb in result.embeddings or []:
                all_embeddings.append(list(emb.values or []))
        return check_embeddings(
            all_embeddings, expected_count=len(texts), dimensions=self.dim
        )
