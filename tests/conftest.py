from __future__ import annotations

from collections.abc import Iterator, Sequence
from pathlib import Path

import pytest

from hybrid_store import DuckDBStorage, HybridStore, InMemoryStorage, StoreConfig


class KeywordEmbeddingProvider:
    """Deterministic provider: one dimension per vocabulary word, valued by count."""

    def __init__(self, vocabulary: Sequence[str] = ("cat", "dog", "car")) -> None:
        self.vocabulary = tuple(vocabulary)
        self.calls: list[list[str]] = []
        self.error: Exception | None = None

    def get_dimensions(self) -> int:
        return len(self.vocabulary)

    async def embed(self, texts: Sequence[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        if self.error is not None:
            raise self.error
        return [
            [float(text.lower().count(word)) for word in self.vocabulary]
            for text in texts
        ]


@pytest.fixture
def provider() -> KeywordEmbeddingProvider:
    return KeywordEmbeddingProvider()


@pytest.fixture(params=["memory", "duckdb"])
def store(
    request: pytest.FixtureRequest,
    tmp_path: Path,
    provider: KeywordEmbeddingProvider,
) -> Iterator[HybridStore]:
    if request.param == "memory":
        storage = InMemoryStorage()
    else:
        storage = DuckDBStorage(str(tmp_path / "store.duckdb"))
    config = StoreConfig(dimensions=3, distance_metric="cosine", embedding_provider=provider)
    yield HybridStore(config, storage)
    storage.close()


@pytest.fixture
def memory_store(provider: KeywordEmbeddingProvider) -> HybridStore:
    config = StoreConfig(dimensions=3, embedding_provider=provider)
    return HybridStore(config, InMemoryStorage())
