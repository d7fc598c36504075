"""Tests for the GenAI embedding provider."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any

import pytest

from hybrid_store.embeddings import EmbeddingProvider, GenAIEmbeddingProvider, check_embeddings
from hybrid_store.errors import EmbeddingError


# ---------------------------------------------------------------------------
# Mock helpers
# ---------------------------------------------------------------------------


@dataclass
class _FakeEmbedding:
    values: list[float]


@dataclass
class _FakeEmbedResult:
    embeddings: list[_FakeEmbedding]


class _FakeModels:
    """Records calls and returns deterministic embeddings."""

    def __init__(self) -> None:
        self.calls: list[dict[str, Any]] = []
        self.error: Exception | None = None

    async def embed_content(
        self, *, model: str, contents: list[str], config: dict
    ) -> _FakeEmbedResult:
        self.calls.append({"model": model, "contents": contents, "config": config})
        if self.error is not None:
            raise self.error
        dim = config.get("output_dimensionality", 768)
        return _FakeEmbedResult(
            embeddings=[
                _FakeEmbedding(values=[float(i)] * dim) for i in range(len(contents))
            ]
        )


class _FakeAio:
    def __init__(self) -> None:
        self.models = _FakeModels()


class _FakeClient:
    def __init__(self) -> None:
        self.aio = _FakeAio()


# ---------------------------------------------------------------------------
# Unit tests (mock-based, no API key needed)
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_embed_returns_correct_count() -> None:
    client = _FakeClient()
    provider = GenAIEmbeddingProvider(client=client, dim=4, batch_size=50)

    embeddings = await provider.embed(["hello", "world"])

    assert len(embeddings) == 2
    assert len(embeddings[0]) == 4
    assert isinstance(provider, EmbeddingProvider)


@pytest.mark.asyncio
async def test_embed_uses_document_task_type() -> None:
    client = _FakeClient()
    provider = GenAIEmbeddingProvider(client=client, dim=4)

    await provider.embed(["test"])

    call = client.aio.models.calls[0]
    assert call["config"]["task_type"] == "RETRIEVAL_DOCUMENT"


@pytest.mark.asyncio
async def test_embed_batching() -> None:
    client = _FakeClient()
    provider = GenAIEmbeddingProvider(client=client, dim=4, batch_size=3)

    texts = [f"text_{i}" for i in range(7)]
    embeddings = await provider.embed(texts)

    assert len(embeddings) == 7
    # 7 texts with batch_size=3 → 3 API calls (3+3+1)
    assert len(client.aio.models.calls) == 3
    assert len(client.aio.models.calls[0]["contents"]) == 3
    assert len(client.aio.models.calls[1]["contents"]) == 3
    assert len(client.aio.models.calls[2]["contents"]) == 1


@pytest.mark.asyncio
async def test_env_overrides(monkeypatch) -> None:
    client = _FakeClient()
    monkeypatch.setenv("HYBRID_STORE_EMBEDDING_MODEL", "custom-model-001")
    monkeypatch.setenv("HYBRID_STORE_EMBEDDING_DIM", "256")
    monkeypatch.setenv("HYBRID_STORE_EMBEDDING_BATCH_SIZE", "10")

    provider = GenAIEmbeddingProvider(client=client)

    assert provider.model == "custom-model-001"
    assert provider.get_dimensions() == 256
    assert provider.batch_size == 10
    assert provider.cache_namespace == "genai:custom-model-001:256:RETRIEVAL_DOCUMENT"

    await provider.embed(["test"])
    call = client.aio.models.calls[0]
    assert call["model"] == "custom-model-001"
    assert call["config"]["output_dimensionality"] == 256


@pytest.mark.asyncio
async def test_api_failure_is_wrapped() -> None:
    client = _FakeClient()
    client.aio.models.error = RuntimeError("429 resource exhausted")
    provider = GenAIEmbeddingProvider(client=client, dim=4)

    with pytest.raises(EmbeddingError, match="429") as excinfo:
        await provider.embed(["test"])
    assert excinfo.value.retryable is True


def test_missing_api_key_raises(monkeypatch) -> None:
    monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
    with pytest.raises(ValueError, match="GOOGLE_API_KEY"):
        GenAIEmbeddingProvider(api_key=None, client=None)


def test_check_embeddings_rejects_bad_responses() -> None:
    assert check_embeddings([[1, 2]], expected_count=1, dimensions=2) == [[1.0, 2.0]]
    with pytest.raises(EmbeddingError):
        check_embeddings([[1.0, 2.0]], expected_count=2, dimensions=2)
    with pytest.raises(EmbeddingError):
        check_embeddings([[1.0]], expected_count=1, dimensions=2)


# ---------------------------------------------------------------------------
# Real API integration test (skipped unless GOOGLE_API_KEY is set)
# ---------------------------------------------------------------------------


@pytest.mark.skipif(
    not os.getenv("GOOGLE_API_KEY"),
    reason="GOOGLE_API_KEY not set, skipping real embedding test",
)
@pytest.mark.asyncio
async def test_real_embedding_api() -> None:
    provider = GenAIEmbeddingProvider(dim=128)

    texts = ["The cat sat on the mat.", "Quarterly revenue summary."]
    embeddings = await provider.embed(texts)

    assert len(embeddings) == 2
    assert len(embeddings[0]) == 128
    assert all(isinstance(v, float) for v in embeddings[0])
