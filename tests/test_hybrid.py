"""Tests for weighted score fusion and hybrid search."""

from __future__ import annotations

import pytest

from hybrid_store import EmbeddingError, FilterError, HybridStore, StorageError, ValidationError
from hybrid_store.search import fuse_rankings
from hybrid_store.storage import DocumentRecord, ScoredRecord


def _record(doc_id: str, seq: int) -> DocumentRecord:
    return DocumentRecord(id=doc_id, content=doc_id, metadata={}, embedding=[0.0], seq=seq)


def test_fuse_rankings_zero_fills_missing_side() -> None:
    text_only = _record("text-only", 1)
    vector_only = _record("vector-only", 2)
    both = _record("both", 3)

    fused = fuse_rankings(
        [ScoredRecord(text_only, 1.0), ScoredRecord(both, 0.5)],
        [ScoredRecord(vector_only, 0.9), ScoredRecord(both, 0.4)],
        text_weight=0.5,
        vector_weight=0.5,
        limit=10,
    )

    by_id = {candidate.record.id: candidate for candidate in fused}
    assert by_id["text-only"].vector_rank == 0.0
    assert by_id["vector-only"].text_rank == 0.0
    assert by_id["both"].fused_score == pytest.approx(0.45)
    assert [candidate.record.id for candidate in fused] == ["text-only", "vector-only", "both"]


def test_fuse_rankings_breaks_ties_by_insertion_order_and_truncates() -> None:
    late = _record("late", 9)
    early = _record("early", 1)
    other = _record("other", 5)

    fused = fuse_rankings(
        [ScoredRecord(late, 1.0), ScoredRecord(early, 1.0), ScoredRecord(other, 0.1)],
        [],
        limit=2,
    )

    assert [candidate.record.id for candidate in fused] == ["early", "late"]


@pytest.mark.asyncio
async def test_text_only_weights_degenerate_to_lexical_order(store: HybridStore) -> None:
    await store.insert(
        [
            {"id": "a", "content": "cat", "embedding": [1.0, 0.0, 0.0]},
            {"id": "b", "content": "dog", "embedding": [0.0, 1.0, 0.0]},
        ]
    )

    results = await store.hybrid_search("cat", {"text_weight": 1.0, "vector_weight": 0.0})

    assert [result.id for result in results] == ["a", "b"]
    assert results[0].text_rank == 1.0
    assert results[0].fused_score == 1.0
    assert results[1].text_rank == 0.0
    assert results[1].fused_score == 0.0


@pytest.mark.asyncio
async def test_vector_weight_zero_ignores_vector_order(store: HybridStore) -> None:
    await store.insert(
        [
            {"id": "lexical", "content": "a cat story", "embedding": [0.0, 0.0, 1.0]},
            {"id": "semantic", "content": "feline", "embedding": [1.0, 0.0, 0.0]},
        ]
    )

    results = await store.hybrid_search("cat", {"text_weight": 1.0, "vector_weight": 0.0})

    assert [result.id for result in results] == ["lexical", "semantic"]


@pytest.mark.asyncio
async def test_hybrid_includes_single_mode_matches(store: HybridStore) -> None:
    await store.insert(
        [
            {"id": "lexical", "content": "cat facts", "embedding": [0.0, 0.0, 1.0]},
            {"id": "semantic", "content": "feline", "embedding": [1.0, 0.0, 0.0]},
        ]
    )

    results = await store.hybrid_search("cat")
    by_id = {result.id: result for result in results}

    assert set(by_id) == {"lexical", "semantic"}
    assert by_id["lexical"].text_rank == 1.0
    assert by_id["lexical"].vector_rank == 0.0
    assert by_id["semantic"].text_rank == 0.0
    assert by_id["semantic"].vector_rank == 1.0
    assert by_id["semantic"].similarity == by_id["semantic"].vector_rank
    assert by_id["lexical"].fused_score == pytest.approx(0.5)


@pytest.mark.asyncio
async def test_raising_vector_weight_never_demotes_similar_document(store: HybridStore) -> None:
    await store.insert(
        [
            {"id": "keyword", "content": "cat cat", "embedding": [0.0, 0.0, 1.0]},
            {"id": "similar", "content": "kitten", "embedding": [0.8, 0.6, 0.0]},
        ]
    )

    gaps = []
    for vector_weight in (0.25, 0.5, 1.0, 2.0, 4.0):
        results = await store.hybrid_search(
            "cat", {"text_weight": 1.0, "vector_weight": vector_weight}
        )
        order = [result.id for result in results]
        gaps.append(order.index("similar") - order.index("keyword"))

    assert gaps == sorted(gaps, reverse=True)
    assert gaps[0] > 0
    assert gaps[-1] < 0


@pytest.mark.asyncio
async def test_hybrid_filter_applies_to_both_engines(store: HybridStore) -> None:
    await store.insert(
        [
            {"id": "a", "content": "cat", "embedding": [1.0, 0.0, 0.0], "metadata": {"lang": "en"}},
            {"id": "b", "content": "cat", "embedding": [1.0, 0.0, 0.0], "metadata": {"lang": "fr"}},
        ]
    )

    results = await store.hybrid_search("cat", {"filter": {"lang": "fr"}})

    assert [result.id for result in results] == ["b"]


@pytest.mark.asyncio
async def test_hybrid_respects_limit(store: HybridStore) -> None:
    await store.insert([{"content": f"cat number {i}"} for i in range(5)])

    results = await store.hybrid_search("cat", {"limit": 3})

    assert len(results) == 3


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "options",
    [
        {"text_weight": -0.1},
        {"vector_weight": float("inf")},
        {"limit": 0},
    ],
)
async def test_hybrid_rejects_invalid_options(store: HybridStore, provider, options) -> None:
    with pytest.raises(ValidationError):
        await store.hybrid_search("cat", options)
    assert provider.calls == []


@pytest.mark.asyncio
async def test_hybrid_rejects_malformed_filter_before_embedding(store: HybridStore, provider) -> None:
    with pytest.raises(FilterError):
        await store.hybrid_search("cat", {"filter": "year>"})
    assert provider.calls == []


@pytest.mark.asyncio
async def test_hybrid_embedding_failure(store: HybridStore, provider) -> None:
    await store.insert([{"id": "a", "content": "cat", "embedding": [1.0, 0.0, 0.0]}])
    provider.error = RuntimeError("provider offline")

    with pytest.raises(EmbeddingError) as excinfo:
        await store.hybrid_search("cat")

    assert excinfo.value.operation == "embed_query"


@pytest.mark.asyncio
async def test_hybrid_fails_closed_on_lexical_failure(store: HybridStore, monkeypatch) -> None:
    await store.insert([{"id": "a", "content": "cat", "embedding": [1.0, 0.0, 0.0]}])

    def broken_text_top_k(*args, **kwargs):
        raise RuntimeError("index unavailable")

    monkeypatch.setattr(store.storage, "text_top_k", broken_text_top_k)

    with pytest.raises(StorageError) as excinfo:
        await store.hybrid_search("cat")
    assert excinfo.value.operation == "text_top_k"


@pytest.mark.asyncio
async def test_hybrid_degrades_when_requested(store: HybridStore, monkeypatch) -> None:
    await store.insert([{"id": "a", "content": "cat", "embedding": [1.0, 0.0, 0.0]}])

    def broken_text_top_k(*args, **kwargs):
        raise RuntimeError("index unavailable")

    monkeypatch.setattr(store.storage, "text_top_k", broken_text_top_k)

    results = await store.hybrid_search("cat", {"degrade_on_partial_failure": True})

    assert [result.id for result in results] == ["a"]
    assert results[0].text_rank == 0.0
    assert results[0].vector_rank == 1.0
