"""Tests for vector similarity and lexical search."""

from __future__ import annotations

import pytest

from hybrid_store import (
    DimensionMismatchError,
    FilterError,
    HybridStore,
    InMemoryStorage,
    MetadataFilter,
    StoreConfig,
    ValidationError,
)
from hybrid_store.search import LexicalSearchEngine


async def _seed_pets(store: HybridStore) -> None:
    await store.insert(
        [
            {"id": "a", "content": "cat", "embedding": [1.0, 0.0, 0.0]},
            {"id": "b", "content": "dog", "embedding": [0.0, 1.0, 0.0]},
        ]
    )


@pytest.mark.asyncio
async def test_orthogonal_vectors_scenario(store: HybridStore) -> None:
    await _seed_pets(store)

    results = await store.search_by_embedding([1.0, 0.0, 0.0], {"limit": 2})

    assert [result.id for result in results] == ["a", "b"]
    assert results[0].similarity == 1.0
    assert results[1].similarity == 0.0
    assert results[0].content == "cat"
    assert results[0].metadata == {}
    assert results[0].embedding is None


@pytest.mark.asyncio
async def test_results_ordered_by_decreasing_similarity(store: HybridStore) -> None:
    await store.insert(
        [
            {"id": "far", "content": "far", "embedding": [0.0, 1.0, 0.0]},
            {"id": "near", "content": "near", "embedding": [1.0, 0.1, 0.0]},
            {"id": "mid", "content": "mid", "embedding": [1.0, 1.0, 0.0]},
        ]
    )

    results = await store.search_by_embedding([1.0, 0.0, 0.0])

    assert [result.id for result in results] == ["near", "mid", "far"]
    similarities = [result.similarity for result in results]
    assert similarities == sorted(similarities, reverse=True)


@pytest.mark.asyncio
async def test_ties_keep_insertion_order(store: HybridStore) -> None:
    await store.insert(
        [
            {"id": "z", "content": "one", "embedding": [1.0, 0.0, 0.0]},
            {"id": "y", "content": "two", "embedding": [2.0, 0.0, 0.0]},
            {"id": "x", "content": "three", "embedding": [3.0, 0.0, 0.0]},
        ]
    )

    results = await store.search_by_embedding([1.0, 0.0, 0.0])

    assert [result.id for result in results] == ["z", "y", "x"]


@pytest.mark.asyncio
async def test_threshold_never_increases_result_count(store: HybridStore) -> None:
    await store.insert(
        [
            {"content": "one", "embedding": [1.0, 0.0, 0.0]},
            {"content": "two", "embedding": [1.0, 1.0, 0.0]},
            {"content": "three", "embedding": [0.0, 1.0, 0.0]},
            {"content": "four", "embedding": [-1.0, 0.0, 0.0]},
        ]
    )

    counts = []
    for threshold in (-1.0, -0.5, 0.0, 0.5, 0.9, 1.0):
        results = await store.search_by_embedding(
            [1.0, 0.0, 0.0], {"threshold": threshold}
        )
        assert all(result.similarity >= threshold for result in results)
        counts.append(len(results))

    assert counts == sorted(counts, reverse=True)
    assert counts[-1] == 1


@pytest.mark.asyncio
async def test_threshold_applies_before_limit(store: HybridStore) -> None:
    await store.insert(
        [
            {"content": "low", "embedding": [0.0, 1.0, 0.0]},
            {"content": "high", "embedding": [1.0, 0.0, 0.0]},
        ]
    )

    results = await store.search_by_embedding(
        [1.0, 0.0, 0.0], {"limit": 1, "threshold": 0.5}
    )

    assert [result.content for result in results] == ["high"]


@pytest.mark.asyncio
async def test_filter_applies_before_ranking(store: HybridStore) -> None:
    await store.insert(
        [
            {"id": "a", "content": "cat", "embedding": [1.0, 0.0, 0.0], "metadata": {"kind": "pet"}},
            {"id": "b", "content": "car", "embedding": [0.9, 0.1, 0.0], "metadata": {"kind": "vehicle"}},
            {"id": "c", "content": "dog", "embedding": [0.0, 1.0, 0.0], "metadata": {"kind": "pet"}},
        ]
    )

    by_mapping = await store.search_by_embedding(
        [1.0, 0.0, 0.0], {"limit": 2, "filter": {"kind": "pet"}}
    )
    by_string = await store.search_by_embedding(
        [1.0, 0.0, 0.0], {"limit": 2, "filter": "kind=pet"}
    )
    by_objects = await store.search_by_embedding(
        [1.0, 0.0, 0.0],
        {"limit": 2, "filter": [MetadataFilter.on("kind", "ne", "vehicle")]},
    )

    assert [result.id for result in by_mapping] == ["a", "c"]
    assert [result.id for result in by_string] == ["a", "c"]
    assert [result.id for result in by_objects] == ["a", "c"]


@pytest.mark.asyncio
async def test_include_flags_project_fields(store: HybridStore) -> None:
    await _seed_pets(store)

    [result] = await store.search_by_embedding(
        [1.0, 0.0, 0.0],
        {
            "limit": 1,
            "include_content": False,
            "include_metadata": False,
            "include_embedding": True,
        },
    )

    assert result.content is None
    assert result.metadata is None
    assert result.embedding == [1.0, 0.0, 0.0]


@pytest.mark.asyncio
async def test_wrong_query_length_is_dimension_mismatch(store: HybridStore) -> None:
    with pytest.raises(DimensionMismatchError):
        await store.search_by_embedding([1.0, 0.0])


@pytest.mark.asyncio
@pytest.mark.parametrize("options", [{"limit": 0}, {"limit": -3}, {"threshold": "high"}])
async def test_invalid_options_rejected(store: HybridStore, options) -> None:
    with pytest.raises(ValidationError):
        await store.search_by_embedding([1.0, 0.0, 0.0], options)


@pytest.mark.asyncio
async def test_malformed_filter_rejected(store: HybridStore) -> None:
    with pytest.raises(FilterError):
        await store.search_by_embedding([1.0, 0.0, 0.0], {"filter": "year>=recent"})


@pytest.mark.asyncio
async def test_empty_store_returns_empty_list(store: HybridStore) -> None:
    assert await store.search_by_embedding([1.0, 0.0, 0.0]) == []


@pytest.mark.asyncio
async def test_text_search_embeds_query(store: HybridStore, provider) -> None:
    await _seed_pets(store)

    results = await store.search("dog", {"limit": 1})

    assert [result.id for result in results] == ["b"]
    assert provider.calls == [["dog"]]


@pytest.mark.asyncio
async def test_search_rejects_blank_query(store: HybridStore, provider) -> None:
    with pytest.raises(ValidationError):
        await store.search("   ")
    assert provider.calls == []


@pytest.mark.asyncio
async def test_l2_and_inner_product_similarities() -> None:
    l2_store = HybridStore(StoreConfig(dimensions=2, distance_metric="l2"), InMemoryStorage())
    ip_store = HybridStore(
        StoreConfig(dimensions=2, distance_metric="inner_product"), InMemoryStorage()
    )
    documents = [
        {"id": "same", "content": "same", "embedding": [3.0, 4.0]},
        {"id": "origin", "content": "origin", "embedding": [0.0, 0.0]},
    ]
    await l2_store.insert(documents)
    await ip_store.insert(documents)

    l2_results = await l2_store.search_by_embedding([3.0, 4.0])
    ip_results = await ip_store.search_by_embedding([0.6, 0.8])

    assert [(r.id, r.similarity) for r in l2_results] == [
        ("same", 1.0),
        ("origin", pytest.approx(1.0 / 6.0)),
    ]
    assert [r.id for r in ip_results] == ["same", "origin"]
    assert ip_results[0].similarity == pytest.approx(6.0)
    assert ip_results[1].similarity == pytest.approx(1.0)


@pytest.mark.asyncio
async def test_lexical_engine_ranks_by_term_coverage(store: HybridStore) -> None:
    await store.insert(
        [
            {"id": "one", "content": "The cat sat on the mat", "embedding": [1.0, 0.0, 0.0]},
            {"id": "both", "content": "A cat chased a dog", "embedding": [1.0, 1.0, 0.0]},
            {"id": "none", "content": "Nothing relevant", "embedding": [0.0, 0.0, 1.0]},
        ]
    )
    engine = LexicalSearchEngine(store.storage)

    hits = await engine.search("cat dog", limit=10)

    assert hits == [("both", 1.0), ("one", 0.5)]


@pytest.mark.asyncio
async def test_lexical_engine_respects_filter_and_limit(store: HybridStore) -> None:
    await store.insert(
        [
            {"id": "a", "content": "cat one", "metadata": {"n": 1}, "embedding": [1.0, 0.0, 0.0]},
            {"id": "b", "content": "cat two", "metadata": {"n": 2}, "embedding": [1.0, 0.0, 0.0]},
            {"id": "c", "content": "cat three", "metadata": {"n": 3}, "embedding": [1.0, 0.0, 0.0]},
        ]
    )
    engine = LexicalSearchEngine(store.storage)

    filtered = await engine.search("cat", limit=1, filters=[MetadataFilter.on("n", "gt", 1)])
    blank = await engine.search("   ", limit=5)

    assert filtered == [("b", 1.0)]
    assert blank == []
    with pytest.raises(ValidationError):
        await engine.search("cat", limit=0)
