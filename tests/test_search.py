from __future__ import annotations

from typing import Sequence

import pytest

from postsearch.embeddings import EmbeddingConfig, EmbeddingGenerator, HashEmbeddingModel, VectorStore, chunk_vector_id
from postsearch.errors import EmbeddingError
from postsearch.models import EmbeddingMetadata, EmbeddingRecord, RankedItem, VectorMatch
from postsearch.retrieval import HybridSearchService, SearchConfig, SearchMode, collapse_to_posts

DIM = 8


class StubKeywordSearcher:
    def __init__(self, ids: Sequence[str]) -> None:
        self.ids = list(ids)
        self.calls: list[tuple[str, int]] = []

    def search(self, query: str, limit: int) -> Sequence[RankedItem]:
        self.calls.append((query, limit))
        return [RankedItem(id=item_id, score=10.0 - rank) for rank, item_id in enumerate(self.ids[:limit])]


class BrokenModel:
    def run(self, model, inputs):
        raise ConnectionError("model offline")


def _service(memory_index, keyword_ids: Sequence[str], model=None) -> HybridSearchService:
    embedder = EmbeddingGenerator(model or HashEmbeddingModel(dim=DIM), EmbeddingConfig(dim=DIM))
    store = VectorStore(memory_index, dim=DIM)
    return HybridSearchService(StubKeywordSearcher(keyword_ids), embedder, store, SearchConfig(default_limit=10))


def _store_post(memory_index, uri: str, text: str, chunks: int = 1) -> None:
    model = HashEmbeddingModel(dim=DIM)
    store = VectorStore(memory_index, dim=DIM)
    vector = tuple(model.run("m", {"text": [text]})["data"][0])
    if chunks == 1:
        store.upsert_embedding(uri, vector, EmbeddingMetadata(uri=uri, author_did="did:x"))
        return
    store.upsert_embeddings(
        [
            EmbeddingRecord(
                id=chunk_vector_id(uri, index),
                vector=vector,
                metadata=EmbeddingMetadata(uri=uri, author_did="did:x", chunk_index=index, total_chunks=chunks, is_chunk=True),
            )
            for index in range(chunks)
        ]
    )


def test_collapse_keeps_best_hit_per_post() -> None:
    matches = [
        VectorMatch(id="p1:chunk2", score=0.9, metadata={"uri": "p1"}),
        VectorMatch(id="p2", score=0.8, metadata={"uri": "p2"}),
        VectorMatch(id="p1:chunk0", score=0.7, metadata={"uri": "p1"}),
        VectorMatch(id="orphan", score=0.1, metadata={}),
    ]
    assert collapse_to_posts(matches) == [
        RankedItem(id="p1", score=0.9),
        RankedItem(id="p2", score=0.8),
        RankedItem(id="orphan", score=0.1),
    ]


def test_keyword_mode_skips_embedding(memory_index) -> None:
    service = _service(memory_index, ["k1", "k2"], model=BrokenModel())
    response = service.search("query", mode="keyword")

    assert response.mode == "keyword"
    assert response.fallback is None
    assert [result.id for result in response.results] == ["k1", "k2"]


def test_semantic_mode_returns_posts_not_chunks(memory_index) -> None:
    _store_post(memory_index, "post-a", "alpha text", chunks=3)
    _store_post(memory_index, "post-b", "beta text")
    service = _service(memory_index, [])

    response = service.search("alpha text", mode=SearchMode.SEMANTIC)

    ids = [result.id for result in response.results]
    assert {result.match_type for result in response.results} == {"semantic"}
    assert ids[0] == "post-a"
    assert sorted(ids) == ["post-a", "post-b"]


def test_hybrid_fuses_both_rankings(memory_index) -> None:
    _store_post(memory_index, "shared", "shared words")
    _store_post(memory_index, "semantic-only", "something else entirely")
    service = _service(memory_index, ["keyword-only", "shared"])

    response = service.search("shared words")

    assert response.mode == "hybrid"
    assert response.results[0].id == "shared"
    assert {result.id for result in response.results} == {"shared", "semantic-only", "keyword-only"}
    assert {result.id: result.match_type for result in response.results} == {
        "shared": "both",
        "semantic-only": "semantic",
        "keyword-only": "keyword",
    }


def test_hybrid_falls_back_to_keyword_when_semantic_fails(memory_index) -> None:
    service = _service(memory_index, ["k1", "k2", "k3"], model=BrokenModel())

    response = service.search("anything", limit=2)

    assert response.fallback == "keyword"
    assert [result.id for result in response.results] == ["k1", "k2"]


def test_semantic_ranking_propagates_errors(memory_index) -> None:
    service = _service(memory_index, [], model=BrokenModel())
    with pytest.raises(EmbeddingError):
        service.semantic_ranking("anything", limit=5)


def test_invalid_mode_rejected(memory_index) -> None:
    with pytest.raises(ValueError):
        _service(memory_index, []).search("q", mode="fuzzy")


def test_semantic_dimension_mismatch_falls_back_to_keyword(memory_index) -> None:
    _store_post(memory_index, "post-a", "hello")
    embedder = EmbeddingGenerator(HashEmbeddingModel(dim=4), EmbeddingConfig(dim=4))
    service = HybridSearchService(StubKeywordSearcher(["k1"]), embedder, VectorStore(memory_index, dim=DIM))

    response = service.search("hello", mode="semantic")

    assert response.fallback == "keyword"
    assert [(result.id, result.match_type) for result in response.results] == [("k1", "keyword")]


def test_default_limit_applies_only_when_unset(memory_index) -> None:
    keyword_ids = [f"k{index}" for index in range(15)]
    service = _service(memory_index, keyword_ids)

    assert len(service.search("q", mode="keyword").results) == 10
    assert len(service.search("q", mode="keyword", limit=3).results) == 3
    with pytest.raises(ValueError):
        service.search("q", mode="keyword", limit=0)
