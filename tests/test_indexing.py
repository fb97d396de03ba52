from __future__ import annotations

import threading
import time

import pytest

from postsearch.chunking import ChunkingConfig, HeadingChunker
from postsearch.embeddings import EmbeddingConfig, EmbeddingGenerator, HashEmbeddingModel, VectorStore, chunk_vector_id
from postsearch.errors import EmbeddingError, IndexingError, VectorStoreError
from postsearch.hashing import hash_content
from postsearch.indexing import DocumentLeases, IndexingService, IndexRequest, IndexStatus, InMemoryIndexStateStore

DIM = 8
URI = "at://did:plc:alice/com.whtwnd.blog.entry/3kxyz"
BODY = "# Notes\n\nThis post talks about federated publishing and search indexing in some detail."


def _long_body(sections: int = 4) -> str:
    parts = []
    for number in range(1, sections + 1):
        parts.append(f"## Part {number}")
        parts.extend(["y" * 119] * 10)
    return "\n".join(parts)


def _request(content: str = BODY, **kwargs) -> IndexRequest:
    return IndexRequest(
        uri=URI,
        author_did="did:plc:alice",
        collection="com.whtwnd.blog.entry",
        record={"content": content},
        title=kwargs.pop("title", "A Post"),
        created_at="2025-01-01T00:00:00Z",
        **kwargs,
    )


def _service(memory_index, model=None, state=None, **kwargs) -> IndexingService:
    embedder = EmbeddingGenerator(model or HashEmbeddingModel(dim=DIM), EmbeddingConfig(dim=DIM))
    store = VectorStore(memory_index, dim=DIM, batch_size=kwargs.pop("batch_size", 100))
    return IndexingService(embedder, store, state=state or InMemoryIndexStateStore(), **kwargs)


def test_short_post_indexed_under_bare_uri(memory_index) -> None:
    state = InMemoryIndexStateStore()
    result = _service(memory_index, state=state).index_document(_request())

    assert result.status is IndexStatus.INDEXED
    assert result.vector_ids == (URI,)
    record = memory_index.records[URI]
    assert record.metadata == {
        "uri": URI,
        "authorDid": "did:plc:alice",
        "title": "A Post",
        "createdAt": "2025-01-01T00:00:00Z",
    }
    assert state.get_content_hash(URI) == result.content_hash


def test_unchanged_content_is_not_reembedded(memory_index) -> None:
    model = HashEmbeddingModel(dim=DIM)
    service = _service(memory_index, model=model)

    first = service.index_document(_request())
    second = service.index_document(_request())

    assert first.status is IndexStatus.INDEXED
    assert second.status is IndexStatus.UNCHANGED
    assert second.content_hash == first.content_hash
    assert len(model.calls) == 1


def test_long_post_stored_as_chunks(memory_index) -> None:
    result = _service(memory_index).index_document(_request(_long_body()))

    assert result.status is IndexStatus.INDEXED
    assert result.chunk_count == 2
    assert result.vector_ids == (chunk_vector_id(URI, 0), chunk_vector_id(URI, 1))
    metadata = memory_index.records[chunk_vector_id(URI, 1)].metadata
    assert metadata["chunkIndex"] == 1
    assert metadata["totalChunks"] == 2
    assert metadata["isChunk"] is True
    assert URI not in memory_index.records


def test_reindex_removes_stale_chunks(memory_index) -> None:
    service = _service(memory_index)
    service.index_document(_request(_long_body()))

    service.index_document(_request(BODY + " Edited."))

    assert set(memory_index.records) == {URI}


def test_failed_extraction_is_skipped(memory_index) -> None:
    service = _service(memory_index)
    reference = IndexRequest(
        uri=URI,
        author_did="did:plc:alice",
        collection="site.standard.document",
        record={"content": {"$type": "app.greengale.document#contentRef", "uri": "at://x"}},
    )

    assert service.index_document(reference).reason == "reference"
    assert service.index_document(_request("```\ncode only\n```")).reason == "no_content"
    assert memory_index.upsert_calls == []


def test_too_short_post_is_skipped_and_old_vectors_removed(memory_index) -> None:
    state = InMemoryIndexStateStore()
    service = _service(memory_index, state=state)
    service.index_document(_request())

    result = service.index_document(_request("Too short."))

    assert result.status is IndexStatus.SKIPPED
    assert result.reason == "too_short"
    assert memory_index.records == {}
    assert state.get_content_hash(URI) is None


def test_embedding_failure_writes_nothing(memory_index) -> None:
    class BrokenModel:
        def run(self, model, inputs):
            raise ConnectionError("quota exceeded")

    state = InMemoryIndexStateStore()
    with pytest.raises(EmbeddingError):
        _service(memory_index, model=BrokenModel(), state=state).index_document(_request(_long_body()))

    assert memory_index.upsert_calls == []
    assert state.get_content_hash(URI) is None


def test_upsert_failure_rolls_back_written_chunks(memory_index) -> None:
    memory_index.fail_upsert_on_call = 2
    state = InMemoryIndexStateStore()
    service = _service(memory_index, state=state, batch_size=1)

    with pytest.raises(VectorStoreError):
        service.index_document(_request(_long_body()))

    assert memory_index.records == {}
    assert memory_index.delete_calls[-1] == [chunk_vector_id(URI, 0)]
    assert state.get_content_hash(URI) is None


def test_chunks_capped_at_max_chunks(memory_index) -> None:
    chunker = HeadingChunker(ChunkingConfig(max_tokens=200, min_tokens=10, overlap_tokens=0))
    embedder = EmbeddingGenerator(HashEmbeddingModel(dim=DIM), EmbeddingConfig(dim=DIM))
    store = VectorStore(memory_index, dim=DIM, max_chunks=3)
    service = IndexingService(embedder, store, chunker=chunker)

    result = service.index_document(_request(_long_body(8)))

    assert result.chunk_count == 3
    assert {record.metadata["totalChunks"] for record in memory_index.records.values()} == {3}


def test_delete_document_clears_vectors_and_hash(memory_index) -> None:
    state = InMemoryIndexStateStore()
    service = _service(memory_index, state=state)
    service.index_document(_request(_long_body()))

    assert service.delete_document(URI) == 2
    assert memory_index.records == {}
    assert state.get_content_hash(URI) is None


def test_index_after_delete_round_trip(memory_index) -> None:
    store = VectorStore(memory_index, dim=DIM)
    service = _service(memory_index)
    service.index_document(_request())
    service.delete_document(URI)
    assert store.get_by_uri(URI) == []


def test_content_hash_matches_extracted_text(memory_index) -> None:
    result = _service(memory_index).index_document(_request("Plain paragraph with enough words to pass the minimum word count."))
    assert result.content_hash == hash_content("Plain paragraph with enough words to pass the minimum word count.")


def test_leases_serialize_same_uri() -> None:
    leases = DocumentLeases()
    entered = threading.Event()
    release = threading.Event()

    def hold() -> None:
        with leases.hold(URI):
            entered.set()
            release.wait(5)

    worker = threading.Thread(target=hold)
    worker.start()
    entered.wait(5)
    try:
        assert leases.is_held(URI)
        with pytest.raises(IndexingError):
            with leases.hold(URI, timeout=0.05):
                pass
        with leases.hold("at://other"):
            pass
    finally:
        release.set()
        worker.join(5)
    assert not leases.is_held(URI)


def test_lease_released_after_error() -> None:
    leases = DocumentLeases()
    with pytest.raises(RuntimeError):
        with leases.hold(URI):
            raise RuntimeError("boom")
    start = time.perf_counter()
    with leases.hold(URI, timeout=1):
        pass
    assert time.perf_counter() - start < 1
