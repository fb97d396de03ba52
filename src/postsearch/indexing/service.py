"""Write path: extract, chunk, hash-gate, embed and store one post."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Mapping, Sequence, Tuple

from postsearch.chunking.service import HeadingChunker
from postsearch.embeddings.service import EmbeddingGenerator
from postsearch.embeddings.store import VectorStore, chunk_vector_id
from postsearch.errors import PostSearchError
from postsearch.extraction.service import extract_content, is_content_reference
from postsearch.hashing import hash_content
from postsearch.indexing.state import DocumentLeases, IndexStateStore, InMemoryIndexStateStore
from postsearch.metrics.observability import PipelineMetrics, get_logger
from postsearch.models import ContentChunk, EmbeddingMetadata, EmbeddingRecord


class IndexStatus(str, Enum):
    INDEXED = "indexed"
    UNCHANGED = "unchanged"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class IndexRequest:
    """A post record to index."""

    uri: str
    author_did: str
    collection: str
    record: Mapping[str, Any]
    title: str | None = None
    subtitle: str | None = None
    created_at: str | None = None


@dataclass(frozen=True)
class IndexResult:
    uri: str
    status: IndexStatus
    reason: str | None = None
    content_hash: str | None = None
    chunk_count: int = 0
    vector_ids: Tuple[str, ...] = field(default_factory=tuple)


class IndexingService:
    """Index posts idempotently.

    A post whose extracted text hashes to the stored value is left alone.
    Otherwise every chunk is embedded before anything is written, stale
    vectors are removed, and the new vectors are upserted. If an upsert fails
    the vectors written so far are deleted again and the error propagates.

    Stale vectors are deleted before the upsert, so a failed upsert leaves
    the post with no vectors at all until the next pass. The stored hash is
    cleared in that case, which guarantees the next pass re-indexes it.
    """

    def __init__(
        self,
        embedder: EmbeddingGenerator,
        store: VectorStore,
        *,
        state: IndexStateStore | None = None,
        chunker: HeadingChunker | None = None,
        leases: DocumentLeases | None = None,
        min_word_count: int = 10,
    ) -> None:
        self._embedder = embedder
        self._store = store
        self._state = state or InMemoryIndexStateStore()
        self._chunker = chunker or HeadingChunker()
        self._leases = leases or DocumentLeases()
        self._min_word_count = min_word_count
        self._logger = get_logger("indexing")

    def index_document(self, request: IndexRequest, *, lease_timeout: float | None = None) -> IndexResult:
        with self._leases.hold(request.uri, timeout=lease_timeout):
            start = time.perf_counter()
            result = self._index(request)
            PipelineMetrics.observe_indexing(result.status.value, result.chunk_count)
            self._logger.info(
                "indexing.complete",
                uri=request.uri,
                status=result.status.value,
                reason=result.reason,
                chunk_count=result.chunk_count,
                duration_seconds=time.perf_counter() - start,
            )
            return result

    def delete_document(self, uri: str) -> int:
        with self._leases.hold(uri):
            deleted = self._store.delete_by_uri(uri)
            self._state.clear(uri)
        self._logger.info("indexing.deleted", uri=uri, vector_count=deleted)
        return deleted

    def _index(self, request: IndexRequest) -> IndexResult:
        extracted = extract_content(request.record, request.collection)
        if not extracted.success:
            reason = "reference" if is_content_reference(request.record) else "no_content"
            return IndexResult(uri=request.uri, status=IndexStatus.SKIPPED, reason=reason)

        if extracted.word_count < self._min_word_count:
            self._store.delete_by_uri(request.uri)
            self._state.clear(request.uri)
            return IndexResult(uri=request.uri, status=IndexStatus.SKIPPED, reason="too_short")

        content_hash = hash_content(extracted.text)
        if self._state.get_content_hash(request.uri) == content_hash:
            return IndexResult(uri=request.uri, status=IndexStatus.UNCHANGED, content_hash=content_hash)

        chunks = self._chunker.chunk(extracted, request.title, request.subtitle)
        if len(chunks) > self._store.max_chunks:
            self._logger.warning(
                "indexing.chunks_truncated",
                uri=request.uri,
                chunk_count=len(chunks),
                max_chunks=self._store.max_chunks,
            )
            chunks = chunks[: self._store.max_chunks]

        vectors = self._embedder.embed([chunk.text for chunk in chunks])
        records = self._build_records(request, chunks, vectors)

        self._store.delete_by_uri(request.uri)
        written: List[str] = []
        try:
            self._store.upsert_embeddings(records, written=written)
        except PostSearchError:
            # Old vectors are gone, so the stored hash no longer describes the index.
            self._state.clear(request.uri)
            self._compensate(request.uri, written)
            raise

        self._state.set_content_hash(request.uri, content_hash)
        return IndexResult(
            uri=request.uri,
            status=IndexStatus.INDEXED,
            content_hash=content_hash,
            chunk_count=len(records),
            vector_ids=tuple(record.id for record in records),
        )

    @staticmethod
    def _build_records(
        request: IndexRequest,
        chunks: Sequence[ContentChunk],
        vectors: Sequence[Tuple[float, ...]],
    ) -> List[EmbeddingRecord]:
        if len(chunks) == 1:
            metadata = EmbeddingMetadata(
                uri=request.uri,
                author_did=request.author_did,
                title=request.title,
                created_at=request.created_at,
            )
            return [EmbeddingRecord(id=request.uri, vector=vectors[0], metadata=metadata)]

        total = len(chunks)
        records: List[EmbeddingRecord] = []
        for chunk, vector in zip(chunks, vectors):
            metadata = EmbeddingMetadata(
                uri=request.uri,
                author_did=request.author_did,
                title=request.title,
                created_at=request.created_at,
                chunk_index=chunk.chunk_index,
                total_chunks=total,
                is_chunk=True,
            )
            records.append(
                EmbeddingRecord(id=chunk_vector_id(request.uri, chunk.chunk_index), vector=vector, metadata=metadata)
            )
        return records

    def _compensate(self, uri: str, written: Sequence[str]) -> None:
        if not written:
            return
        try:
            self._store.delete_embeddings(list(written))
        except PostSearchError as exc:
            self._logger.error("indexing.compensation_failed", uri=uri, vector_ids=list(written), error=str(exc))
        else:
            self._logger.warning("indexing.rolled_back", uri=uri, vector_count=len(written))
