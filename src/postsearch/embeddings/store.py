"""Vector store adapter and the Chroma-backed vector index."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Protocol, Sequence, TypeVar

import chromadb
from chromadb.api import ClientAPI

from postsearch.errors import DimensionMismatchError, VectorStoreError
from postsearch.metrics.observability import get_logger
from postsearch.models import EmbeddingMetadata, EmbeddingRecord, MetadataValue, VectorMatch, VectorRecord

T = TypeVar("T")

CHUNK_ID_SEPARATOR = ":chunk"
MAX_TITLE_LENGTH = 100

LOGGER = get_logger("vector_store")


def chunk_vector_id(uri: str, chunk_index: int) -> str:
    """ID of one chunk of a chunked post; whole-post vectors use the bare URI."""

    return f"{uri}{CHUNK_ID_SEPARATOR}{chunk_index}"


def serialize_metadata(metadata: EmbeddingMetadata) -> Dict[str, MetadataValue]:
    """Flatten metadata into the index's string/number/boolean value space."""

    serialized: Dict[str, MetadataValue] = {"uri": metadata.uri, "authorDid": metadata.author_did}
    if metadata.title:
        serialized["title"] = metadata.title[:MAX_TITLE_LENGTH]
    if metadata.created_at:
        serialized["createdAt"] = metadata.created_at
    if metadata.chunk_index is not None:
        serialized["chunkIndex"] = metadata.chunk_index
    if metadata.total_chunks is not None:
        serialized["totalChunks"] = metadata.total_chunks
    if metadata.is_chunk is not None:
        serialized["isChunk"] = metadata.is_chunk
    return serialized


class VectorIndex(Protocol):
    """Vector index capability."""

    def upsert(self, vectors: Sequence[VectorRecord]) -> int:
        """Insert or replace the given records; return how many were written."""

    def query(
        self,
        vector: Sequence[float],
        *,
        top_k: int,
        filter: Mapping[str, Mapping[str, MetadataValue]] | None = None,
    ) -> Sequence[VectorMatch]:
        """Return the ``top_k`` most similar records, best first."""

    def get_by_ids(self, ids: Sequence[str]) -> Sequence[VectorRecord]:
        """Return the records that exist among ``ids``."""

    def delete_by_ids(self, ids: Sequence[str]) -> int:
        """Delete any records among ``ids``; return how many existed."""


class ChromaVectorIndex:
    """Chroma-backed vector index."""

    def __init__(
        self,
        collection_name: str = "postsearch",
        *,
        client: ClientAPI | None = None,
        persist_directory: str | Path | None = None,
    ) -> None:
        if client is not None:
            self._client = client
        elif persist_directory is not None:
            self._client = chromadb.PersistentClient(path=str(persist_directory))
        else:
            self._client = chromadb.EphemeralClient()
        self._collection = self._client.get_or_create_collection(
            name=collection_name,
            metadata={"hnsw:space": "cosine"},
        )

    def upsert(self, vectors: Sequence[VectorRecord]) -> int:
        if not vectors:
            return 0
        self._collection.upsert(
            ids=[vector.id for vector in vectors],
            embeddings=[list(vector.values) for vector in vectors],
            metadatas=[dict(vector.metadata) for vector in vectors],
        )
        return len(vectors)

    def query(
        self,
        vector: Sequence[float],
        *,
        top_k: int,
        filter: Mapping[str, Mapping[str, MetadataValue]] | None = None,
    ) -> Sequence[VectorMatch]:
        if top_k <= 0 or self._collection.count() == 0:
            return []
        results = self._collection.query(
            query_embeddings=[list(vector)],
            n_results=top_k,
            where=self._to_where(filter),
            include=["metadatas", "distances"],
        )
        ids = self._first(results.get("ids"))
        metadatas = self._first(results.get("metadatas"))
        distances = self._first(results.get("distances"))
        matches: List[VectorMatch] = []
        for position, vector_id in enumerate(ids):
            metadata = metadatas[position] if position < len(metadatas) else None
            distance = distances[position] if position < len(distances) else None
            score = 1.0 - float(distance) if distance is not None else 0.0
            matches.append(VectorMatch(id=vector_id, score=score, metadata=dict(metadata or {})))
        return matches

    def get_by_ids(self, ids: Sequence[str]) -> Sequence[VectorRecord]:
        if not ids:
            return []
        result = self._collection.get(ids=list(ids), include=["embeddings", "metadatas"])
        found_ids = list(result.get("ids") or [])
        embeddings = result.get("embeddings")
        metadatas = result.get("metadatas")
        by_id: Dict[str, VectorRecord] = {}
        for position, vector_id in enumerate(found_ids):
            values = embeddings[position] if embeddings is not None and position < len(embeddings) else []
            metadata = metadatas[position] if metadatas is not None and position < len(metadatas) else None
            by_id[vector_id] = VectorRecord(
                id=vector_id,
                values=tuple(float(value) for value in values),
                metadata=dict(metadata or {}),
            )
        return [by_id[vector_id] for vector_id in ids if vector_id in by_id]

    def delete_by_ids(self, ids: Sequence[str]) -> int:
        if not ids:
            return 0
        existing = list(self._collection.get(ids=list(ids), include=["metadatas"]).get("ids") or [])
        if existing:
            self._collection.delete(ids=existing)
        return len(existing)

    @staticmethod
    def _to_where(filter: Mapping[str, Mapping[str, MetadataValue]] | None) -> Dict[str, Any] | None:
        if not filter:
            return None
        clauses = [{key: dict(condition)} for key, condition in filter.items()]
        if len(clauses) == 1:
            return clauses[0]
        return {"$and": clauses}

    @staticmethod
    def _first(value: object) -> list:
        if isinstance(value, list) and value:
            first = value[0]
            return list(first) if first is not None else []
        return []


class VectorStore:
    """Reads and writes post vectors, owning the ID convention that links a post to its chunks.

    A short post is stored under its bare URI; a chunked post is stored as
    ``<uri>:chunk<N>`` records. Lookups and deletes probe both forms so
    callers never need to know which one a post uses.
    """

    def __init__(
        self,
        index: VectorIndex,
        *,
        dim: int = 1024,
        batch_size: int = 100,
        max_chunks: int = 20,
    ) -> None:
        self._index = index
        self._dim = dim
        self._batch_size = max(1, batch_size)
        self._max_chunks = max_chunks

    @property
    def dim(self) -> int:
        return self._dim

    @property
    def max_chunks(self) -> int:
        return self._max_chunks

    def upsert_embedding(self, vector_id: str, vector: Sequence[float], metadata: EmbeddingMetadata) -> None:
        self.upsert_embeddings([EmbeddingRecord(id=vector_id, vector=tuple(vector), metadata=metadata)])

    def upsert_embeddings(
        self,
        embeddings: Sequence[EmbeddingRecord],
        *,
        written: List[str] | None = None,
    ) -> List[str]:
        """Upsert in sequential batches; IDs of completed batches are appended to ``written``."""

        if not embeddings:
            return []
        for embedding in embeddings:
            self._check_dimensions(embedding.vector, embedding.id)

        upserted: List[str] = []
        for start in range(0, len(embeddings), self._batch_size):
            batch = embeddings[start : start + self._batch_size]
            records = [
                VectorRecord(id=item.id, values=tuple(item.vector), metadata=serialize_metadata(item.metadata))
                for item in batch
            ]
            self._call("upsert", lambda: self._index.upsert(records))
            batch_ids = [item.id for item in batch]
            upserted.extend(batch_ids)
            if written is not None:
                written.extend(batch_ids)
        return upserted

    def query_similar(
        self,
        vector: Sequence[float],
        *,
        top_k: int = 10,
        filter: Mapping[str, Mapping[str, MetadataValue]] | None = None,
    ) -> List[VectorMatch]:
        self._check_dimensions(vector)
        matches = self._call("query", lambda: self._index.query(vector, top_k=top_k, filter=filter))
        return list(matches)

    def get_by_uri(self, uri: str) -> List[VectorRecord]:
        single = self._call("get", lambda: self._index.get_by_ids([uri]))
        if single:
            return list(single)
        chunk_ids = [chunk_vector_id(uri, index) for index in range(self._max_chunks)]
        chunks = self._call("get", lambda: self._index.get_by_ids(chunk_ids))
        return [record for record in chunks if record.values]

    def delete_by_uri(self, uri: str, max_chunks: int | None = None) -> int:
        limit = self._max_chunks if max_chunks is None else max_chunks
        ids = [uri] + [chunk_vector_id(uri, index) for index in range(limit)]
        return self.delete_embeddings(ids)

    def delete_embeddings(self, ids: Sequence[str]) -> int:
        if not ids:
            return 0
        deleted = 0
        for start in range(0, len(ids), self._batch_size):
            batch = list(ids[start : start + self._batch_size])
            deleted += int(self._call("delete", lambda: self._index.delete_by_ids(batch)) or 0)
        return deleted

    def _check_dimensions(self, vector: Sequence[float], vector_id: str | None = None) -> None:
        if len(vector) != self._dim:
            raise DimensionMismatchError(self._dim, len(vector), vector_id)

    @staticmethod
    def _call(operation: str, func: Callable[[], T]) -> T:
        try:
            return func()
        except VectorStoreError:
            raise
        except Exception as exc:
            LOGGER.error("vector_store.call_failed", operation=operation, error=str(exc))
            raise VectorStoreError(f"Vector index {operation} failed: {exc}") from exc


__all__ = [
    "ChromaVectorIndex",
    "VectorIndex",
    "VectorStore",
    "chunk_vector_id",
    "serialize_metadata",
]

