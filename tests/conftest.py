from __future__ import annotations

import math
import uuid
from typing import Dict, List, Mapping, Sequence

import chromadb
import pytest

from postsearch.embeddings import ChromaVectorIndex
from postsearch.models import VectorMatch, VectorRecord


class InMemoryVectorIndex:
    """Vector index double that records every call."""

    def __init__(self) -> None:
        self.records: Dict[str, VectorRecord] = {}
        self.upsert_calls: List[List[str]] = []
        self.get_calls: List[List[str]] = []
        self.delete_calls: List[List[str]] = []
        self.fail_upsert_on_call: int | None = None

    def upsert(self, vectors: Sequence[VectorRecord]) -> int:
        self.upsert_calls.append([vector.id for vector in vectors])
        if self.fail_upsert_on_call == len(self.upsert_calls):
            raise ConnectionError("index unavailable")
        for vector in vectors:
            self.records[vector.id] = vector
        return len(vectors)

    def query(self, vector, *, top_k: int, filter: Mapping | None = None) -> Sequence[VectorMatch]:
        matches = []
        for record in self.records.values():
            if filter and any(record.metadata.get(key) != cond.get("$eq") for key, cond in filter.items()):
                continue
            matches.append(VectorMatch(id=record.id, score=_cosine(vector, record.values), metadata=record.metadata))
        matches.sort(key=lambda match: match.score, reverse=True)
        return matches[:top_k]

    def get_by_ids(self, ids: Sequence[str]) -> Sequence[VectorRecord]:
        self.get_calls.append(list(ids))
        return [self.records[vector_id] for vector_id in ids if vector_id in self.records]

    def delete_by_ids(self, ids: Sequence[str]) -> int:
        self.delete_calls.append(list(ids))
        deleted = 0
        for vector_id in ids:
            if self.records.pop(vector_id, None) is not None:
                deleted += 1
        return deleted


def _cosine(left: Sequence[float], right: Sequence[float]) -> float:
    dot = sum(a * b for a, b in zip(left, right))
    norm = math.sqrt(sum(a * a for a in left)) * math.sqrt(sum(b * b for b in right))
    return dot / norm if norm else 0.0


@pytest.fixture
def memory_index() -> InMemoryVectorIndex:
    return InMemoryVectorIndex()


@pytest.fixture
def chroma_index() -> ChromaVectorIndex:
    return ChromaVectorIndex(f"test-{uuid.uuid4().hex[:8]}", client=chromadb.EphemeralClient())
