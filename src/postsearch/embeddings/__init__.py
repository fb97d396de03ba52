"""Embedding generation and vector storage."""

from .service import (
    EmbeddingConfig,
    EmbeddingGenerator,
    EmbeddingModel,
    HashEmbeddingModel,
    LangChainEmbeddingModel,
)
from .store import ChromaVectorIndex, VectorIndex, VectorStore, chunk_vector_id, serialize_metadata

__all__ = [
    "ChromaVectorIndex",
    "EmbeddingConfig",
    "EmbeddingGenerator",
    "EmbeddingModel",
    "HashEmbeddingModel",
    "LangChainEmbeddingModel",
    "VectorIndex",
    "VectorStore",
    "chunk_vector_id",
    "serialize_metadata",
]
