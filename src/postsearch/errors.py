"""Exception hierarchy for infrastructure failures.

Content problems (unknown formats, empty bodies, cross-record references)
are reported as data via ``ExtractedContent.success`` and never raise.
"""

from __future__ import annotations


class PostSearchError(RuntimeError):
    """Base class for errors raised by the indexing and search pipeline."""


class EmbeddingError(PostSearchError):
    """Raised when the embedding model fails or returns an unusable response."""


class VectorStoreError(PostSearchError):
    """Raised when the vector index rejects or fails an operation."""


class DimensionMismatchError(VectorStoreError):
    """Raised when a vector does not match the index dimensionality."""

    def __init__(self, expected: int, actual: int, vector_id: str | None = None) -> None:
        self.expected = expected
        self.actual = actual
        self.vector_id = vector_id
        target = f" for {vector_id}" if vector_id else ""
        super().__init__(f"Invalid vector dimensions{target}: expected {expected}, got {actual}")


class IndexingError(PostSearchError):
    """Raised when a document could not be indexed."""


__all__ = [
    "DimensionMismatchError",
    "EmbeddingError",
    "IndexingError",
    "PostSearchError",
    "VectorStoreError",
]
