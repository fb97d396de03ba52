"""Shared domain models used across the indexing and search pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Sequence, Tuple, Union

MetadataValue = Union[str, int, float, bool]


class ContentFormat(str, Enum):
    """Source format detected while extracting a post body."""

    MARKDOWN = "markdown"
    BLOCKS = "blocks"
    TEXT_CONTENT = "text_content"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Heading:
    """Heading found in a document outline."""

    text: str
    level: int


@dataclass(frozen=True)
class ExtractedContent:
    """Normalized plaintext extracted from a post record."""

    text: str
    headings: Tuple[Heading, ...] = ()
    word_count: int = 0
    format: ContentFormat = ContentFormat.UNKNOWN
    success: bool = False

    @classmethod
    def failed(cls, content_format: ContentFormat = ContentFormat.UNKNOWN) -> "ExtractedContent":
        return cls(text="", headings=(), word_count=0, format=content_format, success=False)


@dataclass(frozen=True)
class ContentChunk:
    """Retrieval-sized slice of a document's extracted text."""

    text: str
    chunk_index: int
    total_chunks: int
    heading: str | None = None


@dataclass(frozen=True)
class EmbeddingMetadata:
    """Metadata stored alongside each vector, used for filtering and display only."""

    uri: str
    author_did: str
    title: str | None = None
    created_at: str | None = None
    chunk_index: int | None = None
    total_chunks: int | None = None
    is_chunk: bool | None = None


@dataclass(frozen=True)
class VectorRecord:
    """Vector as held by the external index."""

    id: str
    values: Tuple[float, ...]
    metadata: Mapping[str, MetadataValue] = field(default_factory=dict)


@dataclass(frozen=True)
class VectorMatch:
    """Similarity query hit."""

    id: str
    score: float
    metadata: Mapping[str, MetadataValue] = field(default_factory=dict)


@dataclass(frozen=True)
class RankedItem:
    """Entry of an ordered ranking fed to rank fusion; only its position matters."""

    id: str
    score: float | None = None


@dataclass(frozen=True)
class FusedResult:
    """Entry of a fused ranking."""

    id: str
    score: float


@dataclass(frozen=True)
class SearchResult:
    """One post in a search response; ``match_type`` names the ranking(s) that found it."""

    id: str
    score: float
    match_type: str


@dataclass(frozen=True)
class SearchResponse:
    """Ordered search results returned to the presentation layer."""

    results: Sequence[SearchResult]
    mode: str
    fallback: str | None = None


@dataclass(frozen=True)
class EmbeddingRecord:
    """Vector ready to be written to the index, with its typed metadata."""

    id: str
    vector: Tuple[float, ...]
    metadata: EmbeddingMetadata
