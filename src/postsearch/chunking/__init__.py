"""Token estimation and heading-aware chunking."""

from .service import ChunkingConfig, HeadingChunker, chunk_by_headings, estimate_tokens, overlap_lines

__all__ = ["ChunkingConfig", "HeadingChunker", "chunk_by_headings", "estimate_tokens", "overlap_lines"]
