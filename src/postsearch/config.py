"""Runtime configuration for the postsearch pipeline."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed configuration model."""

    model_config = SettingsConfigDict(env_prefix="postsearch_", env_file=".env", case_sensitive=False)

    # Embedding model; bge-m3 emits 1024-dim multilingual vectors
    embedding_model: str = "@cf/baai/bge-m3"
    embedding_dim: int = 1024
    embedding_max_text_length: int = 8000  # characters, roughly 2000 tokens
    embedding_batch_size: int = 50
    use_model_embeddings: bool = False
    embedding_model_name: str = "BAAI/bge-m3"
    embedding_device: str | None = None

    # Vector index
    chroma_persist_dir: Path | None = None
    chroma_collection: str = "postsearch-posts"
    vector_upsert_batch_size: int = 100
    vector_max_chunks: int = 20

    # Chunking
    chunk_max_tokens: int = 800
    chunk_min_tokens: int = 100
    chunk_overlap_tokens: int = 50

    # Posts below this many words are not embedded
    min_word_count: int = 10

    # Search
    rrf_k: int = 60
    search_default_limit: int = 20
    search_candidate_multiplier: int = 3


@lru_cache(maxsize=1)
def _cached_settings() -> Settings:
    return Settings()


def get_settings(override: Optional[dict[str, object]] = None) -> Settings:
    """Return settings, optionally overriding values without mutating cache."""

    if override:
        return Settings(**override)
    return _cached_settings()
