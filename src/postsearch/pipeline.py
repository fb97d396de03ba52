"""Wire pipeline components from settings."""

from __future__ import annotations

from chromadb.api import ClientAPI

from postsearch.chunking import ChunkingConfig, HeadingChunker
from postsearch.config import Settings, get_settings
from postsearch.embeddings import (
    ChromaVectorIndex,
    EmbeddingConfig,
    EmbeddingGenerator,
    EmbeddingModel,
    HashEmbeddingModel,
    LangChainEmbeddingModel,
    VectorIndex,
    VectorStore,
)
from postsearch.indexing import DocumentLeases, IndexingService, IndexStateStore
from postsearch.metrics.observability import get_logger
from postsearch.retrieval import HybridSearchService, KeywordSearcher, SearchConfig

_logger = get_logger("pipeline")


def build_embedding_model(settings: Settings) -> EmbeddingModel:
    if not settings.use_model_embeddings:
        _logger.info("pipeline.hash_embeddings", dim=settings.embedding_dim)
        return HashEmbeddingModel(dim=settings.embedding_dim)
    return LangChainEmbeddingModel(settings.embedding_model_name, device=settings.embedding_device)


def build_embedding_generator(settings: Settings, model: EmbeddingModel | None = None) -> EmbeddingGenerator:
    config = EmbeddingConfig(
        model=settings.embedding_model,
        dim=settings.embedding_dim,
        max_text_length=settings.embedding_max_text_length,
        batch_size=settings.embedding_batch_size,
    )
    return EmbeddingGenerator(model or build_embedding_model(settings), config)


def build_vector_store(
    settings: Settings,
    index: VectorIndex | None = None,
    *,
    client: ClientAPI | None = None,
) -> VectorStore:
    if index is None:
        index = ChromaVectorIndex(
            settings.chroma_collection,
            client=client,
            persist_directory=settings.chroma_persist_dir,
        )
    return VectorStore(
        index,
        dim=settings.embedding_dim,
        batch_size=settings.vector_upsert_batch_size,
        max_chunks=settings.vector_max_chunks,
    )


def build_indexing_service(
    settings: Settings | None = None,
    *,
    embedder: EmbeddingGenerator | None = None,
    store: VectorStore | None = None,
    state: IndexStateStore | None = None,
    leases: DocumentLeases | None = None,
) -> IndexingService:
    settings = settings or get_settings()
    chunker = HeadingChunker(
        ChunkingConfig(
            max_tokens=settings.chunk_max_tokens,
            min_tokens=settings.chunk_min_tokens,
            overlap_tokens=settings.chunk_overlap_tokens,
        )
    )
    return IndexingService(
        embedder or build_embedding_generator(settings),
        store or build_vector_store(settings),
        state=state,
        chunker=chunker,
        leases=leases,
        min_word_count=settings.min_word_count,
    )


def build_search_service(
    keyword_searcher: KeywordSearcher,
    settings: Settings | None = None,
    *,
    embedder: EmbeddingGenerator | None = None,
    store: VectorStore | None = None,
) -> HybridSearchService:
    settings = settings or get_settings()
    config = SearchConfig(
        default_limit=settings.search_default_limit,
        candidate_multiplier=settings.search_candidate_multiplier,
        rrf_k=settings.rrf_k,
    )
    return HybridSearchService(
        keyword_searcher,
        embedder or build_embedding_generator(settings),
        store or build_vector_store(settings),
        config,
    )
