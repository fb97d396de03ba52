"""Hybrid search combining keyword and semantic rankings."""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import List, Mapping, Protocol, Sequence

from postsearch.embeddings.service import EmbeddingGenerator
from postsearch.embeddings.store import VectorStore
from postsearch.errors import EmbeddingError, VectorStoreError
from postsearch.metrics.observability import PipelineMetrics, get_logger
from postsearch.models import MetadataValue, RankedItem, SearchResponse, SearchResult, VectorMatch
from postsearch.retrieval.fusion import DEFAULT_RRF_K, reciprocal_rank_fusion


class SearchMode(str, Enum):
    KEYWORD = "keyword"
    SEMANTIC = "semantic"
    HYBRID = "hybrid"


class MatchType(str, Enum):
    KEYWORD = "keyword"
    SEMANTIC = "semantic"
    BOTH = "both"


@dataclass(frozen=True)
class SearchConfig:
    """Configuration for hybrid search."""

    default_limit: int = 20
    candidate_multiplier: int = 3
    rrf_k: int = DEFAULT_RRF_K


class KeywordSearcher(Protocol):
    """Lexical ranking served by the relational store."""

    def search(self, query: str, limit: int) -> Sequence[RankedItem]:
        """Return post URIs ordered by keyword relevance."""


def collapse_to_posts(matches: Sequence[VectorMatch]) -> List[RankedItem]:
    """Map chunk hits to their parent post, keeping each post's best-ranked hit."""

    seen: set[str] = set()
    ranked: List[RankedItem] = []
    for match in matches:
        uri = match.metadata.get("uri")
        post_id = uri if isinstance(uri, str) and uri else match.id
        if post_id in seen:
            continue
        seen.add(post_id)
        ranked.append(RankedItem(id=post_id, score=match.score))
    return ranked


class HybridSearchService:
    """Serve keyword, semantic or fused results for a query.

    When the semantic side fails the service answers from keyword results
    and reports ``fallback="keyword"``.
    """

    def __init__(
        self,
        keyword_searcher: KeywordSearcher,
        embedder: EmbeddingGenerator,
        store: VectorStore,
        config: SearchConfig | None = None,
    ) -> None:
        self._keyword = keyword_searcher
        self._embedder = embedder
        self._store = store
        self._config = config or SearchConfig()
        self._logger = get_logger("search")

    def search(
        self,
        query: str,
        *,
        mode: SearchMode | str = SearchMode.HYBRID,
        limit: int | None = None,
        filter: Mapping[str, Mapping[str, MetadataValue]] | None = None,
    ) -> SearchResponse:
        mode = SearchMode(mode)
        if limit is None:
            limit = self._config.default_limit
        if limit < 1:
            raise ValueError(f"Search limit must be positive, got {limit}")
        start = time.perf_counter()
        fallback: str | None = None

        if mode is SearchMode.KEYWORD:
            results = self._as_results(self._keyword.search(query, limit), MatchType.KEYWORD)
        else:
            try:
                semantic = self.semantic_ranking(query, limit=limit, filter=filter)
            except (EmbeddingError, VectorStoreError) as exc:
                self._logger.warning("search.fallback", mode=mode.value, error=str(exc))
                fallback = SearchMode.KEYWORD.value
                results = self._as_results(self._keyword.search(query, limit), MatchType.KEYWORD)
            else:
                if mode is SearchMode.SEMANTIC:
                    results = self._as_results(semantic, MatchType.SEMANTIC)
                else:
                    keyword = list(self._keyword.search(query, limit))
                    results = self._fuse(keyword, semantic)

        results = results[:limit]
        duration = time.perf_counter() - start
        PipelineMetrics.observe_search(mode.value, duration, fallback is not None)
        self._logger.info(
            "search.complete",
            mode=mode.value,
            result_count=len(results),
            duration_seconds=duration,
            fallback=fallback,
        )
        return SearchResponse(results=results, mode=mode.value, fallback=fallback)

    def semantic_ranking(
        self,
        query: str,
        *,
        limit: int,
        filter: Mapping[str, Mapping[str, MetadataValue]] | None = None,
    ) -> List[RankedItem]:
        vector = self._embedder.embed_one(query)
        top_k = limit * max(1, self._config.candidate_multiplier)
        matches = self._store.query_similar(vector, top_k=top_k, filter=filter)
        return collapse_to_posts(matches)

    def _fuse(self, keyword: Sequence[RankedItem], semantic: Sequence[RankedItem]) -> List[SearchResult]:
        keyword_ids = {item.id for item in keyword}
        semantic_ids = {item.id for item in semantic}
        results: List[SearchResult] = []
        for fused in reciprocal_rank_fusion([keyword, semantic], k=self._config.rrf_k):
            if fused.id in keyword_ids and fused.id in semantic_ids:
                match_type = MatchType.BOTH
            elif fused.id in keyword_ids:
                match_type = MatchType.KEYWORD
            else:
                match_type = MatchType.SEMANTIC
            results.append(SearchResult(id=fused.id, score=fused.score, match_type=match_type.value))
        return results

    @staticmethod
    def _as_results(ranking: Sequence[RankedItem], match_type: MatchType) -> List[SearchResult]:
        return [
            SearchResult(id=item.id, score=item.score if item.score is not None else 0.0, match_type=match_type.value)
            for item in ranking
        ]
