"""Rank fusion and hybrid search."""

from .fusion import DEFAULT_RRF_K, reciprocal_rank_fusion
from .service import HybridSearchService, KeywordSearcher, MatchType, SearchConfig, SearchMode, collapse_to_posts

__all__ = [
    "DEFAULT_RRF_K",
    "HybridSearchService",
    "KeywordSearcher",
    "MatchType",
    "SearchConfig",
    "SearchMode",
    "collapse_to_posts",
    "reciprocal_rank_fusion",
]
