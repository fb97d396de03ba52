"""Reciprocal Rank Fusion."""

from __future__ import annotations

from typing import Dict, Iterable, List, Sequence

from postsearch.models import FusedResult, RankedItem

DEFAULT_RRF_K = 60


def reciprocal_rank_fusion(
    rankings: Iterable[Sequence[RankedItem]],
    k: int = DEFAULT_RRF_K,
) -> List[FusedResult]:
    """Merge ordered rankings into one, using rank position only.

    Every id scores ``sum(1 / (k + rank + 1))`` over the rankings it appears
    in, with ``rank`` zero-based. Input scores are ignored, so rankings with
    unrelated score scales combine without calibration. Ties keep the order
    in which ids were first seen (Python's sort is stable).
    """

    scores: Dict[str, float] = {}
    for ranking in rankings:
        for rank, item in enumerate(ranking):
            scores[item.id] = scores.get(item.id, 0.0) + 1.0 / (k + rank + 1)
    ordered = sorted(scores.items(), key=lambda pair: pair[1], reverse=True)
    return [FusedResult(id=item_id, score=score) for item_id, score in ordered]


__all__ = ["DEFAULT_RRF_K", "reciprocal_rank_fusion"]
