from __future__ import annotations

import pytest

from postsearch.models import RankedItem
from postsearch.retrieval import reciprocal_rank_fusion


def _ranking(*ids: str, scores: list[float] | None = None) -> list[RankedItem]:
    scores = scores or [None] * len(ids)
    return [RankedItem(id=item_id, score=score) for item_id, score in zip(ids, scores)]


def test_items_in_both_rankings_rank_higher() -> None:
    fused = reciprocal_rank_fusion([_ranking("A", "B", "C"), _ranking("B", "A", "D")], k=60)
    order = [result.id for result in fused]

    assert set(order[:2]) == {"A", "B"}
    assert set(order[2:]) == {"C", "D"}
    assert fused[0].score == pytest.approx(1 / 61 + 1 / 62)


def test_scores_sum_reciprocal_ranks() -> None:
    fused = {result.id: result.score for result in reciprocal_rank_fusion([_ranking("x", "y")], k=10)}
    assert fused["x"] == pytest.approx(1 / 11)
    assert fused["y"] == pytest.approx(1 / 12)


def test_input_scores_are_ignored() -> None:
    rankings = [_ranking("a", "b", "c"), _ranking("c", "d", "a")]
    rescored = [
        _ranking("a", "b", "c", scores=[0.01, 900.0, -3.0]),
        _ranking("c", "d", "a", scores=[1e9, 0.5, 42.0]),
    ]
    assert reciprocal_rank_fusion(rankings) == reciprocal_rank_fusion(rescored)


def test_custom_k_changes_scores() -> None:
    small = reciprocal_rank_fusion([_ranking("a")], k=1)
    large = reciprocal_rank_fusion([_ranking("a")], k=100)
    assert small[0].score > large[0].score


def test_empty_and_single_rankings() -> None:
    assert reciprocal_rank_fusion([]) == []
    assert reciprocal_rank_fusion([[]]) == []
    assert [result.id for result in reciprocal_rank_fusion([_ranking("a", "b", "c")])] == ["a", "b", "c"]


def test_identical_rankings_preserve_order() -> None:
    ranking = _ranking("p", "q", "r")
    assert [result.id for result in reciprocal_rank_fusion([ranking, ranking])] == ["p", "q", "r"]


def test_ties_keep_first_seen_order() -> None:
    fused = reciprocal_rank_fusion([_ranking("a", "b"), _ranking("b", "a")])
    assert fused[0].score == pytest.approx(fused[1].score)
    assert [result.id for result in fused] == ["a", "b"]
