from __future__ import annotations

import math

import pytest

from suggestion_engine.ranking.filters import STANDARD_PREDICATES, FilterPipeline
from suggestion_engine.ranking.fusion import dedupe, fuse
from suggestion_engine.ranking.models import Candidate, RankingContext, StrategyConfig
from suggestion_engine.ranking.policy import RankingPolicy


def _c(identity, scores, attributes=None, reasoning=None):
    return Candidate(
        identity=identity,
        strategy_scores=dict(scores),
        attributes=dict(attributes or {}),
        reasoning=list(reasoning or []),
    )


WEIGHTS = {"strategy1": 0.6, "strategy2": 0.4}


def _abc():
    return [
        _c("A", {"strategy1": 0.9}),
        _c("B", {"strategy1": 0.5}),
        _c("B", {"strategy2": 0.8}),
        _c("C", {"strategy2": 0.3}),
    ]


def test_composite_scores_match_weighted_sum():
    fused = {c.identity: c.composite_score for c in fuse(_abc(), WEIGHTS)}
    assert fused["A"] == pytest.approx(0.54)
    assert fused["B"] == pytest.approx(0.62)
    assert fused["C"] == pytest.approx(0.12)


def test_ranking_orders_b_a_c():
    ranked = RankingPolicy().rank(fuse(_abc(), WEIGHTS), RankingContext())
    assert [c.identity for c in ranked] == ["B", "A", "C"]
    assert [c.identity for c in ranked[:2]] == ["B", "A"]


def test_fusion_is_additive_across_strategies():
    fused = fuse([_c("X", {"s1": 0.3}), _c("x", {"s2": 0.7})], {"s1": 0.5, "s2": 0.25})
    assert len(fused) == 1
    assert fused[0].composite_score == pytest.approx(0.3 * 0.5 + 0.7 * 0.25)


def test_strategy_missing_from_weights_contributes_nothing():
    fused = fuse([_c("X", {"known": 1.0, "unknown": 5.0})], {"known": 0.5})
    assert fused[0].composite_score == pytest.approx(0.5)


def test_duplicate_within_one_strategy_keeps_max_score():
    fused = fuse([_c("X", {"s": 0.2}), _c("X", {"s": 0.9})], {"s": 1.0})
    assert fused[0].strategy_scores == {"s": 0.9}
    assert fused[0].composite_score == pytest.approx(0.9)


def test_increasing_weight_never_lowers_composite():
    candidates = _abc()
    low = {c.identity: c.composite_score for c in fuse(candidates, {"strategy1": 0.6, "strategy2": 0.4})}
    high = {c.identity: c.composite_score for c in fuse(candidates, {"strategy1": 0.6, "strategy2": 0.9})}
    for identity in low:
        assert high[identity] >= low[identity]


def test_fusion_is_deterministic():
    first = [(c.identity, c.composite_score) for c in fuse(_abc(), WEIGHTS)]
    second = [(c.identity, c.composite_score) for c in fuse(_abc(), WEIGHTS)]
    assert first == second


def test_raising_one_weight_keeps_order_of_candidates_tied_elsewhere():
    def raw():
        return [
            _c("X", {"shared": 0.5, "varied": 0.8, "other": 0.2}),
            _c("Y", {"shared": 0.5, "varied": 0.3, "other": 0.2}),
            _c("Z", {"shared": 0.1, "varied": 0.9}),
        ]

    for weight in (0.1, 0.3, 1.0, 2.5, 10.0):
        weights = {"shared": 0.6, "varied": weight, "other": 0.4}
        fused = {c.identity: c.composite_score for c in fuse(raw(), weights)}
        assert fused["X"] > fused["Y"]


def _pipeline_raw():
    return [
        _c("tie-1", {"s1": 0.5}, {"available_quantity": 4}),
        _c("Tie-2", {"s2": 0.5}, {"available_quantity": 4}),
        _c("empty", {"s1": 0.9}, {"available_quantity": 0}),
        _c("top", {"s1": 0.4, "s2": 0.6}),
        _c("TIE-1", {"s2": 0.1}),
        _c("tie-3", {"s1": 0.5}),
    ]


def _run_pipeline():
    ctx = RankingContext()
    fused = fuse(_pipeline_raw(), {"s1": 1.0, "s2": 1.0})
    kept = FilterPipeline(STANDARD_PREDICATES).filter(fused, ctx)
    return [(c.identity, c.final_score) for c in RankingPolicy().rank(kept, ctx)]


def test_full_pipeline_is_deterministic_with_ties():
    first = _run_pipeline()
    second = _run_pipeline()
    assert first == second
    assert [identity for identity, _ in first] == ["top", "tie-1", "Tie-2", "tie-3"]
    assert first[2][1] == first[3][1]


# ── Dedupe ──────────────────────────────────────────────────────────────


def test_dedupe_is_case_and_whitespace_insensitive():
    merged = dedupe([_c("Servo Motor", {"a": 1.0}), _c("  servo motor ", {"b": 0.5})])
    assert len(merged) == 1
    assert merged[0].identity == "Servo Motor"
    assert merged[0].strategy_scores == {"a": 1.0, "b": 0.5}


def test_dedupe_keeps_first_seen_order_and_attributes():
    merged = dedupe([
        _c("B", {"a": 0.1}, {"price": 10}, ["first"]),
        _c("A", {"a": 0.2}),
        _c("b", {"c": 0.3}, {"price": 99, "category": "X"}, ["second"]),
    ])
    assert [c.identity for c in merged] == ["B", "A"]
    assert merged[0].attributes == {"price": 10, "category": "X"}
    assert merged[0].reasoning == ["first", "second"]


def test_dedupe_does_not_mutate_input():
    raw = [_c("A", {"s": 0.5}, {"k": 1}), _c("a", {"t": 0.5}, {"j": 2})]
    fuse(raw, {"s": 1.0, "t": 1.0})
    assert raw[0].strategy_scores == {"s": 0.5}
    assert raw[0].attributes == {"k": 1}
    assert raw[0].composite_score == 0.0


# ── Models ──────────────────────────────────────────────────────────────


def test_negative_weight_rejected():
    with pytest.raises(ValueError):
        StrategyConfig("bad", -0.1)


def test_final_score_cannot_be_reassigned():
    c = _c("A", {})
    c.final_score = 1.0
    with pytest.raises(ValueError):
        c.final_score = 2.0


# ── Ranking policy ──────────────────────────────────────────────────────


def _scored(identity, composite, **attributes):
    c = _c(identity, {}, attributes)
    c.composite_score = composite
    return c


def test_margin_boost_is_multiplicative():
    policy = RankingPolicy(margin_threshold=25)
    ctx = RankingContext()
    assert policy.score(_scored("A", 0.5, margin_percentage=40), ctx) == pytest.approx(0.55)
    assert policy.score(_scored("A", 0.5, margin_percentage=25), ctx) == pytest.approx(0.5)


def test_frequency_boost_is_capped():
    policy = RankingPolicy()
    ctx = RankingContext()
    assert policy.score(_scored("A", 0.0, frequency=3), ctx) == pytest.approx(math.log(4) / 10)
    assert policy.score(_scored("A", 0.0, frequency=10_000), ctx) == pytest.approx(0.3)


def test_context_boost_and_length_penalty():
    policy = RankingPolicy(length_ceiling=50)
    ctx = RankingContext(context="product")
    assert policy.score(_scored("A", 0.5, context="product"), ctx) == pytest.approx(0.6)
    assert policy.score(_scored("A", 0.5, context="order"), ctx) == pytest.approx(0.5)
    assert policy.score(_scored("A", 0.5, text="x" * 51), ctx) == pytest.approx(0.4)
    assert policy.score(_scored("A", 0.5, text="x" * 50), ctx) == pytest.approx(0.5)


def test_missing_attributes_leave_score_unchanged():
    assert RankingPolicy().score(_scored("A", 0.42), RankingContext()) == pytest.approx(0.42)


def test_equal_scores_keep_input_order():
    ranked = RankingPolicy().rank(
        [_scored("first", 0.5), _scored("second", 0.5), _scored("third", 0.7)],
        RankingContext(),
    )
    assert [c.identity for c in ranked] == ["third", "first", "second"]
