from __future__ import annotations

from suggestion_engine.ranking.filters import (
    PRODUCT_PREDICATES,
    FilterPipeline,
    context_match,
    eligibility,
    price_range,
    stock,
)
from suggestion_engine.ranking.models import Candidate, RankingContext


def _c(identity="X", **attributes):
    return Candidate(identity=identity, attributes=attributes)


def test_missing_attributes_fail_open():
    ctx = RankingContext(industry="defense", customer_tier="standard", price_min=10, price_max=20, context="maintenance")
    kept = FilterPipeline(PRODUCT_PREDICATES).filter([_c()], ctx)
    assert [c.identity for c in kept] == ["X"]


def test_nan_attributes_fail_open():
    assert stock(_c(available_quantity=float("nan")), RankingContext()) is None
    assert price_range(_c(price=float("nan")), RankingContext(price_max=5)) is None


def test_restricted_industry_dropped():
    ctx = RankingContext(industry="Defense")
    assert eligibility(_c(restricted_industries="defense;nuclear"), ctx) is False
    assert eligibility(_c(restricted_industries="nuclear"), ctx) is True


def test_tier_below_minimum_dropped():
    assert eligibility(_c(min_tier="gold"), RankingContext(customer_tier="silver")) is False
    assert eligibility(_c(min_tier="gold"), RankingContext(customer_tier="platinum")) is True
    assert eligibility(_c(min_tier="gold"), RankingContext()) is None


def test_out_of_stock_dropped_unless_requested():
    empty = _c(available_quantity=0)
    assert stock(empty, RankingContext()) is False
    assert stock(empty, RankingContext(include_out_of_stock=True)) is True
    assert stock(_c(available_quantity=3), RankingContext()) is True


def test_price_bounds_are_optional_and_inclusive():
    item = _c(price=50.0)
    assert price_range(item, RankingContext()) is None
    assert price_range(item, RankingContext(price_min=50)) is True
    assert price_range(item, RankingContext(price_max=49.99)) is False
    assert price_range(item, RankingContext(price_min=10, price_max=50)) is True


def test_context_restriction():
    item = _c(contexts="maintenance;production")
    assert context_match(item, RankingContext(context="general")) is None
    assert context_match(item, RankingContext(context="production")) is True
    assert context_match(item, RankingContext(context="quote")) is False
    assert context_match(_c(), RankingContext(context="quote")) is None


def test_exclusion_matches_identity_case_insensitively():
    kept = FilterPipeline().filter([_c("P1"), _c("P2")], RankingContext(exclude=("p1",)))
    assert [c.identity for c in kept] == ["P2"]


def test_pipeline_preserves_order():
    items = [_c("A", price=5), _c("B", price=50), _c("C", price=7), _c("D")]
    kept = FilterPipeline().filter(items, RankingContext(price_max=10))
    assert [c.identity for c in kept] == ["A", "C", "D"]
