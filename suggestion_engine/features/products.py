from __future__ import annotations

from ..catalog.data_store import Catalog
from ..ranking.errors import InputError, NotFoundError
from ..ranking.models import RankingContext, StrategyConfig
from ..ranking.orchestrator import FeatureDefinition, Preparation
from ..sources.products import (
    CategoryMatchSource,
    CollaborativeFilteringSource,
    ComplementarySource,
    ContentBasedSource,
    FrequentItemsetsSource,
    InventoryMetricSource,
    InventoryOptimizedSource,
    PriceAlternativeSource,
    SeasonalTrendsSource,
    SegmentPatternsSource,
    UpsellSource,
)
from ..sources.text_index import TextIndex

RECOMMENDATIONS = FeatureDefinition(
    name="recommendations",
    strategies=(
        StrategyConfig("collaborative_filtering", 0.35),
        StrategyConfig("content_based", 0.25),
        StrategyConfig("inventory_optimization", 0.25),
        StrategyConfig("seasonal_trends", 0.15),
    ),
    ttl=900,
    default_limit=10,
    max_limit=50,
    primary_key="customer_id",
    failure_code="RECOMMENDATION_GENERATION_FAILED",
    failure_message="Failed to generate product recommendations",
)

SIMILAR_PRODUCTS = FeatureDefinition(
    name="similar_products",
    strategies=(
        StrategyConfig("category_matching", 0.8),
        StrategyConfig("price_alternative", 0.7),
        StrategyConfig("complementary", 0.6),
        StrategyConfig("upsell", 0.5),
    ),
    ttl=1800,
    default_limit=8,
    max_limit=20,
    primary_key="product_id",
    failure_code="SIMILAR_PRODUCTS_FAILED",
    failure_message="Failed to find similar products",
)

CROSS_SELL = FeatureDefinition(
    name="cross_sell",
    strategies=(
        StrategyConfig("frequent_itemsets", 0.45),
        StrategyConfig("complementary_categories", 0.35),
        StrategyConfig("segment_patterns", 0.2),
    ),
    ttl=1200,
    default_limit=5,
    max_limit=15,
    primary_key="customer_id",
    failure_code="CROSS_SELL_FAILED",
    failure_message="Failed to generate cross-sell recommendations",
)

INVENTORY_SUGGESTIONS = FeatureDefinition(
    name="inventory_suggestions",
    strategies=(
        StrategyConfig("turnover_rate", 0.4),
        StrategyConfig("inventory_level", 0.3),
        StrategyConfig("margin_optimization", 0.2),
        StrategyConfig("demand_forecast", 0.1),
    ),
    ttl=600,
    default_limit=12,
    max_limit=30,
    failure_code="INVENTORY_SUGGESTIONS_FAILED",
    failure_message="Failed to generate inventory-based suggestions",
)

# Weight sets selected by the ``strategy`` parameter of inventory suggestions
INVENTORY_STRATEGY_WEIGHTS: dict[str, dict[str, float]] = {
    "balanced": INVENTORY_SUGGESTIONS.weights,
    "fast_moving": {
        "turnover_rate": 0.55,
        "inventory_level": 0.1,
        "margin_optimization": 0.2,
        "demand_forecast": 0.15,
    },
    "overstocked": {
        "turnover_rate": 0.1,
        "inventory_level": 0.55,
        "margin_optimization": 0.2,
        "demand_forecast": 0.15,
    },
}


def customer_segment(lifetime_value: float, order_count: int) -> str:
    if lifetime_value > 100000 and order_count > 50:
        return "enterprise"
    if lifetime_value > 25000 and order_count > 10:
        return "growth"
    if lifetime_value > 5000 and order_count > 3:
        return "established"
    return "new"


def _resolve_customer(catalog: Catalog, context: RankingContext) -> tuple[dict, dict]:
    """Look up the customer and derive the context fields it implies.

    Returns ``(customer, updates)``; explicit request values are never
    overwritten.
    """
    customer = catalog.customer(context.primary_key)
    if customer is None:
        raise NotFoundError(f"Customer {context.primary_key} not found", "CUSTOMER_NOT_FOUND")
    updates = {}
    if context.customer_tier is None:
        updates["customer_tier"] = customer.get("tier") or "standard"
    if context.industry is None and customer.get("industry"):
        updates["industry"] = customer["industry"]
    return customer, updates


def prepare_recommendations(catalog: Catalog, context: RankingContext) -> Preparation:
    customer, updates = _resolve_customer(catalog, context)
    history = catalog.purchase_history(context.primary_key)

    # Price comfort zone from what the customer has paid before
    prices = history["unit_price"].dropna()
    if context.price_min is None and context.price_max is None and not prices.empty:
        updates["price_min"] = round(float(prices.min()) * 0.5, 2)
        updates["price_max"] = round(float(prices.max()) * 2.0, 2)

    lifetime_value = float((history["quantity"] * history["unit_price"]).sum()) if not history.empty else 0.0
    order_count = int(history["order_id"].nunique())
    ctx = context.model_copy(update=updates)

    return Preparation(
        context=ctx,
        metadata={
            "customer_tier": ctx.customer_tier,
            "customer_segment": customer_segment(lifetime_value, order_count),
            "customer_name": customer.get("name"),
        },
    )


def prepare_similar_products(catalog: Catalog, context: RankingContext) -> Preparation:
    product = catalog.product(context.primary_key)
    if product is None:
        raise NotFoundError(f"Product {context.primary_key} not found", "PRODUCT_NOT_FOUND")
    ctx = context.model_copy(update={"exclude": context.exclude + (product["id"],)})
    return Preparation(
        context=ctx,
        metadata={
            "target_product": {
                "id": product["id"],
                "name": product["name"],
                "category": product["category"],
                "base_price": product["base_price"],
            },
        },
    )


def prepare_cross_sell(catalog: Catalog, context: RankingContext) -> Preparation:
    _, updates = _resolve_customer(catalog, context)
    updates["exclude"] = context.exclude + tuple(context.current_products)
    ctx = context.model_copy(update=updates)
    return Preparation(
        context=ctx,
        metadata={
            "customer_tier": ctx.customer_tier,
            "current_products_count": len(context.current_products),
        },
    )


def prepare_inventory_suggestions(context: RankingContext) -> Preparation:
    weights = INVENTORY_STRATEGY_WEIGHTS.get(context.strategy)
    if weights is None:
        allowed = ", ".join(INVENTORY_STRATEGY_WEIGHTS)
        raise InputError(f"strategy must be one of: {allowed}")
    return Preparation(
        context=context,
        weights=weights,
        metadata={
            "strategy": context.strategy,
            "category": context.category,
            "warehouse_id": context.warehouse_id,
        },
    )


# ── Source factories ────────────────────────────────────────────────────


def recommendation_sources(catalog: Catalog, index: TextIndex) -> list:
    return [
        CollaborativeFilteringSource(catalog),
        ContentBasedSource(catalog, index),
        InventoryOptimizedSource(catalog),
        SeasonalTrendsSource(catalog),
    ]


def similar_product_sources(catalog: Catalog) -> list:
    return [
        CategoryMatchSource(catalog),
        PriceAlternativeSource(catalog),
        ComplementarySource(catalog, name="complementary"),
        UpsellSource(catalog),
    ]


def cross_sell_sources(catalog: Catalog) -> list:
    return [
        FrequentItemsetsSource(catalog),
        ComplementarySource(catalog, name="complementary_categories"),
        SegmentPatternsSource(catalog),
    ]


def inventory_sources(catalog: Catalog) -> list:
    return [InventoryMetricSource(catalog, metric) for metric in InventoryMetricSource.METRICS]
