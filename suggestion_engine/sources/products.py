"""
Product candidate strategies.

Each source reads the catalog, scores products on its own 0..1 scale and
attaches display attributes (price, stock, margin) so that downstream
filters can evaluate them. Scores are strategy-local; weighting happens in
fusion.
"""
from __future__ import annotations

from typing import Any

import pandas as pd

from ..catalog.data_store import Catalog
from ..ranking.aggregator import CandidateSource
from ..ranking.errors import SourceUnavailable
from ..ranking.models import Candidate, RankingContext
from .text import word_overlap
from .text_index import TextIndex

CROSS_SELL_CATEGORIES: dict[str, list[str]] = {
    "Industrial Parts": ["Safety Equipment", "Maintenance Tools", "Lubricants"],
    "Safety Equipment": ["Industrial Parts", "PPE", "First Aid"],
    "Maintenance Tools": ["Industrial Parts", "Safety Equipment", "Lubricants"],
    "Electrical Components": ["Cables", "Connectors", "Safety Equipment"],
    "Hydraulic Systems": ["Seals", "Filters", "Lubricants"],
}


class ProductSource(CandidateSource):
    """Shared plumbing for strategies that surface catalog products."""

    def __init__(self, catalog: Catalog) -> None:
        self.catalog = catalog

    def build(
        self,
        context: RankingContext,
        scored: list[tuple[str, float, list[str], dict[str, Any]]],
    ) -> list[Candidate]:
        """Attach catalog attributes to ``(product_id, score, reasoning, extra)`` rows.

        Rows for unknown products are dropped.
        """
        attrs = self.catalog.product_attributes(
            (pid for pid, *_ in scored),
            tier=context.customer_tier,
            warehouse_id=context.warehouse_id,
        )
        out: list[Candidate] = []
        for pid, score, reasoning, extra in scored:
            if pid not in attrs:
                continue
            out.append(self.candidate(pid, score, {**attrs[pid], **extra}, reasoning))
        return out

    def anchors(self, context: RankingContext) -> list[str]:
        """Products the request is about.

        Explicit ``current_products`` win; otherwise the primary key when it
        names a product; otherwise the customer's purchase history.
        """
        if context.current_products:
            return list(context.current_products)
        if not context.primary_key:
            return []
        if self.catalog.product(context.primary_key) is not None:
            return [context.primary_key]
        history = self.catalog.purchase_history(context.primary_key)
        return history["product_id"].drop_duplicates().tolist()


# ── Recommendations ─────────────────────────────────────────────────────


class CollaborativeFilteringSource(ProductSource):
    """Products bought by customers whose purchases overlap the caller's."""

    name = "collaborative_filtering"

    def __init__(self, catalog: Catalog, min_common: int = 3, max_neighbours: int = 20) -> None:
        super().__init__(catalog)
        self.min_common = min_common
        self.max_neighbours = max_neighbours

    def find(self, context: RankingContext) -> list[Candidate]:
        orders = self.catalog.recent_orders()
        customer_id = context.primary_key
        mine = set(orders.loc[orders["customer_id"] == customer_id, "product_id"])
        if not mine:
            return []

        others = orders[orders["customer_id"] != customer_id]
        common = others[others["product_id"].isin(mine)].groupby("customer_id")["product_id"].nunique()
        common = common[common >= self.min_common]
        if common.empty:
            return []
        totals = others.groupby("customer_id")["product_id"].nunique()

        similar = pd.DataFrame({"common": common, "total": totals.loc[common.index]})
        similar["similarity"] = similar["common"] / similar["total"]
        similar = similar.sort_values("similarity", ascending=False, kind="stable").head(self.max_neighbours)

        bought = others[others["customer_id"].isin(similar.index) & ~others["product_id"].isin(mine)]
        if bought.empty:
            return []
        freq = bought.groupby(["customer_id", "product_id"]).size().rename("frequency").reset_index()
        freq = (
            freq.sort_values(["customer_id", "frequency"], ascending=[True, False], kind="stable")
            .groupby("customer_id")
            .head(10)
        )
        freq["score"] = (
            freq["customer_id"].map(similar["similarity"])
            * (freq["frequency"] / 10).clip(upper=1.0)
            * 0.8
        )
        per_product = freq.groupby("product_id").agg(
            score=("score", "sum"),
            customers=("customer_id", "nunique"),
            frequency=("frequency", "sum"),
        )
        per_product = per_product.sort_values("score", ascending=False, kind="stable")

        return self.build(context, [
            (
                row.Index,
                float(row.score),
                [f"Purchased by {int(row.customers)} similar customers"],
                {"frequency": int(row.frequency)},
            )
            for row in per_product.itertuples()
        ])


class ContentBasedSource(ProductSource):
    """Products whose text resembles what the customer already buys."""

    name = "content_based"

    def __init__(self, catalog: Catalog, index: TextIndex, limit: int = 15) -> None:
        super().__init__(catalog)
        self.index = index
        self.limit = limit

    def find(self, context: RankingContext) -> list[Candidate]:
        if not self.index.ready:
            raise SourceUnavailable("product text index is empty")
        history = self.catalog.purchase_history(context.primary_key)
        if history.empty:
            return []

        keywords = " ".join(history["name"].dropna().astype(str))
        preferred = set(history["category"].dropna())
        purchased = set(history["product_id"])
        categories = self.catalog.products.set_index("id")["category"]

        rows = []
        for pid, relevance in self.index.top(keywords, self.limit, exclude=purchased):
            category = categories.get(pid)
            category_score = 0.4 if category in preferred else 0.1
            rows.append((
                pid,
                category_score + min(relevance, 0.6),
                [
                    f"Matches preferred categories: {category}",
                    f"Text similarity score: {round(relevance, 2)}",
                ],
                {},
            ))
        return self.build(context, rows)


class InventoryOptimizedSource(ProductSource):
    """Well-stocked, fast-moving products in the categories the customer buys."""

    name = "inventory_optimization"

    def __init__(self, catalog: Catalog, limit: int = 15) -> None:
        super().__init__(catalog)
        self.limit = limit

    def find(self, context: RankingContext) -> list[Candidate]:
        stock = self.catalog.stock_levels(context.warehouse_id)
        stock = stock[stock["available_stock"] > 0]
        if stock.empty:
            return []

        products = self.catalog.active_products()[["id", "category"]].rename(columns={"id": "product_id"})
        stock = stock.merge(products, on="product_id", how="inner")
        if context.primary_key:
            history = self.catalog.purchase_history(context.primary_key)
            if not history.empty:
                stock = stock[
                    stock["category"].isin(set(history["category"].dropna()))
                    & ~stock["product_id"].isin(set(history["product_id"]))
                ]
        if stock.empty:
            return []

        max_sold = max(float(stock["units_sold_90d"].max()), 1.0)
        coverage = (stock["available_stock"] / (stock["reorder_point"].clip(lower=1) * 3)).clip(upper=1.0)
        stock = stock.assign(score=0.5 * coverage + 0.5 * stock["units_sold_90d"] / max_sold)
        stock = stock.sort_values("score", ascending=False, kind="stable").head(self.limit)

        return self.build(context, [
            (
                row.product_id,
                float(row.score),
                [f"In stock: {int(row.available_stock)} units available"],
                {},
            )
            for row in stock.itertuples(index=False)
        ])


class SeasonalTrendsSource(ProductSource):
    """Products whose last-quarter demand grew over the quarter before."""

    name = "seasonal_trends"

    def __init__(self, catalog: Catalog, window_days: int = 90, limit: int = 10) -> None:
        super().__init__(catalog)
        self.window_days = window_days
        self.limit = limit

    def find(self, context: RankingContext) -> list[Candidate]:
        orders = self.catalog.orders
        as_of = self.catalog.as_of
        window = pd.Timedelta(days=self.window_days)
        recent = orders[orders["order_date"] > as_of - window]
        previous = orders[(orders["order_date"] <= as_of - window) & (orders["order_date"] > as_of - 2 * window)]

        recent_qty = recent.groupby("product_id")["quantity"].sum()
        previous_qty = previous.groupby("product_id")["quantity"].sum()
        trend = pd.DataFrame({"recent": recent_qty, "previous": previous_qty}).fillna(0)
        trend = trend[trend["recent"] > trend["previous"]]
        if trend.empty:
            return []

        trend["score"] = trend["recent"] / (trend["recent"] + trend["previous"])
        trend = trend.sort_values(["score", "recent"], ascending=False, kind="stable").head(self.limit)

        rows = []
        for row in trend.itertuples():
            if row.previous > 0:
                growth = f"Demand up {round((row.recent / row.previous - 1) * 100)}% on the previous quarter"
            else:
                growth = "New demand this quarter"
            rows.append((row.Index, float(row.score), [growth], {}))
        return self.build(context, rows)


# ── Similar products ────────────────────────────────────────────────────


class CategoryMatchSource(ProductSource):
    name = "category_matching"

    def __init__(self, catalog: Catalog, limit: int = 20) -> None:
        super().__init__(catalog)
        self.limit = limit

    def find(self, context: RankingContext) -> list[Candidate]:
        base = self.catalog.product(context.primary_key)
        if base is None:
            return []
        products = self.catalog.active_products()
        same = products[(products["category"] == base["category"]) & (products["id"] != base["id"])]
        same = same.sort_values("name", kind="stable").head(self.limit)
        return self.build(context, [
            (
                row.id,
                0.9 + 0.1 * word_overlap(base["name"], row.name),
                [f"Same category: {row.category}"],
                {},
            )
            for row in same.itertuples(index=False)
        ])


class PriceAlternativeSource(ProductSource):
    """Products in stock within +/- ``price_range_percent`` of the base price."""

    name = "price_alternative"

    def __init__(self, catalog: Catalog, price_range_percent: float = 30.0, limit: int = 15) -> None:
        super().__init__(catalog)
        self.price_range_percent = price_range_percent
        self.limit = limit

    def find(self, context: RankingContext) -> list[Candidate]:
        base = self.catalog.product(context.primary_key)
        if base is None or not base.get("base_price"):
            return []
        price = float(base["base_price"])
        low = price * (1 - self.price_range_percent / 100)
        high = price * (1 + self.price_range_percent / 100)

        products = self.catalog.active_products()
        stock = self.catalog.stock_levels(context.warehouse_id)
        in_stock = set(stock.loc[stock["available_stock"] > 0, "product_id"])
        alt = products[
            products["base_price"].between(low, high)
            & (products["id"] != base["id"])
            & products["id"].isin(in_stock)
        ]
        alt = alt.assign(price_diff=(alt["base_price"] - price).abs())
        alt = alt.sort_values("price_diff", kind="stable").head(self.limit)

        return self.build(context, [
            (
                row.id,
                1 - row.price_diff / price,
                ["Similar price range and functionality"],
                {"price_difference": round(float(row.price_diff), 2)},
            )
            for row in alt.itertuples(index=False)
        ])


class ComplementarySource(ProductSource):
    """In-stock products from categories usually bought alongside the anchors."""

    def __init__(self, catalog: Catalog, name: str = "complementary", limit: int = 10) -> None:
        super().__init__(catalog)
        self.name = name
        self.limit = limit

    def find(self, context: RankingContext) -> list[Candidate]:
        anchors = self.anchors(context)
        products = self.catalog.active_products()
        anchor_categories = products.loc[products["id"].isin(anchors), "category"].drop_duplicates()

        rows = []
        stock = self.catalog.stock_levels(context.warehouse_id)
        for category in anchor_categories:
            targets = CROSS_SELL_CATEGORIES.get(category, [])
            if not targets:
                continue
            matches = products[products["category"].isin(targets) & ~products["id"].isin(anchors)]
            matches = matches.merge(stock, left_on="id", right_on="product_id", how="inner")
            matches = matches[matches["available_stock"] > 0]
            matches = matches.sort_values("available_stock", ascending=False, kind="stable").head(self.limit)
            rows.extend(
                (row.id, 1.0, [f"Frequently bought with {category} products"], {})
                for row in matches.itertuples(index=False)
            )
        return self.build(context, rows)


class UpsellSource(ProductSource):
    """Same-category products priced 1.2x to 2x the base product."""

    name = "upsell"

    def __init__(self, catalog: Catalog, limit: int = 8) -> None:
        super().__init__(catalog)
        self.limit = limit

    def find(self, context: RankingContext) -> list[Candidate]:
        base = self.catalog.product(context.primary_key)
        if base is None or not base.get("base_price"):
            return []
        price = float(base["base_price"])
        products = self.catalog.active_products()
        upsell = products[
            (products["category"] == base["category"])
            & products["base_price"].between(price * 1.2, price * 2.0)
            & (products["id"] != base["id"])
        ].sort_values("base_price", kind="stable").head(self.limit)

        rows = []
        for row in upsell.itertuples(index=False):
            premium = (row.base_price - price) / price * 100
            rows.append((
                row.id,
                1.0,
                [f"Premium option with {premium:.0f}% higher value"],
                {"price_premium_percent": round(premium, 1)},
            ))
        return self.build(context, rows)


# ── Cross-sell ──────────────────────────────────────────────────────────


class FrequentItemsetsSource(ProductSource):
    """Products that appear in the same orders as the anchor products."""

    name = "frequent_itemsets"

    def __init__(self, catalog: Catalog, limit: int = 10) -> None:
        super().__init__(catalog)
        self.limit = limit

    def find(self, context: RankingContext) -> list[Candidate]:
        anchors = set(self.anchors(context))
        if not anchors:
            return []
        orders = self.catalog.recent_orders()
        anchor_orders = set(orders.loc[orders["product_id"].isin(anchors), "order_id"])
        if not anchor_orders:
            return []

        together = orders[orders["order_id"].isin(anchor_orders) & ~orders["product_id"].isin(anchors)]
        counts = together.groupby("product_id")["order_id"].nunique().sort_values(ascending=False, kind="stable")
        counts = counts.head(self.limit)

        return self.build(context, [
            (
                pid,
                count / len(anchor_orders),
                [f"Bought together in {int(count)} orders"],
                {"frequency": int(count)},
            )
            for pid, count in counts.items()
        ])


class SegmentPatternsSource(ProductSource):
    """Products popular with other customers in the caller's industry."""

    name = "segment_patterns"

    def __init__(self, catalog: Catalog, limit: int = 10) -> None:
        super().__init__(catalog)
        self.limit = limit

    def find(self, context: RankingContext) -> list[Candidate]:
        if not context.industry:
            return []
        customers = self.catalog.customers
        peers = customers.loc[
            (customers["industry"].fillna("").astype(str).str.lower() == context.industry.lower())
            & (customers["id"] != context.primary_key),
            "id",
        ]
        if peers.empty:
            return []

        orders = self.catalog.recent_orders()
        owned = set(orders.loc[orders["customer_id"] == context.primary_key, "product_id"])
        peer_orders = orders[orders["customer_id"].isin(set(peers)) & ~orders["product_id"].isin(owned)]
        buyers = peer_orders.groupby("product_id")["customer_id"].nunique()
        buyers = buyers.sort_values(ascending=False, kind="stable").head(self.limit)

        return self.build(context, [
            (
                pid,
                count / len(peers),
                [f"Bought by {int(count)} other {context.industry} customers"],
                {},
            )
            for pid, count in buyers.items()
        ])


# ── Inventory optimisation ──────────────────────────────────────────────


class InventoryMetricSource(ProductSource):
    """Scores every stocked product in scope on one inventory metric.

    ``metric`` is one of ``turnover_rate``, ``inventory_level``,
    ``margin_optimization`` or ``demand_forecast``; each is normalised to
    0..1 across the products in scope.
    """

    METRICS = ("turnover_rate", "inventory_level", "margin_optimization", "demand_forecast")

    def __init__(self, catalog: Catalog, metric: str, demand_window_days: int = 30) -> None:
        super().__init__(catalog)
        if metric not in self.METRICS:
            raise ValueError(f"unknown inventory metric {metric!r}")
        self.name = metric
        self.demand_window_days = demand_window_days

    def _scope(self, context: RankingContext) -> pd.DataFrame:
        stock = self.catalog.stock_levels(context.warehouse_id)
        products = self.catalog.active_products()[["id", "category", "base_price", "cost"]]
        scope = stock.merge(products, left_on="product_id", right_on="id", how="inner")
        if context.category:
            scope = scope[scope["category"].fillna("").astype(str).str.lower() == context.category.lower()]
        return scope

    def find(self, context: RankingContext) -> list[Candidate]:
        scope = self._scope(context)
        if scope.empty:
            return []

        if self.name == "turnover_rate":
            raw = scope["units_sold_90d"] / scope["current_stock"].clip(lower=1)
            label = "Turnover {:.1f}x stock over 90 days"
        elif self.name == "inventory_level":
            raw = scope["available_stock"].astype(float)
            label = "{:.0f} units available"
        elif self.name == "margin_optimization":
            raw = ((scope["base_price"] - scope["cost"]) / scope["base_price"] * 100).fillna(0).clip(lower=0)
            label = "Margin {:.0f}%"
        else:
            orders = self.catalog.orders
            since = self.catalog.as_of - pd.Timedelta(days=self.demand_window_days)
            demand = orders[orders["order_date"] > since].groupby("product_id")["quantity"].sum()
            raw = scope["product_id"].map(demand).fillna(0)
            label = "{:.0f} units ordered in the last 30 days"

        peak = float(raw.max())
        scores = raw / peak if peak > 0 else raw * 0.0
        scope = scope.assign(raw=raw, score=scores).sort_values("score", ascending=False, kind="stable")

        rows = []
        for row in scope.itertuples(index=False):
            extra = {"stock_status": "low_stock" if row.available_stock <= row.reorder_point else "in_stock"}
            rows.append((row.product_id, float(row.score), [label.format(row.raw)], extra))
        return self.build(context, rows)
