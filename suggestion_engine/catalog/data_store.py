from __future__ import annotations

from typing import Any, Iterable

import numpy as np
import pandas as pd

from .config import DEFAULT_CATALOG_CONFIG, CatalogConfig

TIER_DISCOUNTS = {"standard": 0.0, "silver": 0.05, "gold": 0.10, "platinum": 0.15}

_PRODUCT_DEFAULTS: dict[str, Any] = {
    "sku": None,
    "category": "",
    "description": "",
    "cost": np.nan,
    "status": "Active",
    "min_tier": None,
    "restricted_industries": None,
    "contexts": None,
}
_STOCK_COLUMNS = ["current_stock", "available_stock", "reorder_point", "units_sold_90d"]

ATTRIBUTE_COLUMNS = [
    "id",
    "name",
    "sku",
    "category",
    "base_price",
    "price",
    "margin_percentage",
    "available_quantity",
    "reorder_point",
    "units_sold_90d",
    "min_tier",
    "restricted_industries",
    "contexts",
]


def records(df: pd.DataFrame) -> list[dict[str, Any]]:
    """DataFrame rows as plain dicts with NaN replaced by None."""
    return df.astype(object).where(pd.notna(df), None).to_dict(orient="records")


class Catalog:
    """Read-only view over the catalog tables.

    Sources call into this concurrently; nothing here mutates the frames
    after construction.
    """

    def __init__(
        self,
        products: pd.DataFrame,
        inventory: pd.DataFrame,
        customers: pd.DataFrame,
        orders: pd.DataFrame,
        search_terms: pd.DataFrame | None = None,
        history_months: int = DEFAULT_CATALOG_CONFIG.history_months,
        as_of: pd.Timestamp | str | None = None,
    ) -> None:
        self.products = self._prepare_products(products)
        self.inventory = self._prepare_inventory(inventory)
        self.customers = self._prepare_customers(customers)
        self.orders = self._prepare_orders(orders)
        self.search_terms = self._prepare_search_terms(search_terms)
        self.history_months = history_months

        # Snapshot time defaults to the latest order so history windows are
        # stable for a given data set.
        if as_of is not None:
            self.as_of = pd.Timestamp(as_of)
        elif not self.orders.empty:
            self.as_of = self.orders["order_date"].max()
        else:
            self.as_of = pd.Timestamp.now()

    @classmethod
    def from_directory(cls, config: CatalogConfig = DEFAULT_CATALOG_CONFIG) -> "Catalog":
        search_path = config.path(config.search_terms_filename)
        return cls(
            products=pd.read_csv(config.path(config.products_filename)),
            inventory=pd.read_csv(config.path(config.inventory_filename)),
            customers=pd.read_csv(config.path(config.customers_filename)),
            orders=pd.read_csv(config.path(config.orders_filename)),
            search_terms=pd.read_csv(search_path) if search_path.exists() else None,
            history_months=config.history_months,
        )

    # ── Preparation ────────────────────────────────────────────────────

    @staticmethod
    def _prepare_products(df: pd.DataFrame) -> pd.DataFrame:
        df = df.copy()
        for col, default in _PRODUCT_DEFAULTS.items():
            if col not in df.columns:
                df[col] = default
        df["id"] = df["id"].astype(str)
        df["name"] = df["name"].fillna("").astype(str)
        df["description"] = df["description"].fillna("").astype(str)
        df["status"] = df["status"].fillna("Active")
        df["base_price"] = pd.to_numeric(df["base_price"], errors="coerce")
        df["cost"] = pd.to_numeric(df["cost"], errors="coerce")

        # Lowercase for case-insensitive lookup
        df["name_lower"] = df["name"].str.lower()
        df["category_lower"] = df["category"].fillna("").str.lower()
        return df

    @staticmethod
    def _prepare_inventory(df: pd.DataFrame) -> pd.DataFrame:
        df = df.copy()
        df["product_id"] = df["product_id"].astype(str)
        df["warehouse_id"] = df["warehouse_id"].astype(str)
        for col in _STOCK_COLUMNS:
            if col not in df.columns:
                df[col] = 0
            df[col] = pd.to_numeric(df[col], errors="coerce").fillna(0)
        return df

    @staticmethod
    def _prepare_customers(df: pd.DataFrame) -> pd.DataFrame:
        df = df.copy()
        df["id"] = df["id"].astype(str)
        if "industry" not in df.columns:
            df["industry"] = None
        if "tier" not in df.columns:
            df["tier"] = "standard"
        df["tier"] = df["tier"].fillna("standard").str.lower()
        return df

    @staticmethod
    def _prepare_orders(df: pd.DataFrame) -> pd.DataFrame:
        df = df.copy()
        for col in ("order_id", "customer_id", "product_id"):
            df[col] = df[col].astype(str)
        df["order_date"] = pd.to_datetime(df["order_date"])
        if "quantity" not in df.columns:
            df["quantity"] = 1
        df["quantity"] = pd.to_numeric(df["quantity"], errors="coerce").fillna(1)
        df["unit_price"] = pd.to_numeric(df["unit_price"], errors="coerce")
        return df

    @staticmethod
    def _prepare_search_terms(df: pd.DataFrame | None) -> pd.DataFrame:
        if df is None:
            df = pd.DataFrame(columns=["term", "context", "search_count", "category"])
        df = df.copy()
        if "category" not in df.columns:
            df["category"] = None
        df["term"] = df["term"].astype(str).str.strip()
        df["term_lower"] = df["term"].str.lower()
        df["context"] = df["context"].fillna("general")
        df["search_count"] = pd.to_numeric(df["search_count"], errors="coerce").fillna(1).astype(int)
        return df

    # ── Lookups ────────────────────────────────────────────────────────

    def product(self, product_id: str) -> dict[str, Any] | None:
        match = self.products[self.products["id"] == str(product_id)]
        if match.empty:
            return None
        return records(match.drop(columns=["name_lower", "category_lower"]))[0]

    def customer(self, customer_id: str) -> dict[str, Any] | None:
        match = self.customers[self.customers["id"] == str(customer_id)]
        if match.empty:
            return None
        return records(match)[0]

    def active_products(self) -> pd.DataFrame:
        return self.products[self.products["status"].str.lower() == "active"]

    def recent_orders(self) -> pd.DataFrame:
        cutoff = self.as_of - pd.DateOffset(months=self.history_months)
        return self.orders[self.orders["order_date"] >= cutoff]

    def purchase_history(self, customer_id: str) -> pd.DataFrame:
        """Order lines of one customer inside the history window, with product details."""
        orders = self.recent_orders()
        lines = orders[orders["customer_id"] == str(customer_id)]
        details = self.products[["id", "name", "category"]].rename(columns={"id": "product_id"})
        return lines.merge(details, on="product_id", how="left")

    def stock_levels(self, warehouse_id: str | None = None) -> pd.DataFrame:
        inv = self.inventory
        if warehouse_id:
            inv = inv[inv["warehouse_id"] == str(warehouse_id)]
        return inv.groupby("product_id", as_index=False)[_STOCK_COLUMNS].sum()

    def product_attributes(
        self,
        product_ids: Iterable[str],
        tier: str | None = None,
        warehouse_id: str | None = None,
    ) -> dict[str, dict[str, Any]]:
        """Display and filter attributes keyed by product id.

        ``price`` is the tier-discounted price and ``margin_percentage`` is
        computed against it. Only active products are returned. Products
        without stock rows get no ``available_quantity`` so stock filters
        fail open for them.
        """
        ids = {str(p) for p in product_ids}
        products = self.active_products()
        view = products[products["id"].isin(ids)]
        if view.empty:
            return {}

        stock = self.stock_levels(warehouse_id).rename(columns={"product_id": "id"})
        view = view.merge(stock, on="id", how="left")

        discount = TIER_DISCOUNTS.get((tier or "standard").lower(), 0.0)
        view["price"] = (view["base_price"] * (1 - discount)).round(2)
        margin = (view["price"] - view["cost"]) / view["price"] * 100
        view["margin_percentage"] = margin.replace([np.inf, -np.inf], np.nan).round(2)
        view["available_quantity"] = view["available_stock"]

        out: dict[str, dict[str, Any]] = {}
        for row in records(view[ATTRIBUTE_COLUMNS]):
            pid = row.pop("id")
            out[pid] = row
        return out


_catalog: Catalog | None = None


def get_catalog() -> Catalog:
    """Return the process-wide catalog, loading it on first call."""
    global _catalog
    if _catalog is None:
        _catalog = Catalog.from_directory()
    return _catalog
