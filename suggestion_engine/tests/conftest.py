from __future__ import annotations

import pandas as pd
import pytest

from suggestion_engine.analytics.store import clear_events
from suggestion_engine.catalog.data_store import Catalog
from suggestion_engine.engine import build_engine
from suggestion_engine.ranking.aggregator import CandidateSource
from suggestion_engine.ranking.cache import ResultCache


class FakeClock:
    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class StaticSource(CandidateSource):
    """Returns fixed ``(identity, score, attributes)`` rows."""

    def __init__(self, name: str, rows: list[tuple]) -> None:
        self.name = name
        self.rows = rows
        self.calls = 0

    def find(self, context):
        self.calls += 1
        return [self.candidate(row[0], row[1], row[2] if len(row) > 2 else None) for row in self.rows]


def make_catalog() -> Catalog:
    products = pd.DataFrame([
        ("P1", "Servo Motor 400W", "Industrial Parts", "AC servo motor with encoder", 100.0, 60.0, "Active", None, None, None),
        ("P2", "Servo Motor 750W", "Industrial Parts", "High torque servo motor with brake", 130.0, 110.0, "Active", None, None, None),
        ("P3", "Premium Servo Motor 1kW", "Industrial Parts", "Precision servo motor with absolute encoder", 180.0, 100.0, "Active", "gold", None, None),
        ("P4", "Safety Gloves", "Safety Equipment", "Cut resistant safety gloves", 10.0, 4.0, "Active", None, None, None),
        ("P5", "Multipurpose Grease", "Lubricants", "Lithium grease cartridge", 8.0, 4.0, "Active", None, None, None),
        ("P6", "Hydraulic Pump", "Hydraulic Systems", "Gear pump with motor", 500.0, 420.0, "Active", None, "defense", None),
        ("P7", "Legacy Relay", "Electrical Components", "Discontinued relay", 20.0, 10.0, "Discontinued", None, None, None),
        ("P8", "Torque Wrench", "Maintenance Tools", "Click torque wrench", 90.0, 50.0, "Active", None, None, "maintenance"),
    ], columns=[
        "id", "name", "category", "description", "base_price", "cost",
        "status", "min_tier", "restricted_industries", "contexts",
    ])
    inventory = pd.DataFrame([
        ("P1", "W1", 12, 10, 5, 30),
        ("P2", "W1", 6, 5, 5, 10),
        ("P3", "W1", 4, 4, 5, 2),
        ("P4", "W1", 210, 200, 5, 300),
        ("P5", "W1", 0, 0, 5, 40),
        ("P6", "W1", 3, 3, 5, 1),
        ("P8", "W1", 7, 7, 5, 5),
    ], columns=["product_id", "warehouse_id", "current_stock", "available_stock", "reorder_point", "units_sold_90d"])
    customers = pd.DataFrame([
        ("C1", "Acme Fabrication", "automotive", "gold"),
        ("C2", "Borealis Automation", "automotive", "standard"),
        ("C3", "Cobalt Defense", "defense", "standard"),
        ("C4", "Newco Foods", "food", "standard"),
    ], columns=["id", "name", "industry", "tier"])
    orders = pd.DataFrame([
        ("O1", "C1", "P1", 2, 100.0, "2026-03-01"),
        ("O1", "C1", "P4", 10, 10.0, "2026-03-01"),
        ("O1", "C1", "P5", 5, 8.0, "2026-03-01"),
        ("O2", "C2", "P1", 1, 100.0, "2026-04-01"),
        ("O2", "C2", "P4", 5, 10.0, "2026-04-01"),
        ("O2", "C2", "P5", 3, 8.0, "2026-04-01"),
        ("O2", "C2", "P2", 1, 130.0, "2026-04-01"),
        ("O3", "C2", "P8", 1, 90.0, "2026-09-30"),
        ("O3", "C2", "P2", 2, 130.0, "2026-09-30"),
        ("O4", "C3", "P6", 1, 500.0, "2026-09-15"),
        ("O4", "C3", "P4", 20, 10.0, "2026-09-15"),
    ], columns=["order_id", "customer_id", "product_id", "quantity", "unit_price", "order_date"])
    search_terms = pd.DataFrame([
        ("servo motor", "product", 120, "Industrial Parts"),
        ("servo drive", "product", 40, "Electrical Components"),
        ("safety gloves", "product", 90, "Safety Equipment"),
        ("motor controller", "product", 30, "Electrical Components"),
        ("sensor", "general", 50, "Electrical Components"),
        ("open orders", "order", 20, None),
    ], columns=["term", "context", "search_count", "category"])
    return Catalog(products, inventory, customers, orders, search_terms)


@pytest.fixture(scope="session")
def catalog() -> Catalog:
    return make_catalog()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def engine(catalog, clock):
    return build_engine(catalog, cache=ResultCache(clock=clock))


@pytest.fixture(autouse=True)
def _reset_events():
    clear_events()
    yield
    clear_events()
