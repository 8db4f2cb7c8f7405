"""
Configuration for the in-memory product catalog.

The catalog is the black-box data source behind every candidate strategy:
products, stock levels, customers, order lines and the search-term corpus,
each loaded from one CSV file in ``data_dir``.
"""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_FILE = Path(__file__).resolve().parent.parent.parent / ".env"
load_dotenv(ENV_FILE)


@dataclass(frozen=True)
class CatalogConfig:
    data_dir: Path = Path(
        os.getenv("CATALOG_DATA_DIR", str(Path(__file__).resolve().parent.parent / "data"))
    )
    history_months: int = 24
    products_filename: str = "products.csv"
    inventory_filename: str = "inventory.csv"
    customers_filename: str = "customers.csv"
    orders_filename: str = "orders.csv"
    search_terms_filename: str = "search_terms.csv"

    def path(self, filename: str) -> Path:
        return self.data_dir / filename


DEFAULT_CATALOG_CONFIG = CatalogConfig()
