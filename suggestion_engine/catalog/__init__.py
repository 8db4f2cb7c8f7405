"""
Catalog data access.

Responsibilities:
- Load products, stock, customers, order history and search terms into pandas.
- Normalize text columns for case-insensitive lookup.
- Derive per-customer pricing, margin and availability attributes.
"""
