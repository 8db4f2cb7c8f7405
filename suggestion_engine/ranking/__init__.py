"""
Weighted multi-strategy ranking core.

Responsibilities:
- Gather raw candidates from independent strategies, concurrently and fail-soft.
- Fuse per-strategy scores into one composite score and collapse duplicates.
- Apply fail-open business-rule filters.
- Rank with secondary adjustments and serve results through a TTL cache.
"""
