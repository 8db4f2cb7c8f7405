from __future__ import annotations

import time
from collections import Counter, defaultdict
from typing import Any

TIMEFRAME_DAYS = {"1d": 1, "7d": 7, "30d": 30, "90d": 90}


def _rate(part: int, total: int) -> float:
    return round(part / total * 100, 1) if total else 0.0


def compute_analytics(events: list[dict[str, Any]]) -> dict[str, Any]:
    requests = [e for e in events if e["type"] == "feature_request"]
    total = len(requests)

    # Average response time
    times = [r["response_time_ms"] for r in requests if "response_time_ms" in r]
    avg_time = round(sum(times) / len(times), 1) if times else 0.0

    # Requests per feature
    by_feature = Counter(r.get("feature", "unknown") for r in requests)

    # Top primary keys (customers, products, queries)
    key_counter: Counter[str] = Counter()
    for r in requests:
        if r.get("primary_key"):
            key_counter[f"{r['feature']}:{r['primary_key']}"] += 1
    top_keys = [{"name": n, "count": c} for n, c in key_counter.most_common(10)]

    # Errors
    errors = Counter(r["error_code"] for r in requests if not r.get("success") and r.get("error_code"))

    cache_hits = sum(1 for r in requests if r.get("cache_hit"))
    empty = sum(1 for r in requests if r.get("success") and r.get("results_returned", 0) == 0)

    return {
        "total_requests": total,
        "avg_response_time_ms": avg_time,
        "requests_by_feature": dict(by_feature),
        "top_primary_keys": top_keys,
        "errors": dict(errors),
        "empty_result_rate": _rate(empty, total),
        "cache_stats": {
            "hits": cache_hits,
            "misses": total - cache_hits,
            "hit_rate": _rate(cache_hits, total),
        },
    }


def compute_search_analytics(
    events: list[dict[str, Any]],
    timeframe: str = "7d",
    limit: int = 20,
    include_zero_results: bool = False,
    now: float | None = None,
) -> dict[str, Any]:
    """Popular and trending queries over a trailing window.

    A query is trending when its searches in the recent half of the window
    outnumber the older half by more than 1.5x, with more than five recent
    searches. Queries never searched in the older half cannot trend.
    """
    now = time.time() if now is None else now
    days = TIMEFRAME_DAYS.get(timeframe, 7)
    window_start = now - days * 86400
    half_point = now - days * 86400 / 2

    searches = [
        e for e in events
        if e["type"] == "search_query" and e["timestamp"] >= window_start
    ]

    grouped: dict[tuple[str, str], list[dict[str, Any]]] = defaultdict(list)
    for s in searches:
        grouped[(s["query"], s.get("context") or "general")].append(s)

    popular = sorted(
        (
            {
                "search_term": term,
                "search_context": ctx,
                "total_searches": len(rows),
                "unique_users": len({r.get("user_id") for r in rows if r.get("user_id")}),
                "last_searched": max(r["timestamp"] for r in rows),
            }
            for (term, ctx), rows in grouped.items()
        ),
        key=lambda p: (-p["total_searches"], p["search_term"]),
    )[:limit]

    trending = []
    for (term, ctx), rows in grouped.items():
        recent = sum(1 for r in rows if r["timestamp"] >= half_point)
        older = len(rows) - recent
        if older == 0:
            continue
        ratio = recent / older
        if recent > 5 and ratio > 1.5:
            trending.append({
                "search_term": term,
                "search_context": ctx,
                "recent_searches": recent,
                "older_searches": older,
                "trend_ratio": round(ratio, 2),
            })
    trending.sort(key=lambda t: (-t["trend_ratio"], t["search_term"]))

    times = [s["response_time_ms"] for s in searches if "response_time_ms" in s]
    zero = [s for s in searches if s.get("results_returned", 0) == 0]
    analytics: dict[str, Any] = {
        "popular_queries": popular,
        "trending_queries": trending[:limit],
        "performance_metrics": {
            "total_searches": len(searches),
            "unique_queries": len({s["query"] for s in searches}),
            "avg_response_time_ms": round(sum(times) / len(times), 1) if times else 0.0,
            "cache_hit_rate": _rate(sum(1 for s in searches if s.get("cache_hit")), len(searches)),
            "zero_result_rate": _rate(len(zero), len(searches)),
        },
        "category_distribution": dict(Counter(s.get("context") or "general" for s in searches)),
    }

    if include_zero_results:
        zero_counter = Counter(s["query"] for s in zero)
        analytics["zero_result_queries"] = [
            {"search_term": q, "searches": c} for q, c in zero_counter.most_common(limit)
        ]

    return analytics


def compute_query_analytics(events: list[dict[str, Any]], query: str) -> dict[str, Any]:
    """History of one query in the search log."""
    rows = [e for e in events if e["type"] == "search_query" and e["query"] == query.lower()]
    results = [r.get("results_returned", 0) for r in rows]
    return {
        "total_searches": len(rows),
        "unique_users": len({r.get("user_id") for r in rows if r.get("user_id")}),
        "avg_results_returned": round(sum(results) / len(results), 1) if results else 0.0,
        "last_searched": max((r["timestamp"] for r in rows), default=None),
    }
