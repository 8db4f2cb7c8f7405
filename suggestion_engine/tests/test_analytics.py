from __future__ import annotations

from suggestion_engine.analytics.aggregator import compute_analytics, compute_search_analytics
from suggestion_engine.analytics.store import get_events, record_event

NOW = 2_000_000_000.0
DAY = 86400


def _search(query, ts, results=3, user=None, context="product"):
    record_event("search_query", {
        "query": query,
        "context": context,
        "user_id": user,
        "results_returned": results,
        "response_time_ms": 4.0,
        "cache_hit": False,
    }, timestamp=ts)


def test_analytics_empty():
    body = compute_analytics(get_events())
    assert body["total_requests"] == 0
    assert body["avg_response_time_ms"] == 0.0
    assert body["cache_stats"]["hit_rate"] == 0.0


def test_analytics_tracks_requests(engine):
    engine.handle("recommendations", {"customer_id": "C1"})
    engine.handle("recommendations", {"customer_id": "C1"})
    engine.handle("similar_products", {"product_id": "NOPE"})

    body = compute_analytics(get_events())
    assert body["total_requests"] == 3
    assert body["requests_by_feature"] == {"recommendations": 2, "similar_products": 1}
    assert body["errors"] == {"PRODUCT_NOT_FOUND": 1}
    assert body["cache_stats"]["hits"] == 1
    assert body["top_primary_keys"][0] == {"name": "recommendations:C1", "count": 2}


def test_trending_requires_growth_and_volume():
    # 7d window: older half is 3.5-7 days ago
    for _ in range(2):
        _search("valve", NOW - 5 * DAY)
    for _ in range(6):
        _search("valve", NOW - 1 * DAY)
    for _ in range(3):
        _search("sensor", NOW - 5 * DAY)
    for _ in range(3):
        _search("sensor", NOW - 1 * DAY)

    body = compute_search_analytics(get_events(), timeframe="7d", now=NOW)
    trending = body["trending_queries"]
    assert [t["search_term"] for t in trending] == ["valve"]
    assert trending[0]["trend_ratio"] == 3.0


def test_window_excludes_old_searches():
    _search("servo", NOW - 10 * DAY)
    _search("servo", NOW - DAY / 2, user="u1")
    _search("servo", NOW - DAY / 4, user="u2")

    body = compute_search_analytics(get_events(), timeframe="1d", now=NOW)
    popular = body["popular_queries"][0]
    assert popular["total_searches"] == 2
    assert popular["unique_users"] == 2
    assert body["category_distribution"] == {"product": 2}
    assert "zero_result_queries" not in body


def test_zero_result_queries():
    _search("zzz", NOW - 60, results=0)
    _search("zzz", NOW - 30, results=0)
    _search("servo", NOW - 30)

    body = compute_search_analytics(get_events(), timeframe="1d", include_zero_results=True, now=NOW)
    assert body["zero_result_queries"] == [{"search_term": "zzz", "searches": 2}]
    assert body["performance_metrics"]["zero_result_rate"] == 66.7
