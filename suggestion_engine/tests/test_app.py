from __future__ import annotations

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from suggestion_engine.app import app, main
from suggestion_engine.engine import get_engine

client = TestClient(app)


@pytest.fixture(autouse=True)
def _use_test_engine(engine):
    app.dependency_overrides[get_engine] = lambda: engine
    yield
    app.dependency_overrides.clear()


def test_health():
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_product_recommendations():
    resp = client.get("/ai/product-recommendations", params={"customer_id": "C1", "limit": 3})
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["feature"] == "recommendations"
    assert len(body["items"]) <= 3
    assert body["cached"] is False
    assert "status_code" not in body


def test_product_recommendations_missing_customer():
    resp = client.get("/ai/product-recommendations")
    assert resp.status_code == 400
    body = resp.json()
    assert body == {
        "success": False,
        "error_code": "MISSING_PARAMETER",
        "error": "customer_id is required",
        "execution_time_ms": body["execution_time_ms"],
    }


def test_product_recommendations_unknown_customer():
    resp = client.get("/ai/product-recommendations", params={"customer_id": "C999"})
    assert resp.status_code == 404
    assert resp.json()["error_code"] == "CUSTOMER_NOT_FOUND"


def test_similar_products():
    resp = client.get("/ai/similar-products/P1")
    assert resp.status_code == 200
    body = resp.json()
    assert body["metadata"]["target_product"]["id"] == "P1"
    assert all(item["identity"] != "P1" for item in body["items"])


def test_cross_sell_with_current_products():
    resp = client.get("/ai/cross-sell/C1", params={"current_products": ["P1", "P4"]})
    assert resp.status_code == 200
    body = resp.json()
    assert body["metadata"]["current_products_count"] == 2
    ids = [item["identity"] for item in body["items"]]
    assert "P1" not in ids and "P4" not in ids


def test_inventory_suggestions_bad_strategy():
    resp = client.get("/ai/inventory-suggestions", params={"strategy": "hoarding"})
    assert resp.status_code == 400
    assert resp.json()["error_code"] == "INVALID_PARAMETER"


def test_search_suggestions_cached_on_repeat():
    first = client.get("/ai/search-suggestions", params={"query": "servo"}).json()
    second = client.get("/ai/search-suggestions", params={"query": "servo"}).json()
    assert first["cached"] is False
    assert second["cached"] is True
    assert first["items"] == second["items"]


def test_autocomplete_and_spell_check():
    resp = client.get("/ai/autocomplete", params={"query": "saf"})
    assert resp.json()["items"][0]["identity"] == "safety gloves"

    resp = client.get("/ai/spell-check", params={"query": "sevro"})
    assert resp.status_code == 200
    assert resp.json()["metadata"]["needs_correction"] is True


def test_semantic_search_with_intent():
    resp = client.get("/ai/semantic-search", params={"query": "servo in stock", "include_intent": "true"})
    assert resp.json()["metadata"]["search_intent"]["type"] == "availability_check"


def test_search_analytics_endpoint():
    client.get("/ai/search-suggestions", params={"query": "servo"})
    resp = client.get("/ai/search-analytics", params={"timeframe": "1d"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["timeframe"] == "1d"
    assert body["analytics"]["popular_queries"][0]["search_term"] == "servo"


def test_cache_stats_and_clear():
    client.get("/ai/search-suggestions", params={"query": "servo"})
    client.get("/ai/search-suggestions", params={"query": "servo"})
    client.get("/ai/autocomplete", params={"query": "saf"})

    stats = client.get("/cache/stats").json()
    assert stats["enabled"] is True
    assert stats["hits"] == 1
    assert stats["size"] == 2

    resp = client.delete("/cache", params={"namespace": "autocomplete"})
    assert resp.json()["removed"] == 1
    assert client.get("/cache/stats").json()["size"] == 1


def test_analytics_endpoint():
    client.get("/ai/similar-products/P1")
    client.get("/ai/similar-products/NOPE")
    body = client.get("/analytics").json()
    assert body["total_requests"] == 2
    assert body["errors"] == {"PRODUCT_NOT_FOUND": 1}


def test_non_numeric_limit_returns_error_response():
    resp = client.get("/ai/product-recommendations", params={"customer_id": "C1", "limit": "many"})
    assert resp.status_code == 400
    body = resp.json()
    assert body["success"] is False
    assert body["error_code"] == "INVALID_PARAMETER"
    assert "limit" in body["error"]
    assert "detail" not in body


def test_non_numeric_price_and_distance_return_error_response():
    resp = client.get("/ai/product-recommendations", params={"customer_id": "C1", "price_max": "cheap"})
    assert resp.status_code == 400
    assert resp.json()["error_code"] == "INVALID_PARAMETER"

    resp = client.get("/ai/spell-check", params={"query": "sevro", "max_distance": "far"})
    assert resp.status_code == 400
    assert resp.json()["error_code"] == "INVALID_PARAMETER"


def test_main_serves_app_with_uvicorn(monkeypatch):
    monkeypatch.setenv("PORT", "9001")
    with patch("suggestion_engine.app.uvicorn.run") as run:
        main()
    run.assert_called_once()
    assert run.call_args.args == ("suggestion_engine.app:app",)
    assert run.call_args.kwargs["port"] == 9001
