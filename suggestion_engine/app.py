from __future__ import annotations

import os

import uvicorn
from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .analytics.aggregator import compute_analytics
from .analytics.store import get_events
from .engine import SuggestionEngine, get_engine
from .ranking.models import ErrorResponse

app = FastAPI(title="Suggestion Engine API", version="1.0.0")


def _respond(result) -> JSONResponse:
    status = result.status_code if isinstance(result, ErrorResponse) else 200
    return JSONResponse(status_code=status, content=result.model_dump(mode="json"))


@app.exception_handler(RequestValidationError)
async def invalid_parameter(request: Request, exc: RequestValidationError) -> JSONResponse:
    err = exc.errors()[0]
    # loc is ("query", name) for query params
    loc = ".".join(str(part) for part in err.get("loc", ())[1:]) or "request"
    return _respond(ErrorResponse(
        error_code="INVALID_PARAMETER",
        error=f"Invalid value for {loc}: {err.get('msg')}",
        status_code=400,
    ))


# ── Public endpoints ─────────────────────────────────────────────────────


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


# ── Product suggestions ──────────────────────────────────────────────────


@app.get("/ai/product-recommendations")
def product_recommendations(
    customer_id: str | None = None,
    limit: int | None = None,
    context: str | None = None,
    customer_tier: str | None = None,
    industry: str | None = None,
    price_min: float | None = None,
    price_max: float | None = None,
    include_out_of_stock: bool = False,
    engine: SuggestionEngine = Depends(get_engine),
) -> JSONResponse:
    return _respond(engine.handle("recommendations", {
        "customer_id": customer_id,
        "limit": limit,
        "context": context,
        "customer_tier": customer_tier,
        "industry": industry,
        "price_min": price_min,
        "price_max": price_max,
        "include_out_of_stock": include_out_of_stock,
    }))


@app.get("/ai/similar-products/{product_id}")
def similar_products(
    product_id: str,
    limit: int | None = None,
    context: str | None = None,
    customer_tier: str | None = None,
    include_out_of_stock: bool = False,
    engine: SuggestionEngine = Depends(get_engine),
) -> JSONResponse:
    return _respond(engine.handle("similar_products", {
        "product_id": product_id,
        "limit": limit,
        "context": context,
        "customer_tier": customer_tier,
        "include_out_of_stock": include_out_of_stock,
    }))


@app.get("/ai/cross-sell/{customer_id}")
def cross_sell(
    customer_id: str,
    current_products: list[str] | None = Query(None),
    limit: int | None = None,
    context: str | None = None,
    engine: SuggestionEngine = Depends(get_engine),
) -> JSONResponse:
    return _respond(engine.handle("cross_sell", {
        "customer_id": customer_id,
        "current_products": current_products,
        "limit": limit,
        "context": context,
    }))


@app.get("/ai/inventory-suggestions")
def inventory_suggestions(
    category: str | None = None,
    warehouse_id: str | None = None,
    strategy: str | None = None,
    limit: int | None = None,
    engine: SuggestionEngine = Depends(get_engine),
) -> JSONResponse:
    return _respond(engine.handle("inventory_suggestions", {
        "category": category,
        "warehouse_id": warehouse_id,
        "strategy": strategy,
        "limit": limit,
    }))


# ── Search suggestions ───────────────────────────────────────────────────


@app.get("/ai/search-suggestions")
def search_suggestions(
    query: str | None = None,
    limit: int | None = None,
    context: str | None = None,
    include_analytics: bool = False,
    user_id: str | None = None,
    engine: SuggestionEngine = Depends(get_engine),
) -> JSONResponse:
    return _respond(engine.handle("search_suggestions", {
        "query": query,
        "limit": limit,
        "context": context,
        "include_analytics": include_analytics,
        "user_id": user_id,
    }))


@app.get("/ai/autocomplete")
def autocomplete(
    query: str | None = None,
    limit: int | None = None,
    context: str | None = None,
    engine: SuggestionEngine = Depends(get_engine),
) -> JSONResponse:
    return _respond(engine.handle("autocomplete", {"query": query, "limit": limit, "context": context}))


@app.get("/ai/spell-check")
def spell_check(
    query: str | None = None,
    max_distance: int | None = None,
    limit: int | None = None,
    engine: SuggestionEngine = Depends(get_engine),
) -> JSONResponse:
    return _respond(engine.handle("spell_check", {
        "query": query,
        "max_distance": max_distance,
        "limit": limit,
    }))


@app.get("/ai/semantic-search")
def semantic_search(
    query: str | None = None,
    limit: int | None = None,
    context: str | None = None,
    include_intent: bool = False,
    engine: SuggestionEngine = Depends(get_engine),
) -> JSONResponse:
    return _respond(engine.handle("semantic_search", {
        "query": query,
        "limit": limit,
        "context": context,
        "include_intent": include_intent,
    }))


@app.get("/ai/search-analytics")
def search_analytics(
    timeframe: str = "7d",
    limit: int = 20,
    include_zero_results: bool = False,
    engine: SuggestionEngine = Depends(get_engine),
) -> JSONResponse:
    return _respond(engine.search_analytics(
        timeframe=timeframe,
        limit=limit,
        include_zero_results=include_zero_results,
    ))


# ── Admin endpoints ──────────────────────────────────────────────────────


@app.get("/cache/stats")
def cache_stats(engine: SuggestionEngine = Depends(get_engine)) -> dict:
    if engine.cache is None:
        return {"enabled": False}
    return {"enabled": True, **engine.cache.stats()}


@app.delete("/cache")
def clear_cache(
    namespace: str | None = None,
    engine: SuggestionEngine = Depends(get_engine),
) -> dict:
    removed = engine.cache.clear(namespace) if engine.cache is not None else 0
    return {"status": "cleared", "namespace": namespace, "removed": removed}


@app.get("/analytics")
def analytics() -> dict:
    return compute_analytics(get_events())


def main() -> None:
    uvicorn.run(
        "suggestion_engine.app:app",
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8000")),
    )


if __name__ == "__main__":
    main()
