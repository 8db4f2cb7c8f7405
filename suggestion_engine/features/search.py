from __future__ import annotations

import logging
import time
from typing import Any

from pydantic import BaseModel, Field

from ..analytics.aggregator import TIMEFRAME_DAYS, compute_query_analytics, compute_search_analytics
from ..analytics.store import get_events
from ..ranking.cache import ResultCache, make_fingerprint
from ..ranking.errors import EngineError, InputError
from ..ranking.models import ErrorResponse, RankingContext, StrategyConfig
from ..ranking.orchestrator import FeatureDefinition, Preparation
from ..sources.search import (
    CategoryMatchTextSource,
    ConceptualMatchSource,
    ExactMatchSource,
    FrequencyBasedSource,
    FuzzyMatchSource,
    LevenshteinSource,
    PhoneticSource,
    PopularSearchSource,
    PrefixMatchSource,
    SemanticMatchSource,
    SemanticSimilaritySource,
    SuggestionCorpus,
)
from ..sources.text import analyze_intent, sanitize_query

logger = logging.getLogger(__name__)

SEARCH_SUGGESTIONS = FeatureDefinition(
    name="search_suggestions",
    strategies=(
        StrategyConfig("exact_match", 1.0),
        StrategyConfig("prefix_match", 0.8),
        StrategyConfig("fuzzy_match", 0.6),
        StrategyConfig("semantic_match", 0.7),
        StrategyConfig("popular_searches", 0.4),
        StrategyConfig("category_match", 0.5),
    ),
    ttl=300,
    default_limit=10,
    max_limit=25,
    primary_key="query",
    normalize_key=sanitize_query,
    min_query_length=2,
    log_queries=True,
    failure_code="SEARCH_SUGGESTIONS_FAILED",
    failure_message="Failed to generate search suggestions",
)

AUTOCOMPLETE = FeatureDefinition(
    name="autocomplete",
    strategies=(
        StrategyConfig("prefix_match", 0.8),
        StrategyConfig("popular_completion", 0.4),
    ),
    ttl=120,
    default_limit=8,
    max_limit=15,
    primary_key="query",
    normalize_key=sanitize_query,
    min_query_length=2,
    default_context="product",
    failure_code="AUTOCOMPLETE_FAILED",
    failure_message="Autocomplete failed",
)

SPELL_CHECK = FeatureDefinition(
    name="spell_check",
    strategies=(
        StrategyConfig("levenshtein_distance", 0.5),
        StrategyConfig("phonetic_matching", 0.3),
        StrategyConfig("frequency_based", 0.2),
    ),
    ttl=600,
    default_limit=5,
    max_limit=10,
    primary_key="query",
    normalize_key=sanitize_query,
    min_query_length=3,
    failure_code="SPELL_CHECK_FAILED",
    failure_message="Spell check failed",
)

SEMANTIC_SEARCH = FeatureDefinition(
    name="semantic_search",
    strategies=(
        StrategyConfig("semantic_similarity", 0.7),
        StrategyConfig("conceptual_match", 0.5),
    ),
    ttl=900,
    default_limit=8,
    max_limit=15,
    primary_key="query",
    normalize_key=sanitize_query,
    min_query_length=3,
    default_context="product",
    failure_code="SEMANTIC_SEARCH_FAILED",
    failure_message="Semantic search failed",
)

SEARCH_ANALYTICS_TTL = 3600
SEARCH_ANALYTICS_MAX_LIMIT = 50


def prepare_search_suggestions(context: RankingContext) -> Preparation:
    metadata: dict[str, Any] = {"query": context.primary_key}
    if context.include_analytics:
        metadata["analytics"] = compute_query_analytics(get_events("search_query"), context.primary_key)
    return Preparation(context=context, metadata=metadata)


def prepare_spell_check(corpus: SuggestionCorpus, context: RankingContext) -> Preparation:
    if corpus.is_known(context.primary_key):
        return Preparation(
            context=context,
            metadata={"query": context.primary_key, "needs_correction": False},
            message="Query appears to be spelled correctly",
            skip=True,
        )
    return Preparation(
        context=context,
        metadata={"query": context.primary_key, "needs_correction": True},
    )


def prepare_semantic_search(context: RankingContext) -> Preparation:
    metadata: dict[str, Any] = {"query": context.primary_key}
    if context.include_intent:
        metadata["search_intent"] = analyze_intent(context.primary_key)
    return Preparation(context=context, metadata=metadata)


# ── Source factories ────────────────────────────────────────────────────


def search_suggestion_sources(corpus: SuggestionCorpus) -> list:
    return [
        ExactMatchSource(corpus),
        PrefixMatchSource(corpus),
        FuzzyMatchSource(corpus),
        SemanticMatchSource(corpus),
        PopularSearchSource(corpus, name="popular_searches"),
        CategoryMatchTextSource(corpus),
    ]


def autocomplete_sources(corpus: SuggestionCorpus) -> list:
    return [
        PrefixMatchSource(corpus),
        PopularSearchSource(corpus, name="popular_completion", completion=True),
    ]


def spell_check_sources(corpus: SuggestionCorpus) -> list:
    return [LevenshteinSource(corpus), PhoneticSource(corpus), FrequencyBasedSource(corpus)]


def semantic_search_sources(corpus: SuggestionCorpus) -> list:
    return [SemanticSimilaritySource(corpus), ConceptualMatchSource(corpus)]


# ── Search analytics ────────────────────────────────────────────────────


class SearchAnalyticsResponse(BaseModel):
    success: bool = True
    timeframe: str
    analytics: dict[str, Any] = Field(default_factory=dict)
    cached: bool = False
    execution_time_ms: float = 0.0


def get_search_analytics(
    cache: ResultCache | None,
    timeframe: str = "7d",
    limit: int | str = 20,
    include_zero_results: bool = False,
) -> SearchAnalyticsResponse | ErrorResponse:
    """Popular, trending and zero-result queries from the search log.

    Results are cached for an hour per (timeframe, limit, include_zero_results).
    """
    start_time = time.time()
    try:
        if timeframe not in TIMEFRAME_DAYS:
            raise InputError(f"timeframe must be one of: {', '.join(TIMEFRAME_DAYS)}")
        try:
            limit = min(max(int(limit), 1), SEARCH_ANALYTICS_MAX_LIMIT)
        except (TypeError, ValueError):
            raise InputError("limit must be an integer") from None

        def compute() -> SearchAnalyticsResponse:
            return SearchAnalyticsResponse(
                timeframe=timeframe,
                analytics=compute_search_analytics(
                    get_events("search_query"),
                    timeframe=timeframe,
                    limit=limit,
                    include_zero_results=include_zero_results,
                ),
            )

        key = make_fingerprint("search_analytics", {
            "timeframe": timeframe,
            "limit": limit,
            "include_zero_results": include_zero_results,
        })
        if cache is None:
            response, hit = compute(), False
        else:
            response, hit = cache.get_or_compute(key, SEARCH_ANALYTICS_TTL, compute)
    except EngineError as exc:
        return ErrorResponse(
            error_code=exc.error_code,
            error=exc.message,
            execution_time_ms=round((time.time() - start_time) * 1000, 2),
            status_code=exc.status_code,
        )
    except Exception:
        logger.exception("Search analytics failed for timeframe %r", timeframe)
        return ErrorResponse(
            error_code="SEARCH_ANALYTICS_FAILED",
            error="Search analytics failed",
            execution_time_ms=round((time.time() - start_time) * 1000, 2),
        )

    return response.model_copy(update={
        "cached": hit,
        "execution_time_ms": round((time.time() - start_time) * 1000, 2),
    })
