from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Mapping

from .catalog.data_store import Catalog, get_catalog
from .features import products as product_features
from .features import search as search_features
from .ranking.aggregator import CandidateAggregator
from .ranking.cache import ResultCache
from .ranking.config import DEFAULT_ENGINE_CONFIG, EngineConfig
from .ranking.errors import InputError
from .ranking.filters import PRODUCT_PREDICATES, STANDARD_PREDICATES, FilterPipeline
from .ranking.models import ErrorResponse, FeatureResponse
from .ranking.orchestrator import RequestOrchestrator
from .ranking.policy import RankingPolicy
from .sources.search import SuggestionCorpus

logger = logging.getLogger(__name__)


@dataclass
class SuggestionEngine:
    """All suggestion features wired against one catalog and one cache."""

    catalog: Catalog
    cache: ResultCache | None
    orchestrators: dict[str, RequestOrchestrator] = field(default_factory=dict)

    def handle(self, feature: str, params: Mapping[str, Any]) -> FeatureResponse | ErrorResponse:
        orchestrator = self.orchestrators.get(feature)
        if orchestrator is None:
            exc = InputError(f"Unknown feature {feature!r}")
            return ErrorResponse(error_code=exc.error_code, error=exc.message, status_code=exc.status_code)
        return orchestrator.handle(params)

    def search_analytics(self, **params: Any) -> search_features.SearchAnalyticsResponse | ErrorResponse:
        return search_features.get_search_analytics(self.cache, **params)


def build_engine(
    catalog: Catalog | None = None,
    cache: ResultCache | None = None,
    config: EngineConfig = DEFAULT_ENGINE_CONFIG,
) -> SuggestionEngine:
    """Wire every feature's sources, filters and prepare hook.

    Without an explicit ``cache`` a fresh one is created, unless caching is
    disabled in ``config``.
    """
    catalog = catalog or get_catalog()
    if cache is None and config.cache_enabled:
        cache = ResultCache()

    corpus = SuggestionCorpus(catalog)
    aggregator = CandidateAggregator(config)
    policy = RankingPolicy(margin_threshold=config.margin_threshold, length_ceiling=config.length_ceiling)
    product_filters = FilterPipeline(PRODUCT_PREDICATES)
    text_filters = FilterPipeline(STANDARD_PREDICATES)

    def orchestrator(definition, sources, filters, prepare=None) -> RequestOrchestrator:
        return RequestOrchestrator(
            definition,
            sources,
            cache=cache,
            filters=filters,
            policy=policy,
            prepare=prepare,
            aggregator=aggregator,
        )

    orchestrators = {
        "recommendations": orchestrator(
            product_features.RECOMMENDATIONS,
            product_features.recommendation_sources(catalog, corpus.product_index),
            product_filters,
            partial(product_features.prepare_recommendations, catalog),
        ),
        "similar_products": orchestrator(
            product_features.SIMILAR_PRODUCTS,
            product_features.similar_product_sources(catalog),
            product_filters,
            partial(product_features.prepare_similar_products, catalog),
        ),
        "cross_sell": orchestrator(
            product_features.CROSS_SELL,
            product_features.cross_sell_sources(catalog),
            product_filters,
            partial(product_features.prepare_cross_sell, catalog),
        ),
        "inventory_suggestions": orchestrator(
            product_features.INVENTORY_SUGGESTIONS,
            product_features.inventory_sources(catalog),
            product_filters,
            product_features.prepare_inventory_suggestions,
        ),
        "search_suggestions": orchestrator(
            search_features.SEARCH_SUGGESTIONS,
            search_features.search_suggestion_sources(corpus),
            text_filters,
            search_features.prepare_search_suggestions,
        ),
        "autocomplete": orchestrator(
            search_features.AUTOCOMPLETE,
            search_features.autocomplete_sources(corpus),
            text_filters,
        ),
        "spell_check": orchestrator(
            search_features.SPELL_CHECK,
            search_features.spell_check_sources(corpus),
            text_filters,
            partial(search_features.prepare_spell_check, corpus),
        ),
        "semantic_search": orchestrator(
            search_features.SEMANTIC_SEARCH,
            search_features.semantic_search_sources(corpus),
            text_filters,
            search_features.prepare_semantic_search,
        ),
    }
    logger.info(
        "Suggestion engine ready: %d products, %d search terms, cache %s",
        len(catalog.products),
        len(catalog.search_terms),
        "enabled" if cache is not None else "disabled",
    )
    return SuggestionEngine(catalog=catalog, cache=cache, orchestrators=orchestrators)


_engine: SuggestionEngine | None = None


def get_engine() -> SuggestionEngine:
    """Return the process-wide engine, building it on first call."""
    global _engine
    if _engine is None:
        _engine = build_engine()
    return _engine
