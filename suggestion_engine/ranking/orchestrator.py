from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Sequence

from pydantic import ValidationError

from ..analytics.store import record_event
from .aggregator import AggregationResult, CandidateAggregator, CandidateSource
from .cache import ResultCache, make_fingerprint
from .errors import EngineError, InputError
from .filters import FilterPipeline
from .fusion import fuse
from .models import (
    Candidate,
    ErrorResponse,
    FeatureResponse,
    RankedItem,
    RankingContext,
    StrategyConfig,
)
from .policy import RankingPolicy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FeatureDefinition:
    name: str
    strategies: tuple[StrategyConfig, ...]
    ttl: int
    default_limit: int
    max_limit: int
    primary_key: str | None = None
    normalize_key: Callable[[str], str] | None = None
    min_query_length: int = 0
    default_context: str = "general"
    log_queries: bool = False
    failure_code: str = "SUGGESTIONS_FAILED"
    failure_message: str = "Failed to generate suggestions"

    @property
    def weights(self) -> dict[str, float]:
        return {s.name: s.weight for s in self.strategies if s.enabled}


@dataclass
class Preparation:
    """What a feature's ``prepare`` hook hands back to the pipeline.

    ``context`` may be enriched (tier, industry, price bounds, exclusions);
    ``weights`` overrides the feature weights for this request; ``skip``
    returns an empty result without calling any source.
    """

    context: RankingContext
    metadata: dict[str, Any] = field(default_factory=dict)
    weights: dict[str, float] | None = None
    message: str | None = None
    skip: bool = False


PrepareHook = Callable[[RankingContext], Preparation]


class RequestOrchestrator:
    """Public entry point of one feature.

    validate -> fingerprint -> cache(prepare -> gather -> fuse/dedupe ->
    filter -> rank -> truncate). Every outcome is a well-formed response
    object; exceptions never escape ``handle``.
    """

    def __init__(
        self,
        definition: FeatureDefinition,
        sources: Sequence[CandidateSource],
        cache: ResultCache | None = None,
        filters: FilterPipeline | None = None,
        policy: RankingPolicy | None = None,
        prepare: PrepareHook | None = None,
        aggregator: CandidateAggregator | None = None,
    ) -> None:
        self.definition = definition
        self.cache = cache
        self.filters = filters or FilterPipeline()
        self.policy = policy or RankingPolicy()
        self.prepare = prepare
        self.aggregator = aggregator or CandidateAggregator()

        by_name = {s.name: s for s in sources}
        self.sources = [
            by_name[s.name] for s in definition.strategies if s.enabled and s.name in by_name
        ]

    # ── Request handling ───────────────────────────────────────────────

    def build_context(self, params: Mapping[str, Any]) -> RankingContext:
        d = self.definition
        values = {k: v for k, v in dict(params).items() if v is not None}

        if d.primary_key:
            raw = values.pop(d.primary_key, None)
            if raw is None or not str(raw).strip():
                raise InputError(f"{d.primary_key} is required", "MISSING_PARAMETER")
            key = str(raw).strip()
            values["primary_key"] = d.normalize_key(key) if d.normalize_key else key

        limit = values.pop("limit", d.default_limit)
        try:
            limit = int(limit)
        except (TypeError, ValueError):
            raise InputError("limit must be an integer") from None
        values["limit"] = min(max(limit, 1), d.max_limit)

        if "max_distance" in values:
            try:
                values["max_distance"] = min(max(int(values["max_distance"]), 1), 3)
            except (TypeError, ValueError):
                raise InputError("max_distance must be an integer") from None

        values.setdefault("context", d.default_context)

        try:
            return RankingContext(**values)
        except ValidationError as exc:
            err = exc.errors()[0]
            loc = ".".join(str(part) for part in err.get("loc", ())) or "request"
            raise InputError(f"Invalid value for {loc}: {err.get('msg')}") from None

    def handle(self, params: Mapping[str, Any]) -> FeatureResponse | ErrorResponse:
        start_time = time.time()
        context: RankingContext | None = None
        try:
            context = self.build_context(params)

            if len(context.primary_key or "") < self.definition.min_query_length:
                response = FeatureResponse(
                    feature=self.definition.name,
                    context=context.context,
                    message="Query too short for suggestions",
                    execution_time_ms=self._elapsed(start_time),
                )
                self._record(context, response)
                return response

            fingerprint = make_fingerprint(
                self.definition.name,
                context.model_dump(mode="json", exclude={"user_id"}),
            )
            if self.cache is None:
                response, hit = self.compute(context), False
            else:
                response, hit = self.cache.get_or_compute(
                    fingerprint, self.definition.ttl, lambda: self.compute(context),
                )
        except EngineError as exc:
            return self._fail(exc.error_code, exc.message, exc.status_code, start_time, context)
        except Exception:
            logger.exception(
                "%s failed for primary key %r",
                self.definition.name,
                context.primary_key if context else None,
            )
            return self._fail(
                self.definition.failure_code, self.definition.failure_message, 500, start_time, context,
            )

        response = response.model_copy(
            update={"cached": hit, "execution_time_ms": self._elapsed(start_time)},
        )
        self._record(context, response)
        return response

    # ── Pipeline ───────────────────────────────────────────────────────

    def compute(self, context: RankingContext) -> FeatureResponse:
        prep = self.prepare(context) if self.prepare else Preparation(context=context)
        ctx = prep.context

        if prep.skip:
            return FeatureResponse(
                feature=self.definition.name,
                context=ctx.context,
                message=prep.message,
                metadata=prep.metadata,
            )

        ranked, gathered = self.rank_candidates(ctx, prep.weights)
        return FeatureResponse(
            feature=self.definition.name,
            items=[self._to_item(c) for c in ranked[: ctx.limit]],
            total_found=len(ranked),
            algorithms_used=gathered.strategies_used,
            context=ctx.context,
            message=prep.message,
            metadata=prep.metadata,
        )

    def rank_candidates(
        self, context: RankingContext, weights: Mapping[str, float] | None = None,
    ) -> tuple[list[Candidate], AggregationResult]:
        """Full ranked list before truncation."""
        gathered = self.aggregator.gather(context, self.sources)
        fused = fuse(gathered.candidates, weights or self.definition.weights)
        kept = self.filters.filter(fused, context)
        return self.policy.rank(kept, context), gathered

    # ── Helpers ────────────────────────────────────────────────────────

    @staticmethod
    def _to_item(c: Candidate) -> RankedItem:
        return RankedItem(
            identity=c.identity,
            score=round(float(c.final_score or 0.0), 4),
            attributes=c.attributes,
            reasoning=c.reasoning,
            strategy_scores={k: round(v, 4) for k, v in c.strategy_scores.items()},
        )

    @staticmethod
    def _elapsed(start_time: float) -> float:
        return round((time.time() - start_time) * 1000, 2)

    def _fail(
        self,
        code: str,
        message: str,
        status_code: int,
        start_time: float,
        context: RankingContext | None,
    ) -> ErrorResponse:
        response = ErrorResponse(
            error_code=code,
            error=message,
            execution_time_ms=self._elapsed(start_time),
            status_code=status_code,
        )
        self._record(context, response)
        return response

    def _record(
        self, context: RankingContext | None, response: FeatureResponse | ErrorResponse,
    ) -> None:
        ok = isinstance(response, FeatureResponse)
        returned = len(response.items) if ok else 0
        record_event("feature_request", {
            "feature": self.definition.name,
            "primary_key": context.primary_key if context else None,
            "context": context.context if context else None,
            "limit": context.limit if context else None,
            "total_found": response.total_found if ok else 0,
            "results_returned": returned,
            "response_time_ms": response.execution_time_ms,
            "cache_hit": response.cached if ok else False,
            "success": ok,
            "error_code": None if ok else response.error_code,
        })
        if self.definition.log_queries and ok and context and context.primary_key:
            record_event("search_query", {
                "query": context.primary_key.lower(),
                "context": context.context,
                "user_id": context.user_id,
                "results_returned": returned,
                "response_time_ms": response.execution_time_ms,
                "cache_hit": response.cached,
            })
