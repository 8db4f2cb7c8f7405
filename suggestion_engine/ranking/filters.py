"""
Business-rule predicates applied between fusion and ranking.

Each predicate answers ``True`` (keep), ``False`` (drop) or ``None`` when it
cannot evaluate the candidate, typically because an attribute is missing.
``None`` keeps the candidate: filters fail open so that incomplete catalog
data never silently starves a result list.
"""
from __future__ import annotations

from typing import Callable, Iterable, Sequence

from .models import Candidate, RankingContext

Predicate = Callable[[Candidate, RankingContext], "bool | None"]

TIER_ORDER = ["standard", "silver", "gold", "platinum"]


def _tier_rank(tier: str | None) -> int | None:
    if not tier:
        return None
    try:
        return TIER_ORDER.index(str(tier).strip().lower())
    except ValueError:
        return None


def _as_list(value) -> list[str] | None:
    if value is None:
        return None
    if isinstance(value, str):
        items = [v.strip().lower() for v in value.split(";")]
    else:
        items = [str(v).strip().lower() for v in value]
    return [v for v in items if v]


def _as_float(value) -> float | None:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if number != number:  # NaN from pandas
        return None
    return number


def exclusion(candidate: Candidate, context: RankingContext) -> bool | None:
    if not context.exclude:
        return None
    excluded = {e.strip().lower() for e in context.exclude}
    return candidate.key not in excluded


def eligibility(candidate: Candidate, context: RankingContext) -> bool | None:
    """Industry restrictions and minimum customer tier."""
    verdict: bool | None = None

    restricted = _as_list(candidate.attributes.get("restricted_industries"))
    if restricted is not None and context.industry:
        if context.industry.strip().lower() in restricted:
            return False
        verdict = True

    required = _tier_rank(candidate.attributes.get("min_tier"))
    caller = _tier_rank(context.customer_tier)
    if required is not None and caller is not None:
        if caller < required:
            return False
        verdict = True

    return verdict


def stock(candidate: Candidate, context: RankingContext) -> bool | None:
    if context.include_out_of_stock:
        return True
    available = _as_float(candidate.attributes.get("available_quantity"))
    if available is None:
        return None
    return available > 0


def price_range(candidate: Candidate, context: RankingContext) -> bool | None:
    if context.price_min is None and context.price_max is None:
        return None
    price = _as_float(candidate.attributes.get("price"))
    if price is None:
        return None
    if context.price_min is not None and price < context.price_min:
        return False
    if context.price_max is not None and price > context.price_max:
        return False
    return True


def context_match(candidate: Candidate, context: RankingContext) -> bool | None:
    """Hard context restriction for product features.

    An item listing the contexts it may be offered in is dropped from any
    other context; ``general`` requests see everything.
    """
    allowed = _as_list(candidate.attributes.get("contexts"))
    if not allowed or context.context == "general":
        return None
    return context.context.lower() in allowed


STANDARD_PREDICATES: tuple[Predicate, ...] = (exclusion, eligibility, stock, price_range)
PRODUCT_PREDICATES: tuple[Predicate, ...] = STANDARD_PREDICATES + (context_match,)


class FilterPipeline:
    def __init__(self, predicates: Sequence[Predicate] = STANDARD_PREDICATES) -> None:
        self.predicates = tuple(predicates)

    def filter(self, candidates: Iterable[Candidate], context: RankingContext) -> list[Candidate]:
        kept: list[Candidate] = []
        for c in candidates:
            if all(predicate(c, context) is not False for predicate in self.predicates):
                kept.append(c)
        return kept
