from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable

from .config import DEFAULT_ENGINE_CONFIG
from .models import Candidate, RankingContext


def _number(value) -> float | None:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return None if number != number else number


@dataclass(frozen=True)
class RankingPolicy:
    """Secondary score adjustments applied on top of the composite score.

    final = composite * (1.1 if margin > threshold) + frequency_boost
            + context_boost - length_penalty

    The margin term is multiplicative while the others are additive; that
    asymmetry is kept as observed in production scoring.
    """

    margin_threshold: float = DEFAULT_ENGINE_CONFIG.margin_threshold
    margin_multiplier: float = 1.1
    frequency_cap: float = 0.3
    context_boost: float = 0.1
    length_ceiling: int = DEFAULT_ENGINE_CONFIG.length_ceiling
    length_penalty: float = 0.1

    def score(self, candidate: Candidate, context: RankingContext) -> float:
        attrs = candidate.attributes
        base = candidate.composite_score

        margin = _number(attrs.get("margin_percentage"))
        if margin is not None and margin > self.margin_threshold:
            base *= self.margin_multiplier

        frequency = _number(attrs.get("frequency"))
        frequency_boost = 0.0
        if frequency is not None and frequency > 0:
            frequency_boost = min(math.log(frequency + 1) / 10, self.frequency_cap)

        context_boost = 0.0
        if attrs.get("context") is not None and attrs.get("context") == context.context:
            context_boost = self.context_boost

        penalty = 0.0
        text = attrs.get("text")
        if isinstance(text, str) and len(text) > self.length_ceiling:
            penalty = self.length_penalty

        return base + frequency_boost + context_boost - penalty

    def rank(self, candidates: Iterable[Candidate], context: RankingContext) -> list[Candidate]:
        """Set ``final_score`` on every candidate and sort descending.

        ``sorted`` is stable, so equal scores keep their deduplication order.
        """
        ranked = list(candidates)
        for c in ranked:
            c.final_score = self.score(c, context)
        return sorted(ranked, key=lambda c: c.final_score, reverse=True)
