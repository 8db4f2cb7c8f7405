from __future__ import annotations

from typing import Iterable, Mapping

from .models import Candidate


def dedupe(candidates: Iterable[Candidate]) -> list[Candidate]:
    """Collapse candidates to one entry per case-insensitive identity.

    Output follows first-seen order and is made of new objects, so the
    input list can be ranked again later. Attributes are first-seen-wins
    per key; reasoning lists are concatenated across strategies. When one
    strategy reports the same identity more than once its highest score is
    kept.
    """
    merged: dict[str, Candidate] = {}
    for c in candidates:
        existing = merged.get(c.key)
        if existing is None:
            merged[c.key] = Candidate(
                identity=c.identity,
                strategy_scores=dict(c.strategy_scores),
                attributes=dict(c.attributes),
                reasoning=list(c.reasoning),
            )
            continue

        for strategy, score in c.strategy_scores.items():
            if strategy not in existing.strategy_scores or score > existing.strategy_scores[strategy]:
                existing.strategy_scores[strategy] = score
        for attr, value in c.attributes.items():
            existing.attributes.setdefault(attr, value)
        existing.reasoning.extend(c.reasoning)

    return list(merged.values())


def fuse(candidates: Iterable[Candidate], weights: Mapping[str, float]) -> list[Candidate]:
    """Deduplicate and populate ``composite_score`` on each candidate.

    composite = sum(score_s * weight_s) over the strategies that surfaced
    the candidate. Strategies without a weight contribute nothing. No
    clipping is applied.
    """
    fused = dedupe(candidates)
    for c in fused:
        c.composite_score = sum(
            score * weights.get(strategy, 0.0)
            for strategy, score in c.strategy_scores.items()
        )
    return fused
