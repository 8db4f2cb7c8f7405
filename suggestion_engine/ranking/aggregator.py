from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Any, Sequence

from .config import DEFAULT_ENGINE_CONFIG, EngineConfig
from .models import Candidate, RankingContext

logger = logging.getLogger(__name__)


class CandidateSource(ABC):
    """One candidate-generation strategy.

    Subclasses own their data retrieval. ``find`` may raise; the aggregator
    treats any failure as an empty contribution.
    """

    name: str = "unnamed"

    @abstractmethod
    def find(self, context: RankingContext) -> list[Candidate]:
        ...

    def candidate(
        self,
        identity: str,
        score: float,
        attributes: dict[str, Any] | None = None,
        reasoning: list[str] | None = None,
    ) -> Candidate:
        """Build a candidate tagged with this strategy's raw score."""
        return Candidate(
            identity=str(identity),
            strategy_scores={self.name: float(score)},
            attributes=dict(attributes or {}),
            reasoning=list(reasoning or []),
        )


@dataclass
class AggregationResult:
    candidates: list[Candidate] = field(default_factory=list)
    strategies_used: list[str] = field(default_factory=list)
    strategies_failed: list[str] = field(default_factory=list)


class CandidateAggregator:
    def __init__(self, config: EngineConfig = DEFAULT_ENGINE_CONFIG) -> None:
        self.timeout = config.source_timeout
        self.max_workers = config.max_workers

    def gather(
        self, context: RankingContext, sources: Sequence[CandidateSource],
    ) -> AggregationResult:
        """Call every source concurrently and union their candidates.

        Sources that raise or miss the timeout contribute nothing; the
        request carries on with whatever the other strategies produced.
        Output preserves the order of ``sources``.
        """
        result = AggregationResult()
        if not sources:
            return result

        executor = ThreadPoolExecutor(max_workers=min(self.max_workers, len(sources)))
        try:
            futures = [(source, executor.submit(source.find, context)) for source in sources]
            wait([f for _, f in futures], timeout=self.timeout)

            for source, future in futures:
                if not future.done():
                    future.cancel()
                    logger.warning("Candidate source %s timed out after %.2fs", source.name, self.timeout)
                    result.strategies_failed.append(source.name)
                    continue
                try:
                    candidates = future.result()
                except Exception:
                    logger.warning("Candidate source %s failed", source.name, exc_info=True)
                    result.strategies_failed.append(source.name)
                    continue
                if not candidates:
                    logger.debug("Candidate source %s returned no candidates", source.name)
                result.candidates.extend(candidates or [])
                result.strategies_used.append(source.name)
        finally:
            # Slow sources keep their worker thread; the request does not wait for them.
            executor.shutdown(wait=False, cancel_futures=True)

        return result
