from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


@dataclass
class Candidate:
    """One item proposed by one or more strategies.

    ``identity`` is the deduplication key: an item id, or the lower-cased
    text for text suggestions. ``attributes`` is carried through the
    pipeline untouched by fusion; filters and the ranking policy only read
    well-known keys from it.
    """

    identity: str
    strategy_scores: dict[str, float] = field(default_factory=dict)
    attributes: dict[str, Any] = field(default_factory=dict)
    reasoning: list[str] = field(default_factory=list)
    composite_score: float = 0.0
    _final_score: float | None = field(default=None, init=False, repr=False)

    @property
    def key(self) -> str:
        return self.identity.strip().lower()

    @property
    def final_score(self) -> float | None:
        return self._final_score

    @final_score.setter
    def final_score(self, value: float) -> None:
        if self._final_score is not None:
            raise ValueError(f"final score of {self.identity!r} is already set")
        self._final_score = float(value)


@dataclass(frozen=True)
class StrategyConfig:
    name: str
    weight: float
    enabled: bool = True

    def __post_init__(self) -> None:
        if self.weight < 0:
            raise ValueError(f"strategy {self.name!r} has negative weight {self.weight}")


class RankingContext(BaseModel):
    """Per-request parameters, immutable for the lifetime of the request."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    primary_key: str | None = None
    context: str = "general"
    limit: int = Field(default=10, ge=1)
    customer_tier: str | None = None
    industry: str | None = None
    price_min: float | None = Field(default=None, ge=0.0)
    price_max: float | None = Field(default=None, ge=0.0)
    include_out_of_stock: bool = False
    include_intent: bool = False
    include_analytics: bool = False
    max_distance: int = Field(default=2, ge=1, le=3)
    category: str | None = None
    warehouse_id: str | None = None
    strategy: str = "balanced"
    current_products: tuple[str, ...] = ()
    exclude: tuple[str, ...] = ()
    user_id: str | None = None


class RankedItem(BaseModel):
    identity: str
    score: float
    attributes: dict[str, Any] = Field(default_factory=dict)
    reasoning: list[str] = Field(default_factory=list)
    strategy_scores: dict[str, float] = Field(default_factory=dict)


class FeatureResponse(BaseModel):
    success: bool = True
    feature: str
    items: list[RankedItem] = Field(default_factory=list)
    total_found: int = 0
    algorithms_used: list[str] = Field(default_factory=list)
    execution_time_ms: float = 0.0
    cached: bool = False
    context: str | None = None
    message: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class ErrorResponse(BaseModel):
    success: bool = False
    error_code: str
    error: str
    execution_time_ms: float = 0.0
    status_code: int = Field(default=500, exclude=True)
