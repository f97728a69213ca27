"""Market (prediction) and Option - the unit of pricing and settlement."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, model_validator


class PredictionType(str, Enum):
    """Kind of question. Pricing is identical for every type."""

    YES_NO = "yes_no"
    EXACT_NUMBER = "exact_number"
    NUMBER_RANGE = "number_range"
    MULTIPLE_CHOICE = "multiple_choice"
    TIME_GUESS = "time_guess"
    DATE_GUESS = "date_guess"
    PERCENTAGE_GUESS = "percentage_guess"
    SCORELINE = "scoreline"
    RANKING_PICK = "ranking_pick"
    TREND_OUTCOME = "trend_outcome"


class PredictionStatus(str, Enum):
    """Market lifecycle. Transitions only move forward."""

    OPEN = "open"
    CLOSED = "closed"
    RESOLVING = "resolving"  # claimed by a settlement run, entries frozen
    RESOLVED = "resolved"
    ARCHIVED = "archived"


class MarketMode(str, Enum):
    NORMAL = "normal"
    HIGH_ROLLER = "high_roller"


class Option(BaseModel):
    """Selectable outcome. ``price`` is derived from liquidity and never edited by hand."""

    id: str = Field(..., min_length=1)
    label: str = Field(..., min_length=1)
    price: float = Field(0.0, ge=0)


class Market(BaseModel):
    """A timed event open for staking until ``closes_at``."""

    market_id: str
    question: str = ""
    type: PredictionType = PredictionType.YES_NO
    options: list[Option] = Field(default_factory=list)
    liquidity_pool: dict[str, float] = Field(default_factory=dict)  # option id -> liquidity units
    created_at: datetime
    closes_at: datetime
    multiplier: float = Field(1.0, ge=1)
    mode: MarketMode = MarketMode.NORMAL
    status: PredictionStatus = PredictionStatus.OPEN
    category: str | None = None
    country: str | None = None
    resolution_source: str | None = None
    pool_size: int = 0  # number of entries placed
    created_by_creator: str | None = None  # None for platform (admin) markets
    creator_name: str | None = None
    winning_option_id: str | None = None
    commission: float | None = None
    creator_share: float | None = None
    resolved_at: datetime | None = None

    @model_validator(mode="after")
    def _check_invariants(self) -> Market:
        if self.closes_at <= self.created_at:
            raise ValueError("closes_at must be after created_at")
        for opt in self.options:
            self.liquidity_pool.setdefault(opt.id, 0.0)
        if any(v < 0 for v in self.liquidity_pool.values()):
            raise ValueError("liquidity must be non-negative")
        return self

    @property
    def option_ids(self) -> list[str]:
        return [o.id for o in self.options]

    def option(self, option_id: str) -> Option | None:
        for opt in self.options:
            if opt.id == option_id:
                return opt
        return None

    @property
    def total_liquidity(self) -> float:
        return sum(self.liquidity_pool.get(o.id, 0.0) for o in self.options)
