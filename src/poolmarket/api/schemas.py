"""Pydantic schemas for API request/response consistency and OpenAPI docs."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from poolmarket.models import (
    Account,
    Entry,
    Market,
    Option,
    PredictionType,
    Transaction,
)


# --- Health ---
class HealthResponse(BaseModel):
    status: str = "ok"


# --- Error (consistent shape for 4xx/5xx) ---
class ErrorResponse(BaseModel):
    detail: str = Field(..., description="Human-readable message")
    code: str | None = Field(None, description="Machine-readable code, e.g. not_found, already_resolved")
    retryable: bool = False


# --- Markets ---
class OptionIn(BaseModel):
    id: str = Field(..., min_length=1)
    label: str = Field(..., min_length=1)


class CreateMarketRequest(BaseModel):
    question: str = Field(..., min_length=1)
    options: list[OptionIn] = Field(..., min_length=2)
    closes_at: datetime
    type: PredictionType = PredictionType.YES_NO
    multiplier: float = Field(1.0, ge=1)
    category: str | None = None
    country: str | None = None
    resolution_source: str | None = None


class MarketResponse(BaseModel):
    """Market with prices quoted live at request time."""

    market: Market
    quoted_options: list[Option]


class MarketsListResponse(BaseModel):
    markets: list[Market]
    total: int


class ResolveRequest(BaseModel):
    winning_option_id: str = Field(..., min_length=1)


class ResolveResponse(BaseModel):
    market_id: str
    winning_option_id: str
    winners_count: int
    losers_count: int
    total_pool: float
    commission: float
    distributable_pool: float
    payout_ratio: float
    total_paid: float
    unclaimed: float
    creator_share: float | None = None


# --- Entries ---
class PlaceEntryRequest(BaseModel):
    option_id: str = Field(..., min_length=1)


class EntriesResponse(BaseModel):
    entries: list[Entry]


# --- Accounts ---
class CreateAccountRequest(BaseModel):
    account_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    is_admin: bool = False
    is_creator: bool = False
    creator_name: str | None = None


class AccountResponse(BaseModel):
    account: Account


class TransactionsResponse(BaseModel):
    transactions: list[Transaction]


class DeleteResponse(BaseModel):
    market_id: str
    refunded_entries: int
