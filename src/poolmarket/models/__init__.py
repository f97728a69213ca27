"""Canonical schema (Pydantic) - Market, Option, Entry, Account, Transaction."""

from poolmarket.models.account import Account, Transaction, TransactionType
from poolmarket.models.entry import Entry, EntryStatus
from poolmarket.models.market import (
    Market,
    MarketMode,
    Option,
    PredictionStatus,
    PredictionType,
)

__all__ = [
    "Market",
    "Option",
    "MarketMode",
    "PredictionStatus",
    "PredictionType",
    "Entry",
    "EntryStatus",
    "Account",
    "Transaction",
    "TransactionType",
]
