"""Account balances and the append-only transaction ledger."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel


class Account(BaseModel):
    """Participant account. ``balance`` is spendable tokens, ``winnings_balance`` is withdrawable."""

    account_id: str
    name: str
    balance: float = 0.0
    winnings_balance: float = 0.0
    is_admin: bool = False
    is_creator: bool = False
    creator_name: str | None = None
    total_events_created: int = 0
    total_commission_earned: float = 0.0
    created_at: datetime | None = None


class TransactionType(str, Enum):
    ENTRY = "entry"
    DEPOSIT = "deposit"
    WINNINGS = "winnings"
    CASHOUT = "cashout"
    REWARD = "reward"
    REFUND = "refund"


class Transaction(BaseModel):
    transaction_id: int | None = None
    account_id: str
    type: TransactionType
    amount: float  # signed: negative for debits
    description: str = ""
    created_at: datetime | None = None
