"""Entry - one account's single stake on one option of one market."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class EntryStatus(str, Enum):
    ACTIVE = "active"
    WON = "won"
    LOST = "lost"


class Entry(BaseModel):
    """Stake locked at the quoted price. ``amount`` never changes after purchase."""

    entry_id: str
    account_id: str
    market_id: str
    selected_option_id: str
    selected_option_label: str = ""
    amount: float = Field(..., ge=0)
    potential_payout: float = Field(0.0, ge=0)  # nominal at purchase, actual after settlement
    status: EntryStatus = EntryStatus.ACTIVE
    created_at: datetime | None = None
