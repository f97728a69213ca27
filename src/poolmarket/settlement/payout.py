"""Pool resolution arithmetic. Pure: entries + winner + rates -> payouts."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from poolmarket.models import Entry


@dataclass(frozen=True)
class Payout:
    entry_id: str
    account_id: str
    amount: float


@dataclass(frozen=True)
class ResolutionOutcome:
    """Settlement figures for one market. Not persisted as its own entity."""

    winning_option_id: str
    total_pool: float
    commission: float
    distributable_pool: float
    winning_volume: float
    payout_ratio: float
    creator_share: float | None
    payouts: list[Payout] = field(default_factory=list)
    loser_entry_ids: list[str] = field(default_factory=list)

    @property
    def winners_count(self) -> int:
        return len(self.payouts)

    @property
    def total_paid(self) -> float:
        return sum(p.amount for p in self.payouts)

    @property
    def unclaimed(self) -> float:
        """Distributable pool nobody can claim because no entry picked the winner."""
        return self.distributable_pool if self.winning_volume <= 0 else 0.0


def compute_resolution(
    entries: Sequence[Entry],
    winning_option_id: str,
    commission_rate: float,
    creator_share_rate: float = 0.0,
    has_creator: bool = False,
) -> ResolutionOutcome:
    """Split entries into winners and losers and compute each winner's payout.

    payout_ratio = (total_pool - commission) / winning_volume, or 0 when nobody
    picked the winner. Winner payouts + commission (+ unclaimed) == total_pool.
    """
    total_pool = sum(e.amount for e in entries)
    commission = total_pool * commission_rate
    distributable = total_pool - commission
    winners = [e for e in entries if e.selected_option_id == winning_option_id]
    losers = [e for e in entries if e.selected_option_id != winning_option_id]
    winning_volume = sum(e.amount for e in winners)
    ratio = distributable / winning_volume if winning_volume > 0 else 0.0
    payouts = [Payout(e.entry_id, e.account_id, e.amount * ratio) for e in winners]
    return ResolutionOutcome(
        winning_option_id=winning_option_id,
        total_pool=total_pool,
        commission=commission,
        distributable_pool=distributable,
        winning_volume=winning_volume,
        payout_ratio=ratio,
        creator_share=commission * creator_share_rate if has_creator else None,
        payouts=payouts,
        loser_entry_ids=[e.entry_id for e in losers],
    )
