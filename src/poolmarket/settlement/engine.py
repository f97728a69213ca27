"""Settlement engine - close out a market exactly once and move the money.

Runs against DuckDB. The market row is claimed first (open/closed -> resolving),
which freezes its entry set: entries can only be placed on open markets. With
``batch_size == 0`` claim, entry updates, credits and the final ``resolved``
flip commit as one transaction. With ``batch_size > 0`` the claim commits on
its own, active entries are settled in batches, and the last transaction pays
the creator share and flips the market to ``resolved``. A run interrupted in
between leaves the market ``resolving``; calling resolve_market again with the
same winner resumes it without touching entries that were already settled.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, TypeVar

import duckdb
import structlog

from poolmarket.auth import AccountAuthorizer, Authorizer, ensure_can_manage
from poolmarket.clock import Clock, system_clock, to_epoch_ms
from poolmarket.errors import (
    InvalidInputError,
    MarketAlreadyResolvedError,
    NotFoundError,
    SettlementError,
    StateConflictError,
    UnknownOptionError,
)
from poolmarket.models import Entry, EntryStatus, Market, PredictionStatus, TransactionType
from poolmarket.settlement.payout import ResolutionOutcome, compute_resolution
from poolmarket.storage import accounts, entries as entry_store, markets as market_store
from poolmarket.storage.db import transaction

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection

log = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class SettlementConfig:
    """Rates and batching for a settlement run. Passed in explicitly on every call."""

    commission_rate: float = 0.05
    creator_share_rate: float = 0.5
    batch_size: int = 0  # 0 = one all-or-nothing transaction

    def __post_init__(self) -> None:
        if not 0 <= self.commission_rate < 1:
            raise InvalidInputError(f"commission_rate must be in [0, 1), got {self.commission_rate}")
        if not 0 <= self.creator_share_rate <= 1:
            raise InvalidInputError(f"creator_share_rate must be in [0, 1], got {self.creator_share_rate}")
        if self.batch_size < 0:
            raise InvalidInputError(f"batch_size must be >= 0, got {self.batch_size}")


@dataclass(frozen=True)
class ResolutionResult:
    """What resolve_market reports back to the caller."""

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


def _chunks(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    for i in range(0, len(items), size):
        yield items[i : i + size]


def _short(question: str, n: int) -> str:
    return f"{question[:n]}..." if len(question) > n else question


def _validate(
    conn: DuckDBPyConnection,
    market_id: str,
    winning_option_id: str,
    actor_id: str,
    authorizer: Authorizer,
) -> Market:
    """All rejections happen here, before any mutation."""
    market = market_store.get_market(conn, market_id)
    if market is None:
        raise NotFoundError(f"market not found: {market_id}")
    ensure_can_manage(authorizer, conn, actor_id, market)
    if market.option(winning_option_id) is None:
        raise UnknownOptionError(
            f"option {winning_option_id!r} is not one of {market.option_ids} for market {market_id}"
        )
    if market.status in (PredictionStatus.RESOLVED, PredictionStatus.ARCHIVED):
        raise MarketAlreadyResolvedError(f"market {market_id} is already resolved")
    if market.status == PredictionStatus.RESOLVING and market.winning_option_id != winning_option_id:
        raise StateConflictError(
            f"market {market_id} is being resolved with option {market.winning_option_id!r}"
        )
    return market


def _claim(conn: DuckDBPyConnection, market_id: str, winning_option_id: str) -> None:
    if not market_store.claim_for_resolution(conn, market_id, winning_option_id):
        current = market_store.get_market(conn, market_id)
        status = current.status if current else None
        if status in (PredictionStatus.RESOLVED, PredictionStatus.ARCHIVED):
            raise MarketAlreadyResolvedError(f"market {market_id} is already resolved")
        raise StateConflictError(f"market {market_id} could not be claimed for resolution (status={status})")


def _apply_entries(
    conn: DuckDBPyConnection,
    market: Market,
    batch: Sequence[Entry],
    outcome: ResolutionOutcome,
    now: datetime,
) -> int:
    """Settle a batch of entries. Entries no longer active are skipped. Returns count settled."""
    payouts = {p.entry_id: p for p in outcome.payouts}
    settled = 0
    for entry in batch:
        payout = payouts.get(entry.entry_id)
        if payout is None:
            if entry_store.settle_entry(conn, entry.entry_id, EntryStatus.LOST, 0.0):
                settled += 1
            continue
        if not entry_store.settle_entry(conn, entry.entry_id, EntryStatus.WON, payout.amount):
            continue
        settled += 1
        if payout.amount > 0:
            accounts.credit_winnings(conn, payout.account_id, payout.amount)
            accounts.append_transaction(
                conn,
                payout.account_id,
                TransactionType.WINNINGS,
                payout.amount,
                f"Won: {_short(market.question, 15)}",
                created_at=now,
            )
    return settled


def _finalize(
    conn: DuckDBPyConnection,
    market: Market,
    outcome: ResolutionOutcome,
    now: datetime,
) -> None:
    if not market_store.finalize_resolution(
        conn, market.market_id, outcome.commission, outcome.creator_share, to_epoch_ms(now)
    ):
        raise MarketAlreadyResolvedError(f"market {market.market_id} was resolved concurrently")
    if outcome.creator_share and market.created_by_creator:
        if accounts.credit_winnings(conn, market.created_by_creator, outcome.creator_share, commission=True):
            accounts.append_transaction(
                conn,
                market.created_by_creator,
                TransactionType.WINNINGS,
                outcome.creator_share,
                f"Creator commission: {_short(market.question, 20)}",
                created_at=now,
            )
        else:
            log.warning(
                "settlement.creator_missing",
                market_id=market.market_id,
                creator_id=market.created_by_creator,
                creator_share=outcome.creator_share,
            )


def resolve_market(
    conn: DuckDBPyConnection,
    market_id: str,
    winning_option_id: str,
    actor_id: str,
    config: SettlementConfig,
    authorizer: Authorizer | None = None,
    clock: Clock = system_clock,
) -> ResolutionResult:
    """Resolve ``market_id`` in favour of ``winning_option_id`` and apply all payouts.

    Raises NotFoundError, AuthorizationError, UnknownOptionError,
    MarketAlreadyResolvedError or StateConflictError before mutating anything,
    and SettlementError (retryable) when storage fails mid-run.
    """
    authorizer = authorizer or AccountAuthorizer()
    market = _validate(conn, market_id, winning_option_id, actor_id, authorizer)
    bound = log.bind(market_id=market_id, winning_option_id=winning_option_id, actor_id=actor_id)
    bound.info("settlement.started", status=market.status.value, batch_size=config.batch_size)
    now = clock.now()

    def _outcome(all_entries: Sequence[Entry]) -> ResolutionOutcome:
        return compute_resolution(
            all_entries,
            winning_option_id,
            commission_rate=config.commission_rate,
            creator_share_rate=config.creator_share_rate,
            has_creator=market.created_by_creator is not None,
        )

    try:
        if config.batch_size <= 0:
            with transaction(conn):
                _claim(conn, market_id, winning_option_id)
                all_entries = entry_store.list_market_entries(conn, market_id)
                outcome = _outcome(all_entries)
                pending = [e for e in all_entries if e.status == EntryStatus.ACTIVE]
                _apply_entries(conn, market, pending, outcome, now)
                _finalize(conn, market, outcome, now)
        else:
            with transaction(conn):
                _claim(conn, market_id, winning_option_id)
            all_entries = entry_store.list_market_entries(conn, market_id)
            outcome = _outcome(all_entries)
            pending = [e for e in all_entries if e.status == EntryStatus.ACTIVE]
            for n, batch in enumerate(_chunks(pending, config.batch_size)):
                with transaction(conn):
                    settled = _apply_entries(conn, market, batch, outcome, now)
                bound.debug("settlement.batch_applied", batch=n, size=len(batch), settled=settled)
            with transaction(conn):
                _finalize(conn, market, outcome, now)
    except duckdb.Error as e:
        bound.error("settlement.storage_failed", error=str(e))
        raise SettlementError(f"settlement of market {market_id} failed, safe to retry: {e}") from e

    if outcome.unclaimed > 0:
        bound.warning("settlement.unclaimed_pool_retained", unclaimed=outcome.unclaimed)
    result = ResolutionResult(
        market_id=market_id,
        winning_option_id=winning_option_id,
        winners_count=outcome.winners_count,
        losers_count=len(outcome.loser_entry_ids),
        total_pool=outcome.total_pool,
        commission=outcome.commission,
        distributable_pool=outcome.distributable_pool,
        payout_ratio=outcome.payout_ratio,
        total_paid=outcome.total_paid,
        unclaimed=outcome.unclaimed,
        creator_share=outcome.creator_share,
    )
    bound.info(
        "settlement.completed",
        winners=result.winners_count,
        total_pool=result.total_pool,
        commission=result.commission,
        payout_ratio=result.payout_ratio,
    )
    return result
