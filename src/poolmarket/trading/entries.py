"""Entry purchase path - the only writer of a market's liquidity pool."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

import duckdb
import structlog

from poolmarket.clock import Clock, system_clock
from poolmarket.errors import (
    DuplicateEntryError,
    InsufficientBalanceError,
    MarketNotOpenError,
    NotFoundError,
    StateConflictError,
    UnknownOptionError,
)
from poolmarket.models import Entry, PredictionStatus, TransactionType
from poolmarket.pricing.engine import FIXED_PAYOUT, fixed_payout, quote_prices
from poolmarket.storage import accounts, entries as entry_store, markets as market_store
from poolmarket.storage.db import transaction

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection

log = structlog.get_logger(__name__)


def place_entry(
    conn: DuckDBPyConnection,
    market_id: str,
    account_id: str,
    option_id: str,
    clock: Clock = system_clock,
    base_payout: float = FIXED_PAYOUT,
) -> Entry:
    """Buy one unit of ``option_id`` at the live price and lock that price into the entry.

    One transaction: check market/option/account, debit balance, insert entry,
    append the ledger row, add the stake to the option's liquidity and refresh
    the cached prices.
    """
    now = clock.now()
    with transaction(conn):
        market = market_store.get_market(conn, market_id)
        if market is None:
            raise NotFoundError(f"market not found: {market_id}")
        if market.status != PredictionStatus.OPEN:
            raise MarketNotOpenError(f"market {market_id} is {market.status.value}")
        if now >= market.closes_at:
            raise MarketNotOpenError(f"market {market_id} closed at {market.closes_at.isoformat()}")
        option = market.option(option_id)
        if option is None:
            raise UnknownOptionError(f"option {option_id!r} is not one of {market.option_ids}")
        if accounts.get_account(conn, account_id) is None:
            raise NotFoundError(f"account not found: {account_id}")
        if entry_store.get_entry(conn, account_id, market_id) is not None:
            raise DuplicateEntryError(f"{account_id} already has an entry on market {market_id}")

        quoted = quote_prices(
            market.options,
            market.liquidity_pool,
            created_at=market.created_at,
            closes_at=market.closes_at,
            multiplier=market.multiplier,
            now=now,
        )
        price = next(o.price for o in quoted if o.id == option_id)
        if not accounts.debit_balance(conn, account_id, price):
            raise InsufficientBalanceError(f"balance too low for entry price {price:.2f}")

        entry = Entry(
            entry_id=str(uuid.uuid4()),
            account_id=account_id,
            market_id=market_id,
            selected_option_id=option_id,
            selected_option_label=option.label,
            amount=price,
            potential_payout=fixed_payout(market.multiplier, base_payout),
            created_at=now,
        )
        try:
            entry_store.insert_entry(conn, entry)
        except duckdb.ConstraintException as e:
            raise DuplicateEntryError(f"{account_id} already has an entry on market {market_id}") from e
        accounts.append_transaction(
            conn,
            account_id,
            TransactionType.ENTRY,
            -price,
            f"Entry: {market.question[:20]}",
            created_at=now,
        )

        liquidity = dict(market.liquidity_pool)
        liquidity[option_id] = liquidity.get(option_id, 0.0) + price
        repriced = quote_prices(
            market.options,
            liquidity,
            created_at=market.created_at,
            closes_at=market.closes_at,
            multiplier=market.multiplier,
            now=now,
        )
        if not market_store.update_pool(conn, market_id, repriced, liquidity, market.pool_size + 1):
            raise StateConflictError(f"market {market_id} stopped accepting entries")

    log.info(
        "entry.placed",
        market_id=market_id,
        account_id=account_id,
        option_id=option_id,
        price=price,
    )
    return entry
