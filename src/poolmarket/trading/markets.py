"""Market lifecycle: create (seed + initial quote), live quote, close, archive, delete."""

from __future__ import annotations

import uuid
from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import TYPE_CHECKING, Any

import structlog

from poolmarket.auth import AccountAuthorizer, Authorizer, ensure_can_manage
from poolmarket.clock import Clock, parse_timestamp, system_clock
from poolmarket.errors import (
    AuthorizationError,
    InvalidInputError,
    NotFoundError,
    StateConflictError,
)
from poolmarket.models import (
    EntryStatus,
    Market,
    MarketMode,
    Option,
    PredictionStatus,
    PredictionType,
    TransactionType,
)
from poolmarket.pricing.engine import quote_prices, seed_liquidity
from poolmarket.storage import accounts, entries as entry_store, markets as market_store
from poolmarket.storage.db import transaction

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection

log = structlog.get_logger(__name__)

DEFAULT_SEED_LIQUIDITY = 500.0


def _parse_options(options: Sequence[Option | Mapping[str, Any] | str]) -> list[Option]:
    """Accept Option objects, {id, label} dicts or bare labels (id derived from the label)."""
    parsed = []
    for opt in options:
        if isinstance(opt, Option):
            parsed.append(Option(id=opt.id, label=opt.label))
        elif isinstance(opt, str):
            label = opt.strip()
            if not label:
                raise InvalidInputError("option labels must not be empty")
            parsed.append(Option(id=label.lower().replace(" ", "_"), label=label))
        else:
            oid = str(opt.get("id") or "").strip()
            label = str(opt.get("label") or "").strip()
            if not oid or not label:
                raise InvalidInputError(f"option needs both id and label: {dict(opt)}")
            parsed.append(Option(id=oid, label=label))
    ids = [o.id for o in parsed]
    if len(ids) != len(set(ids)):
        raise InvalidInputError(f"option ids must be unique: {ids}")
    return parsed


def get_market_or_raise(conn: DuckDBPyConnection, market_id: str) -> Market:
    market = market_store.get_market(conn, market_id)
    if market is None:
        raise NotFoundError(f"market not found: {market_id}")
    return market


def quote_market(market: Market, now: datetime | None = None) -> list[Option]:
    """Live prices for a market from its current liquidity (the read path)."""
    return quote_prices(
        market.options,
        market.liquidity_pool,
        created_at=market.created_at,
        closes_at=market.closes_at,
        multiplier=market.multiplier,
        now=now,
    )


def create_market(
    conn: DuckDBPyConnection,
    actor_id: str,
    question: str,
    options: Sequence[Option | Mapping[str, Any] | str],
    closes_at: datetime | str,
    type: PredictionType = PredictionType.YES_NO,
    multiplier: float = 1.0,
    category: str | None = None,
    country: str | None = None,
    resolution_source: str | None = None,
    seed_amount: float = DEFAULT_SEED_LIQUIDITY,
    authorizer: Authorizer | None = None,
    clock: Clock = system_clock,
) -> Market:
    """Validate, seed equal liquidity per option, quote initial prices and persist as open.

    Admin-created markets are platform markets; creator-created markets record
    the creator so settlement can pay the creator share.
    """
    authorizer = authorizer or AccountAuthorizer()
    if not authorizer.can_create(conn, actor_id):
        raise AuthorizationError(f"{actor_id} may not create markets")
    if not question or not question.strip():
        raise InvalidInputError("question must not be empty")
    opts = _parse_options(options)
    if len(opts) < 2:
        raise InvalidInputError("a market needs at least two options")
    if multiplier < 1:
        raise InvalidInputError(f"multiplier must be >= 1, got {multiplier}")
    if seed_amount < 0:
        raise InvalidInputError(f"seed liquidity must be non-negative, got {seed_amount}")
    created_at = clock.now()
    try:
        closes = parse_timestamp(closes_at)
    except ValueError as e:
        raise InvalidInputError(f"bad closes_at: {closes_at!r}") from e
    if closes is None or closes <= created_at:
        raise InvalidInputError("closes_at must be after the creation time")

    account = accounts.get_account(conn, actor_id)
    creator_id = None
    creator_name = None
    if account is not None and not account.is_admin:
        creator_id = account.account_id
        creator_name = account.creator_name or account.name

    liquidity = seed_liquidity(opts, seed_amount)
    priced = quote_prices(opts, liquidity, created_at, closes, multiplier, now=created_at)
    market = Market(
        market_id=str(uuid.uuid4()),
        question=question.strip(),
        type=PredictionType(type),
        options=priced,
        liquidity_pool=liquidity,
        created_at=created_at,
        closes_at=closes,
        multiplier=multiplier,
        mode=MarketMode.HIGH_ROLLER if multiplier > 1 else MarketMode.NORMAL,
        category=category,
        country=country,
        resolution_source=resolution_source,
        created_by_creator=creator_id,
        creator_name=creator_name,
    )
    with transaction(conn):
        market_store.insert_market(conn, market)
        if creator_id is not None:
            accounts.increment_events_created(conn, creator_id)
    log.info(
        "market.created",
        market_id=market.market_id,
        options=len(priced),
        multiplier=multiplier,
        creator_id=creator_id,
    )
    return market


def close_market(
    conn: DuckDBPyConnection,
    market_id: str,
    actor_id: str,
    authorizer: Authorizer | None = None,
) -> Market:
    """Stop accepting entries (open -> closed)."""
    authorizer = authorizer or AccountAuthorizer()
    market = get_market_or_raise(conn, market_id)
    ensure_can_manage(authorizer, conn, actor_id, market)
    with transaction(conn):
        if not market_store.transition_status(conn, market_id, [PredictionStatus.OPEN], PredictionStatus.CLOSED):
            raise StateConflictError(f"market {market_id} is {market.status.value}, not open")
    log.info("market.closed", market_id=market_id, actor_id=actor_id)
    return get_market_or_raise(conn, market_id)


def archive_market(
    conn: DuckDBPyConnection,
    market_id: str,
    actor_id: str,
    authorizer: Authorizer | None = None,
) -> Market:
    """Hide a settled market (resolved -> archived)."""
    authorizer = authorizer or AccountAuthorizer()
    market = get_market_or_raise(conn, market_id)
    ensure_can_manage(authorizer, conn, actor_id, market)
    with transaction(conn):
        if not market_store.transition_status(
            conn, market_id, [PredictionStatus.RESOLVED], PredictionStatus.ARCHIVED
        ):
            raise StateConflictError(f"market {market_id} is {market.status.value}, not resolved")
    log.info("market.archived", market_id=market_id, actor_id=actor_id)
    return get_market_or_raise(conn, market_id)


def delete_market(
    conn: DuckDBPyConnection,
    market_id: str,
    actor_id: str,
    authorizer: Authorizer | None = None,
    clock: Clock = system_clock,
) -> int:
    """Admin-only removal of an unsettled market. Active stakes are refunded. Returns refund count."""
    authorizer = authorizer or AccountAuthorizer()
    market = get_market_or_raise(conn, market_id)
    if not authorizer.is_admin(conn, actor_id):
        raise AuthorizationError(f"{actor_id} may not delete markets")
    if market.status not in (PredictionStatus.OPEN, PredictionStatus.CLOSED):
        raise StateConflictError(f"market {market_id} is {market.status.value} and can no longer be deleted")
    now = clock.now()
    refunded = 0
    with transaction(conn):
        # re-check inside the transaction so a concurrent resolution wins
        if not market_store.transition_status(
            conn, market_id, [PredictionStatus.OPEN, PredictionStatus.CLOSED], PredictionStatus.CLOSED
        ):
            raise StateConflictError(f"market {market_id} changed state during deletion")
        for entry in entry_store.list_market_entries(conn, market_id):
            if entry.status != EntryStatus.ACTIVE or entry.amount <= 0:
                continue
            accounts.credit_balance(conn, entry.account_id, entry.amount)
            accounts.append_transaction(
                conn,
                entry.account_id,
                TransactionType.REFUND,
                entry.amount,
                f"Refund: {market.question[:20]}",
                created_at=now,
            )
            refunded += 1
        market_store.delete_market(conn, market_id)
    log.info("market.deleted", market_id=market_id, actor_id=actor_id, refunded=refunded)
    return refunded
