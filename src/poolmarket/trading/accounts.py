"""Account opening with the welcome bonus."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from poolmarket.clock import Clock, system_clock
from poolmarket.errors import InvalidInputError, NotFoundError, StateConflictError
from poolmarket.models import Account, TransactionType
from poolmarket.storage import accounts
from poolmarket.storage.db import transaction

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection

log = structlog.get_logger(__name__)


def open_account(
    conn: DuckDBPyConnection,
    account_id: str,
    name: str,
    welcome_bonus: float = 100.0,
    is_admin: bool = False,
    is_creator: bool = False,
    creator_name: str | None = None,
    clock: Clock = system_clock,
) -> Account:
    """Create an account funded with ``welcome_bonus`` spendable tokens."""
    if not account_id or not name:
        raise InvalidInputError("account_id and name are required")
    if welcome_bonus < 0:
        raise InvalidInputError(f"welcome bonus must be non-negative, got {welcome_bonus}")
    now = clock.now()
    account = Account(
        account_id=account_id,
        name=name,
        balance=welcome_bonus,
        is_admin=is_admin,
        is_creator=is_creator,
        creator_name=creator_name,
        created_at=now,
    )
    with transaction(conn):
        if accounts.get_account(conn, account_id) is not None:
            raise StateConflictError(f"account already exists: {account_id}")
        accounts.insert_account(conn, account)
        if welcome_bonus > 0:
            accounts.append_transaction(
                conn, account_id, TransactionType.DEPOSIT, welcome_bonus, "Welcome Bonus", created_at=now
            )
    log.info("account.opened", account_id=account_id, is_admin=is_admin, is_creator=is_creator)
    return account


def get_account_or_raise(conn: DuckDBPyConnection, account_id: str) -> Account:
    account = accounts.get_account(conn, account_id)
    if account is None:
        raise NotFoundError(f"account not found: {account_id}")
    return account
