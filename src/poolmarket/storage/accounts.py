"""Accounts, balance movements and the transactions ledger."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from poolmarket.clock import from_epoch_ms, system_clock, to_epoch_ms
from poolmarket.models import Account, Transaction, TransactionType

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection

_COLUMNS = [
    "account_id",
    "name",
    "balance",
    "winnings_balance",
    "is_admin",
    "is_creator",
    "creator_name",
    "total_events_created",
    "total_commission_earned",
    "created_at",
]
_TX_COLUMNS = ["transaction_id", "account_id", "type", "amount", "description", "created_at"]


def insert_account(conn: DuckDBPyConnection, account: Account) -> None:
    created = account.created_at or system_clock.now()
    conn.execute(
        f"INSERT INTO accounts ({', '.join(_COLUMNS)}) VALUES ({', '.join('?' for _ in _COLUMNS)})",
        [
            account.account_id,
            account.name,
            account.balance,
            account.winnings_balance,
            account.is_admin,
            account.is_creator,
            account.creator_name,
            account.total_events_created,
            account.total_commission_earned,
            to_epoch_ms(created),
        ],
    )


def get_account(conn: DuckDBPyConnection, account_id: str) -> Account | None:
    row = conn.execute(
        f"SELECT {', '.join(_COLUMNS)} FROM accounts WHERE account_id = ?", [account_id]
    ).fetchone()
    if not row:
        return None
    data = dict(zip(_COLUMNS, row))
    data["created_at"] = from_epoch_ms(data["created_at"])
    return Account.model_validate(data)


def debit_balance(conn: DuckDBPyConnection, account_id: str, amount: float) -> bool:
    """Take ``amount`` from spendable balance. False if the account is missing or short."""
    rows = conn.execute(
        """
        UPDATE accounts SET balance = balance - ?
        WHERE account_id = ? AND balance >= ?
        RETURNING account_id
        """,
        [amount, account_id, amount],
    ).fetchall()
    return bool(rows)


def credit_balance(conn: DuckDBPyConnection, account_id: str, amount: float) -> bool:
    rows = conn.execute(
        "UPDATE accounts SET balance = balance + ? WHERE account_id = ? RETURNING account_id",
        [amount, account_id],
    ).fetchall()
    return bool(rows)


def credit_winnings(
    conn: DuckDBPyConnection, account_id: str, amount: float, commission: bool = False
) -> bool:
    """Add to withdrawable balance. ``commission`` also bumps total_commission_earned."""
    if commission:
        sql = """
            UPDATE accounts SET winnings_balance = winnings_balance + ?,
                total_commission_earned = total_commission_earned + ?
            WHERE account_id = ? RETURNING account_id
        """
        params: list[Any] = [amount, amount, account_id]
    else:
        sql = "UPDATE accounts SET winnings_balance = winnings_balance + ? WHERE account_id = ? RETURNING account_id"
        params = [amount, account_id]
    return bool(conn.execute(sql, params).fetchall())


def increment_events_created(conn: DuckDBPyConnection, account_id: str) -> None:
    conn.execute(
        "UPDATE accounts SET total_events_created = total_events_created + 1 WHERE account_id = ?",
        [account_id],
    )


def append_transaction(
    conn: DuckDBPyConnection,
    account_id: str,
    type: TransactionType,
    amount: float,
    description: str,
    created_at: datetime | None = None,
) -> None:
    conn.execute(
        "INSERT INTO transactions (account_id, type, amount, description, created_at) VALUES (?, ?, ?, ?, ?)",
        [account_id, TransactionType(type).value, amount, description, to_epoch_ms(created_at or system_clock.now())],
    )


def list_transactions(conn: DuckDBPyConnection, account_id: str, limit: int = 50) -> list[Transaction]:
    """Most recent ledger rows for an account."""
    rows = conn.execute(
        f"""
        SELECT {', '.join(_TX_COLUMNS)} FROM transactions
        WHERE account_id = ? ORDER BY created_at DESC, transaction_id DESC LIMIT ?
        """,
        [account_id, limit],
    ).fetchall()
    result = []
    for r in rows:
        data = dict(zip(_TX_COLUMNS, r))
        data["created_at"] = from_epoch_ms(data["created_at"])
        result.append(Transaction.model_validate(data))
    return result
