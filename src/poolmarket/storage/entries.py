"""Entry persistence."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from poolmarket.clock import from_epoch_ms, to_epoch_ms
from poolmarket.models import Entry, EntryStatus

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection

_COLUMNS = [
    "entry_id",
    "account_id",
    "market_id",
    "selected_option_id",
    "selected_option_label",
    "amount",
    "potential_payout",
    "status",
    "created_at",
]
_SELECT = f"SELECT {', '.join(_COLUMNS)} FROM entries"


def _row_to_entry(row: tuple[Any, ...]) -> Entry:
    data = dict(zip(_COLUMNS, row))
    data["created_at"] = from_epoch_ms(data["created_at"])
    data["selected_option_label"] = data["selected_option_label"] or ""
    return Entry.model_validate(data)


def insert_entry(conn: DuckDBPyConnection, entry: Entry) -> None:
    conn.execute(
        f"INSERT INTO entries ({', '.join(_COLUMNS)}) VALUES ({', '.join('?' for _ in _COLUMNS)})",
        [
            entry.entry_id,
            entry.account_id,
            entry.market_id,
            entry.selected_option_id,
            entry.selected_option_label,
            entry.amount,
            entry.potential_payout,
            entry.status.value,
            to_epoch_ms(entry.created_at) if entry.created_at else 0,
        ],
    )


def get_entry(conn: DuckDBPyConnection, account_id: str, market_id: str) -> Entry | None:
    row = conn.execute(
        f"{_SELECT} WHERE account_id = ? AND market_id = ?", [account_id, market_id]
    ).fetchone()
    return _row_to_entry(row) if row else None


def list_market_entries(conn: DuckDBPyConnection, market_id: str) -> list[Entry]:
    """All entries for a market in purchase order."""
    rows = conn.execute(
        f"{_SELECT} WHERE market_id = ? ORDER BY created_at, entry_id", [market_id]
    ).fetchall()
    return [_row_to_entry(r) for r in rows]


def list_account_entries(
    conn: DuckDBPyConnection, account_id: str, status: EntryStatus | None = None
) -> list[Entry]:
    query = f"{_SELECT} WHERE account_id = ?"
    params: list[Any] = [account_id]
    if status is not None:
        query += " AND status = ?"
        params.append(EntryStatus(status).value)
    query += " ORDER BY created_at DESC"
    return [_row_to_entry(r) for r in conn.execute(query, params).fetchall()]


def settle_entry(conn: DuckDBPyConnection, entry_id: str, status: EntryStatus, payout: float) -> bool:
    """Mark an active entry won/lost with its actual payout. False if it was already settled."""
    rows = conn.execute(
        """
        UPDATE entries SET status = ?, potential_payout = ?
        WHERE entry_id = ? AND status = 'active'
        RETURNING entry_id
        """,
        [EntryStatus(status).value, payout, entry_id],
    ).fetchall()
    return bool(rows)
