"""Market row persistence. Status writes are compare-and-swap on the current status."""

from __future__ import annotations

import json
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from poolmarket.clock import from_epoch_ms, to_epoch_ms
from poolmarket.models import Market, Option, PredictionStatus

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection

_COLUMNS = [
    "market_id",
    "question",
    "type",
    "category",
    "country",
    "mode",
    "multiplier",
    "status",
    "options",
    "liquidity_pool",
    "pool_size",
    "created_at",
    "closes_at",
    "resolution_source",
    "created_by_creator",
    "creator_name",
    "winning_option_id",
    "commission",
    "creator_share",
    "resolved_at",
]
_SELECT = f"SELECT {', '.join(_COLUMNS)} FROM markets"


def _row_to_market(row: tuple[Any, ...]) -> Market:
    data = dict(zip(_COLUMNS, row))
    data["options"] = json.loads(data["options"]) if data["options"] else []
    data["liquidity_pool"] = json.loads(data["liquidity_pool"]) if data["liquidity_pool"] else {}
    for key in ("created_at", "closes_at", "resolved_at"):
        data[key] = from_epoch_ms(data[key])
    return Market.model_validate(data)


def _options_json(options: Iterable[Option]) -> str:
    return json.dumps([o.model_dump() for o in options])


def insert_market(conn: DuckDBPyConnection, market: Market) -> None:
    conn.execute(
        f"INSERT INTO markets ({', '.join(_COLUMNS)}) VALUES ({', '.join('?' for _ in _COLUMNS)})",
        [
            market.market_id,
            market.question,
            market.type.value,
            market.category,
            market.country,
            market.mode.value,
            market.multiplier,
            market.status.value,
            _options_json(market.options),
            json.dumps(market.liquidity_pool),
            market.pool_size,
            to_epoch_ms(market.created_at),
            to_epoch_ms(market.closes_at),
            market.resolution_source,
            market.created_by_creator,
            market.creator_name,
            market.winning_option_id,
            market.commission,
            market.creator_share,
            to_epoch_ms(market.resolved_at) if market.resolved_at else None,
        ],
    )


def get_market(conn: DuckDBPyConnection, market_id: str) -> Market | None:
    row = conn.execute(f"{_SELECT} WHERE market_id = ?", [market_id]).fetchone()
    return _row_to_market(row) if row else None


def list_markets(
    conn: DuckDBPyConnection,
    status: PredictionStatus | None = None,
    category: str | None = None,
    country: str | None = None,
    creator_id: str | None = None,
) -> list[Market]:
    """List markets newest first, with optional filters."""
    query = f"{_SELECT} WHERE 1=1"
    params: list[Any] = []
    if status is not None:
        query += " AND status = ?"
        params.append(PredictionStatus(status).value)
    if category:
        query += " AND category = ?"
        params.append(category)
    if country:
        query += " AND country = ?"
        params.append(country)
    if creator_id:
        query += " AND created_by_creator = ?"
        params.append(creator_id)
    query += " ORDER BY created_at DESC"
    return [_row_to_market(r) for r in conn.execute(query, params).fetchall()]


def update_pool(
    conn: DuckDBPyConnection,
    market_id: str,
    options: list[Option],
    liquidity_pool: dict[str, float],
    pool_size: int,
) -> bool:
    """Write new liquidity and cached prices. Only applies while the market is open."""
    rows = conn.execute(
        """
        UPDATE markets SET options = ?, liquidity_pool = ?, pool_size = ?
        WHERE market_id = ? AND status = ?
        RETURNING market_id
        """,
        [_options_json(options), json.dumps(liquidity_pool), pool_size, market_id, PredictionStatus.OPEN.value],
    ).fetchall()
    return bool(rows)


def transition_status(
    conn: DuckDBPyConnection,
    market_id: str,
    from_statuses: Iterable[PredictionStatus],
    to_status: PredictionStatus,
) -> bool:
    """Move status forward if it is currently one of ``from_statuses``. Returns False otherwise."""
    allowed = [PredictionStatus(s).value for s in from_statuses]
    placeholders = ", ".join("?" for _ in allowed)
    rows = conn.execute(
        f"UPDATE markets SET status = ? WHERE market_id = ? AND status IN ({placeholders}) RETURNING market_id",
        [PredictionStatus(to_status).value, market_id, *allowed],
    ).fetchall()
    return bool(rows)


def claim_for_resolution(conn: DuckDBPyConnection, market_id: str, winning_option_id: str) -> bool:
    """CAS open/closed -> resolving and record the winner.

    Also succeeds for a market already resolving with the same winner, so an
    interrupted run can resume.
    """
    rows = conn.execute(
        """
        UPDATE markets SET status = 'resolving', winning_option_id = ?
        WHERE market_id = ?
          AND (status IN ('open', 'closed') OR (status = 'resolving' AND winning_option_id = ?))
        RETURNING market_id
        """,
        [winning_option_id, market_id, winning_option_id],
    ).fetchall()
    return bool(rows)


def finalize_resolution(
    conn: DuckDBPyConnection,
    market_id: str,
    commission: float,
    creator_share: float | None,
    resolved_at_ms: int,
) -> bool:
    """CAS resolving -> resolved with the settlement totals."""
    rows = conn.execute(
        """
        UPDATE markets SET status = 'resolved', commission = ?, creator_share = ?, resolved_at = ?
        WHERE market_id = ? AND status = 'resolving'
        RETURNING market_id
        """,
        [commission, creator_share, resolved_at_ms, market_id],
    ).fetchall()
    return bool(rows)


def delete_market(conn: DuckDBPyConnection, market_id: str) -> None:
    """Delete a market and its entries."""
    conn.execute("DELETE FROM entries WHERE market_id = ?", [market_id])
    conn.execute("DELETE FROM markets WHERE market_id = ?", [market_id])
