"""DuckDB connection, schema init and transaction scope."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING

import duckdb

from poolmarket.errors import WriteConflictError

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection

SCHEMA_SQL = """
CREATE SEQUENCE IF NOT EXISTS transaction_seq START 1;

-- Participant accounts (spendable and withdrawable balances)
CREATE TABLE IF NOT EXISTS accounts (
    account_id              VARCHAR PRIMARY KEY,
    name                    VARCHAR NOT NULL,
    balance                 DOUBLE NOT NULL DEFAULT 0,
    winnings_balance        DOUBLE NOT NULL DEFAULT 0,
    is_admin                BOOLEAN NOT NULL DEFAULT FALSE,
    is_creator              BOOLEAN NOT NULL DEFAULT FALSE,
    creator_name            VARCHAR,
    total_events_created    INTEGER NOT NULL DEFAULT 0,
    total_commission_earned DOUBLE NOT NULL DEFAULT 0,
    created_at              BIGINT NOT NULL
);

-- Markets (predictions). options and liquidity_pool are JSON, timestamps ms epoch
CREATE TABLE IF NOT EXISTS markets (
    market_id           VARCHAR PRIMARY KEY,
    question            VARCHAR NOT NULL,
    type                VARCHAR NOT NULL,
    category            VARCHAR,
    country             VARCHAR,
    mode                VARCHAR NOT NULL,
    multiplier          DOUBLE NOT NULL,
    status              VARCHAR NOT NULL,
    options             JSON NOT NULL,
    liquidity_pool      JSON NOT NULL,
    pool_size           INTEGER NOT NULL DEFAULT 0,
    created_at          BIGINT NOT NULL,
    closes_at           BIGINT NOT NULL,
    resolution_source   VARCHAR,
    created_by_creator  VARCHAR,
    creator_name        VARCHAR,
    winning_option_id   VARCHAR,
    commission          DOUBLE,
    creator_share       DOUBLE,
    resolved_at         BIGINT
);

-- One stake per (account, market)
CREATE TABLE IF NOT EXISTS entries (
    entry_id                VARCHAR PRIMARY KEY,
    account_id              VARCHAR NOT NULL,
    market_id               VARCHAR NOT NULL,
    selected_option_id      VARCHAR NOT NULL,
    selected_option_label   VARCHAR,
    amount                  DOUBLE NOT NULL,
    potential_payout        DOUBLE NOT NULL,
    status                  VARCHAR NOT NULL,
    created_at              BIGINT NOT NULL,
    UNIQUE (account_id, market_id)
);

-- Append-only ledger
CREATE TABLE IF NOT EXISTS transactions (
    transaction_id  BIGINT PRIMARY KEY DEFAULT nextval('transaction_seq'),
    account_id      VARCHAR NOT NULL,
    type            VARCHAR NOT NULL,
    amount          DOUBLE NOT NULL,
    description     VARCHAR,
    created_at      BIGINT NOT NULL
);
"""


def get_connection(db_path: str | Path, read_only: bool = False) -> DuckDBPyConnection:
    """Return a DuckDB connection. Caller must close or use as context manager.
    ``:memory:`` gives a private in-process database."""
    if str(db_path) == ":memory:":
        return duckdb.connect(":memory:")
    path = Path(db_path)
    if not read_only:
        path.parent.mkdir(parents=True, exist_ok=True)
    return duckdb.connect(str(path), read_only=read_only)


def init_schema(conn: DuckDBPyConnection) -> None:
    """Create tables and sequences if they do not exist."""
    for stmt in SCHEMA_SQL.split(";"):
        stmt = stmt.strip()
        if stmt:
            try:
                conn.execute(stmt)
            except duckdb.Error as e:
                if "already exists" not in str(e).lower():
                    raise


@contextmanager
def transaction(conn: DuckDBPyConnection) -> Iterator[DuckDBPyConnection]:
    """BEGIN/COMMIT around the block, ROLLBACK on any exception.

    A write-write conflict with another connection (DuckDB is optimistic and
    detects it on the conflicting statement or at commit) is raised as
    WriteConflictError; the block's writes are discarded.
    """
    conn.begin()
    try:
        yield conn
    except duckdb.TransactionException as e:
        conn.rollback()
        raise WriteConflictError(f"concurrent update, transaction rolled back: {e}") from e
    except BaseException:
        conn.rollback()
        raise
    try:
        conn.commit()
    except duckdb.TransactionException as e:
        raise WriteConflictError(f"concurrent update, commit failed: {e}") from e
