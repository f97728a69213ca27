"""Shared fixtures: temporary DuckDB, fixed clock, seeded accounts and factories."""

import shutil
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from poolmarket.clock import FixedClock
from poolmarket.models import Entry
from poolmarket.storage.db import get_connection, init_schema, transaction
from poolmarket.storage.entries import insert_entry
from poolmarket.trading import create_market, open_account

T0 = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def temp_db():
    tmp = tempfile.mkdtemp()
    path = Path(tmp) / "test.duckdb"
    conn = get_connection(path)
    init_schema(conn)
    yield conn
    conn.close()
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def clock():
    return FixedClock(T0)


@pytest.fixture
def admin(temp_db, clock):
    return open_account(temp_db, "admin", "Admin", welcome_bonus=0, is_admin=True, clock=clock)


@pytest.fixture
def users(temp_db, clock):
    return [open_account(temp_db, f"user{i}", f"User {i}", welcome_bonus=100, clock=clock) for i in (1, 2, 3)]


@pytest.fixture
def make_market(temp_db, clock, admin):
    """Factory: seeded market closing ``hours`` from now, admin-owned by default."""

    def _make(actor="admin", options=("Yes", "No"), hours=10, **kwargs):
        return create_market(
            temp_db,
            actor,
            question=kwargs.pop("question", "Will it rain tomorrow?"),
            options=list(options),
            closes_at=clock.now() + timedelta(hours=hours),
            clock=clock,
            **kwargs,
        )

    return _make


@pytest.fixture
def add_entry(temp_db, clock):
    """Factory: insert an entry with an explicit stake, bypassing the purchase path."""
    counter = {"n": 0}

    def _add(market_id, account_id, option_id, amount):
        counter["n"] += 1
        entry = Entry(
            entry_id=f"e{counter['n']:03d}-{account_id}",
            account_id=account_id,
            market_id=market_id,
            selected_option_id=option_id,
            amount=amount,
            potential_payout=10.0,
            created_at=clock.now() + timedelta(seconds=counter["n"]),
        )
        with transaction(temp_db):
            insert_entry(temp_db, entry)
        return entry

    return _add
