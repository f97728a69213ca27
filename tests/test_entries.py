"""Entry purchase path: price lock-in, balance debit, liquidity update."""

import pytest

from poolmarket.errors import (
    DuplicateEntryError,
    InsufficientBalanceError,
    MarketNotOpenError,
    NotFoundError,
    StateConflictError,
    UnknownOptionError,
    WriteConflictError,
)
from poolmarket.models import EntryStatus, TransactionType
from poolmarket.settlement import SettlementConfig, resolve_market
from poolmarket.storage.accounts import get_account, list_transactions
from poolmarket.storage.entries import get_entry, list_market_entries
from poolmarket.storage.markets import get_market
from poolmarket.trading import entries as entries_module
from poolmarket.trading import close_market, open_account, place_entry, quote_market


def test_place_entry_locks_price_and_moves_liquidity(temp_db, make_market, users, clock):
    market = make_market()
    entry = place_entry(temp_db, market.market_id, "user1", "yes", clock=clock)

    assert entry.amount == 4.0
    assert entry.potential_payout == 10.0
    assert entry.selected_option_label == "Yes"
    assert entry.status == EntryStatus.ACTIVE
    assert get_entry(temp_db, "user1", market.market_id) == entry
    assert get_account(temp_db, "user1").balance == pytest.approx(96.0)

    stored = get_market(temp_db, market.market_id)
    assert stored.pool_size == 1
    assert stored.liquidity_pool == {"yes": 504.0, "no": 500.0}
    cached = {o.id: o.price for o in stored.options}
    assert cached["yes"] > cached["no"]
    assert cached == {o.id: o.price for o in quote_market(stored, now=clock.now())}

    tx = list_transactions(temp_db, "user1")[0]
    assert tx.type == TransactionType.ENTRY
    assert tx.amount == pytest.approx(-4.0)
    assert tx.description == "Entry: Will it rain tomorro"


def test_price_reflects_demand(temp_db, make_market, users, clock):
    market = make_market()
    first = place_entry(temp_db, market.market_id, "user1", "yes", clock=clock)
    second = place_entry(temp_db, market.market_id, "user2", "yes", clock=clock)
    third = place_entry(temp_db, market.market_id, "user3", "no", clock=clock)
    assert first.amount <= second.amount
    assert third.amount < second.amount


def test_one_entry_per_account_and_market(temp_db, make_market, users, clock):
    market = make_market()
    place_entry(temp_db, market.market_id, "user1", "yes", clock=clock)
    with pytest.raises(DuplicateEntryError):
        place_entry(temp_db, market.market_id, "user1", "no", clock=clock)
    assert get_account(temp_db, "user1").balance == pytest.approx(96.0)
    assert get_market(temp_db, market.market_id).pool_size == 1


def test_unknown_option(temp_db, make_market, users, clock):
    market = make_market()
    with pytest.raises(UnknownOptionError):
        place_entry(temp_db, market.market_id, "user1", "maybe", clock=clock)


def test_insufficient_balance_leaves_everything_untouched(temp_db, make_market, clock):
    market = make_market()
    open_account(temp_db, "poor", "Poor", welcome_bonus=1, clock=clock)
    with pytest.raises(InsufficientBalanceError) as exc:
        place_entry(temp_db, market.market_id, "poor", "yes", clock=clock)
    assert exc.value.code == "insufficient_balance"
    assert get_account(temp_db, "poor").balance == 1
    assert list_market_entries(temp_db, market.market_id) == []
    assert get_market(temp_db, market.market_id).liquidity_pool == {"yes": 500.0, "no": 500.0}


def test_missing_market_or_account(temp_db, make_market, users, clock):
    market = make_market()
    with pytest.raises(NotFoundError):
        place_entry(temp_db, "nope", "user1", "yes", clock=clock)
    with pytest.raises(NotFoundError):
        place_entry(temp_db, market.market_id, "ghost", "yes", clock=clock)


def test_closed_market_rejects_entries(temp_db, make_market, users, clock):
    market = make_market()
    close_market(temp_db, market.market_id, "admin")
    with pytest.raises(MarketNotOpenError):
        place_entry(temp_db, market.market_id, "user1", "yes", clock=clock)


def test_entries_stop_at_closing_time(temp_db, make_market, users, clock):
    market = make_market(hours=10)
    clock.advance(hours=10)
    with pytest.raises(MarketNotOpenError):
        place_entry(temp_db, market.market_id, "user1", "yes", clock=clock)


def test_urgency_premium_near_close(temp_db, make_market, users, clock):
    market = make_market(hours=10)
    clock.advance(hours=9)
    entry = place_entry(temp_db, market.market_id, "user1", "yes", clock=clock)
    assert entry.amount == pytest.approx(4.4)


def test_high_roller_market_scales_price_and_payout(temp_db, make_market, users, clock):
    market = make_market(multiplier=2)
    entry = place_entry(temp_db, market.market_id, "user1", "no", clock=clock)
    assert entry.amount == 8.0
    assert entry.potential_payout == 20.0


def test_stakes_flow_into_settlement(temp_db, make_market, users, clock):
    market = make_market()
    stakes = [
        place_entry(temp_db, market.market_id, "user1", "yes", clock=clock).amount,
        place_entry(temp_db, market.market_id, "user2", "no", clock=clock).amount,
        place_entry(temp_db, market.market_id, "user3", "no", clock=clock).amount,
    ]
    result = resolve_market(temp_db, market.market_id, "yes", "admin", SettlementConfig(), clock=clock)
    assert result.total_pool == pytest.approx(sum(stakes))
    assert get_account(temp_db, "user1").winnings_balance == pytest.approx(sum(stakes) * 0.95)


def test_entry_racing_resolution_on_another_connection(temp_db, make_market, users, clock, monkeypatch):
    market = make_market()
    real_quote = entries_module.quote_prices
    calls = []

    def resolve_first(*args, **kwargs):
        # the entry transaction has read the open market; settle it from a second connection
        if not calls:
            other = temp_db.cursor()
            try:
                resolve_market(other, market.market_id, "no", "admin", SettlementConfig(), clock=clock)
            finally:
                other.close()
        calls.append(1)
        return real_quote(*args, **kwargs)

    monkeypatch.setattr(entries_module, "quote_prices", resolve_first)
    with pytest.raises(WriteConflictError) as exc:
        place_entry(temp_db, market.market_id, "user1", "yes", clock=clock)
    assert isinstance(exc.value, StateConflictError)
    assert exc.value.retryable is True
    assert exc.value.code == "write_conflict"

    assert get_market(temp_db, market.market_id).status.value == "resolved"
    assert get_entry(temp_db, "user1", market.market_id) is None
    assert get_account(temp_db, "user1").balance == pytest.approx(100.0)
    assert [t.type for t in list_transactions(temp_db, "user1")] == [TransactionType.DEPOSIT]
