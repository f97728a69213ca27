"""Pricing engine: bounds, zero-liquidity seeding, urgency premium, smoothing."""

from datetime import datetime, timedelta, timezone

import pytest

from poolmarket.errors import InvalidInputError
from poolmarket.models import Option
from poolmarket.pricing import (
    BASE_PRICE,
    PRICE_CEILING,
    fixed_payout,
    quote_prices,
    seed_liquidity,
    time_factor,
    zero_liquidity_price,
)

START = datetime(2026, 3, 1, tzinfo=timezone.utc)
END = START + timedelta(hours=100)

YES_NO = [Option(id="yes", label="Yes"), Option(id="no", label="No")]
THREE_WAY = [{"id": "dembare", "label": "Dembare"}, {"id": "bosso", "label": "Bosso"}, {"id": "draw", "label": "Draw"}]


def _prices(quoted):
    return {o.id: o.price for o in quoted}


def test_seeded_market_prices_are_equal():
    assert _prices(quote_prices(YES_NO, seed_liquidity(YES_NO, 500))) == {"yes": 4.0, "no": 4.0}
    assert set(_prices(quote_prices(THREE_WAY, seed_liquidity(THREE_WAY, 500))).values()) == {3.0}


@pytest.mark.parametrize(
    "n,multiplier,expected",
    [(2, 1, 4.0), (3, 1, 3.0), (4, 1, 2.67), (2, 2, 8.0), (5, 3, 7.5)],
)
def test_zero_liquidity_prices(n, multiplier, expected):
    options = [Option(id=f"o{i}", label=f"O{i}") for i in range(n)]
    quoted = quote_prices(options, {}, multiplier=multiplier)
    assert [o.price for o in quoted] == [expected] * n
    assert zero_liquidity_price(n, multiplier) == pytest.approx(BASE_PRICE / (1 - 1 / n) * multiplier)


def test_single_option_market_is_finite():
    only = [Option(id="only", label="Only")]
    assert quote_prices(only, {})[0].price == 10.0
    assert quote_prices(only, {"only": 250})[0].price == 10.0


def test_two_option_example_flattens_toward_even():
    quoted = _prices(quote_prices(YES_NO, {"yes": 2000, "no": 1500}))
    assert 2.0 < quoted["no"] < quoted["yes"] < 10.0
    assert quoted["yes"] == pytest.approx(4.55, abs=0.01)
    assert quoted["no"] == pytest.approx(3.57, abs=0.01)
    # proportional pricing would give 2 / (1 - 4/7) = 4.67
    assert quoted["yes"] < 4.67


def test_extreme_skew_is_capped():
    quoted = _prices(quote_prices(YES_NO, {"yes": 9000, "no": 0}))
    assert quoted["yes"] == 10.0
    assert quoted["no"] == pytest.approx(2.01, abs=0.01)


def test_missing_and_negative_liquidity_count_as_zero():
    quoted = _prices(quote_prices(THREE_WAY, {"dembare": 100, "bosso": -50}))
    assert quoted["bosso"] == quoted["draw"]
    assert quoted["dembare"] > quoted["bosso"]


@pytest.mark.parametrize("multiplier", [1, 1.1, 1.333, 2, 5, 7.777])
@pytest.mark.parametrize(
    "pool",
    [
        {"yes": 0, "no": 0},
        {"yes": 1, "no": 0},
        {"yes": 500, "no": 500},
        {"yes": 2000, "no": 1500},
        {"yes": 6000, "no": 1000},
        {"yes": 1e9, "no": 1e-9},
    ],
)
@pytest.mark.parametrize("hours_in", [0, 50, 80, 90, 99.9, 120])
def test_price_bounds(pool, multiplier, hours_in):
    now = START + timedelta(hours=hours_in)
    for opt in quote_prices(YES_NO, pool, START, END, multiplier, now=now):
        assert BASE_PRICE * multiplier <= opt.price <= PRICE_CEILING * multiplier


def test_time_factor_window():
    assert time_factor(START, END, START + timedelta(hours=50)) == 1.0
    assert time_factor(START, END, START + timedelta(hours=80)) == pytest.approx(1.0)
    assert time_factor(START, END, START + timedelta(hours=90)) == pytest.approx(1.1)
    assert time_factor(START, END, START + timedelta(hours=99)) == pytest.approx(1.19)
    # after close, missing timestamps, zero duration
    assert time_factor(START, END, END + timedelta(hours=1)) == 1.0
    assert time_factor(None, END, START) == 1.0
    assert time_factor(START, START, START) == 1.0
    assert time_factor("not a date", END, START) == 1.0


def test_time_factor_accepts_iso_strings():
    assert time_factor("2026-03-01T00:00:00Z", "2026-03-05T04:00:00Z", START + timedelta(hours=90)) == pytest.approx(1.1)


def test_urgency_is_monotonic():
    pool = {"yes": 2000, "no": 1500}

    def price_at(hours):
        return _prices(quote_prices(YES_NO, pool, START, END, now=START + timedelta(hours=hours)))["yes"]

    outside, at_20, at_10 = price_at(50), price_at(80), price_at(90)
    assert at_10 >= at_20 >= outside
    assert at_10 > outside


def test_multiplier_scales_linearly():
    pool = {"yes": 2000, "no": 1500}
    base = _prices(quote_prices(YES_NO, pool))
    doubled = _prices(quote_prices(YES_NO, pool, multiplier=2))
    for oid in base:
        assert doubled[oid] == pytest.approx(base[oid] * 2, abs=0.02)
    assert fixed_payout(2) == 20.0


def test_quote_is_pure_and_keeps_order():
    pool = {"dembare": 5000, "bosso": 4500, "draw": 2000}
    now = START + timedelta(hours=95)
    first = quote_prices(THREE_WAY, pool, START, END, now=now)
    second = quote_prices(THREE_WAY, pool, START, END, now=now)
    assert first == second
    assert [o.id for o in first] == ["dembare", "bosso", "draw"]
    assert [o.label for o in first] == ["Dembare", "Bosso", "Draw"]
    assert pool == {"dembare": 5000, "bosso": 4500, "draw": 2000}


def test_structurally_invalid_input_is_rejected():
    with pytest.raises(InvalidInputError):
        quote_prices([], {})
    with pytest.raises(InvalidInputError):
        quote_prices(YES_NO, {}, multiplier=0)


def test_rounding_never_crosses_bounds():
    # 12 * 1.333 = 15.996 and 2 * 1.333 = 2.666 are not whole cents
    near_close = END - timedelta(seconds=1)
    quoted = _prices(quote_prices(YES_NO, {"yes": 1e9, "no": 1e-9}, START, END, 1.333, now=near_close))
    assert quoted["yes"] == 15.99
    assert quoted["no"] >= 2.67
    assert quote_prices(YES_NO, {}, multiplier=1.1)[0].price == 4.4
