"""Entry pricing engine - liquidity distribution + time window + multiplier -> per-option price.

Pure and deterministic. The same function seeds prices at market creation and
re-quotes them on every read, so there is exactly one pricing rule:

1. Base probability: liquidity / total liquidity (floored at MIN_PROBABILITY).
2. Softmax smoothing: p ** SOFTMAX_EXPONENT, renormalized. Exponent < 1 flattens skew.
3. Demand curve: BASE_PRICE / (1 - min(p, MAX_PROBABILITY)).
4. Urgency premium in the last TIME_FACTOR_WINDOW of the market's life, then the
   high-roller multiplier, then floor BASE_PRICE*m and ceiling PRICE_CEILING*m.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any

import structlog

from poolmarket.clock import parse_timestamp, system_clock
from poolmarket.errors import InvalidInputError
from poolmarket.models.market import Option

log = structlog.get_logger(__name__)

BASE_PRICE = 2.0
FIXED_PAYOUT = 10.0
SOFTMAX_EXPONENT = 0.85
MIN_PROBABILITY = 0.001
MAX_PROBABILITY = 0.80
TIME_FACTOR_WINDOW = 0.2  # fraction of the market's life
TIME_FACTOR_MAX_PREMIUM = 0.2  # factor reaches 1.2 at close
PRICE_CEILING = 12.0


def _as_option(opt: Option | Mapping[str, Any]) -> Option:
    if isinstance(opt, Option):
        return opt
    return Option(id=str(opt["id"]), label=str(opt.get("label") or opt["id"]), price=float(opt.get("price") or 0.0))


def _liquidity(pool: Mapping[str, float], option_id: str) -> float:
    value = float(pool.get(option_id) or 0.0)
    return value if value > 0 else 0.0


def fixed_payout(multiplier: float = 1.0, base: float = FIXED_PAYOUT) -> float:
    """Nominal payout locked into an entry at purchase time."""
    return base * multiplier


def seed_liquidity(
    options: Sequence[Option | Mapping[str, Any]], amount: float = 500.0
) -> dict[str, float]:
    """Equal starting liquidity for every option of a new market."""
    return {_as_option(o).id: float(amount) for o in options}


def zero_liquidity_price(n_options: int, multiplier: float = 1.0) -> float:
    """Equal price when nothing is staked yet: BASE_PRICE / (1 - 1/N) * m.

    A single-option market has no alternative outcome, so it is priced like an
    option holding the capped probability instead of dividing by zero.
    """
    if n_options <= 1:
        return BASE_PRICE / (1 - MAX_PROBABILITY) * multiplier
    return BASE_PRICE / (1 - 1 / n_options) * multiplier


def time_factor(
    created_at: datetime | str | None,
    closes_at: datetime | str | None,
    now: datetime | None = None,
) -> float:
    """Urgency premium: 1.0 until the last 20% of the window, then linear up to 1.2 at close."""
    try:
        start = parse_timestamp(created_at)
        end = parse_timestamp(closes_at)
    except ValueError:
        log.debug("pricing.bad_timestamp", created_at=created_at, closes_at=closes_at)
        return 1.0
    if start is None or end is None:
        return 1.0
    current = parse_timestamp(now) if now is not None else system_clock.now()
    total = (end - start).total_seconds()
    remaining = (end - current).total_seconds()
    if total <= 0 or remaining <= 0:
        return 1.0
    ratio_remaining = remaining / total
    if ratio_remaining > TIME_FACTOR_WINDOW:
        return 1.0
    return 1 + TIME_FACTOR_MAX_PREMIUM * (1 - ratio_remaining / TIME_FACTOR_WINDOW)


def _to_cents(price: float, floor: float, cap: float) -> float:
    """Round to cents, keeping the result inside [floor, cap] after rounding."""
    low = math.ceil(round(floor * 100, 6)) / 100
    high = math.floor(round(cap * 100, 6)) / 100
    return min(max(round(price, 2), low), high)


def adjusted_probabilities(
    option_ids: Sequence[str], liquidity_pool: Mapping[str, float]
) -> dict[str, float]:
    """Softmax-smoothed implied probability per option. Requires positive total liquidity."""
    total = sum(_liquidity(liquidity_pool, oid) for oid in option_ids)
    powered = {}
    for oid in option_ids:
        prob = max(_liquidity(liquidity_pool, oid) / total, MIN_PROBABILITY)
        powered[oid] = prob**SOFTMAX_EXPONENT
    norm = sum(powered.values())
    return {oid: p / norm for oid, p in powered.items()}


def quote_prices(
    options: Sequence[Option | Mapping[str, Any]],
    liquidity_pool: Mapping[str, float],
    created_at: datetime | str | None = None,
    closes_at: datetime | str | None = None,
    multiplier: float = 1.0,
    now: datetime | None = None,
) -> list[Option]:
    """Return options (same order) with ``price`` set from the current liquidity.

    Prices always lie in [BASE_PRICE*m, PRICE_CEILING*m], rounded to cents.
    """
    opts = [_as_option(o) for o in options]
    if not opts:
        raise InvalidInputError("at least one option is required for pricing")
    if not multiplier or multiplier <= 0:
        raise InvalidInputError(f"multiplier must be positive, got {multiplier}")

    ids = [o.id for o in opts]
    floor = BASE_PRICE * multiplier
    cap = PRICE_CEILING * multiplier
    total = sum(_liquidity(liquidity_pool, oid) for oid in ids)
    if total == 0:
        price = _to_cents(zero_liquidity_price(len(opts), multiplier), floor, cap)
        return [o.model_copy(update={"price": price}) for o in opts]

    probs = adjusted_probabilities(ids, liquidity_pool)
    factor = time_factor(created_at, closes_at, now)

    quoted = []
    for opt in opts:
        capped = min(probs[opt.id], MAX_PROBABILITY)
        raw = BASE_PRICE / (1 - capped)
        raw *= factor
        raw *= multiplier
        quoted.append(opt.model_copy(update={"price": _to_cents(raw, floor, cap)}))
    return quoted
