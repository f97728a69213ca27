"""Liquidity-driven option pricing."""

from poolmarket.pricing.engine import (
    BASE_PRICE,
    FIXED_PAYOUT,
    PRICE_CEILING,
    fixed_payout,
    quote_prices,
    seed_liquidity,
    time_factor,
    zero_liquidity_price,
)

__all__ = [
    "BASE_PRICE",
    "FIXED_PAYOUT",
    "PRICE_CEILING",
    "fixed_payout",
    "quote_prices",
    "seed_liquidity",
    "time_factor",
    "zero_liquidity_price",
]
