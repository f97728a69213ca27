"""Write paths outside settlement: market lifecycle and entry purchase."""

from poolmarket.trading.accounts import get_account_or_raise, open_account
from poolmarket.trading.entries import place_entry
from poolmarket.trading.markets import (
    archive_market,
    close_market,
    create_market,
    delete_market,
    get_market_or_raise,
    quote_market,
)

__all__ = [
    "archive_market",
    "close_market",
    "create_market",
    "delete_market",
    "get_account_or_raise",
    "get_market_or_raise",
    "open_account",
    "place_entry",
    "quote_market",
]
