"""DuckDB persistence for markets, entries, accounts and the ledger."""

from poolmarket.storage.db import get_connection, init_schema, transaction

__all__ = ["get_connection", "init_schema", "transaction"]
