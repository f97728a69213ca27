"""Shared CLI plumbing: open the configured DB and turn domain errors into exit codes."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

import typer

from poolmarket.errors import PoolMarketError
from poolmarket.storage.db import get_connection, init_schema


@contextmanager
def open_db(ctx: typer.Context) -> Iterator:
    """Yield a connection with schema ensured. Domain errors print and exit 1."""
    settings = ctx.obj["settings"]
    conn = get_connection(settings.db_path)
    init_schema(conn)
    try:
        yield conn
    except PoolMarketError as e:
        typer.echo(f"Error ({e.code}): {e.message}", err=True)
        raise typer.Exit(1) from e
    finally:
        conn.close()
