"""Entries subcommand: place, list."""

from __future__ import annotations

import typer

from poolmarket.cli.common import open_db
from poolmarket.models import EntryStatus
from poolmarket.storage.entries import list_account_entries
from poolmarket.trading import place_entry

app = typer.Typer(help="Stake on market options")


@app.command("place")
def place(
    ctx: typer.Context,
    market: str = typer.Option(..., "--market", "-m", help="Market ID"),
    account: str = typer.Option(..., "--account", "-a", help="Account ID"),
    option: str = typer.Option(..., "--option", "-o", help="Option ID"),
) -> None:
    """Buy one unit of an option at the live price."""
    settings = ctx.obj["settings"]
    with open_db(ctx) as conn:
        entry = place_entry(conn, market, account, option, base_payout=settings.fixed_payout)
        typer.echo(f"Entry {entry.entry_id}: paid {entry.amount:.2f}, pays {entry.potential_payout:.2f} if correct")


@app.command("list")
def list_entries(
    ctx: typer.Context,
    account: str = typer.Option(..., "--account", "-a", help="Account ID"),
    status: EntryStatus | None = typer.Option(None, "--status", help="active, won or lost"),
) -> None:
    """List an account's entries."""
    with open_db(ctx) as conn:
        rows = list_account_entries(conn, account, status=status)
        for e in rows:
            typer.echo(f"  {e.market_id[:8]}  {e.selected_option_id:<12} {e.amount:>7.2f}  {e.status.value:<6} {e.potential_payout:.2f}")
        typer.echo(f"Total: {len(rows)} entries")
