"""Accounts subcommand: create, show, transactions."""

from __future__ import annotations

import typer

from poolmarket.cli.common import open_db
from poolmarket.storage.accounts import list_transactions
from poolmarket.trading import get_account_or_raise, open_account

app = typer.Typer(help="Participant accounts and ledger")


@app.command("create")
def create(
    ctx: typer.Context,
    account_id: str = typer.Argument(..., help="Account ID"),
    name: str = typer.Option(..., "--name", "-n", help="Display name"),
    admin: bool = typer.Option(False, "--admin", help="Platform admin"),
    creator: bool = typer.Option(False, "--creator", help="Event creator (earns commission share)"),
) -> None:
    """Open an account funded with the configured welcome bonus."""
    settings = ctx.obj["settings"]
    with open_db(ctx) as conn:
        account = open_account(
            conn, account_id, name, welcome_bonus=settings.welcome_bonus, is_admin=admin, is_creator=creator
        )
        typer.echo(f"Created {account.account_id}  balance={account.balance:.2f}")


@app.command("show")
def show(ctx: typer.Context, account_id: str = typer.Argument(...)) -> None:
    """Show balances and the most recent ledger rows."""
    with open_db(ctx) as conn:
        acc = get_account_or_raise(conn, account_id)
        role = "admin" if acc.is_admin else "creator" if acc.is_creator else "user"
        typer.echo(f"{acc.account_id} ({acc.name}, {role})")
        typer.echo(f"  Balance: {acc.balance:.2f}  Winnings: {acc.winnings_balance:.2f}")
        if acc.is_creator:
            typer.echo(f"  Events created: {acc.total_events_created}  Commission earned: {acc.total_commission_earned:.2f}")
        for tx in list_transactions(conn, account_id, limit=10):
            typer.echo(f"  {tx.type.value:<9} {tx.amount:>10.2f}  {tx.description}")
