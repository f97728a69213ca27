"""Markets subcommand: create, list, quote, close, resolve, archive, delete."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import typer

from poolmarket.cli.common import open_db
from poolmarket.models import PredictionStatus, PredictionType
from poolmarket.settlement.engine import resolve_market
from poolmarket.storage.markets import list_markets as storage_list_markets
from poolmarket.trading import (
    archive_market,
    close_market,
    create_market,
    delete_market,
    get_market_or_raise,
    quote_market,
)

app = typer.Typer(help="Market lifecycle, live quotes and settlement")


@app.command("create")
def create(
    ctx: typer.Context,
    question: str = typer.Argument(..., help="Question being predicted"),
    actor: str = typer.Option(..., "--actor", "-a", help="Admin or creator account ID"),
    option: list[str] = typer.Option(..., "--option", "-o", help="Option label (repeat for each option)"),
    hours: float = typer.Option(24.0, "--hours", help="Hours until the market closes"),
    type: PredictionType = typer.Option(PredictionType.YES_NO, "--type", help="Prediction type"),
    multiplier: float = typer.Option(1.0, "--multiplier", help="High-roller multiplier (>= 1)"),
    category: str | None = typer.Option(None, "--category"),
    country: str | None = typer.Option(None, "--country"),
) -> None:
    """Create and seed a market, printing its initial prices."""
    settings = ctx.obj["settings"]
    closes_at = datetime.now(timezone.utc) + timedelta(hours=hours)
    with open_db(ctx) as conn:
        market = create_market(
            conn,
            actor,
            question=question,
            options=option,
            closes_at=closes_at,
            type=type,
            multiplier=multiplier,
            category=category,
            country=country,
            seed_amount=settings.seed_liquidity,
        )
        typer.echo(f"Created market {market.market_id}")
        for o in market.options:
            typer.echo(f"  {o.id:<16} {o.price:>7.2f}  {o.label}")


@app.command("list")
def list_markets(
    ctx: typer.Context,
    status: PredictionStatus | None = typer.Option(None, "--status", help="Filter by status"),
    category: str | None = typer.Option(None, "--category"),
) -> None:
    """List markets in local storage."""
    with open_db(ctx) as conn:
        rows = storage_list_markets(conn, status=status, category=category)
        for m in rows:
            typer.echo(f"  {m.market_id[:8]}  {m.status.value:<9} {m.pool_size:>5}  {m.question[:60]}")
        typer.echo(f"Total: {len(rows)} markets")


@app.command("quote")
def quote(ctx: typer.Context, market_id: str = typer.Argument(...)) -> None:
    """Show live per-option prices."""
    with open_db(ctx) as conn:
        market = get_market_or_raise(conn, market_id)
        typer.echo(f"{market.question}  [{market.status.value}, x{market.multiplier:g}]")
        typer.echo(f"  Entries: {market.pool_size}  Liquidity: {market.total_liquidity:.2f}")
        for o in quote_market(market):
            liq = market.liquidity_pool.get(o.id, 0.0)
            typer.echo(f"  {o.id:<16} {o.price:>7.2f}  liquidity={liq:.2f}")


@app.command("close")
def close(
    ctx: typer.Context,
    market_id: str = typer.Argument(...),
    actor: str = typer.Option(..., "--actor", "-a"),
) -> None:
    """Stop accepting entries."""
    with open_db(ctx) as conn:
        close_market(conn, market_id, actor)
        typer.echo(f"Closed {market_id}")


@app.command("resolve")
def resolve(
    ctx: typer.Context,
    market_id: str = typer.Argument(...),
    winner: str = typer.Option(..., "--winner", "-w", help="Winning option ID"),
    actor: str = typer.Option(..., "--actor", "-a"),
) -> None:
    """Declare the winning option and pay out the pool."""
    settings = ctx.obj["settings"]
    with open_db(ctx) as conn:
        result = resolve_market(conn, market_id, winner, actor, config=settings.settlement_config())
        typer.echo(f"Resolved {market_id}: winner={result.winning_option_id}")
        typer.echo(f"  Pool: {result.total_pool:.2f}  Commission: {result.commission:.2f}  Ratio: {result.payout_ratio:.4f}")
        typer.echo(f"  Winners: {result.winners_count}  Losers: {result.losers_count}  Paid: {result.total_paid:.2f}")
        if result.creator_share is not None:
            typer.echo(f"  Creator share: {result.creator_share:.2f}")
        if result.unclaimed:
            typer.echo(f"  Unclaimed (retained): {result.unclaimed:.2f}")


@app.command("archive")
def archive(
    ctx: typer.Context,
    market_id: str = typer.Argument(...),
    actor: str = typer.Option(..., "--actor", "-a"),
) -> None:
    """Archive a resolved market."""
    with open_db(ctx) as conn:
        archive_market(conn, market_id, actor)
        typer.echo(f"Archived {market_id}")


@app.command("delete")
def delete(
    ctx: typer.Context,
    market_id: str = typer.Argument(...),
    actor: str = typer.Option(..., "--actor", "-a"),
) -> None:
    """Delete an unsettled market, refunding active stakes (admin only)."""
    with open_db(ctx) as conn:
        refunded = delete_market(conn, market_id, actor)
        typer.echo(f"Deleted {market_id}, refunded {refunded} entries")
