"""Root CLI app - entry point and command registration."""

from pathlib import Path

import typer

from poolmarket.config import get_settings
from poolmarket.config.settings import configure_logging

app = typer.Typer(
    name="poolmarket",
    help="poolmarket - pooled prediction markets: pricing, entries and settlement.",
    no_args_is_help=True,
)


@app.callback()
def main(
    ctx: typer.Context,
    config_dir: Path | None = typer.Option(
        None, "--config-dir", "-C", help="Config directory (default: ./config or package config)"
    ),
    profile: str | None = typer.Option(
        None, "--profile", "-p", help="Config profile (e.g. dev) to overlay on default.toml"
    ),
    db_path: str | None = typer.Option(None, "--db", help="Override storage.db_path"),
) -> None:
    """Configure logging and store options in context."""
    settings = get_settings(profile, config_dir)
    if db_path:
        settings.storage["db_path"] = db_path
    configure_logging(settings)
    ctx.obj = {"settings": settings, "config_dir": config_dir, "profile": profile, "db_path": db_path}


# Subcommands registered from other modules
from poolmarket.cli import accounts, api_cmd, entries, markets  # noqa: E402

app.add_typer(markets.app, name="markets")
app.add_typer(accounts.app, name="accounts")
app.add_typer(entries.app, name="entries")
app.add_typer(api_cmd.app, name="api")


def run() -> None:
    app()


if __name__ == "__main__":
    run()
