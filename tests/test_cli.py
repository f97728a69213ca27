"""CLI smoke tests through typer's CliRunner against a temp DuckDB file."""

import re

import pytest
from typer.testing import CliRunner

from poolmarket.cli.app import app

runner = CliRunner()


@pytest.fixture
def cli(tmp_path, monkeypatch):
    # keep structlog on its defaults so log lines go to the runner's stdout
    monkeypatch.setattr("poolmarket.cli.app.configure_logging", lambda settings: None)
    base = ["--config-dir", str(tmp_path), "--db", str(tmp_path / "cli.duckdb")]

    def _run(*args):
        return runner.invoke(app, [*base, *args])

    return _run


def _market_id(output):
    return re.search(r"Created market (\S+)", output).group(1)


def test_full_market_lifecycle(cli):
    assert cli("accounts", "create", "admin", "--name", "Admin", "--admin").exit_code == 0
    r = cli("accounts", "create", "user1", "--name", "Rudo")
    assert r.exit_code == 0, r.output
    assert "balance=100.00" in r.output

    r = cli("markets", "create", "Will it rain in Mutare?", "--actor", "admin", "-o", "Yes", "-o", "No", "--hours", "5")
    assert r.exit_code == 0, r.output
    market_id = _market_id(r.output)

    r = cli("markets", "quote", market_id)
    assert r.exit_code == 0
    assert "4.00" in r.output

    r = cli("entries", "place", "--market", market_id, "--account", "user1", "--option", "yes")
    assert r.exit_code == 0, r.output
    assert "paid 4.00" in r.output

    r = cli("markets", "resolve", market_id, "--winner", "yes", "--actor", "admin")
    assert r.exit_code == 0, r.output
    assert "winner=yes" in r.output

    r = cli("markets", "resolve", market_id, "--winner", "yes", "--actor", "admin")
    assert r.exit_code == 1
    assert "already_resolved" in r.output

    r = cli("accounts", "show", "user1")
    assert r.exit_code == 0
    assert "Winnings: 3.80" in r.output

    r = cli("entries", "list", "--account", "user1", "--status", "won")
    assert "Total: 1 entries" in r.output

    r = cli("markets", "list", "--status", "resolved")
    assert "Total: 1 markets" in r.output

    assert cli("markets", "archive", market_id, "--actor", "admin").exit_code == 0


def test_non_creator_cannot_create_market(cli):
    cli("accounts", "create", "user1", "--name", "Rudo")
    r = cli("markets", "create", "Q?", "--actor", "user1", "-o", "A", "-o", "B")
    assert r.exit_code == 1
    assert "forbidden" in r.output


def test_delete_market(cli):
    cli("accounts", "create", "admin", "--name", "Admin", "--admin")
    market_id = _market_id(cli("markets", "create", "Q?", "--actor", "admin", "-o", "A", "-o", "B").output)
    r = cli("markets", "delete", market_id, "--actor", "admin")
    assert r.exit_code == 0
    assert "refunded 0 entries" in r.output
    assert cli("markets", "quote", market_id).exit_code == 1


def test_api_command_passes_config_dir_and_db(cli, tmp_path, monkeypatch):
    import uvicorn

    from poolmarket.api import main as api_main

    (tmp_path / "default.toml").write_text("[accounts]\nwelcome_bonus = 25\n")
    for name in ("_config_profile", "_config_dir", "_db_path"):
        monkeypatch.setattr(api_main, name, None)
    served = {}
    monkeypatch.setattr(uvicorn, "run", lambda target, **kwargs: served.update(target=target, **kwargs))

    r = cli("api", "--port", "8123")
    assert r.exit_code == 0, r.output
    assert served["target"] == "poolmarket.api.main:app"
    assert served["port"] == 8123

    settings = api_main.get_app_settings()
    assert settings.db_path == str(tmp_path / "cli.duckdb")
    assert settings.welcome_bonus == 25
