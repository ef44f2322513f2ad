"""Tests for CLI commands using click CliRunner. No network; uses stored bars."""

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from click.testing import CliRunner

from cli.main import cli
from data.bar_store import BarStore
from execution import PaperExecutor
from vwap_core.contracts import Bar, InstrumentSpec


def _write_config(tmp_path: Path, db_path: Path) -> Path:
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        f"""
instruments: [EURUSD]
timeframe: "15m"
instrument_specs:
  EURUSD:
    price_increment: 0.0001
    increment_value: 10.0
    size_step: 0.01
    min_size: 0.01
    max_size: 50
data:
  source: store
  bar_store_path: "{db_path}"
  quote_spread: 0.0002
execution:
  state_path: "{tmp_path / 'state.db'}"
  initial_cash: 100000
alerting:
  structured_logs: false
"""
    )
    return config_path


@pytest.fixture
def tmp_config(tmp_path: Path) -> Path:
    """Write a temp config.yaml and populate a BarStore with intraday and daily bars."""
    db_path = tmp_path / "bars.db"
    store = BarStore(db_path)
    now = datetime.now(timezone.utc).replace(second=0, microsecond=0)
    start = now - timedelta(hours=2)
    intraday = [
        Bar(1.1000 + i * 0.0005, 1.1010 + i * 0.0005, 1.0995 + i * 0.0005, 1.1005 + i * 0.0005,
            100 + i * 10, start + timedelta(minutes=15 * i), "EURUSD")
        for i in range(6)
    ]
    daily = [
        Bar(1.1000, 1.1100, 1.0900, 1.1050, 10_000, now - timedelta(days=d), "EURUSD")
        for d in range(1, 21)
    ]
    store.write_bars("EURUSD", "15m", intraday)
    store.write_bars("EURUSD", "1d", daily)
    return _write_config(tmp_path, db_path)


def test_cli_analyze(tmp_config: Path) -> None:
    result = CliRunner().invoke(cli, ["--config", str(tmp_config), "analyze"])
    assert result.exit_code == 0, result.output
    assert "=== Analytics since" in result.output
    assert "--- EURUSD ---" in result.output
    assert "VWAP" in result.output


def test_cli_cycle(tmp_config: Path) -> None:
    result = CliRunner().invoke(cli, ["--config", str(tmp_config), "cycle"])
    assert result.exit_code == 0, result.output
    assert "=== Cycle @" in result.output
    assert "Trading      : active" in result.output


def test_cli_status_fresh_account(tmp_config: Path) -> None:
    result = CliRunner().invoke(cli, ["--config", str(tmp_config), "status"])
    assert result.exit_code == 0, result.output
    assert "=== Account Status ===" in result.output
    assert "$100,000.00" in result.output
    assert "flat (no open positions)" in result.output


def test_cli_health_ok(tmp_config: Path) -> None:
    result = CliRunner().invoke(cli, ["--config", str(tmp_config), "health"])
    assert result.exit_code == 0, result.output
    assert "[OK] config" in result.output
    assert "[OK] bars:EURUSD" in result.output
    assert "HEALTHY" in result.output


def test_cli_health_no_bars(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path, tmp_path / "empty.db")
    result = CliRunner().invoke(cli, ["--config", str(config_path), "health"])
    assert result.exit_code == 1
    assert "[FAIL] bars:EURUSD" in result.output
    assert "UNHEALTHY" in result.output


def test_cli_health_missing_config(tmp_path: Path) -> None:
    result = CliRunner().invoke(cli, ["--config", str(tmp_path / "missing.yaml"), "health"])
    assert result.exit_code == 1
    assert "[FAIL] config" in result.output


def test_cli_health_bad_engine_override(tmp_config: Path, tmp_path: Path) -> None:
    override = tmp_path / "engine.json"
    override.write_text('{"risk": {"risk_pct_per_trade": -1}}')
    result = CliRunner().invoke(
        cli, ["--config", str(tmp_config), "--engine-config", str(override), "health"]
    )
    assert result.exit_code == 1
    assert "[FAIL] engine_config" in result.output


def test_cli_missing_config_errors(tmp_path: Path) -> None:
    result = CliRunner().invoke(cli, ["--config", str(tmp_path / "missing.yaml"), "status"])
    assert result.exit_code != 0


def test_cli_status_shows_orders(tmp_config: Path) -> None:
    spec = InstrumentSpec("EURUSD", 0.0001, 10.0, 0.01, 0.01, 50.0)
    executor = PaperExecutor(tmp_config.parent / "state.db", specs={"EURUSD": spec})
    pid = executor.open_long("EURUSD", 1.0, 1.1000, 1.0990, 1.1050).position_id
    executor.close_position(pid)

    result = CliRunner().invoke(cli, ["--config", str(tmp_config), "status", "--orders", "5"])
    assert result.exit_code == 0, result.output
    assert "Recent closed trades (1):" in result.output
    assert "Recent orders (2):" in result.output
    assert "(market)" in result.output
    assert "(close)" in result.output


def test_cli_status_hides_orders_by_default(tmp_config: Path) -> None:
    result = CliRunner().invoke(cli, ["--config", str(tmp_config), "status"])
    assert result.exit_code == 0, result.output
    assert "Recent orders" not in result.output
