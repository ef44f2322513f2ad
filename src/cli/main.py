"""
CLI entry point: vwap ingest | analyze | cycle | run | status | health.

Every command loads config from --config (default config.yaml) and the
engine config (defaults plus optional --engine-config overrides), then
prints human-readable output.
"""

import logging
import sys
from datetime import datetime, timedelta, timezone

import click
from dotenv import load_dotenv

from config import load_config

load_dotenv()

logger = logging.getLogger("vwap")


def _setup_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s  %(message)s",
        stream=sys.stderr,
    )


def _load_engine(ctx: click.Context, cfg):
    from config.engine_config import load_engine_config

    override = ctx.obj.get("engine_config_path") or cfg.engine_config_path or None
    return load_engine_config(override_path=override)


def _market_data(cfg):
    if cfg.data.source == "alpaca":
        from data import get_alpaca_market_data

        return get_alpaca_market_data(cfg.data.api_key, cfg.data.api_secret)
    from data.bar_store import BarStore, StoreMarketData

    return StoreMarketData(
        BarStore(cfg.data.bar_store_path),
        quote_timeframe=cfg.timeframe,
        spread=cfg.data.quote_spread,
    )


def _executor(cfg):
    from execution import PaperExecutor

    return PaperExecutor(
        cfg.execution.state_path,
        specs=cfg.instrument_specs,
        initial_cash=cfg.execution.initial_cash,
    )


def _calendar(cfg):
    if not cfg.calendar.path:
        return None
    from data.calendar import load_calendar

    return load_calendar(cfg.calendar.path)


def _build_orchestrator(ctx: click.Context, cfg, *, events=None):
    """Wire collaborators from config. Returns (orchestrator, executor, market_data)."""
    from data.instruments import StaticInstrumentSpecs
    from vwap_core.orchestrator import Orchestrator

    engine_cfg = _load_engine(ctx, cfg)
    market_data = _market_data(cfg)
    executor = _executor(cfg)
    orchestrator = Orchestrator(
        cfg.instruments,
        market_data=market_data,
        account=executor,
        specs=StaticInstrumentSpecs(cfg.instrument_specs),
        execution=executor,
        config=engine_cfg,
        timeframe=cfg.timeframe,
        calendar=_calendar(cfg),
        events=events,
    )
    return orchestrator, executor, market_data


def _event_logger(cfg):
    from cli.structured_log import StructuredEventLogger

    return StructuredEventLogger(
        enabled=cfg.alerting.structured_logs,
        webhook_url=cfg.alerting.webhook_url,
    )


@click.group()
@click.option("--config", "config_path", default="config.yaml", help="Path to config file.")
@click.option("--engine-config", "engine_config_path", default=None,
              help="Partial engine JSON merged over the defaults.")
@click.pass_context
def cli(ctx: click.Context, config_path: str, engine_config_path: str | None) -> None:
    """vwap-engine: VWAP / volume-profile intraday engine with ADR-scaled risk."""
    _setup_logging()
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["engine_config_path"] = engine_config_path


# ---------- vwap ingest ----------


@cli.command()
@click.option("--days", default=None, type=int, help="Number of calendar days to fetch (default: 30 for intraday, 365 for daily).")
@click.option("--start", "start_str", default=None, help="Start date (ISO, e.g. 2024-01-01).")
@click.option("--end", "end_str", default=None, help="End date (ISO, e.g. 2024-02-01).")
@click.option("--timeframe", "tf_override", default=None, help="Override timeframe (e.g. 1d, 15m). Defaults to config value.")
@click.pass_context
def ingest(ctx: click.Context, days: int | None, start_str: str | None, end_str: str | None, tf_override: str | None) -> None:
    """Fetch bars from Alpaca for every instrument and store locally.

    Run once with --timeframe 1d as well: ADR is computed from daily bars.
    """
    cfg = load_config(ctx.obj["config_path"])
    from data import get_alpaca_market_data
    from data.bar_store import BarStore

    source = get_alpaca_market_data(cfg.data.api_key, cfg.data.api_secret)
    store = BarStore(cfg.data.bar_store_path)

    tf = tf_override or cfg.timeframe
    if days is None:
        days = 365 if tf == "1d" else 30

    end_dt = datetime.fromisoformat(end_str).replace(tzinfo=timezone.utc) if end_str else datetime.now(timezone.utc)
    start_dt = datetime.fromisoformat(start_str).replace(tzinfo=timezone.utc) if start_str else end_dt - timedelta(days=days)

    for symbol in cfg.instruments:
        click.echo(f"Fetching {symbol} {tf} bars from {start_dt.date()} to {end_dt.date()} ...")
        bars = source.bars(symbol, tf, start_dt, end_dt)
        if bars:
            written = store.write_bars(symbol, tf, bars)
            click.echo(f"Stored {written} bars in {cfg.data.bar_store_path}")
            click.echo(f"  Range: {bars[0].timestamp.isoformat()} -> {bars[-1].timestamp.isoformat()}")
            click.echo(f"  Total {tf} bars in store: {store.count_bars(symbol, tf)}")
        else:
            click.echo("No bars returned. Check symbol, timeframe, date range, and API keys.")


# ---------- vwap analyze ----------


@cli.command()
@click.pass_context
def analyze(ctx: click.Context) -> None:
    """Show VWAP, ADR and POC/HVN/LVN for every instrument."""
    cfg = load_config(ctx.obj["config_path"])
    from cli.output import format_analytics

    orchestrator, _, _ = _build_orchestrator(ctx, cfg)
    now = datetime.now(timezone.utc)
    click.echo(f"=== Analytics since {orchestrator.session_anchor.isoformat()} ({cfg.timeframe}) ===")
    for symbol in cfg.instruments:
        orchestrator.refresh_analytics(symbol, now)
        precision = cfg.instrument_specs[symbol].price_precision
        click.echo(format_analytics(orchestrator.states[symbol], precision))


# ---------- vwap cycle ----------


@cli.command()
@click.pass_context
def cycle(ctx: click.Context) -> None:
    """Run a single engine cycle against the paper venue."""
    cfg = load_config(ctx.obj["config_path"])
    from cli.output import format_cycle
    from cli.scheduler import run_tick

    events = _event_logger(cfg)
    orchestrator, executor, market_data = _build_orchestrator(ctx, cfg, events=events)
    result = run_tick(orchestrator, executor, market_data, cfg.instruments)
    click.echo(format_cycle(result))


# ---------- vwap run ----------


@cli.command()
@click.option("--poll", "poll_seconds", default=None, type=float, help="Seconds between cycles (default: scheduler.poll_seconds).")
@click.pass_context
def run(ctx: click.Context, poll_seconds: float | None) -> None:
    """Run continuously against the paper venue. Ctrl+C to stop."""
    cfg = load_config(ctx.obj["config_path"])
    from cli.scheduler import run_live_loop

    events = _event_logger(cfg)
    orchestrator, executor, market_data = _build_orchestrator(ctx, cfg, events=events)
    run_live_loop(
        orchestrator,
        executor=executor,
        market_data=market_data,
        instruments=cfg.instruments,
        poll_seconds=poll_seconds or cfg.scheduler.poll_seconds,
        events=events,
    )


# ---------- vwap status ----------


@cli.command()
@click.option("--trades", default=5, help="Number of recent closed trades to show.")
@click.option("--orders", default=0, help="Number of recent paper orders to show.")
@click.pass_context
def status(ctx: click.Context, trades: int, orders: int) -> None:
    """Show open paper positions, cash, equity, recent closed trades and orders."""
    cfg = load_config(ctx.obj["config_path"])
    from cli.output import format_status

    executor = _executor(cfg)
    click.echo(format_status(
        executor.positions(),
        executor.cash(),
        executor.equity(),
        executor.closed_trades(limit=trades),
        executor.list_orders(limit=orders) if orders > 0 else (),
    ))


# ---------- vwap health ----------


@cli.command()
@click.pass_context
def health(ctx: click.Context) -> None:
    """Check system health: config, engine config, bar data.

    Exit code 0 = healthy, 1 = unhealthy. Designed for Docker HEALTHCHECK.
    """
    checks: list[tuple[str, bool, str]] = []

    try:
        cfg = load_config(ctx.obj["config_path"])
        checks.append(("config", True, f"loaded ({', '.join(cfg.instruments)} {cfg.timeframe})"))
    except Exception as e:
        checks.append(("config", False, str(e)))
        _print_health(checks)
        raise SystemExit(1)

    try:
        engine_cfg = _load_engine(ctx, cfg)
        checks.append(("engine_config", True, f"validated (version {engine_cfg.version})"))
    except Exception as e:
        checks.append(("engine_config", False, str(e)))

    if cfg.data.source == "store":
        try:
            from data.bar_store import BarStore
            store = BarStore(cfg.data.bar_store_path)
            for symbol in cfg.instruments:
                bar_count = store.count_bars(symbol, cfg.timeframe)
                daily_count = store.count_bars(symbol, "1d")
                if bar_count > 0:
                    checks.append((f"bars:{symbol}", True, f"{bar_count} {cfg.timeframe} bars, {daily_count} daily bars"))
                else:
                    checks.append((f"bars:{symbol}", False, f"no {cfg.timeframe} bars for {symbol}"))
        except Exception as e:
            checks.append(("bars", False, str(e)))
    else:
        ok = bool(cfg.data.api_key and cfg.data.api_secret)
        checks.append(("alpaca_keys", ok, "present" if ok else "APCA_API_KEY_ID / APCA_API_SECRET_KEY not set"))

    if cfg.calendar.path:
        try:
            cal = _calendar(cfg)
            checks.append(("calendar", True, f"{len(cal)} events"))
        except Exception as e:
            checks.append(("calendar", False, str(e)))

    _print_health(checks)
    healthy = all(ok for _, ok, _ in checks)
    raise SystemExit(0 if healthy else 1)


def _print_health(checks: list[tuple[str, bool, str]]) -> None:
    for name, ok, detail in checks:
        status = "OK" if ok else "FAIL"
        click.echo(f"  [{status}] {name}: {detail}")
    healthy = all(ok for _, ok, _ in checks)
    click.echo(f"\nHealth: {'HEALTHY' if healthy else 'UNHEALTHY'}")


if __name__ == "__main__":
    cli()
