"""
Config loader: YAML file -> frozen dataclass tree.

API secrets resolved from environment variables (APCA_API_KEY_ID, APCA_API_SECRET_KEY).
Config file holds only non-secret values.
"""

import os
from dataclasses import dataclass
from pathlib import Path

import yaml

from vwap_core.contracts import InstrumentSpec


@dataclass(frozen=True)
class DataConfig:
    source: str                      # "store" | "alpaca"
    bar_store_path: str
    quote_spread: float = 0.0        # synthetic bid/ask spread for the store source
    api_key: str = ""
    api_secret: str = ""


@dataclass(frozen=True)
class ExecutionConfig:
    state_path: str = "data/paper_state.db"
    initial_cash: float = 100_000.0


@dataclass(frozen=True)
class CalendarConfig:
    path: str = ""


@dataclass(frozen=True)
class AlertingConfig:
    structured_logs: bool = True
    webhook_url: str = ""


@dataclass(frozen=True)
class SchedulerConfig:
    poll_seconds: float = 5.0


@dataclass(frozen=True)
class AppConfig:
    instruments: tuple[str, ...]
    timeframe: str
    instrument_specs: dict[str, InstrumentSpec]
    data: DataConfig
    execution: ExecutionConfig
    calendar: CalendarConfig = CalendarConfig()
    alerting: AlertingConfig = AlertingConfig()
    scheduler: SchedulerConfig = SchedulerConfig()
    engine_config_path: str = ""


_SPEC_FIELDS = (
    "price_increment",
    "increment_value",
    "size_step",
    "min_size",
    "max_size",
)


def _parse_spec(symbol: str, raw: dict) -> InstrumentSpec:
    if not isinstance(raw, dict):
        raise ValueError(f"instrument_specs.{symbol} must be a mapping")
    missing = [k for k in _SPEC_FIELDS if k not in raw]
    if missing:
        raise ValueError(f"instrument_specs.{symbol} is missing: {', '.join(missing)}")
    spec = InstrumentSpec(
        symbol=symbol,
        price_increment=float(raw["price_increment"]),
        increment_value=float(raw["increment_value"]),
        size_step=float(raw["size_step"]),
        min_size=float(raw["min_size"]),
        max_size=float(raw["max_size"]),
        min_stop_distance=float(raw.get("min_stop_distance", 0.0)),
        price_precision=int(raw.get("price_precision", 5)),
    )
    if spec.price_increment <= 0:
        raise ValueError(f"instrument_specs.{symbol}.price_increment must be positive")
    if spec.min_size > spec.max_size:
        raise ValueError(f"instrument_specs.{symbol}: min_size exceeds max_size")
    return spec


def load_config(path: str | Path = "config.yaml") -> AppConfig:
    """
    Load configuration from a YAML file.

    API keys are resolved from environment variables:
      - APCA_API_KEY_ID
      - APCA_API_SECRET_KEY
    These follow Alpaca's standard env var names.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f)

    if not isinstance(raw, dict):
        raise ValueError(f"Config file must be a YAML mapping, got {type(raw).__name__}")

    instruments = raw.get("instruments") or []
    if isinstance(instruments, str):
        instruments = [instruments]
    if not instruments:
        raise ValueError("Config must list at least one instrument under 'instruments'")
    instruments = tuple(str(s).upper() for s in instruments)

    specs_raw = raw.get("instrument_specs", {}) or {}
    specs = {str(sym).upper(): _parse_spec(str(sym).upper(), s) for sym, s in specs_raw.items()}
    unspecified = [s for s in instruments if s not in specs]
    if unspecified:
        raise ValueError(f"No instrument_specs entry for: {', '.join(unspecified)}")

    data_raw = raw.get("data", {})
    data_cfg = DataConfig(
        source=data_raw.get("source", "store"),
        bar_store_path=data_raw.get("bar_store_path", "data/bars.db"),
        quote_spread=float(data_raw.get("quote_spread", 0.0)),
        api_key=os.environ.get("APCA_API_KEY_ID", ""),
        api_secret=os.environ.get("APCA_API_SECRET_KEY", ""),
    )

    ex_raw = raw.get("execution", {})
    ex_cfg = ExecutionConfig(
        state_path=ex_raw.get("state_path", "data/paper_state.db"),
        initial_cash=float(ex_raw.get("initial_cash", 100_000)),
    )

    cal_raw = raw.get("calendar", {})
    cal_cfg = CalendarConfig(path=str(cal_raw.get("path", "") or ""))

    a_raw = raw.get("alerting", {})
    a_cfg = AlertingConfig(
        structured_logs=bool(a_raw.get("structured_logs", True)),
        webhook_url=str(a_raw.get("webhook_url", "")),
    )

    s_raw = raw.get("scheduler", {})
    s_cfg = SchedulerConfig(poll_seconds=float(s_raw.get("poll_seconds", 5.0)))

    return AppConfig(
        instruments=instruments,
        timeframe=raw.get("timeframe", "15m"),
        instrument_specs=specs,
        data=data_cfg,
        execution=ex_cfg,
        calendar=cal_cfg,
        alerting=a_cfg,
        scheduler=s_cfg,
        engine_config_path=str(raw.get("engine_config", "") or ""),
    )
