"""
Engine config loader: JSON file -> frozen dataclass tree, validated against JSON Schema.

Default values:      docs/config/engine.default.json
Schema:              docs/config/engine_config.schema.json

Overrides: pass ``override_path`` pointing at a partial JSON file. Only the
keys you want to change need to be present; they are deep-merged on top of
the base config before schema validation.

Usage:
    from config.engine_config import load_engine_config
    cfg = load_engine_config()                                # loads default
    cfg = load_engine_config(override_path="my_tweaks.json")  # merges tweaks
    cfg.volume_profile.bin_count  # -> 24
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import jsonschema

logger = logging.getLogger("vwap.config")

# ---------------------------------------------------------------------------
# Project root detection (walk up from this file to find pyproject.toml)
# ---------------------------------------------------------------------------


def _find_project_root() -> Path:
    """Walk up from this file looking for pyproject.toml.

    When running from source, finds the repo root. When installed as a
    package, pyproject.toml won't exist; fall back to CWD.
    """
    candidate = Path(__file__).resolve().parent
    for _ in range(10):
        if (candidate / "pyproject.toml").exists():
            return candidate
        parent = candidate.parent
        if parent == candidate:
            break
        candidate = parent
    return Path.cwd()


_PROJECT_ROOT = _find_project_root()

DEFAULT_CONFIG_PATH = _PROJECT_ROOT / "docs" / "config" / "engine.default.json"
DEFAULT_SCHEMA_PATH = _PROJECT_ROOT / "docs" / "config" / "engine_config.schema.json"


# ---------------------------------------------------------------------------
# Frozen dataclass tree, mirrors engine.default.json structure exactly
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RiskConfig:
    risk_pct_per_trade: float
    max_daily_drawdown_pct: float


@dataclass(frozen=True)
class AdrConfig:
    period: int


@dataclass(frozen=True)
class FrequencyConfig:
    min_bars_between_trades: int


@dataclass(frozen=True)
class TimeFilterConfig:
    enabled: bool
    allowed_weekdays: tuple[str, ...]   # "MON".."SUN"
    start_hour: int
    end_hour: int


@dataclass(frozen=True)
class NewsFilterConfig:
    enabled: bool
    window_minutes: int = 60
    min_importance: str = "MODERATE"    # "LOW" | "MODERATE" | "HIGH"


@dataclass(frozen=True)
class TradeManagementConfig:
    crossover_exit: bool
    stop_adr_fraction: float = 0.10
    target_adr_fraction: float = 0.50


@dataclass(frozen=True)
class VolumeProfileConfig:
    bin_count: int


@dataclass(frozen=True)
class EngineConfig:
    """Top-level engine configuration: every threshold the core uses."""
    version: str
    risk: RiskConfig
    adr: AdrConfig
    frequency: FrequencyConfig
    time_filter: TimeFilterConfig
    news_filter: NewsFilterConfig
    trade_management: TradeManagementConfig
    volume_profile: VolumeProfileConfig


# ---------------------------------------------------------------------------
# Deep merge for overrides
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge *overrides* into a copy of *base*.

    - Dict values are merged recursively (override keys win).
    - Non-dict values in overrides replace the base value.
    - Keys in base that are absent from overrides are preserved.
    """
    merged = dict(base)
    for key, val in overrides.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(val, dict):
            merged[key] = _deep_merge(merged[key], val)
        else:
            merged[key] = val
    return merged


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------


class EngineConfigError(Exception):
    """Raised when engine config loading or validation fails."""


def _read_json(path: Path, label: str) -> dict[str, Any]:
    try:
        with open(path) as f:
            return json.load(f)
    except json.JSONDecodeError as exc:
        raise EngineConfigError(f"{label} {path.name} is not valid JSON: {exc}") from exc


def _validate_schema(data: dict[str, Any], schema_path: Path) -> None:
    """Validate *data* against the JSON Schema at *schema_path*."""
    if not schema_path.exists():
        raise EngineConfigError(f"Schema file not found: {schema_path}")
    with open(schema_path) as f:
        schema = json.load(f)
    try:
        jsonschema.validate(instance=data, schema=schema)
    except jsonschema.ValidationError as exc:
        raise EngineConfigError(f"Engine config validation failed: {exc.message}") from exc


def _build_config(data: dict[str, Any]) -> EngineConfig:
    """Convert a raw dict (already validated) into the frozen dataclass tree."""
    tf_raw = data["time_filter"]
    news_raw = data["news_filter"]
    tm_raw = data["trade_management"]

    time_filter = TimeFilterConfig(
        enabled=tf_raw["enabled"],
        allowed_weekdays=tuple(tf_raw["allowed_weekdays"]),
        start_hour=tf_raw["start_hour"],
        end_hour=tf_raw["end_hour"],
    )
    if time_filter.start_hour >= time_filter.end_hour:
        raise EngineConfigError(
            f"time_filter.start_hour ({time_filter.start_hour}) must be "
            f"before end_hour ({time_filter.end_hour})"
        )

    return EngineConfig(
        version=data["version"],
        risk=RiskConfig(
            risk_pct_per_trade=data["risk"]["risk_pct_per_trade"],
            max_daily_drawdown_pct=data["risk"]["max_daily_drawdown_pct"],
        ),
        adr=AdrConfig(period=data["adr"]["period"]),
        frequency=FrequencyConfig(
            min_bars_between_trades=data["frequency"]["min_bars_between_trades"],
        ),
        time_filter=time_filter,
        news_filter=NewsFilterConfig(
            enabled=news_raw["enabled"],
            window_minutes=news_raw.get("window_minutes", 60),
            min_importance=news_raw.get("min_importance", "MODERATE"),
        ),
        trade_management=TradeManagementConfig(
            crossover_exit=tm_raw["crossover_exit"],
            stop_adr_fraction=tm_raw.get("stop_adr_fraction", 0.10),
            target_adr_fraction=tm_raw.get("target_adr_fraction", 0.50),
        ),
        volume_profile=VolumeProfileConfig(bin_count=data["volume_profile"]["bin_count"]),
    )


def load_engine_config(
    config_path: str | Path | None = None,
    schema_path: str | Path | None = None,
    override_path: str | Path | None = None,
) -> EngineConfig:
    """Load and validate engine configuration.

    Parameters
    ----------
    config_path:
        Path to an engine JSON config file. Defaults to ``docs/config/engine.default.json``.
    schema_path:
        Path to the JSON Schema file. Defaults to ``docs/config/engine_config.schema.json``.
    override_path:
        Optional partial JSON file deep-merged on top of the base config
        before validation.

    Returns
    -------
    EngineConfig
        Frozen dataclass tree with all engine parameters.

    Raises
    ------
    EngineConfigError
        If a file is missing, unparseable, or fails schema validation.
    """
    cfg_path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
    sch_path = Path(schema_path) if schema_path else DEFAULT_SCHEMA_PATH

    if not cfg_path.exists():
        raise EngineConfigError(f"Engine config file not found: {cfg_path}")
    data = _read_json(cfg_path, "Engine config")

    if override_path:
        ovr_path = Path(override_path)
        if not ovr_path.exists():
            raise EngineConfigError(f"Override file not found: {ovr_path}")
        data = _deep_merge(data, _read_json(ovr_path, "Override config"))
        logger.info("Loaded engine config overrides: %s", ovr_path.name)

    _validate_schema(data, sch_path)

    return _build_config(data)
