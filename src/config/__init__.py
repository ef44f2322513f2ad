"""
Configuration loaders.

App config:     reads config.yaml, resolves env vars for secrets.
Engine config:  reads engine.default.json (plus overrides), validates against JSON Schema.
"""

from config.engine_config import (
    AdrConfig,
    EngineConfig,
    EngineConfigError,
    FrequencyConfig,
    NewsFilterConfig,
    RiskConfig,
    TimeFilterConfig,
    TradeManagementConfig,
    VolumeProfileConfig,
    load_engine_config,
)
from config.loader import (
    AlertingConfig,
    AppConfig,
    CalendarConfig,
    DataConfig,
    ExecutionConfig,
    SchedulerConfig,
    load_config,
)

__all__ = [
    # App config (YAML)
    "AlertingConfig",
    "AppConfig",
    "CalendarConfig",
    "DataConfig",
    "ExecutionConfig",
    "SchedulerConfig",
    "load_config",
    # Engine config (JSON + schema)
    "AdrConfig",
    "EngineConfig",
    "EngineConfigError",
    "FrequencyConfig",
    "NewsFilterConfig",
    "RiskConfig",
    "TimeFilterConfig",
    "TradeManagementConfig",
    "VolumeProfileConfig",
    "load_engine_config",
]
