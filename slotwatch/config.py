"""
@file config.py
@brief Monitor configuration: YAML loading, schema validation and frozen settings.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

import yaml
from jsonschema import Draft202012Validator

from .exceptions import ConfigError
from .labels import DEFAULT_LABELS, Labels
from .timings import EngineTimings

DEFAULT_APP_ID = "ru.ozon.hire"
# Centre of the search icon at [312,2306][434,2428]
DEFAULT_SEARCH_ICON: Tuple[int, int] = ((312 + 434) // 2, (2306 + 2428) // 2)

SCHEMA_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), "schemas", "config.schema.json")


@dataclass(frozen=True)
class TargetConfig:
    location_name: str
    task_name: str
    app_id: str = DEFAULT_APP_ID


@dataclass(frozen=True)
class TimingConfig:
    action_delay_seconds: float = 3.0
    fast_refresh_enabled: bool = False
    fast_refresh_delay_seconds: float = 1.0
    max_refresh_attempts: int = 50
    check_interval_seconds: float = 30.0
    launch_settle_seconds: float = 2.0
    preset: str = "default"


@dataclass(frozen=True)
class AlertConfig:
    bot_token: Optional[str] = None
    chat_id: Optional[str] = None
    heartbeat_hours: float = 4.0
    state_path: Optional[str] = None

    @property
    def telegram_configured(self) -> bool:
        return bool(self.bot_token and self.chat_id)


@dataclass(frozen=True)
class StatsConfig:
    db_path: str = "slotwatch.db"


@dataclass(frozen=True)
class MonitorConfig:
    """Complete, immutable monitor configuration."""
    target: TargetConfig
    timing: TimingConfig = field(default_factory=TimingConfig)
    labels: Labels = DEFAULT_LABELS
    search_icon: Tuple[int, int] = DEFAULT_SEARCH_ICON
    accept_dates_with_marker: bool = False
    alerts: AlertConfig = field(default_factory=AlertConfig)
    stats: StatsConfig = field(default_factory=StatsConfig)

    @property
    def engine_timings(self) -> EngineTimings:
        return EngineTimings.from_preset(self.timing.preset)

    def to_dict(self) -> Dict[str, Any]:
        """Plain mapping with secrets masked (for display)."""
        return {
            "target": {
                "location_name": self.target.location_name,
                "task_name": self.target.task_name,
                "app_id": self.target.app_id,
            },
            "timing": {
                "action_delay_seconds": self.timing.action_delay_seconds,
                "fast_refresh_enabled": self.timing.fast_refresh_enabled,
                "fast_refresh_delay_seconds": self.timing.fast_refresh_delay_seconds,
                "max_refresh_attempts": self.timing.max_refresh_attempts,
                "check_interval_seconds": self.timing.check_interval_seconds,
                "launch_settle_seconds": self.timing.launch_settle_seconds,
                "preset": self.timing.preset,
            },
            "search_icon": {"x": self.search_icon[0], "y": self.search_icon[1]},
            "slots": {"accept_dates_with_marker": self.accept_dates_with_marker},
            "alerts": {
                "telegram": {
                    "bot_token": "***" if self.alerts.bot_token else None,
                    "chat_id": "***" if self.alerts.chat_id else None,
                },
                "heartbeat_hours": self.alerts.heartbeat_hours,
                "state_path": self.alerts.state_path,
            },
            "stats": {"db_path": self.stats.db_path},
        }


def _load_schema(path: str = SCHEMA_PATH) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def validate_config_data(data: Any) -> None:
    """
    Validate a raw configuration mapping against the bundled JSON schema.

    Raises:
        ConfigError: Listing every violation with its path
    """
    if not isinstance(data, dict):
        raise ConfigError("Config YAML must be a mapping at root.")
    validator = Draft202012Validator(_load_schema())
    errors = sorted(validator.iter_errors(data), key=lambda e: list(e.path))
    if errors:
        lines = ["Config schema validation failed:"]
        for e in errors:
            lines.append(f"- {list(e.path)}: {e.message}")
        raise ConfigError("\n".join(lines))


def config_from_dict(data: Dict[str, Any]) -> MonitorConfig:
    """Build a MonitorConfig from an already-parsed mapping."""
    validate_config_data(data)

    target = data["target"]
    timing = data.get("timing") or {}
    alerts = data.get("alerts") or {}
    telegram = alerts.get("telegram") or {}
    icon = data.get("search_icon")
    defaults = TimingConfig()

    timing_cfg = TimingConfig(
        action_delay_seconds=float(timing.get("action_delay_seconds", defaults.action_delay_seconds)),
        fast_refresh_enabled=bool(timing.get("fast_refresh_enabled", defaults.fast_refresh_enabled)),
        fast_refresh_delay_seconds=float(
            timing.get("fast_refresh_delay_seconds", defaults.fast_refresh_delay_seconds)
        ),
        max_refresh_attempts=int(timing.get("max_refresh_attempts", defaults.max_refresh_attempts)),
        check_interval_seconds=float(timing.get("check_interval_seconds", defaults.check_interval_seconds)),
        launch_settle_seconds=float(timing.get("launch_settle_seconds", defaults.launch_settle_seconds)),
        preset=timing.get("preset", defaults.preset),
    )

    chat_id = telegram.get("chat_id")
    return MonitorConfig(
        target=TargetConfig(
            location_name=target["location_name"],
            task_name=target["task_name"],
            app_id=target.get("app_id", DEFAULT_APP_ID),
        ),
        timing=timing_cfg,
        labels=DEFAULT_LABELS.with_overrides(data.get("labels") or {}),
        search_icon=(int(icon["x"]), int(icon["y"])) if icon else DEFAULT_SEARCH_ICON,
        accept_dates_with_marker=bool((data.get("slots") or {}).get("accept_dates_with_marker", False)),
        alerts=AlertConfig(
            bot_token=telegram.get("bot_token"),
            chat_id=str(chat_id) if chat_id is not None else None,
            heartbeat_hours=float(alerts.get("heartbeat_hours", 4.0)),
            state_path=alerts.get("state_path"),
        ),
        stats=StatsConfig(db_path=(data.get("stats") or {}).get("db_path", StatsConfig.db_path)),
    )


def load_config(path: str) -> MonitorConfig:
    """
    Load and validate a monitor configuration YAML file.

    @param path Path to config YAML
    @return MonitorConfig
    """
    path = os.path.abspath(path)
    if not os.path.exists(path):
        raise ConfigError(f"Config YAML not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML: {e}") from e
    return config_from_dict(data)
