"""
@file timings.py
@brief Engine timing presets and defaults.
"""

from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass, field
from typing import Any, Dict


ENGINE_FIELDS: Dict[str, float] = {
    "stuck_timeout": 10.0,
    "resync_interval": 4.0,
    "watchdog_period": 2.5,
    "min_action_spacing": 0.1,
}

RECOVERY_FIELDS: Dict[str, Any] = {
    "max_back_attempts": 5,
    "max_relaunch_attempts": 1,
    "failures_for_safe_mode": 3,
    "safe_mode_duration": 300.0,
    "backoff_increment": 60.0,
    "max_backoff": 300.0,
}

# Fraction of the base action delay each state waits between actions.
STATE_DELAY_MULTIPLIERS: Dict[str, float] = {
    "idle": 1.0,
    "bootstrap": 0.3,
    "recovery": 1.0,
    "find_category_tab": 0.3,
    "find_search_field": 0.3,
    "type_search_query": 0.3,
    "select_resource": 0.3,
    "click_enroll": 0.3,
    "find_task_card": 0.3,
    "check_availability": 0.1,
    "refresh_cycle": 0.5,
}

PRESET_OVERRIDES: Dict[str, Dict[str, Any]] = {
    "fast": {
        "resync_interval": 3.0,
        "watchdog_period": 1.5,
    },
    "slow": {
        "stuck_timeout": 20.0,
        "resync_interval": 6.0,
        "watchdog_period": 4.0,
        "multipliers": {
            "find_task_card": 0.5,
            "check_availability": 0.2,
        },
    },
}


def list_presets() -> Dict[str, Dict[str, Any]]:
    return {"default": {}, **PRESET_OVERRIDES}


def build_preset_values(preset: str) -> Dict[str, Any]:
    preset_key = (preset or "default").lower()
    values: Dict[str, Any] = {}
    values.update(deepcopy(ENGINE_FIELDS))
    values.update(deepcopy(RECOVERY_FIELDS))
    values["multipliers"] = deepcopy(STATE_DELAY_MULTIPLIERS)

    if preset_key == "default":
        return values

    overrides = PRESET_OVERRIDES.get(preset_key)
    if overrides is None:
        raise ValueError(f"Unknown timing preset: {preset}")

    for key, value in overrides.items():
        if key == "multipliers":
            values["multipliers"].update(value)
        else:
            values[key] = value

    return values


@dataclass(frozen=True)
class EngineTimings:
    """Resolved timing constants for one engine instance."""
    stuck_timeout: float = ENGINE_FIELDS["stuck_timeout"]
    resync_interval: float = ENGINE_FIELDS["resync_interval"]
    watchdog_period: float = ENGINE_FIELDS["watchdog_period"]
    min_action_spacing: float = ENGINE_FIELDS["min_action_spacing"]
    max_back_attempts: int = RECOVERY_FIELDS["max_back_attempts"]
    max_relaunch_attempts: int = RECOVERY_FIELDS["max_relaunch_attempts"]
    failures_for_safe_mode: int = RECOVERY_FIELDS["failures_for_safe_mode"]
    safe_mode_duration: float = RECOVERY_FIELDS["safe_mode_duration"]
    backoff_increment: float = RECOVERY_FIELDS["backoff_increment"]
    max_backoff: float = RECOVERY_FIELDS["max_backoff"]
    multipliers: Dict[str, float] = field(default_factory=lambda: dict(STATE_DELAY_MULTIPLIERS))

    @classmethod
    def from_preset(cls, preset: str = "default") -> EngineTimings:
        values = build_preset_values(preset)
        return cls(
            stuck_timeout=float(values["stuck_timeout"]),
            resync_interval=float(values["resync_interval"]),
            watchdog_period=float(values["watchdog_period"]),
            min_action_spacing=float(values["min_action_spacing"]),
            max_back_attempts=int(values["max_back_attempts"]),
            max_relaunch_attempts=int(values["max_relaunch_attempts"]),
            failures_for_safe_mode=int(values["failures_for_safe_mode"]),
            safe_mode_duration=float(values["safe_mode_duration"]),
            backoff_increment=float(values["backoff_increment"]),
            max_backoff=float(values["max_backoff"]),
            multipliers=dict(values["multipliers"]),
        )

    def multiplier_for(self, state_value: str) -> float:
        return self.multipliers.get(state_value, 1.0)
