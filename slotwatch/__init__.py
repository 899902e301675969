"""
slotwatch - availability monitor for a third-party mobile scheduling app.

This package provides:
- ScreenClassifier: heuristic "where am I" over UI snapshots
- NavigationStateMachine: tick-driven navigation to the task list
- RecoveryController: bounded retries, backoff and safe mode
- MonitorService: serial tick queue, watchdog and periodic checks
- OutcomeReporter: statistics and deduplicated alerts
"""

from slotwatch.classifier import ScreenClassifier, ScreenKind, ScreenResult
from slotwatch.config import MonitorConfig, load_config
from slotwatch.element import Bounds, UIElement
from slotwatch.events import EventBus, SlotStatusEvent, StateChangeEvent
from slotwatch.exceptions import (
    SlotWatchError,
    ConfigError,
    SnapshotError,
    ActionError,
    AlertDeliveryError,
    StatsError,
    FailureKind,
)
from slotwatch.interfaces import IActionProvider, INotifier, ISnapshotProvider
from slotwatch.machine import NavigationStateMachine
from slotwatch.outcome import CheckOutcome
from slotwatch.recovery import RecoveryController
from slotwatch.service import MonitorService
from slotwatch.states import NavigationState

__all__ = [
    "ScreenClassifier",
    "ScreenKind",
    "ScreenResult",
    "MonitorConfig",
    "load_config",
    "Bounds",
    "UIElement",
    "EventBus",
    "SlotStatusEvent",
    "StateChangeEvent",
    "SlotWatchError",
    "ConfigError",
    "SnapshotError",
    "ActionError",
    "AlertDeliveryError",
    "StatsError",
    "FailureKind",
    "IActionProvider",
    "INotifier",
    "ISnapshotProvider",
    "NavigationStateMachine",
    "CheckOutcome",
    "RecoveryController",
    "MonitorService",
    "NavigationState",
]

__version__ = "1.0.0"
