"""
@file recovery.py
@brief Bounded-retry recovery from unrecognised screens.

Escalation order within a cycle: system back (up to max_back_attempts),
then home followed by a relaunch of the target app (max_relaunch_attempts
times), then safe mode. Across cycles, consecutive failures grow a backoff
and eventually suspend automation for safe_mode_duration.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from .actionlogger import ACTION_LOGGER
from .actions import Actions
from .classifier import ScreenClassifier
from .element import UIElement
from .timings import EngineTimings

logger = logging.getLogger(__name__)


class RecoveryAction(str, Enum):
    WAIT = "wait"
    PRESS_BACK = "press_back"
    PRESS_HOME = "press_home"
    RELAUNCH_APP = "relaunch_app"
    ENTER_SAFE_MODE = "enter_safe_mode"


class RecoveryResult(str, Enum):
    CONTINUE = "continue"
    SUCCESS = "success"
    SAFE_MODE_ACTIVATED = "safe_mode_activated"
    # Reserved; no current policy produces it.
    NEED_MANUAL_HELP = "need_manual_help"


@dataclass
class RecoveryState:
    """
    back_attempts, relaunch_attempts and home_pressed are per cycle.
    The remaining fields persist across cycles.
    """
    back_attempts: int = 0
    relaunch_attempts: int = 0
    home_pressed: bool = False
    consecutive_failures: int = 0
    current_backoff: float = 0.0
    safe_mode_until: Optional[float] = None


class RecoveryController:
    """
    Owns RecoveryState and the safe-mode gate.

    @param classifier Used to re-check the screen before every step
    @param actions Action layer used for back/home/relaunch
    @param app_id Target application identifier
    @param timings Recovery caps and durations
    @param clock Wall clock; safe_mode_until is expressed on it
    """

    def __init__(
        self,
        classifier: ScreenClassifier,
        actions: Actions,
        app_id: str,
        timings: Optional[EngineTimings] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.classifier = classifier
        self.actions = actions
        self.app_id = app_id
        self.timings = timings or EngineTimings()
        self.clock = clock
        self.state = RecoveryState()

    # -------------------------
    # Safe mode
    # -------------------------

    def is_in_safe_mode(self) -> bool:
        until = self.state.safe_mode_until
        return until is not None and until > self.clock()

    def safe_mode_remaining(self) -> float:
        """Seconds until safe mode ends, 0 when inactive."""
        if not self.is_in_safe_mode():
            return 0.0
        return self.state.safe_mode_until - self.clock()

    def current_backoff_ms(self) -> int:
        return int(self.state.current_backoff * 1000)

    def _activate_safe_mode(self) -> None:
        self.state.safe_mode_until = self.clock() + self.timings.safe_mode_duration
        logger.warning(f"SAFE MODE ACTIVATED for {int(self.timings.safe_mode_duration)}s")
        ACTION_LOGGER.log(
            action="safe_mode",
            status="activated",
            metadata={"until": round(self.state.safe_mode_until, 3)},
            event="recovery",
        )

    def deactivate_safe_mode(self) -> None:
        self.state.safe_mode_until = None
        self.state.consecutive_failures = 0
        logger.info("Safe mode manually deactivated")

    # -------------------------
    # Policy
    # -------------------------

    def get_next_action(self) -> RecoveryAction:
        """Next escalation step. Pure: counters change only in execute_step."""
        if self.is_in_safe_mode():
            return RecoveryAction.WAIT
        if self.state.back_attempts < self.timings.max_back_attempts:
            return RecoveryAction.PRESS_BACK
        if self.state.relaunch_attempts < self.timings.max_relaunch_attempts:
            if not self.state.home_pressed:
                return RecoveryAction.PRESS_HOME
            return RecoveryAction.RELAUNCH_APP
        return RecoveryAction.ENTER_SAFE_MODE

    def execute_step(self, snapshot: Optional[UIElement]) -> RecoveryResult:
        """
        Re-check the screen and, if still unknown, perform one escalation step.
        """
        screen = self.classifier.classify(snapshot)
        logger.debug(f"execute_step: screen={screen.kind.value} {self.status_string()}")

        if screen.is_known:
            logger.info(f"Recovery succeeded, found known screen: {screen.kind.value}")
            self._on_recovery_success()
            return RecoveryResult.SUCCESS

        action = self.get_next_action()
        ACTION_LOGGER.log(action="recovery_step", status=action.value, metadata={
            "back": self.state.back_attempts,
            "relaunch": self.state.relaunch_attempts,
        }, event="recovery")

        if action is RecoveryAction.WAIT:
            return RecoveryResult.SAFE_MODE_ACTIVATED

        if action is RecoveryAction.PRESS_BACK:
            self.state.back_attempts += 1
            logger.debug(f"Executing BACK ({self.state.back_attempts}/{self.timings.max_back_attempts})")
            self.actions.back()
            return RecoveryResult.CONTINUE

        if action is RecoveryAction.PRESS_HOME:
            self.state.home_pressed = True
            logger.debug("Executing HOME")
            self.actions.home()
            return RecoveryResult.CONTINUE

        if action is RecoveryAction.RELAUNCH_APP:
            self.state.relaunch_attempts += 1
            self.state.home_pressed = False
            logger.debug(f"Relaunching {self.app_id}")
            self.actions.launch_app(self.app_id)
            return RecoveryResult.CONTINUE

        self._activate_safe_mode()
        return RecoveryResult.SAFE_MODE_ACTIVATED

    # -------------------------
    # Cycle bookkeeping
    # -------------------------

    def _on_recovery_success(self) -> None:
        self.state.consecutive_failures = 0
        self.state.current_backoff = 0.0
        self.reset_for_new_cycle()

    def on_cycle_failure(self) -> None:
        self.state.consecutive_failures += 1
        self.state.current_backoff = min(
            self.state.current_backoff + self.timings.backoff_increment,
            self.timings.max_backoff,
        )
        logger.warning(
            f"Cycle failure #{self.state.consecutive_failures}, backoff={self.current_backoff_ms()}ms"
        )
        if self.state.consecutive_failures >= self.timings.failures_for_safe_mode:
            self._activate_safe_mode()
        self.reset_for_new_cycle()

    def on_cycle_success(self) -> None:
        self.state.consecutive_failures = 0
        self.state.current_backoff = 0.0
        self.reset_for_new_cycle()

    def reset_for_new_cycle(self) -> None:
        self.state.back_attempts = 0
        self.state.relaunch_attempts = 0
        self.state.home_pressed = False

    def status_string(self) -> str:
        t = self.timings
        return (
            f"back={self.state.back_attempts}/{t.max_back_attempts}, "
            f"relaunch={self.state.relaunch_attempts}/{t.max_relaunch_attempts}, "
            f"failures={self.state.consecutive_failures}, backoff={self.current_backoff_ms()}ms, "
            f"safeMode={self.is_in_safe_mode()}"
        )
