"""
@file service.py
@brief Monitoring lifecycle: serial trigger queue, watchdog and cycle scheduling.

All engine state is touched only by dispatch(), which runs on a single
worker thread. Tree-change notifications and the watchdog only enqueue
triggers.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from .actions import Actions
from .config import MonitorConfig
from .element import UIElement
from .events import EventBus, StateChangeEvent
from .exceptions import SnapshotError
from .interfaces import IActionProvider, ISnapshotProvider
from .machine import NavigationStateMachine
from .outcome import CheckOutcome
from .reporter import OutcomeReporter

logger = logging.getLogger(__name__)


class Trigger(str, Enum):
    TICK = "tick"
    TREE_CHANGED = "tree_changed"
    START_CYCLE = "start_cycle"
    STOP = "stop"
    SHUTDOWN = "shutdown"


class MonitorService:
    """
    Periodic availability monitoring against one device.

    @param config Monitor configuration
    @param snapshots Snapshot source
    @param device Action target
    @param reporter Optional outcome reporter (stats and alerts)
    @param events Event bus shared with observers
    """

    def __init__(
        self,
        config: MonitorConfig,
        snapshots: ISnapshotProvider,
        device: IActionProvider,
        reporter: Optional[OutcomeReporter] = None,
        events: Optional[EventBus] = None,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
    ):
        self.config = config
        self.snapshots = snapshots
        self.actions = Actions(device)
        self.reporter = reporter
        self.events = events or EventBus()
        self.clock = clock
        self.wall_clock = wall_clock
        self.machine = NavigationStateMachine(
            config,
            self.actions,
            events=self.events,
            on_outcome=self._on_outcome,
            clock=clock,
            wall_clock=wall_clock,
        )

        self.monitoring = False
        self.next_cycle_at: Optional[float] = None
        self.pending_start_at: Optional[float] = None

        self._queue: "queue.Queue[Trigger]" = queue.Queue()
        self._dispatch_lock = threading.RLock()
        self._stop_event = threading.Event()
        self._worker: Optional[threading.Thread] = None
        self._watchdog: Optional[threading.Thread] = None
        snapshots.on_tree_changed(self.on_tree_changed)

    @property
    def recovery(self):
        return self.machine.recovery

    # =========================================================
    # Lifecycle
    # =========================================================

    def start(self, threaded: bool = True) -> None:
        """Begin monitoring. Idempotent. threaded=False leaves dispatching to the caller."""
        with self._dispatch_lock:
            if self.monitoring:
                return
            self.monitoring = True
            self.next_cycle_at = self.clock()
            self.pending_start_at = None
        logger.info("Monitoring started")
        self._publish("Monitoring Started")

        if self.reporter is not None and threaded:
            self.reporter.start()
        if not threaded:
            return

        self._stop_event.clear()
        self._queue = queue.Queue()
        self._worker = threading.Thread(
            target=self._run_worker, args=(self._queue,), name="tick-worker", daemon=True
        )
        self._watchdog = threading.Thread(target=self._run_watchdog, name="watchdog", daemon=True)
        self._worker.start()
        self._watchdog.start()

    def stop(self, timeout: float = 5.0) -> None:
        """Stop monitoring. Idempotent. The machine goes Idle before this returns."""
        with self._dispatch_lock:
            if not self.monitoring:
                return
            self.monitoring = False
            self.pending_start_at = None
            self.machine.stop()
        logger.info("Monitoring stopped")

        self._stop_event.set()
        if self._worker is not None:
            self._queue.put(Trigger.SHUTDOWN)
        for thread in (self._worker, self._watchdog):
            if thread is not None and thread is not threading.current_thread():
                thread.join(timeout)
        self._worker = None
        self._watchdog = None
        if self.reporter is not None:
            self.reporter.stop()

    def post(self, trigger: Trigger) -> None:
        self._queue.put(trigger)

    def on_tree_changed(self) -> None:
        """Tree-change callback for snapshot providers."""
        if self.monitoring:
            self.post(Trigger.TREE_CHANGED)

    def check_now(self) -> None:
        self.post(Trigger.START_CYCLE)

    # =========================================================
    # Threads
    # =========================================================

    def _run_worker(self, triggers: "queue.Queue[Trigger]") -> None:
        while True:
            trigger = triggers.get()
            if trigger is Trigger.SHUTDOWN:
                return
            self.dispatch(trigger)

    def _run_watchdog(self) -> None:
        period = self.machine.timings.watchdog_period
        while not self._stop_event.wait(period):
            self.post(Trigger.TICK)

    # =========================================================
    # Dispatch
    # =========================================================

    def dispatch(self, trigger: Trigger) -> None:
        """Handle one trigger synchronously. Never raises."""
        with self._dispatch_lock:
            try:
                self._dispatch(trigger)
            except Exception:
                logger.exception(f"Error dispatching {trigger.value}")

    def _dispatch(self, trigger: Trigger) -> None:
        if trigger is Trigger.STOP:
            self.monitoring = False
            self.pending_start_at = None
            self.machine.stop()
            return
        if not self.monitoring:
            return
        if trigger is Trigger.START_CYCLE:
            if not self.machine.is_running:
                self.next_cycle_at = self.clock()
                self._maybe_schedule()
            return
        if trigger in (Trigger.TICK, Trigger.TREE_CHANGED):
            if self.machine.is_running:
                self.machine.tick(self._snapshot())
            else:
                self._maybe_schedule()

    def _snapshot(self) -> Optional[UIElement]:
        try:
            return self.snapshots.current_snapshot()
        except SnapshotError as e:
            logger.warning(f"Snapshot unavailable: {e}")
            return None

    def _maybe_schedule(self) -> None:
        now = self.clock()

        if self.pending_start_at is not None:
            if now >= self.pending_start_at:
                self.pending_start_at = None
                if self.machine.start_cycle():
                    self.machine.tick(self._snapshot())
            return

        if self.next_cycle_at is None or now < self.next_cycle_at:
            return

        if self.recovery.is_in_safe_mode():
            remaining = self.recovery.safe_mode_remaining()
            until = datetime.fromtimestamp(self.wall_clock() + remaining).strftime("%H:%M:%S")
            logger.info(f"Cycle skipped: safe mode active until {until}")
            self._publish(f"Safe mode active until {until}")
            self.next_cycle_at = now + remaining
            return

        logger.info(f"Launching {self.config.target.app_id}")
        self.actions.launch_app(self.config.target.app_id)
        self.pending_start_at = now + self.config.timing.launch_settle_seconds
        self.next_cycle_at = None

    def _on_outcome(self, outcome: CheckOutcome) -> None:
        delay = self.config.timing.check_interval_seconds + self.recovery.state.current_backoff
        self.next_cycle_at = self.clock() + delay
        logger.info(f"Next check in {delay:.0f}s")
        if self.reporter is not None:
            self.reporter.submit(outcome)

    def _publish(self, text: str) -> None:
        self.events.publish(StateChangeEvent(text))

    # =========================================================
    # Blocking entry point
    # =========================================================

    def run_forever(self) -> None:
        """Run until KeyboardInterrupt."""
        self.start()
        try:
            while self.monitoring:
                time.sleep(0.5)
        except KeyboardInterrupt:
            logger.info("Interrupted")
        finally:
            self.stop()
