"""
@file reporter.py
@brief Outcome reporter: async statistics persistence and deduplicated alerts.

The state machine hands CheckOutcome records to submit(), which only
enqueues. A daemon worker persists each outcome and decides whether to
alert. Worker failures are logged and never reach the caller.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import queue
import threading
import time
from datetime import datetime
from typing import Callable, Optional

from .exceptions import AlertDeliveryError, FailureKind, SlotWatchError
from .interfaces import INotifier
from .outcome import CheckOutcome
from .stats import StatsRepository

logger = logging.getLogger(__name__)

HEARTBEAT_HOURS = 4.0

_STOP = object()


def format_message(outcome: CheckOutcome, location_name: str, task_name: str) -> str:
    """Alert text for a resolved check."""
    if outcome.slots_found:
        dates = ", ".join(outcome.slot_labels or ())
        return f"[OK] Slot available! Location: {location_name} Task: {task_name} Dates: {dates}"
    return f"[INFO] Check complete: no slots for '{task_name}' yet."


def format_safe_mode_message(outcome: CheckOutcome) -> str:
    return f"[WARN] Monitoring paused: {outcome.error}"


def signature_for(outcome: CheckOutcome) -> str:
    """MD5 over the found/not-found state and the label set."""
    if outcome.slots_found:
        raw = "SLOTS:" + ", ".join(outcome.slot_labels or ())
    elif not outcome.success:
        raw = "SAFE_MODE"
    else:
        raw = "NO_SLOTS"
    return hashlib.md5(raw.encode("utf-8")).hexdigest()


class AlertDeduplicator:
    """
    Suppresses repeat alerts for an unchanged signature, except as a heartbeat.

    State is committed only after a successful send and is persisted to
    state_path when given.
    """

    def __init__(
        self,
        heartbeat_hours: float = HEARTBEAT_HOURS,
        state_path: Optional[str] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.heartbeat_seconds = heartbeat_hours * 3600.0
        self.state_path = state_path
        self.clock = clock
        self.last_signature: Optional[str] = None
        self.last_sent_time: float = 0.0
        self._load()

    def should_send(self, signature: str) -> bool:
        if signature != self.last_signature:
            return True
        return self.clock() - self.last_sent_time > self.heartbeat_seconds

    def commit(self, signature: str) -> None:
        self.last_signature = signature
        self.last_sent_time = self.clock()
        self._save()

    def _load(self) -> None:
        if not self.state_path or not os.path.exists(self.state_path):
            return
        try:
            with open(self.state_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable alert state {self.state_path}: {e}")
            return
        self.last_signature = data.get("last_signature")
        self.last_sent_time = float(data.get("last_sent_time", 0.0))

    def _save(self) -> None:
        if not self.state_path:
            return
        directory = os.path.dirname(os.path.abspath(self.state_path))
        os.makedirs(directory, exist_ok=True)
        with open(self.state_path, "w", encoding="utf-8") as f:
            json.dump({"last_signature": self.last_signature, "last_sent_time": self.last_sent_time}, f)


class OutcomeReporter:
    """
    Consumes CheckOutcome records off the tick thread.

    @param location_name Target location for alert text
    @param task_name Target task for alert text
    @param stats Optional statistics store
    @param notifier Optional alert channel
    @param deduplicator Alert deduplication policy
    """

    def __init__(
        self,
        location_name: str,
        task_name: str,
        stats: Optional[StatsRepository] = None,
        notifier: Optional[INotifier] = None,
        deduplicator: Optional[AlertDeduplicator] = None,
    ):
        self.location_name = location_name
        self.task_name = task_name
        self.stats = stats
        self.notifier = notifier
        self.deduplicator = deduplicator or AlertDeduplicator()
        self._queue: "queue.Queue[object]" = queue.Queue()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    def start(self) -> None:
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                return
            self._thread = threading.Thread(target=self._run, name="outcome-reporter", daemon=True)
            self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        with self._lock:
            thread = self._thread
            self._thread = None
        if thread is None:
            return
        self._queue.put(_STOP)
        thread.join(timeout)

    def submit(self, outcome: CheckOutcome) -> None:
        """Enqueue an outcome; never blocks."""
        self._queue.put_nowait(outcome)

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                self.process(item)
            finally:
                self._queue.task_done()

    def drain(self) -> None:
        """Process everything queued so far on the calling thread."""
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                return
            try:
                if item is not _STOP:
                    self.process(item)
            finally:
                self._queue.task_done()

    def process(self, outcome: CheckOutcome) -> None:
        """Persist and alert for one outcome. Logs instead of raising."""
        if self.stats is not None:
            try:
                self.stats.record(outcome)
            except SlotWatchError as e:
                logger.error(f"Failed to record check outcome: {e}")

        text = self._alert_text(outcome)
        if text is None or self.notifier is None or not self.notifier.enabled:
            return

        signature = signature_for(outcome)
        if not self.deduplicator.should_send(signature):
            logger.debug("Alert skipped (deduplicated)")
            return
        try:
            self.notifier.send(text)
        except AlertDeliveryError as e:
            logger.error(f"Failed to send alert: {e}")
            return
        try:
            self.deduplicator.commit(signature)
        except OSError as e:
            logger.error(f"Failed to persist alert state: {e}")
        logger.info(f"Alert sent at {datetime.now().strftime('%H:%M:%S')}")

    def _alert_text(self, outcome: CheckOutcome) -> Optional[str]:
        if outcome.success:
            return format_message(outcome, self.location_name, self.task_name)
        if outcome.error and outcome.error.startswith(FailureKind.RECOVERY_EXHAUSTED.value):
            return format_safe_mode_message(outcome)
        return None
