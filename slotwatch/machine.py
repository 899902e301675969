"""
@file machine.py
@brief Navigation state machine driving one monitoring cycle.

Every tick runs, in order: throttle, stuck detection, periodic re-sync
against the classifier/router, opportunistic jump to the task list, and
finally the handler for the current state. A handler performs at most
one action and either advances the state or leaves it unchanged to be
retried on the next eligible tick.

The machine is not thread-safe; callers serialise ticks (see service.py).
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from . import router
from .actionlogger import ACTION_LOGGER
from .actions import Actions
from .classifier import ScreenClassifier
from .config import MonitorConfig
from .element import UIElement, find_first, find_focused_editable, find_scrollable, text_contains
from .events import EventBus, SlotStatusEvent, StateChangeEvent
from .exceptions import FailureKind
from .outcome import CheckOutcome
from .recovery import RecoveryController, RecoveryResult
from .slots import extract_slots
from .states import NEAR_TERMINAL_STATES, NavigationState

logger = logging.getLogger(__name__)

S = NavigationState

# States that classify on their own and are exempt from stuck/resync checks.
SELF_ROUTING_STATES = frozenset({S.BOOTSTRAP, S.RECOVERY})


@dataclass
class CycleContext:
    """Per-cycle bookkeeping. Times are on the machine's monotonic clock."""
    cycle_id: int
    start_time: float
    started_at: float
    last_progress_time: float
    last_resync_time: float
    last_action_time: Optional[float] = None
    refresh_attempts: int = 0


class NavigationStateMachine:
    """
    Owns the current state and the cycle context.

    @param config Monitor configuration
    @param actions Action layer over the device
    @param events Bus receiving StateChangeEvent and SlotStatusEvent
    @param on_outcome Receives the CheckOutcome of every resolved cycle
    @param clock Monotonic clock for throttling and timeouts
    @param wall_clock Wall clock for outcome timestamps and safe mode
    """

    def __init__(
        self,
        config: MonitorConfig,
        actions: Actions,
        events: Optional[EventBus] = None,
        on_outcome: Optional[Callable[[CheckOutcome], None]] = None,
        classifier: Optional[ScreenClassifier] = None,
        recovery: Optional[RecoveryController] = None,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
    ):
        self.config = config
        self.actions = actions
        self.events = events or EventBus()
        self.on_outcome = on_outcome
        self.timings = config.engine_timings
        self.clock = clock
        self.wall_clock = wall_clock
        self.classifier = classifier or ScreenClassifier(
            config.target.location_name,
            config.target.task_name,
            config.labels,
        )
        self.recovery = recovery or RecoveryController(
            self.classifier,
            actions,
            config.target.app_id,
            self.timings,
            clock=wall_clock,
        )

        self.state: NavigationState = S.IDLE
        self.context: Optional[CycleContext] = None
        self.last_outcome: Optional[CheckOutcome] = None
        self._cycle_counter = 0

        self._handlers: Dict[NavigationState, Callable[[UIElement], None]] = {
            S.IDLE: self._handle_idle,
            S.BOOTSTRAP: self._handle_bootstrap,
            S.RECOVERY: self._handle_recovery,
            S.FIND_CATEGORY_TAB: self._handle_find_category_tab,
            S.FIND_SEARCH_FIELD: self._handle_find_search_field,
            S.TYPE_SEARCH_QUERY: self._handle_type_search_query,
            S.SELECT_RESOURCE: self._handle_select_resource,
            S.CLICK_ENROLL: self._handle_click_enroll,
            S.FIND_TASK_CARD: self._handle_find_task_card,
            S.CHECK_AVAILABILITY: self._handle_check_availability,
            S.REFRESH_CYCLE: self._handle_refresh_cycle,
        }
        missing = set(NavigationState) - set(self._handlers)
        if missing:
            raise RuntimeError(f"No handler for states: {sorted(s.value for s in missing)}")

    # =========================================================
    # Lifecycle
    # =========================================================

    @property
    def is_running(self) -> bool:
        return self.state is not S.IDLE and self.context is not None

    def start_cycle(self) -> bool:
        """
        Begin a new monitoring cycle at Bootstrap.

        @return False when a cycle is already running or safe mode is active
        """
        if self.is_running:
            logger.debug("start_cycle ignored: cycle already running")
            return False
        if self.recovery.is_in_safe_mode():
            remaining = int(self.recovery.safe_mode_remaining())
            logger.warning(f"start_cycle refused: safe mode active, {remaining}s remaining")
            self._progress(f"Safe mode active ({remaining}s remaining)")
            return False

        now = self.clock()
        self._cycle_counter += 1
        self.context = CycleContext(
            cycle_id=self._cycle_counter,
            start_time=now,
            started_at=self.wall_clock(),
            last_progress_time=now,
            last_resync_time=now,
        )
        self.recovery.reset_for_new_cycle()
        ACTION_LOGGER.set_run_id(f"cycle-{self._cycle_counter}")
        logger.info(f"Starting check cycle #{self._cycle_counter}")
        self._transition(S.BOOTSTRAP, "start")
        self._progress("Check cycle started")
        return True

    def stop(self) -> None:
        """Stop immediately. Actions already issued are not rolled back."""
        was_running = self.is_running
        self.state = S.IDLE
        self.context = None
        if was_running:
            logger.info("Check cycle STOPPED by request")
        self._progress("Monitoring Stopped")

    # =========================================================
    # Tick
    # =========================================================

    def tick(self, snapshot: Optional[UIElement]) -> None:
        """
        Process one snapshot. Never raises.
        """
        if not self.is_running:
            return
        try:
            self._tick(snapshot)
        except Exception as e:
            logger.exception(f"Error in tick (state={self.state.value})")
            ACTION_LOGGER.log(
                action="tick",
                state=self.state.value,
                status="error",
                exception=e,
                metadata={"failure": FailureKind.UNEXPECTED_TICK_EXCEPTION.value},
                event="tick",
            )

    def _tick(self, snapshot: Optional[UIElement]) -> None:
        ctx = self.context
        now = self.clock()

        if ctx.last_action_time is not None and now - ctx.last_action_time < self.action_delay(self.state):
            return

        if self.state not in SELF_ROUTING_STATES and now - ctx.last_progress_time > self.timings.stuck_timeout:
            logger.warning(
                f"No progress in {self.state.value} for {now - ctx.last_progress_time:.1f}s, re-bootstrapping"
            )
            self._transition(S.BOOTSTRAP, FailureKind.STUCK_NO_PROGRESS.value)
            return

        if snapshot is None:
            if self.state in SELF_ROUTING_STATES:
                # An absent window classifies as Unknown, so these states still escalate.
                self._handlers[self.state](snapshot)
            else:
                logger.debug("tick: no snapshot available")
            return

        if now - ctx.last_resync_time > self.timings.resync_interval:
            ctx.last_resync_time = now
            self._resync(snapshot)

        if (
            self.state not in NEAR_TERMINAL_STATES
            and self.state is not S.IDLE
            and self.classifier.task_visible_with_confirmation(snapshot)
        ):
            logger.debug(f"Opportunistic jump: '{self.config.target.task_name}' visible")
            self._transition(S.FIND_TASK_CARD, "jump")

        self._handlers[self.state](snapshot)

    def action_delay(self, state: NavigationState) -> float:
        """Minimum spacing after the last action before state may act again."""
        t = self.config.timing
        base = t.fast_refresh_delay_seconds if state is S.REFRESH_CYCLE else t.action_delay_seconds
        return max(base * self.timings.multiplier_for(state.value), self.timings.min_action_spacing)

    def _resync(self, snapshot: UIElement) -> None:
        if self.state in SELF_ROUTING_STATES:
            return
        screen = self.classifier.classify(snapshot)
        if not screen.is_known or router.is_consistent(screen, self.state):
            return
        target = router.route(screen)
        if target is S.RECOVERY:
            return
        logger.info(f"Re-sync: screen is {screen.kind.value}, correcting {self.state.value} -> {target.value}")
        self._transition(target, "resync")

    # =========================================================
    # Bookkeeping helpers
    # =========================================================

    def _transition(self, new_state: NavigationState, reason: str) -> None:
        old = self.state
        self.state = new_state
        if self.context is not None:
            self.context.last_progress_time = self.clock()
        if old is not new_state:
            logger.debug(f"State changed: {old.value} -> {new_state.value} ({reason})")
            ACTION_LOGGER.log(
                action="transition",
                state=new_state.value,
                status=reason,
                metadata={"from": old.value},
                event="state_change",
            )

    def _acted(self) -> None:
        if self.context is not None:
            self.context.last_action_time = self.clock()

    def _progress(self, text: str) -> None:
        self.events.publish(StateChangeEvent(text))

    def _missing(self, what: str) -> None:
        logger.debug(f"{FailureKind.TRANSIENT_MISSING_ELEMENT.value}: {what} (state={self.state.value})")

    def _click(self, snapshot: UIElement, element: UIElement) -> bool:
        delivered = self.actions.click(element, snapshot)
        if delivered:
            self._acted()
        return delivered

    # =========================================================
    # Handlers
    # =========================================================

    def _handle_idle(self, snapshot: UIElement) -> None:
        pass

    def _handle_bootstrap(self, snapshot: Optional[UIElement]) -> None:
        screen = self.classifier.classify(snapshot)
        if not router.is_safe_to_automate(screen) or not screen.is_known:
            logger.info(
                f"Bootstrap: screen not recognised (confidence={screen.confidence:.2f}), entering recovery"
            )
            self._transition(S.RECOVERY, FailureKind.AMBIGUOUS_CLASSIFICATION.value)
            return
        self._transition(router.route(screen), "bootstrap")

    def _handle_recovery(self, snapshot: Optional[UIElement]) -> None:
        result = self.recovery.execute_step(snapshot)
        if result is RecoveryResult.SUCCESS:
            screen = self.classifier.classify(snapshot)
            self._transition(router.route(screen), "recovered")
            self._progress(f"Recovered on {screen.kind.value}")
        elif result is RecoveryResult.CONTINUE:
            self._acted()
        else:
            until = self.recovery.state.safe_mode_until
            error = f"{FailureKind.RECOVERY_EXHAUSTED.value}: safe mode active"
            if until is not None:
                error += f" until {time.strftime('%H:%M:%S', time.localtime(until))}"
            self._finish_failure(error)

    def _handle_find_category_tab(self, snapshot: UIElement) -> None:
        labels = self.config.labels
        target = find_first(snapshot, lambda n: bool(
            (n.resource_id and labels.category_tab_id in n.resource_id)
            or (n.text and labels.category_tab in n.text)
            or (n.description and labels.category_tab_id in n.description)
        ))
        if target is None:
            self._missing(f"tab '{labels.category_tab}'")
            return
        if self._click(snapshot, target):
            self._transition(S.FIND_SEARCH_FIELD, "clicked")
            self._progress(f"Clicked '{labels.category_tab}'")

    def _handle_find_search_field(self, snapshot: UIElement) -> None:
        labels = self.config.labels
        search_bar = find_first(
            snapshot,
            lambda n: bool(n.resource_id and n.resource_id.endswith(labels.search_input_id)),
        )
        if search_bar is not None or find_focused_editable(snapshot) is not None:
            logger.debug("Search bar is open, proceeding to type")
            self._transition(S.TYPE_SEARCH_QUERY, "search_open")
            return

        header = find_first(
            snapshot,
            lambda n: text_contains(n, labels.selection_header) or text_contains(n, labels.map_toggle),
        )
        if header is None:
            self._missing("selection header")
            return
        x, y = self.config.search_icon
        logger.debug(f"Found header '{header.text}'. Tapping search icon at ({x}, {y})")
        if self.actions.tap_at(x, y):
            self._acted()
            self._transition(S.TYPE_SEARCH_QUERY, "tapped")
            self._progress("Clicked Search Icon")

    def _handle_type_search_query(self, snapshot: UIElement) -> None:
        focus = find_focused_editable(snapshot)
        if focus is None:
            return
        location = self.config.target.location_name
        if self.actions.set_text(focus, location):
            self._acted()
            self._transition(S.SELECT_RESOURCE, "typed")
            self._progress("Typed location name")

    def _handle_select_resource(self, snapshot: UIElement) -> None:
        location = self.config.target.location_name.lower()
        target = find_first(snapshot, lambda n: bool(
            not n.editable and n.text and n.text.lower() == location
        ))
        if target is None:
            self._missing(f"location card '{self.config.target.location_name}'")
            return
        if self._click(snapshot, target):
            self._transition(S.CLICK_ENROLL, "clicked")
            self._progress(f"Selected '{self.config.target.location_name}'")

    def _handle_click_enroll(self, snapshot: UIElement) -> None:
        enroll = self.config.labels.enroll
        target = find_first(snapshot, lambda n: bool(n.text and enroll.lower() in n.text.lower()))
        if target is None:
            self._missing(f"'{enroll}' button")
            return
        if self._click(snapshot, target):
            self._transition(S.FIND_TASK_CARD, "clicked")
            self._progress(f"Clicked '{enroll}'")

    def _find_task(self, snapshot: UIElement) -> Optional[UIElement]:
        task = self.config.target.task_name.lower()
        return find_first(snapshot, lambda n: bool(n.text and task in n.text.lower()))

    def _handle_find_task_card(self, snapshot: UIElement) -> None:
        if self._find_task(snapshot) is not None:
            logger.debug(f"Found task card '{self.config.target.task_name}'")
            self._transition(S.CHECK_AVAILABILITY, "task_found")
            self._progress("Found task card")
            return
        scrollable = find_scrollable(snapshot)
        if scrollable is None:
            return
        if self.actions.scroll_forward(scrollable):
            self._acted()
            self._progress("Scrolling...")

    def _handle_check_availability(self, snapshot: UIElement) -> None:
        if self._find_task(snapshot) is None:
            enroll = self.config.labels.enroll
            if find_first(snapshot, lambda n: text_contains(n, enroll)) is not None:
                logger.info(f"Task list gone and '{enroll}' visible again, returning to enroll")
                self._transition(S.CLICK_ENROLL, "fallback")
            return

        report = extract_slots(snapshot, self.config.labels, self.config.accept_dates_with_marker)
        if report.found:
            logger.info(f"=== SLOTS FOUND for {self.config.target.task_name}: {', '.join(report.labels)} ===")
            self._finish_check(report.labels)
            return

        timing = self.config.timing
        ctx = self.context
        if timing.fast_refresh_enabled and ctx.refresh_attempts < timing.max_refresh_attempts:
            ctx.refresh_attempts += 1
            logger.debug(f"No slots yet, refresh {ctx.refresh_attempts}/{timing.max_refresh_attempts}")
            self._transition(S.REFRESH_CYCLE, "refresh")
            return

        logger.info(f"No slots for {self.config.target.task_name} yet.")
        self._finish_check(None)

    def _handle_refresh_cycle(self, snapshot: UIElement) -> None:
        if self.actions.back():
            self._acted()
            self._transition(S.CLICK_ENROLL, "refresh_back")
            self._progress(f"Refreshing ({self.context.refresh_attempts})")

    # =========================================================
    # Cycle resolution
    # =========================================================

    def _finish_check(self, labels) -> None:
        """Resolve the cycle after a completed availability check."""
        ctx = self.context
        ctx.refresh_attempts = 0
        outcome = self._make_outcome(success=True, slot_labels=tuple(labels) if labels else None)
        self.recovery.on_cycle_success()
        self._end_cycle()
        self.events.publish(SlotStatusEvent(outcome.slot_labels))
        self._progress("Slots found!" if outcome.slots_found else "No slots yet")
        self._emit(outcome)
        logger.debug("Check cycle complete. Returning home.")
        self.actions.home()

    def _finish_failure(self, error: str) -> None:
        outcome = self._make_outcome(success=False, slot_labels=None, error=error)
        self.recovery.on_cycle_failure()
        self._end_cycle()
        self._progress(f"Check failed: {error}")
        self._emit(outcome)

    def _make_outcome(self, success: bool, slot_labels, error: Optional[str] = None) -> CheckOutcome:
        ctx = self.context
        return CheckOutcome(
            timestamp=self.wall_clock(),
            success=success,
            slots_found=bool(slot_labels),
            slot_labels=slot_labels,
            duration_ms=int((self.clock() - ctx.start_time) * 1000),
            error=error,
        )

    def _end_cycle(self) -> None:
        self._transition(S.IDLE, "cycle_end")
        self.context = None

    def _emit(self, outcome: CheckOutcome) -> None:
        self.last_outcome = outcome
        ACTION_LOGGER.log(
            action="check_outcome",
            status="ok" if outcome.success else "failed",
            duration_ms=outcome.duration_ms,
            metadata={"slots_found": outcome.slots_found},
            event="cycle_end",
        )
        if self.on_outcome is not None:
            self.on_outcome(outcome)
