# tests/test_service.py
"""
Tests for the monitoring service, dispatched synchronously on a virtual clock.
"""

import pytest

from slotwatch.events import StateChangeEvent
from slotwatch.exceptions import SnapshotError
from slotwatch.reporter import AlertDeduplicator, OutcomeReporter
from slotwatch.service import MonitorService, Trigger
from slotwatch.states import NavigationState as S

from conftest import LOCATION, TASK, FakeNotifier, make_config


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def service(device, clock, notifier):
    reporter = OutcomeReporter(LOCATION, TASK, notifier=notifier, deduplicator=AlertDeduplicator(clock=clock))
    svc = MonitorService(make_config(), device, device, reporter=reporter, clock=clock, wall_clock=clock)
    svc.start(threaded=False)
    yield svc
    svc.stop()


def _run_cycle(service, clock, step=0.5, max_ticks=200):
    for _ in range(max_ticks):
        service.dispatch(Trigger.TICK)
        if service.machine.last_outcome is not None:
            return service.machine.last_outcome
        clock.advance(step)
    raise AssertionError("no outcome")


class TestScheduling:
    """Tests for cycle scheduling."""

    def test_launch_then_settle(self, service, device, clock):
        """The app is launched first and the cycle starts after the settle delay."""
        service.dispatch(Trigger.TICK)
        assert device.journal == ["launch:ru.ozon.hire"]
        assert device.current == "main_hub"
        assert service.pending_start_at == clock() + 2.0

        service.dispatch(Trigger.TICK)
        assert not service.machine.is_running

        clock.advance(2.0)
        service.dispatch(Trigger.TICK)
        assert service.machine.is_running
        assert service.machine.state is S.FIND_CATEGORY_TAB

    def test_full_cycle_reports_and_reschedules(self, service, device, clock, notifier):
        outcome = _run_cycle(service, clock)
        assert outcome.slots_found
        assert service.next_cycle_at == pytest.approx(clock() + 30.0)
        assert device.current == "launcher"

        service.reporter.drain()
        assert len(notifier.sent) == 1

        # Nothing happens until the interval passes.
        launches = device.journal.count("launch:ru.ozon.hire")
        clock.advance(10)
        service.dispatch(Trigger.TICK)
        assert device.journal.count("launch:ru.ozon.hire") == launches
        clock.advance(21)
        service.dispatch(Trigger.TICK)
        assert device.journal.count("launch:ru.ozon.hire") == launches + 1

    def test_safe_mode_skips_cycle(self, service, device, clock):
        """While safe mode is active no launch happens and the next check waits it out."""
        service.recovery.state.safe_mode_until = clock() + 100
        service.dispatch(Trigger.TICK)
        assert device.journal == []
        assert service.next_cycle_at == pytest.approx(clock() + 100)
        assert service.events.last(StateChangeEvent).text.startswith("Safe mode active until")

    def test_check_now(self, service, device, clock):
        """START_CYCLE overrides the interval."""
        _run_cycle(service, clock)
        service.dispatch(Trigger.START_CYCLE)
        assert device.journal.count("launch:ru.ozon.hire") == 2

    def test_tree_change_ticks(self, service, clock):
        service.dispatch(Trigger.TICK)
        clock.advance(2.0)
        service.dispatch(Trigger.TREE_CHANGED)
        assert service.machine.is_running

    def test_device_transition_enqueues_tree_change(self, service):
        """A screen change on the device queues a TREE_CHANGED trigger."""
        service.dispatch(Trigger.TICK)
        assert service._queue.get_nowait() is Trigger.TREE_CHANGED
        assert service._queue.empty()

    def test_no_tree_change_while_stopped(self, service, device):
        service.stop()
        device.launch_app("ru.ozon.hire")
        assert service._queue.empty()


class TestLifecycle:
    """Tests for start/stop."""

    def test_stop_trigger(self, service, clock):
        service.dispatch(Trigger.TICK)
        clock.advance(2.0)
        service.dispatch(Trigger.TICK)
        service.dispatch(Trigger.STOP)
        assert not service.monitoring
        assert service.machine.state is S.IDLE

        service.dispatch(Trigger.TICK)
        assert not service.machine.is_running

    def test_stop_is_idempotent(self, service):
        service.stop()
        service.stop()
        assert service.machine.state is S.IDLE
        assert service.events.last(StateChangeEvent).text == "Monitoring Stopped"

    def test_snapshot_errors_are_absorbed(self, service, device, clock, monkeypatch):
        def broken():
            raise SnapshotError("dump failed")

        service.dispatch(Trigger.TICK)
        clock.advance(2.0)
        monkeypatch.setattr(device, "current_snapshot", broken)
        service.dispatch(Trigger.TICK)
        # No window reads as an unknown screen.
        assert service.machine.is_running
        assert service.machine.state is S.RECOVERY

    def test_threaded_start_stop(self, device):
        """Worker and watchdog threads start and are joined by stop()."""
        svc = MonitorService(make_config(), device, device)
        svc.start()
        svc.start()
        assert svc.monitoring
        svc.stop()
        assert not svc.monitoring
        assert svc._worker is None

    def test_threaded_restart_after_synchronous_run(self, device):
        """A synchronous run leaves nothing behind that stops the next worker."""
        svc = MonitorService(make_config(), device, device)
        svc.start(threaded=False)
        svc.stop()
        assert svc._queue.empty()

        svc.start()
        try:
            svc._worker.join(0.2)
            assert svc._worker.is_alive()
        finally:
            svc.stop()
        assert svc._worker is None
