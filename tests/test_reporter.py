# tests/test_reporter.py
"""
Tests for alert formatting, deduplication and the outcome reporter.
"""

import json

import pytest

from slotwatch.outcome import CheckOutcome
from slotwatch.reporter import (
    AlertDeduplicator,
    OutcomeReporter,
    format_message,
    signature_for,
)
from slotwatch.stats import StatsRepository

from conftest import LOCATION, TASK, FakeClock, FakeNotifier

NOW = 1_700_000_000.0
FOUND = CheckOutcome(NOW, True, True, ("7 февраля, Сб",), 1200)
NOT_FOUND = CheckOutcome(NOW, True, False, None, 900)
EXHAUSTED = CheckOutcome(NOW, False, False, None, 30000, "recovery_exhausted: safe mode active until 12:00:00")


@pytest.fixture
def dedup_clock():
    return FakeClock(NOW)


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def reporter(notifier, dedup_clock):
    return OutcomeReporter(LOCATION, TASK, notifier=notifier, deduplicator=AlertDeduplicator(clock=dedup_clock))


class TestFormatting:
    """Tests for message text and signatures."""

    def test_found_message(self):
        text = format_message(FOUND, LOCATION, TASK)
        assert text.startswith("[OK]")
        assert LOCATION in text and TASK in text
        assert "7 февраля, Сб" in text

    def test_not_found_message(self):
        assert format_message(NOT_FOUND, LOCATION, TASK).startswith("[INFO]")

    def test_signatures(self):
        """Signatures depend on the label set, not on timing."""
        later = CheckOutcome(NOW + 60, True, True, ("7 февраля, Сб",), 5)
        other = CheckOutcome(NOW, True, True, ("8 февраля, Вс",), 5)
        assert signature_for(FOUND) == signature_for(later)
        assert signature_for(FOUND) != signature_for(other)
        assert signature_for(NOT_FOUND) != signature_for(EXHAUSTED)


class TestDeduplicator:
    """Tests for AlertDeduplicator."""

    def test_heartbeat(self, dedup_clock):
        """Same signature is resent only after the heartbeat interval."""
        dedup = AlertDeduplicator(heartbeat_hours=4, clock=dedup_clock)
        assert dedup.should_send("a")
        dedup.commit("a")
        assert not dedup.should_send("a")
        assert dedup.should_send("b")
        dedup_clock.advance(4 * 3600 + 1)
        assert dedup.should_send("a")

    def test_state_persisted(self, tmp_path, dedup_clock):
        path = tmp_path / "state" / "alert.json"
        AlertDeduplicator(state_path=str(path), clock=dedup_clock).commit("sig")
        assert json.loads(path.read_text(encoding="utf-8"))["last_signature"] == "sig"

        restored = AlertDeduplicator(state_path=str(path), clock=dedup_clock)
        assert not restored.should_send("sig")

    def test_unreadable_state_ignored(self, tmp_path):
        path = tmp_path / "alert.json"
        path.write_text("{not json", encoding="utf-8")
        assert AlertDeduplicator(state_path=str(path)).last_signature is None


class TestOutcomeReporter:
    """Tests for OutcomeReporter.process and the queue."""

    def test_found_alert_sent_once(self, reporter, notifier):
        reporter.process(FOUND)
        reporter.process(FOUND)
        assert len(notifier.sent) == 1
        assert notifier.sent[0].startswith("[OK]")

    def test_status_change_alerts(self, reporter, notifier):
        """A change from found to not found alerts again."""
        reporter.process(FOUND)
        reporter.process(NOT_FOUND)
        assert [t[:4] for t in notifier.sent] == ["[OK]", "[INF"]

    def test_safe_mode_alert(self, reporter, notifier):
        reporter.process(EXHAUSTED)
        assert notifier.sent == [f"[WARN] Monitoring paused: {EXHAUSTED.error}"]

    def test_other_failures_not_alerted(self, reporter, notifier):
        reporter.process(CheckOutcome(NOW, False, False, None, 0, "something else"))
        assert notifier.sent == []

    def test_failed_send_not_committed(self, dedup_clock):
        """A failed delivery leaves the signature unsent so the next outcome retries."""
        notifier = FakeNotifier(fail=True)
        dedup = AlertDeduplicator(clock=dedup_clock)
        reporter = OutcomeReporter(LOCATION, TASK, notifier=notifier, deduplicator=dedup)
        reporter.process(FOUND)
        assert dedup.last_signature is None

        notifier.fail = False
        reporter.process(FOUND)
        assert len(notifier.sent) == 1

    def test_disabled_notifier(self, dedup_clock):
        notifier = FakeNotifier(enabled=False)
        reporter = OutcomeReporter(LOCATION, TASK, notifier=notifier, deduplicator=AlertDeduplicator(clock=dedup_clock))
        reporter.process(FOUND)
        assert notifier.sent == []

    def test_stats_recorded(self, tmp_path, notifier, dedup_clock):
        stats = StatsRepository(str(tmp_path / "s.db"))
        reporter = OutcomeReporter(LOCATION, TASK, stats=stats, notifier=notifier,
                                   deduplicator=AlertDeduplicator(clock=dedup_clock))
        reporter.process(FOUND)
        reporter.process(EXHAUSTED)
        assert stats.summary().total == 2

    def test_submit_and_drain(self, reporter, notifier):
        reporter.submit(FOUND)
        assert notifier.sent == []
        reporter.drain()
        assert len(notifier.sent) == 1

    def test_worker_thread(self, reporter, notifier):
        """Outcomes submitted while started are processed before stop() returns."""
        reporter.start()
        reporter.submit(FOUND)
        reporter.stop()
        assert len(notifier.sent) == 1
