# tests/test_logsetup.py
"""
Tests for the diagnostic log formatter.
"""

import logging

from slotwatch.logsetup import MonitorLogFormatter, resolve_level


def _record(name="slotwatch.machine", msg="hello"):
    record = logging.LogRecord(name, logging.INFO, __file__, 1, msg, None, None)
    record.threadName = "tick-worker"
    return record


class TestMonitorLogFormatter:
    def test_strips_package_prefix(self):
        text = MonitorLogFormatter().format(_record())
        assert text.endswith("] machine: hello")
        assert "[INFO    ]" in text
        assert "[tick-worker ]" in text

    def test_without_thread(self):
        text = MonitorLogFormatter(include_thread=False).format(_record(name="other"))
        assert "tick-worker" not in text
        assert text.endswith("other: hello")


class TestResolveLevel:
    def test_names_and_numbers(self):
        assert resolve_level("debug") == logging.DEBUG
        assert resolve_level(logging.ERROR) == logging.ERROR
        assert resolve_level(None) == logging.INFO
        assert resolve_level("nonsense") == logging.INFO
