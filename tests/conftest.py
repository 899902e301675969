# tests/conftest.py
"""
Shared fixtures: virtual clock, sample config/device, recording action provider.
"""

import os
from typing import List, Tuple

import pytest

from slotwatch.config import MonitorConfig, TargetConfig, TimingConfig
from slotwatch.element import UIElement
from slotwatch.exceptions import AlertDeliveryError
from slotwatch.interfaces import IActionProvider, INotifier
from slotwatch.simulator import ScriptedDevice, VirtualClock

ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
SAMPLES_DIR = os.path.join(ROOT_DIR, "samples")
SAMPLE_CONFIG = os.path.join(SAMPLES_DIR, "config.yaml")
SAMPLE_DEVICE = os.path.join(SAMPLES_DIR, "device.yaml")

LOCATION = "Петровское"
TASK = "Производство непрофиль"


class FakeClock(VirtualClock):
    """Virtual clock starting at a non-zero epoch so 0 is never a valid 'now'."""

    def __init__(self, start: float = 1_700_000_000.0):
        super().__init__(start)


class RecordingActions(IActionProvider):
    """Action provider that records calls and returns configurable results."""

    def __init__(self):
        self.calls: List[Tuple] = []
        self.results = {}
        self.raises = {}

    def _record(self, name: str, *args) -> bool:
        self.calls.append((name,) + args)
        if name in self.raises:
            raise self.raises[name]
        return self.results.get(name, True)

    def names(self) -> List[str]:
        return [c[0] for c in self.calls]

    def click(self, element: UIElement) -> bool:
        return self._record("click", element)

    def set_text(self, element: UIElement, text: str) -> bool:
        return self._record("set_text", element, text)

    def scroll_forward(self, element: UIElement) -> bool:
        return self._record("scroll_forward", element)

    def global_back(self) -> bool:
        return self._record("back")

    def global_home(self) -> bool:
        return self._record("home")

    def launch_app(self, app_id: str) -> bool:
        return self._record("launch_app", app_id)

    def tap_at(self, x: int, y: int) -> bool:
        return self._record("tap", x, y)


class FakeNotifier(INotifier):
    """Notifier that records sent texts, or fails every send when fail is set."""

    def __init__(self, enabled=True, fail=False):
        self._enabled = enabled
        self.fail = fail
        self.sent = []

    @property
    def enabled(self):
        return self._enabled

    def send(self, text):
        if self.fail:
            raise AlertDeliveryError("fake", "down")
        self.sent.append(text)


def make_config(**timing) -> MonitorConfig:
    return MonitorConfig(target=TargetConfig(LOCATION, TASK), timing=TimingConfig(**timing))


def texts(*values: str, **root_kwargs) -> UIElement:
    """Flat snapshot with one child per text."""
    return UIElement(children=tuple(UIElement(text=v) for v in values), **root_kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config():
    return make_config()


@pytest.fixture
def device():
    return ScriptedDevice.load(SAMPLE_DEVICE)


@pytest.fixture
def screens(device):
    return device.screens


@pytest.fixture
def recorder():
    return RecordingActions()
