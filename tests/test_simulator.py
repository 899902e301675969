# tests/test_simulator.py
"""
Tests for the scripted device.
"""

import pytest

from slotwatch.element import UIElement
from slotwatch.exceptions import ConfigError
from slotwatch.simulator import ScriptedDevice, VirtualClock

from conftest import texts


def _device(**kwargs):
    return ScriptedDevice(
        {"a": texts("A"), "b": UIElement(children=(UIElement(text="B", clickable=True),)), "c": None},
        {"*": {"back": "a", "home": "c"}, "a": {"tap": "b", "back": "c"}},
        start="a",
        **kwargs,
    )


class TestScriptedDevice:
    """Tests for ScriptedDevice."""

    def test_screen_transitions_take_precedence_over_wildcard(self):
        device = _device()
        device.global_back()
        assert device.current == "c"
        assert device.current_snapshot() is None

    def test_wildcard(self):
        device = _device()
        device.tap_at(1, 1)
        device.global_back()
        assert device.current == "a"
        assert device.journal == ["tap:1,1", "back"]

    def test_click_key_uses_first_text(self):
        device = ScriptedDevice(
            {"a": texts("A"), "b": texts("B")},
            {"a": {"click:Go": "b"}},
            start="a",
        )
        assert device.click(UIElement(clickable=True, children=(UIElement(text="Go"),)))
        assert device.current == "b"

    def test_unmatched_action_is_delivered(self):
        device = _device()
        assert device.scroll_forward(UIElement())
        assert device.current == "a"

    def test_undeliverable(self):
        device = _device(undeliverable=["tap"])
        assert not device.tap_at(5, 5)
        assert device.current == "a"

    def test_listeners_called_on_change(self):
        device = _device()
        calls = []
        device.on_tree_changed(lambda: calls.append(device.current))
        device.tap_at(0, 0)
        device.scroll_forward(UIElement())
        assert calls == ["b"]

    def test_unknown_target(self):
        with pytest.raises(ConfigError, match="unknown target"):
            ScriptedDevice({"a": None}, {"a": {"back": "zzz"}}, start="a")

    def test_from_dict_errors(self):
        with pytest.raises(ConfigError):
            ScriptedDevice.from_dict({"screens": {}})
        with pytest.raises(ConfigError):
            ScriptedDevice.from_dict({"screens": {"a": 3}})

    def test_load_missing(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            ScriptedDevice.load(str(tmp_path / "device.yaml"))


class TestVirtualClock:
    def test_advance(self):
        clock = VirtualClock(5.0)
        clock.advance(1.5)
        assert clock() == 6.5
