# tests/test_actions.py
"""
Tests for the action dispatch layer.
"""

import pytest

from slotwatch.actionlogger import ACTION_LOGGER
from slotwatch.actions import Actions
from slotwatch.element import Bounds, UIElement
from slotwatch.exceptions import ActionError

ROW = UIElement(
    clickable=True,
    bounds=Bounds(0, 400, 1080, 600),
    children=(UIElement(text="Петровское", bounds=Bounds(10, 410, 500, 450)),),
)
ROOT = UIElement(children=(ROW,))


class TestClick:
    """Tests for Actions.click."""

    def test_clicks_clickable_ancestor(self, recorder):
        label = ROW.children[0]
        assert Actions(recorder).click(label, ROOT)
        assert recorder.calls == [("click", ROW)]

    def test_falls_back_to_tap_when_click_not_delivered(self, recorder):
        recorder.results["click"] = False
        label = ROW.children[0]
        assert Actions(recorder).click(label, ROOT)
        assert recorder.calls == [("click", ROW), ("tap", 255, 430)]

    def test_falls_back_to_tap_when_click_raises(self, recorder):
        recorder.raises["click"] = RuntimeError("stale node")
        assert Actions(recorder).click(ROW.children[0], ROOT)
        assert recorder.names() == ["click", "tap"]

    def test_no_target_and_no_bounds(self, recorder):
        assert not Actions(recorder).click(UIElement(text="x"), UIElement())
        assert recorder.calls == []


class TestDelivery:
    """Tests for provider failures."""

    def test_provider_exception_reported_as_undelivered(self, recorder):
        recorder.raises["back"] = OSError("device offline")
        assert Actions(recorder).back() is False

    def test_action_error_passes_through_as_false(self, recorder):
        recorder.raises["launch_app"] = ActionError("launch_app", details="no activity")
        assert Actions(recorder).launch_app("ru.ozon.hire") is False

    def test_simple_actions(self, recorder):
        actions = Actions(recorder)
        field = UIElement(editable=True, focused=True)
        assert actions.set_text(field, "abc")
        assert actions.scroll_forward(field)
        assert actions.home()
        assert actions.tap_at(1, 2)
        assert recorder.names() == ["set_text", "scroll_forward", "home", "tap"]


@pytest.fixture
def action_log():
    ACTION_LOGGER.configure(console=False)
    ACTION_LOGGER.enable()
    yield ACTION_LOGGER
    ACTION_LOGGER.disable()
    ACTION_LOGGER.configure()


class TestActionLog:
    """Tests for what each dispatched action records."""

    def test_typed_text_is_logged_masked(self, recorder, action_log):
        field = UIElement(resource_id="ru.ozon.hire:id/search", editable=True)
        Actions(recorder).set_text(field, "Петровское шоссе")
        event = action_log.recent(1)[0]
        assert event["action"] == "set_text"
        assert event["metadata"] == {"text": "Петровское..."}
        assert event["element"] == field.label()

    def test_positional_arguments_become_metadata(self, recorder, action_log):
        Actions(recorder).tap_at(10, 20)
        Actions(recorder).launch_app("ru.ozon.hire")
        tap, launch = action_log.recent(2)
        assert tap["metadata"] == {"x": 10, "y": 20}
        assert launch["metadata"] == {"app_id": "ru.ozon.hire"}
