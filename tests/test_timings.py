# tests/test_timings.py
"""
Tests for engine timing presets.
"""

import pytest

from slotwatch.timings import EngineTimings, build_preset_values, list_presets


class TestPresets:
    """Tests for preset resolution."""

    def test_default_values(self):
        t = EngineTimings.from_preset("default")
        assert t.stuck_timeout == 10.0
        assert t.resync_interval == 4.0
        assert t.max_back_attempts == 5
        assert t.max_relaunch_attempts == 1
        assert t.safe_mode_duration == 300.0
        assert t.multiplier_for("check_availability") == 0.1

    def test_slow_overrides_merge(self):
        """Multiplier overrides merge into the defaults rather than replacing them."""
        t = EngineTimings.from_preset("slow")
        assert t.stuck_timeout == 20.0
        assert t.multiplier_for("find_task_card") == 0.5
        assert t.multiplier_for("click_enroll") == 0.3

    def test_preset_name_case_insensitive(self):
        assert build_preset_values("FAST")["resync_interval"] == 3.0

    def test_unknown_preset(self):
        with pytest.raises(ValueError):
            build_preset_values("turbo")

    def test_list_presets(self):
        assert set(list_presets()) == {"default", "fast", "slow"}

    def test_unknown_state_multiplier(self):
        assert EngineTimings().multiplier_for("nope") == 1.0
