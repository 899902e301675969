# tests/test_config.py
"""
Tests for configuration loading and schema validation.
"""

import pytest
import yaml

from slotwatch.config import DEFAULT_APP_ID, DEFAULT_SEARCH_ICON, config_from_dict, load_config
from slotwatch.exceptions import ConfigError

from conftest import LOCATION, SAMPLE_CONFIG, TASK


def _write(tmp_path, data):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(data, allow_unicode=True), encoding="utf-8")
    return str(path)


class TestLoadConfig:
    """Tests for load_config."""

    def test_sample(self):
        cfg = load_config(SAMPLE_CONFIG)
        assert cfg.target.location_name == LOCATION
        assert cfg.target.task_name == TASK
        assert cfg.timing.action_delay_seconds == 3.0
        assert cfg.search_icon == (373, 2367)
        assert not cfg.alerts.telegram_configured
        assert cfg.engine_timings.stuck_timeout == 10.0

    def test_minimal_defaults(self, tmp_path):
        cfg = load_config(_write(tmp_path, {"target": {"location_name": "A", "task_name": "B"}}))
        assert cfg.target.app_id == DEFAULT_APP_ID
        assert cfg.search_icon == DEFAULT_SEARCH_ICON
        assert cfg.timing.fast_refresh_enabled is False
        assert cfg.accept_dates_with_marker is False

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(str(tmp_path / "nope.yaml"))

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("target: [unclosed", encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(str(path))


class TestValidation:
    """Tests for schema validation."""

    def test_not_a_mapping(self):
        with pytest.raises(ConfigError, match="mapping"):
            config_from_dict(["target"])

    def test_all_errors_listed(self):
        """Every violation is reported with its path."""
        with pytest.raises(ConfigError) as exc:
            config_from_dict({
                "target": {"location_name": "", "task_name": "B"},
                "timing": {"preset": "turbo"},
                "bogus": 1,
            })
        message = str(exc.value)
        assert "['target', 'location_name']" in message
        assert "['timing', 'preset']" in message
        assert "bogus" in message

    def test_missing_target(self):
        with pytest.raises(ConfigError, match="target"):
            config_from_dict({})

    def test_label_overrides(self):
        cfg = config_from_dict({
            "target": {"location_name": "A", "task_name": "B"},
            "labels": {"enroll": "Записаться на смену", "hub_tabs": "Выплаты"},
        })
        assert cfg.labels.enroll == "Записаться на смену"
        assert cfg.labels.hub_tabs == ("Выплаты",)
        assert cfg.labels.no_availability == "НЕТ МЕСТ"

    def test_unknown_label_key(self):
        with pytest.raises(ConfigError, match="unknown keys"):
            config_from_dict({
                "target": {"location_name": "A", "task_name": "B"},
                "labels": {"nope": "x"},
            })

    def test_integer_chat_id_and_masking(self):
        cfg = config_from_dict({
            "target": {"location_name": "A", "task_name": "B"},
            "alerts": {"telegram": {"bot_token": "secret", "chat_id": 12345}},
            "slots": {"accept_dates_with_marker": True},
        })
        assert cfg.alerts.chat_id == "12345"
        assert cfg.alerts.telegram_configured
        assert cfg.accept_dates_with_marker
        shown = cfg.to_dict()
        assert shown["alerts"]["telegram"] == {"bot_token": "***", "chat_id": "***"}
