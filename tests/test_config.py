"""
Configuration Tests
===================

YAML loading, environment overrides and validation.
"""

import pytest
from pydantic import ValidationError

from crowd_whisper.config import Settings, load_config


ENV_VARS = [
    "PORT",
    "CROWD_WHISPER_PORT",
    "CROWD_WHISPER_ZONES_PATH",
    "CROWD_WHISPER_WINDOW_HORIZON",
    "CROWD_WHISPER_ALERT_COOLDOWN",
    "CROWD_WHISPER_SIM_DEVICES",
    "CROWD_WHISPER_SIM_SEED",
    "CROWD_WHISPER_LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "engine:\n"
        "  window_horizon_seconds: 120\n"
        "alerts:\n"
        "  high_threshold: 70\n"
        "  critical_threshold: 95\n"
        "simulation:\n"
        "  device_count: 25\n"
        "  seed: 7\n"
    )
    return path


class TestLoadConfig:
    """File and environment sources."""

    def test_defaults(self):
        settings = Settings()

        assert settings.engine.window_horizon_seconds == 300.0
        assert settings.alerts.high_threshold == 80.0
        assert settings.alerts.critical_threshold == 90.0
        assert settings.alerts.cooldown_seconds == 0.0
        assert settings.simulation.device_count == 100
        assert settings.server.port == 3000

    def test_yaml_values(self, config_file):
        settings = load_config(str(config_file))

        assert settings.engine.window_horizon_seconds == 120.0
        assert settings.alerts.high_threshold == 70.0
        assert settings.simulation.device_count == 25
        assert settings.simulation.seed == 7
        # Untouched sections keep their defaults
        assert settings.engine.sweep_interval_seconds == 60.0

    def test_env_overrides_yaml(self, config_file, monkeypatch):
        monkeypatch.setenv("CROWD_WHISPER_WINDOW_HORIZON", "30")
        monkeypatch.setenv("CROWD_WHISPER_SIM_DEVICES", "5")
        monkeypatch.setenv("CROWD_WHISPER_ALERT_COOLDOWN", "10")

        settings = load_config(str(config_file))

        assert settings.engine.window_horizon_seconds == 30.0
        assert settings.simulation.device_count == 5
        assert settings.alerts.cooldown_seconds == 10.0

    def test_port_precedence(self, config_file, monkeypatch):
        monkeypatch.setenv("CROWD_WHISPER_PORT", "8081")
        assert load_config(str(config_file)).server.port == 8081

        monkeypatch.setenv("PORT", "9000")
        assert load_config(str(config_file)).server.port == 9000

    def test_missing_file_uses_defaults(self, tmp_path):
        settings = load_config(str(tmp_path / "absent.yaml"))
        assert settings.engine.trend_history_size == 10


class TestValidation:
    """Invalid values are rejected at load time."""

    def test_threshold_order(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("alerts:\n  high_threshold: 95\n  critical_threshold: 90\n")

        with pytest.raises(ValidationError):
            load_config(str(path))

    def test_non_positive_horizon(self, monkeypatch, tmp_path):
        monkeypatch.setenv("CROWD_WHISPER_WINDOW_HORIZON", "0")

        with pytest.raises(ValidationError):
            load_config(str(tmp_path / "absent.yaml"))

    def test_short_trend_history(self):
        with pytest.raises(ValidationError):
            Settings.model_validate({"engine": {"trend_history_size": 3}})
