import logging

import pytest

from app.config import AppConfig, load_config, setup_logging
from app.domain.exceptions import ConfigurationError


def test_defaults(monkeypatch):
    for name in ("ECOSTERILE_STALE_THRESHOLD_MS", "ECOSTERILE_SIM_INTERVAL_MS", "ECOSTERILE_PUMP_COOLDOWN_MS"):
        monkeypatch.delenv(name, raising=False)
    config = AppConfig()
    settings = config.controller_settings()

    assert settings.stale_threshold_ms == 10_000
    assert settings.sim_interval_ms == 2_000
    assert settings.pump_cooldown_ms == 10_000


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("ECOSTERILE_STALE_THRESHOLD_MS", "5000")
    monkeypatch.setenv("ECOSTERILE_SERIAL_ENABLED", "yes")
    monkeypatch.setenv("ECOSTERILE_DEFAULT_PH_MIN", "6.0")

    config = load_config()

    assert config.stale_threshold_ms == 5_000
    assert config.serial_enabled is True
    assert config.controller_settings().default_range.min == 6.0


def test_non_integer_environment_value(monkeypatch):
    monkeypatch.setenv("ECOSTERILE_SIM_INTERVAL_MS", "fast")
    with pytest.raises(ConfigurationError, match="ECOSTERILE_SIM_INTERVAL_MS"):
        AppConfig()


def test_production_requires_secret_key(monkeypatch):
    monkeypatch.delenv("ECOSTERILE_SECRET_KEY", raising=False)
    with pytest.raises(ConfigurationError):
        AppConfig(environment="production")
    assert AppConfig(environment="production", secret_key="s3cret").secret_key == "s3cret"


def test_inverted_default_band_is_rejected():
    with pytest.raises(ConfigurationError):
        AppConfig(default_ph_min=8.0, default_ph_max=7.0)


def test_invalid_timing_fails_at_load(monkeypatch):
    monkeypatch.setenv("ECOSTERILE_SIM_INTERVAL_MS", "0")
    with pytest.raises(ConfigurationError):
        load_config()


def test_flask_config_rendering(tmp_path):
    config = AppConfig(database_path=str(tmp_path / "x.db"))
    rendered = config.as_flask_config()
    assert rendered["DATABASE_PATH"].endswith("x.db")
    assert "SECRET_KEY" in rendered


def test_setup_logging_is_idempotent(tmp_path):
    log_file = tmp_path / "logs" / "ecosterile.log"
    root = logging.getLogger()
    before = list(root.handlers)
    try:
        setup_logging(log_level="warning", log_file=str(log_file))
        setup_logging(log_level="warning", log_file=str(log_file))

        names = [getattr(h, "name", "") for h in root.handlers]
        assert names.count("ecosterile_file") == 1
        assert names.count("ecosterile_console") <= 1
        assert log_file.parent.exists()
        assert root.level == logging.WARNING
    finally:
        for handler in list(root.handlers):
            if handler not in before:
                root.removeHandler(handler)
                handler.close()


def test_non_numeric_float_environment_value(monkeypatch):
    monkeypatch.setenv("ECOSTERILE_DEFAULT_PH_MAX", "neutral")
    with pytest.raises(ConfigurationError, match="ECOSTERILE_DEFAULT_PH_MAX"):
        AppConfig()


def test_unknown_override_key_is_a_configuration_error():
    from app import create_app

    with pytest.raises(ConfigurationError):
        create_app({"no_such_setting": 1}, bootstrap_runtime=False)
