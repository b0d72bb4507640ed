"""
Configuration for EcoSterile
============================
Runtime settings for the pH controller, persistence, the serial sensor link
and the weather lookup. Every value can be overridden with an ``ECOSTERILE_*``
environment variable.
Setups the logging configuration as well.
"""

import os
from contextlib import suppress
from dataclasses import dataclass, field
from typing import Any

from app.domain.control import ControllerSettings
from app.domain.exceptions import ConfigurationError


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.lower() in {"1", "true", "t", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"Environment variable {name} must be an integer.") from None


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        raise ConfigurationError(f"Environment variable {name} must be a number.") from None


@dataclass
class AppConfig:
    """Runtime configuration loaded from environment variables."""

    environment: str = field(default_factory=lambda: os.getenv("ECOSTERILE_ENV", "development"))
    secret_key: str = field(default_factory=lambda: os.getenv("ECOSTERILE_SECRET_KEY", "EcoSterileDevSecretKey"))
    database_path: str = field(
        default_factory=lambda: os.getenv("ECOSTERILE_DATABASE_PATH", "database/ecosterile.db")
    )

    # pH controller timings (milliseconds)
    stale_threshold_ms: int = field(default_factory=lambda: _env_int("ECOSTERILE_STALE_THRESHOLD_MS", 10_000))
    sim_interval_ms: int = field(default_factory=lambda: _env_int("ECOSTERILE_SIM_INTERVAL_MS", 2_000))
    staleness_check_interval_ms: int = field(
        default_factory=lambda: _env_int("ECOSTERILE_STALENESS_CHECK_MS", 10_000)
    )
    pump_cooldown_ms: int = field(default_factory=lambda: _env_int("ECOSTERILE_PUMP_COOLDOWN_MS", 10_000))

    # Band used until the user picks a crop
    default_ph_min: float = field(default_factory=lambda: _env_float("ECOSTERILE_DEFAULT_PH_MIN", 6.5))
    default_ph_max: float = field(default_factory=lambda: _env_float("ECOSTERILE_DEFAULT_PH_MAX", 7.5))

    reading_retention_days: int = field(
        default_factory=lambda: _env_int("ECOSTERILE_READING_RETENTION_DAYS", 30)
    )
    persistence_workers: int = field(default_factory=lambda: _env_int("ECOSTERILE_PERSISTENCE_WORKERS", 2))
    eventbus_queue_size: int = field(default_factory=lambda: _env_int("ECOSTERILE_EVENTBUS_QUEUE_SIZE", 1024))

    # Serial sensor link (Arduino-style board writing JSON lines)
    serial_enabled: bool = field(default_factory=lambda: _env_bool("ECOSTERILE_SERIAL_ENABLED", False))
    serial_port: str = field(default_factory=lambda: os.getenv("ECOSTERILE_SERIAL_PORT", "/dev/ttyACM0"))
    serial_baudrate: int = field(default_factory=lambda: _env_int("ECOSTERILE_SERIAL_BAUDRATE", 9600))
    serial_user_id: int = field(default_factory=lambda: _env_int("ECOSTERILE_SERIAL_USER_ID", 1))

    # Weather lookup
    weather_enabled: bool = field(default_factory=lambda: _env_bool("ECOSTERILE_WEATHER_ENABLED", True))
    weather_timeout: int = field(default_factory=lambda: _env_int("ECOSTERILE_WEATHER_TIMEOUT", 10))
    default_location: str = field(
        default_factory=lambda: os.getenv("ECOSTERILE_DEFAULT_LOCATION", "Karimganj, Assam")
    )

    DEBUG: bool = field(default_factory=lambda: _env_bool("ECOSTERILE_DEBUG", False))
    log_level: str = field(default_factory=lambda: os.getenv("ECOSTERILE_LOG_LEVEL", "INFO"))
    log_file: str = field(default_factory=lambda: os.getenv("ECOSTERILE_LOG_FILE", "logs/ecosterile.log"))

    # Default insecure secret key - used only for detection
    _DEFAULT_SECRET_KEY: str = field(default="EcoSterileDevSecretKey", init=False, repr=False)

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        # SECURITY: Fail fast if using default secret key in production
        if self.environment == "production" and self.secret_key == self._DEFAULT_SECRET_KEY:
            raise ConfigurationError(
                "SECURITY ERROR: Cannot use default secret key in production!\n"
                "Set ECOSTERILE_SECRET_KEY environment variable to a secure random value.\n"
                'Generate one with: python -c "import secrets; print(secrets.token_hex(32))"'
            )
        if self.default_ph_min > self.default_ph_max:
            raise ConfigurationError("ECOSTERILE_DEFAULT_PH_MIN must not exceed ECOSTERILE_DEFAULT_PH_MAX")

    def as_flask_config(self) -> dict[str, Any]:
        """Render configuration values for Flask application."""
        return {
            "ENV": self.environment,
            "SECRET_KEY": self.secret_key,
            "DATABASE_PATH": self.database_path,
            "DEBUG": self.DEBUG,
            "READING_RETENTION_DAYS": self.reading_retention_days,
        }

    def controller_settings(self) -> ControllerSettings:
        """Settings handed to every PHRegulationController."""
        return ControllerSettings(
            stale_threshold_ms=self.stale_threshold_ms,
            staleness_check_interval_ms=self.staleness_check_interval_ms,
            sim_interval_ms=self.sim_interval_ms,
            pump_cooldown_ms=self.pump_cooldown_ms,
            default_ph_min=self.default_ph_min,
            default_ph_max=self.default_ph_max,
        )


def setup_logging(debug: bool = False, log_level: str | None = None, log_file: str = "logs/ecosterile.log") -> None:
    """Setup logging configuration."""
    import logging
    import sys
    from logging.handlers import RotatingFileHandler

    if debug:
        level = logging.DEBUG
    else:
        level = logging.getLevelName((log_level or "INFO").upper())
        if not isinstance(level, int):
            level = logging.INFO

    # Root logger
    root = logging.getLogger()
    root.setLevel(level)

    # Keep existing handlers but avoid adding duplicates when create_app is called multiple times
    has_console = any(getattr(h, "name", "") == "ecosterile_console" for h in root.handlers)
    has_file = any(getattr(h, "name", "") == "ecosterile_file" for h in root.handlers)
    added_handler = False

    stream = sys.stdout
    with suppress(AttributeError, ValueError):
        stream.reconfigure(encoding="utf-8", errors="replace")
    formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    if not has_console:
        console_handler = logging.StreamHandler(stream=stream)
        console_handler.name = "ecosterile_console"
        console_handler.setFormatter(formatter)
        root.addHandler(console_handler)
        added_handler = True

    if not has_file and log_file:
        os.makedirs(os.path.dirname(log_file) or ".", exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.name = "ecosterile_file"
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
        added_handler = True

    # Ensure handler levels follow the desired log level
    for handler in root.handlers:
        if getattr(handler, "name", "") in {"ecosterile_console", "ecosterile_file"}:
            handler.setLevel(level)

    if added_handler:
        root.info("Logging initialized at level: %s", logging.getLevelName(level))

    if _env_bool("ECOSTERILE_SILENCE_WERKZEUG", True):
        logging.getLogger("werkzeug").setLevel(logging.WARNING)
    # urllib3 logs every connection at DEBUG
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def load_config() -> AppConfig:
    """Helper for callers to load and validate configuration."""
    config = AppConfig()
    # Validate eagerly so a bad timing fails at startup rather than at session start
    config.controller_settings()
    return config
