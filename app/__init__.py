from __future__ import annotations

import atexit
import contextlib
import logging
import signal
import threading
from typing import TYPE_CHECKING, Any

from flask import Flask, request
from werkzeug.exceptions import HTTPException

from app.blueprints.api.chat import chat_api
from app.blueprints.api.crops import crops_api
from app.blueprints.api.ph import ph_api
from app.blueprints.api.profile import profile_api
from app.blueprints.api.weather import weather_api
from app.config import AppConfig, load_config, setup_logging
from app.domain.exceptions import ConfigurationError

if TYPE_CHECKING:
    from app.services.container import ServiceContainer


def _apply_overrides(config: AppConfig, overrides: dict[str, Any]) -> None:
    for key, value in overrides.items():
        name = key if hasattr(config, key) else key.lower()
        if not hasattr(config, name):
            raise ConfigurationError(f"Unknown configuration key: {key}")
        setattr(config, name, value)


def create_app(
    config_overrides: dict[str, Any] | None = None,
    *,
    container: "ServiceContainer | None" = None,
    bootstrap_runtime: bool = True,
) -> Flask:
    """Build the Flask application.

    Args:
        config_overrides: AppConfig field overrides (ignored when ``container`` is given)
        container: Prebuilt ServiceContainer, mainly for tests
        bootstrap_runtime: Start background tasks and install shutdown handlers
    """
    if container is not None:
        config = container.config
    else:
        config = load_config()
        if config_overrides:
            _apply_overrides(config, config_overrides)

    # Configure logging early so container startup is visible in the terminal and ecosterile.log.
    setup_logging(debug=config.DEBUG, log_level=config.log_level, log_file=config.log_file)

    flask_app = Flask(__name__)
    flask_app.config.update(config.as_flask_config())
    flask_app.config["SESSION_COOKIE_HTTPONLY"] = True
    flask_app.config["SESSION_COOKIE_SAMESITE"] = "Lax"
    flask_app.config["SESSION_COOKIE_SECURE"] = config.environment == "production"

    if container is None:
        from app.services.container import ServiceContainer

        container = ServiceContainer.build(config, start_background=bootstrap_runtime)
    flask_app.config["CONTAINER"] = container
    flask_app.teardown_appcontext(container.database.close_db)

    if bootstrap_runtime:
        _install_shutdown_handlers(container)

    # Global JSON error handler: domain exceptions carry their own ``http_status``.
    @flask_app.errorhandler(Exception)
    def _handle_unhandled(exc):
        if not request.path.startswith("/api/"):
            raise exc
        from app.domain.exceptions import EcoSterileError
        from app.utils.http import error_response, safe_error

        if isinstance(exc, HTTPException):
            status = int(exc.code or 500)
            if status >= 500:
                return safe_error(exc, status, context="http-exception")
            return error_response(exc.description or "Request failed", status)

        if isinstance(exc, EcoSterileError):
            status = exc.http_status
            if status >= 500:
                return safe_error(exc, status, context=type(exc).__name__)
            return error_response(str(exc) or "Request failed", status)

        return safe_error(exc, 500, context="unhandled")

    flask_app.register_blueprint(ph_api, url_prefix="/api/ph")
    flask_app.register_blueprint(crops_api, url_prefix="/api/crops")
    flask_app.register_blueprint(weather_api, url_prefix="/api/weather")
    flask_app.register_blueprint(profile_api, url_prefix="/api/profile")
    flask_app.register_blueprint(chat_api, url_prefix="/api/chat")

    for bp_name in flask_app.blueprints:
        logging.info(" Registered blueprint: %s", bp_name)

    logging.getLogger(__name__).info("EcoSterile application initialized successfully.")
    return flask_app


def _install_shutdown_handlers(container: "ServiceContainer") -> None:
    _shutdown_lock = threading.Lock()
    _shutdown_done = False

    def _graceful_shutdown(reason: str = "unknown") -> None:
        nonlocal _shutdown_done
        with _shutdown_lock:
            if _shutdown_done:
                return
            _shutdown_done = True
        logging.info("Graceful shutdown initiated (%s)", reason)
        try:
            container.shutdown()
        except Exception as exc:
            logging.warning("Error during graceful shutdown: %s", exc)

    def _signal_handler(signum: int, _frame: object) -> None:
        sig_name = signal.Signals(signum).name
        logging.info("Received %s, shutting down", sig_name)
        _graceful_shutdown(sig_name)
        raise SystemExit(0)

    atexit.register(_graceful_shutdown, "atexit")

    # signal.signal only works from the main thread
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(OSError, ValueError):
            signal.signal(sig, _signal_handler)


__all__ = ["create_app"]
