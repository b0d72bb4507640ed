"""
Blueprint Common Utilities
==========================

Shared helper functions for the API blueprints.

Usage:
    from app.blueprints.api._common import (
        get_user_id, get_json, success, fail, result_failure,
        get_monitoring_service, get_crop_service, get_weather_service,
    )
"""
from __future__ import annotations

import logging
from typing import Any

from flask import current_app, request, session

from app.domain.ph import OperationResult
from app.utils.http import error_response, success_response

logger = logging.getLogger("api._common")

# OperationResult error codes returned by services -> (HTTP status, client message)
RESULT_ERRORS: dict[str, tuple[int, str]] = {
    "no_user": (401, "No user selected"),
    "no_session": (409, "No active monitoring session. Start one first."),
    "unknown_crop": (404, "Unknown crop"),
    "invalid_value": (400, "Invalid pH value"),
    "malformed_line": (400, "Malformed sensor message"),
    "invalid_question": (400, "Question must be 1-2000 characters"),
    "unknown_log": (404, "Chat log entry not found"),
    "storage_error": (500, "Failed to store data"),
}

# ============================================================================
# User Session Utilities
# ============================================================================


def get_user_id() -> int:
    """Get current user ID from session."""
    return session.get("user_id", 1)


# ============================================================================
# CONTAINER ACCESS
# ============================================================================

def get_container():
    """
    Get the service container from Flask app config.

    Raises:
        ConfigurationError: If the container was never attached to the app
    """
    from app.domain.exceptions import ConfigurationError

    container = current_app.config.get("CONTAINER")
    if container is None:
        raise ConfigurationError("Service container not initialized")
    return container


def get_monitoring_service():
    return get_container().monitoring_service


def get_crop_service():
    return get_container().crop_service


def get_weather_service():
    return get_container().weather_service


def get_profile_repo():
    return get_container().profile_repo


def get_chat_log_repo():
    return get_container().chat_log_repo


# ============================================================================
# REQUEST / RESPONSE HELPERS
# ============================================================================

def get_json() -> dict:
    """Request body as a dict. Missing or non-object bodies become ``{}``."""
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def success(data: Any = None, status: int = 200, *, message: str | None = None):
    return success_response(data, status, message=message)


def fail(message: str, status: int = 400, *, details: dict | None = None):
    return error_response(message, status, details=details)


def result_failure(result: OperationResult):
    """Map a failed OperationResult to an error response."""
    status, message = RESULT_ERRORS.get(result.error or "", (500, "Request failed"))
    if status >= 500:
        logger.error("Service operation failed: %s %s", result.error, result.detail)
    details = {"code": result.error}
    details.update(result.detail)
    return fail(message, status, details=details)


def query_int(name: str, default: int | None = None) -> int | None:
    """Read an integer query parameter, or ``default`` when absent.

    Raises:
        ValidationError: when the parameter is present but not an integer
    """
    from app.domain.exceptions import ValidationError

    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValidationError(f"'{name}' must be an integer", detail={name: raw}) from exc
