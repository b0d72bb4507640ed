"""
pH Monitoring API
=================

Session lifecycle, reading ingestion and dashboard queries for the pH
controller of the current user.
"""
from __future__ import annotations

import logging

from flask import Blueprint, Response, request

from app.blueprints.api._common import (
    get_json as _json,
    get_monitoring_service as _service,
    get_user_id,
    query_int,
    result_failure,
    success as _success,
)
from app.schemas.ph import ReadingCreate
from app.utils.http import safe_route

logger = logging.getLogger(__name__)

ph_api = Blueprint("ph_api", __name__)

DEFAULT_PUMP_LOG_LIMIT = 50


@ph_api.post("/session")
@safe_route("Failed to start monitoring session")
def start_session() -> Response:
    """Start (or resume) monitoring for the current user."""
    result = _service().start_session(get_user_id())
    if not result.success:
        return result_failure(result)
    return _success(result.value, 201, message="Monitoring session started")


@ph_api.delete("/session")
@safe_route("Failed to end monitoring session")
def end_session() -> Response:
    result = _service().end_session(get_user_id())
    if not result.success:
        return result_failure(result)
    return _success({"ended": True}, message="Monitoring session ended")


@ph_api.post("/readings")
@safe_route("Failed to record pH reading")
def add_reading() -> Response:
    """
    Submit one pH sample.

    Body: ``{"value": 6.8, "source": "sensor", "timestamp": 1700000000000}``;
    only ``value`` is required.
    """
    body = ReadingCreate.model_validate(_json())
    result = _service().ingest_value(get_user_id(), body.value, source=body.source, timestamp=body.timestamp)
    if not result.success:
        return result_failure(result)
    return _success(result.value.to_dict(), 201)


@ph_api.get("/readings")
@safe_route("Failed to load pH readings")
def list_readings() -> Response:
    result = _service().get_readings(get_user_id(), request.args.get("range"))
    if not result.success:
        return result_failure(result)
    readings = [reading.to_dict() for reading in result.value or []]
    return _success({"readings": readings, "count": len(readings)})


@ph_api.get("/status")
@safe_route("Failed to get pH status")
def get_status() -> Response:
    result = _service().get_status(get_user_id())
    if not result.success:
        return result_failure(result)
    return _success(result.value)


@ph_api.get("/stats")
@safe_route("Failed to get pH statistics")
def get_statistics() -> Response:
    result = _service().get_statistics(get_user_id(), request.args.get("range"))
    if not result.success:
        return result_failure(result)
    return _success(result.value)


@ph_api.get("/pumps")
@safe_route("Failed to load pump activity")
def list_pump_logs() -> Response:
    limit = query_int("limit", DEFAULT_PUMP_LOG_LIMIT)
    result = _service().get_pump_logs(get_user_id(), limit)
    if not result.success:
        return result_failure(result)
    return _success([event.to_dict() for event in result.value or []])
