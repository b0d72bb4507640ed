"""Current weather for the farm location."""
from __future__ import annotations

from flask import Blueprint, Response, request

from app.blueprints.api._common import (
    get_container,
    get_profile_repo,
    get_user_id,
    get_weather_service,
    success as _success,
)
from app.utils.http import safe_route

weather_api = Blueprint("weather_api", __name__)


def _resolve_location() -> str:
    location = (request.args.get("location") or "").strip()
    if location:
        return location
    profile = get_profile_repo().get(get_user_id())
    if profile is not None and profile.has_location:
        return profile.farm_location.strip()
    return get_container().config.default_location


@weather_api.get("")
@safe_route("Failed to get weather")
def get_weather() -> Response:
    """Weather for ``?location=``, else the farm profile location, else the configured default."""
    report = get_weather_service().get_weather(_resolve_location())
    return _success(report.to_dict())
