"""Farm profile: name and location used by recommendations and weather."""
from __future__ import annotations

import logging

from flask import Blueprint, Response

from app.blueprints.api._common import (
    get_json as _json,
    get_profile_repo,
    get_user_id,
    result_failure,
    success as _success,
)
from app.schemas.profile import ProfileUpdate
from app.utils.http import safe_route

logger = logging.getLogger(__name__)

profile_api = Blueprint("profile_api", __name__)


@profile_api.get("")
@safe_route("Failed to load farm profile")
def get_profile() -> Response:
    return _success(get_profile_repo().get_or_default(get_user_id()).to_dict())


@profile_api.put("")
@safe_route("Failed to update farm profile")
def update_profile() -> Response:
    """
    Update farm name and/or location.

    Body: ``{"farm_name": "...", "farm_location": "District, State"}``
    """
    body = ProfileUpdate.model_validate(_json())
    user_id = get_user_id()
    result = get_profile_repo().update(user_id, **body.changes())
    if not result.success:
        return result_failure(result)
    logger.info("Farm profile for user %s updated: %s", user_id, sorted(body.changes()))
    return _success(result.value.to_dict(), message="Profile updated")
