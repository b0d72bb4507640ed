"""
Crops API
=========

Crop catalog, seasonal recommendations and the active crop selection.
"""
from __future__ import annotations

from flask import Blueprint, Response, request

from app.blueprints.api._common import (
    get_crop_service,
    get_json as _json,
    get_monitoring_service,
    get_user_id,
    query_int,
    result_failure,
    success as _success,
)
from app.domain.crop_recommendation import DEFAULT_LIMIT
from app.schemas.ph import CropSelection
from app.utils.http import safe_route

crops_api = Blueprint("crops_api", __name__)


@crops_api.get("")
@safe_route("Failed to list crops")
def list_crops() -> Response:
    service = get_crop_service()
    crops = service.list_crops(request.args.get("category"))
    return _success(
        {
            "crops": [crop.to_dict() for crop in crops],
            "categories": service.categories(),
            "current_crop": service.current_crop(get_user_id()),
        }
    )


@crops_api.get("/recommendations")
@safe_route("Failed to build crop recommendations")
def recommendations() -> Response:
    """
    Top crops for the user's farm this month.

    Query params:
        - limit: number of crops (default 10)
        - month: 1-12, defaults to the current month
    """
    limit = query_int("limit", DEFAULT_LIMIT)
    month = query_int("month")
    ranked = get_crop_service().recommendations(get_user_id(), limit=limit, month=month)
    return _success([item.to_dict() for item in ranked])


@crops_api.put("/current")
@safe_route("Failed to change crop")
def select_crop() -> Response:
    body = CropSelection.model_validate(_json())
    result = get_monitoring_service().select_crop(get_user_id(), body.crop)
    if not result.success:
        return result_failure(result)
    return _success(result.value, message="Crop updated")
