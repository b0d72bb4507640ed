"""
Assistant Chat Log API
======================

Stores the questions users ask the dashboard assistant together with its
answers, so users can review or delete their history.
"""
from __future__ import annotations

from flask import Blueprint, Response

from app.blueprints.api._common import (
    get_chat_log_repo,
    get_json as _json,
    get_user_id,
    query_int,
    result_failure,
    success as _success,
)
from app.schemas.chat import ChatLogCreate
from app.utils.http import safe_route

chat_api = Blueprint("chat_api", __name__)

DEFAULT_HISTORY_LIMIT = 50


@chat_api.post("/logs")
@safe_route("Failed to log chat interaction")
def log_interaction() -> Response:
    body = ChatLogCreate.model_validate(_json())
    result = get_chat_log_repo().log_interaction(get_user_id(), body.question, body.answer)
    if not result.success:
        return result_failure(result)
    return _success(result.value.to_dict(), 201)


@chat_api.get("/logs")
@safe_route("Failed to load chat history")
def chat_history() -> Response:
    """Most recent interactions first. Query params: ``limit`` (default 50)."""
    limit = query_int("limit", DEFAULT_HISTORY_LIMIT)
    return _success([entry.to_dict() for entry in get_chat_log_repo().history(get_user_id(), limit)])


@chat_api.delete("/logs/<int:log_id>")
@safe_route("Failed to delete chat log entry")
def delete_log(log_id: int) -> Response:
    result = get_chat_log_repo().delete(get_user_id(), log_id)
    if not result.success:
        return result_failure(result)
    return _success({"deleted": log_id})


@chat_api.get("/stats")
@safe_route("Failed to load chat statistics")
def chat_stats() -> Response:
    return _success(get_chat_log_repo().stats(get_user_id()).to_dict())
