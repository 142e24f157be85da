"""Library API endpoints (list entries, progress, ratings, reviews)."""

from datetime import datetime, timezone

from flask import current_app, g, request

from anithing.api import api_bp
from anithing.extensions import limiter
from anithing.models.library import ListStatus
from anithing.services.library_service import LibraryService
from anithing.utils import service_error, success_response, validation_error
from anithing.utils.auth import active_user_required

ERROR_MESSAGES = {
    "title_not_found": "Title not found",
    "media_type_mismatch": "Media type does not match the title",
    "invalid_status": "Unknown list status",
    "invalid_progress": "Progress must be a non-negative integer",
    "progress_exceeds_total": "Progress is beyond the title's length",
    "invalid_rating": "Rating must be between 1 and 10",
    "empty_review": "Review content is required",
    "client_ref_conflict": "Review reference already used",
}

ERROR_STATUS = {
    "title_not_found": 404,
    "client_ref_conflict": 409,
}


def _replay_limit() -> str:
    return current_app.config["REPLAY_RATE_LIMIT"]


def _error(result: dict):
    return service_error(
        result, ERROR_MESSAGES, status_code=ERROR_STATUS.get(result["error"], 400)
    )


def _parse_client_ts(value) -> datetime | None:
    """Parse an ISO-8601 timestamp into naive UTC. Raises ValueError."""
    if value is None:
        return None
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _require_title_id(data: dict) -> int | None:
    title_id = data.get("title_id")
    if isinstance(title_id, bool) or not isinstance(title_id, int):
        return None
    return title_id


@api_bp.route("/library", methods=["GET"])
@active_user_required
def get_library():
    """User's list, optionally filtered by ?status=."""
    status = request.args.get("status")
    if status and status not in {s.value for s in ListStatus}:
        return validation_error({"status": "Unknown list status"})

    entries = LibraryService().get_library(g.current_user.id, status)
    return success_response({"entries": entries, "total": len(entries)})


@api_bp.route("/library/entries", methods=["POST"])
@limiter.limit(_replay_limit)
@active_user_required
def add_library_entry():
    """
    Add a title to the list or change its status.

    Request body:
    {
        "title_id": 1,
        "status": "plan_to_watch",
        "media_type": "anime"
    }
    """
    data = request.get_json() or {}
    title_id = _require_title_id(data)
    if title_id is None:
        return validation_error({"title_id": "Title id is required"})

    result = LibraryService().add_to_list(
        g.current_user.id,
        title_id,
        status=data.get("status") or ListStatus.PLAN_TO_WATCH.value,
        media_type=data.get("media_type"),
    )
    if "error" in result:
        return _error(result)

    return success_response(
        {"entry": result["entry"], "created": result["created"]},
        status_code=201 if result["created"] else 200,
    )


@api_bp.route("/library/progress", methods=["POST"])
@limiter.limit(_replay_limit)
@active_user_required
def update_library_progress():
    """
    Set absolute progress.

    Request body:
    {
        "title_id": 1,
        "progress": 3,
        "client_ts": "2024-01-01T12:00:00Z"
    }
    """
    data = request.get_json() or {}
    title_id = _require_title_id(data)
    if title_id is None:
        return validation_error({"title_id": "Title id is required"})

    try:
        client_ts = _parse_client_ts(data.get("client_ts"))
    except ValueError:
        return validation_error({"client_ts": "Must be an ISO-8601 timestamp"})

    result = LibraryService().update_progress(
        g.current_user.id, title_id, data.get("progress"), client_ts
    )
    if "error" in result:
        return _error(result)

    return success_response({"entry": result["entry"], "applied": result["applied"]})


@api_bp.route("/library/rating", methods=["POST"])
@limiter.limit(_replay_limit)
@active_user_required
def rate_library_title():
    """Rate a title 1..10."""
    data = request.get_json() or {}
    title_id = _require_title_id(data)
    if title_id is None:
        return validation_error({"title_id": "Title id is required"})

    result = LibraryService().rate_title(g.current_user.id, title_id, data.get("rating"))
    if "error" in result:
        return _error(result)

    return success_response({"entry": result["entry"]})


@api_bp.route("/reviews", methods=["POST"])
@limiter.limit(_replay_limit)
@active_user_required
def create_review():
    """
    Post a review.

    Request body:
    {
        "title_id": 1,
        "content": "Text",
        "headline": "Optional",
        "rating": 8,
        "spoiler_warning": false,
        "client_ref": "optional idempotency key"
    }
    """
    data = request.get_json() or {}
    title_id = _require_title_id(data)
    if title_id is None:
        return validation_error({"title_id": "Title id is required"})

    result = LibraryService().write_review(
        g.current_user.id,
        title_id,
        data.get("content") or "",
        rating=data.get("rating"),
        headline=data.get("headline"),
        spoiler_warning=data.get("spoiler_warning", False),
        client_ref=data.get("client_ref"),
    )
    if "error" in result:
        return _error(result)

    return success_response(
        {"review": result["review"], "duplicate": result["duplicate"]},
        status_code=200 if result["duplicate"] else 201,
    )
