"""Catalog API endpoints."""

from flask import request

from anithing.api import api_bp
from anithing.models.library import MediaType
from anithing.services.library_service import LibraryService
from anithing.utils import not_found, success_response, validation_error
from anithing.utils.auth import active_user_required


@api_bp.route("/titles/<int:title_id>", methods=["GET"])
@active_user_required
def get_title(title_id: int):
    """Get a catalog title."""
    title = LibraryService().get_title(title_id)
    if not title:
        return not_found("Title not found")
    return success_response({"title": title.to_dict()})


@api_bp.route("/titles", methods=["GET"])
@active_user_required
def search_titles():
    """Search titles by name: ?q=...&type=anime|manga&limit=20."""
    query = (request.args.get("q") or "").strip()
    if not query:
        return validation_error({"q": "Search query is required"})

    media_type = request.args.get("type")
    if media_type and media_type not in {m.value for m in MediaType}:
        return validation_error({"type": "Must be anime or manga"})

    limit = max(1, min(request.args.get("limit", 20, type=int), 50))
    results = LibraryService().search_titles(query, media_type, limit)
    return success_response({"results": results, "query": query})
