"""Points ledger API endpoints."""

from flask import g, request

from anithing.api import api_bp
from anithing.services.ledger_service import LedgerService
from anithing.utils import success_response
from anithing.utils.auth import active_user_required


@api_bp.route("/points/summary", methods=["GET"])
@active_user_required
def get_points_summary():
    """Totals, streak, boxes and active name."""
    summary = LedgerService().get_user_summary(g.current_user.id)
    return success_response({"summary": summary})


@api_bp.route("/points/daily-login", methods=["POST"])
@active_user_required
def claim_daily_login():
    """Claim today's login bonus. Repeated calls on the same day award nothing."""
    ledger = LedgerService()
    result = ledger.process_daily_login(g.current_user.id)
    result["summary"] = ledger.get_user_summary(g.current_user.id)
    return success_response(result)


@api_bp.route("/points/activities", methods=["GET"])
@active_user_required
def get_point_activities():
    """Recent ledger entries."""
    limit = request.args.get("limit", 20, type=int)
    limit = max(1, min(limit, 100))

    activities = LedgerService().get_activities(g.current_user.id, limit=limit)
    return success_response({"activities": activities})
