"""Loot box and name collection API endpoints."""

from flask import current_app, g, request

from anithing.api import api_bp
from anithing.extensions import cache, limiter
from anithing.models.reward import BOX_COSTS, BoxType
from anithing.services.ledger_service import LedgerService
from anithing.services.reward_resolver import odds_table
from anithing.services.reward_service import RewardService
from anithing.utils import success_response, validation_error
from anithing.utils.auth import active_user_required


def _loot_box_limit() -> str:
    return current_app.config["LOOT_BOX_RATE_LIMIT"]


def _parse_box_type(data: dict) -> BoxType | None:
    try:
        return BoxType(data.get("box_type"))
    except ValueError:
        return None


def _box_type_error():
    return validation_error({"box_type": f"Must be one of: {[b.value for b in BoxType]}"})


@api_bp.route("/loot-boxes", methods=["GET"])
@active_user_required
def get_loot_boxes():
    """Owned boxes and prices."""
    ledger = LedgerService()
    return success_response(
        {
            "owned_boxes": ledger.get_inventory(g.current_user.id),
            "costs": {box.value: cost for box, cost in BOX_COSTS.items()},
        }
    )


@cache.cached(timeout=3600, key_prefix="loot_box_odds")
def _cached_odds() -> dict:
    return odds_table()


@api_bp.route("/loot-boxes/odds", methods=["GET"])
def get_loot_box_odds():
    """Per-tier odds for every box type."""
    return success_response({"odds": _cached_odds()})


@api_bp.route("/loot-boxes/purchase", methods=["POST"])
@limiter.limit(_loot_box_limit)
@active_user_required
def purchase_loot_box():
    """
    Buy one box with points.

    Request body:
    {
        "box_type": "standard" | "premium" | "ultra"
    }
    """
    data = request.get_json() or {}
    box_type = _parse_box_type(data)
    if box_type is None:
        return _box_type_error()

    ledger = LedgerService()
    ledger.purchase_box(g.current_user.id, box_type)

    return success_response(
        {
            "box_type": box_type.value,
            "cost": BOX_COSTS[box_type],
            "summary": ledger.get_user_summary(g.current_user.id),
        },
        message=f"Purchased a {box_type.value} loot box",
    )


@api_bp.route("/loot-boxes/open", methods=["POST"])
@limiter.limit(_loot_box_limit)
@active_user_required
def open_loot_box():
    """
    Open one owned box.

    Request body:
    {
        "box_type": "standard" | "premium" | "ultra",
        "client_seed": "optional string mixed into the draw"
    }
    """
    data = request.get_json() or {}
    box_type = _parse_box_type(data)
    if box_type is None:
        return _box_type_error()

    client_seed = data.get("client_seed")
    if client_seed is not None and not isinstance(client_seed, str):
        return validation_error({"client_seed": "Must be a string"})

    result = RewardService().open_box(g.current_user.id, box_type, client_seed)

    return success_response(
        {
            "reward": result.to_dict(),
            "owned_boxes": LedgerService().get_inventory(g.current_user.id),
        }
    )


@api_bp.route("/rewards/collection", methods=["GET"])
@active_user_required
def get_collection():
    """Every name the user has acquired, newest first."""
    collection = RewardService().get_collection(g.current_user.id)
    return success_response({"collection": collection, "total": len(collection)})


@api_bp.route("/rewards/active-name", methods=["POST"])
@active_user_required
def set_active_name():
    """Switch the displayed name to one already owned."""
    data = request.get_json() or {}
    name = (data.get("name") or "").strip()
    if not name:
        return validation_error({"name": "Name is required"})

    state = RewardService().set_active_name(g.current_user.id, name)
    return success_response(
        {"current_name": state.current_name, "current_tier": state.current_tier}
    )
