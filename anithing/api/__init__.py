"""API blueprints."""

from flask import Blueprint
from werkzeug.exceptions import TooManyRequests

from anithing.errors import RewardsError
from anithing.utils.response import error_response, rewards_error

api_bp = Blueprint("api", __name__)


@api_bp.errorhandler(RewardsError)
def handle_rewards_error(exc: RewardsError):
    return rewards_error(exc)


@api_bp.errorhandler(TooManyRequests)
def handle_rate_limited(exc: TooManyRequests):
    return error_response("RATE_LIMITED", f"Rate limit exceeded: {exc.description}", status_code=429)


from anithing.api import (auth, library, points, rewards,  # noqa: E402, F401
                          titles)
