"""Authentication utilities."""

from functools import wraps

from flask import g
from flask_jwt_extended import get_jwt_identity, jwt_required

from anithing import db
from anithing.models.user import User
from anithing.utils.response import forbidden, unauthorized


def active_user_required(fn):
    """
    Decorator that requires a valid JWT for a non-archived user.

    The user is available as ``g.current_user`` inside the view.
    """

    @wraps(fn)
    @jwt_required()
    def wrapper(*args, **kwargs):
        user_id = int(get_jwt_identity())
        user = db.session.get(User, user_id)

        if not user:
            return unauthorized("User not found")

        if user.is_archived:
            return forbidden("Account is archived")

        g.current_user = user
        return fn(*args, **kwargs)

    return wrapper
