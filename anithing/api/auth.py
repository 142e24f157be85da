"""Authentication API endpoints."""

from flask import current_app, g, request
from flask_jwt_extended import create_access_token

from anithing import db
from anithing.api import api_bp
from anithing.models.user import User
from anithing.services.reward_service import RewardService
from anithing.utils import (
    conflict,
    success_response,
    unauthorized,
    validation_error,
)
from anithing.utils.auth import active_user_required

MIN_PASSWORD_LENGTH = 8


def _create_user(email: str, password: str | None, display_name: str | None) -> User:
    """Create the account, its reward state and starting name in one commit."""
    user = User(email=email, display_name=display_name)
    if password:
        user.set_password(password)
    db.session.add(user)
    db.session.flush()

    RewardService().assign_starting_name(user)
    db.session.commit()
    return user


@api_bp.route("/auth/register", methods=["POST"])
def register():
    """
    Register with email and password.

    Request body:
    {
        "email": "user@example.com",
        "password": "secret123",
        "display_name": "Optional"
    }
    """
    data = request.get_json() or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""

    errors = {}
    if not email or "@" not in email:
        errors["email"] = "Valid email is required"
    if len(password) < MIN_PASSWORD_LENGTH:
        errors["password"] = f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
    if errors:
        return validation_error(errors)

    if User.query.filter_by(email=email).first():
        return conflict("Email already registered")

    user = _create_user(email, password, data.get("display_name"))
    access_token = create_access_token(identity=str(user.id))

    return success_response(
        {"user": user.to_dict(), "token": access_token}, status_code=201
    )


@api_bp.route("/auth/login", methods=["POST"])
def login():
    """Log in with email and password."""
    data = request.get_json() or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""

    user = User.query.filter_by(email=email).first()
    if not user or not user.check_password(password):
        return unauthorized("Invalid email or password")

    if user.is_archived:
        return unauthorized("Account is archived")

    access_token = create_access_token(identity=str(user.id))
    return success_response({"user": user.to_dict(), "token": access_token})


@api_bp.route("/auth/me", methods=["GET"])
@active_user_required
def get_current_user():
    """Get current authenticated user."""
    return success_response({"user": g.current_user.to_dict()})


@api_bp.route("/auth/dev", methods=["POST"])
def dev_authenticate():
    """
    Development-only endpoint for testing without credentials.
    Creates or gets a test user.

    Request body:
    {
        "email": "test@example.com"
    }
    """
    if not current_app.debug:
        return unauthorized("This endpoint is only available in development mode")

    data = request.get_json() or {}
    email = (data.get("email") or "test@example.com").strip().lower()

    user = User.query.filter_by(email=email).first()
    if not user:
        user = _create_user(email, None, data.get("display_name", "Test User"))

    access_token = create_access_token(identity=str(user.id))

    return success_response({"user": user.to_dict(), "token": access_token})
