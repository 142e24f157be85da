"""Tests for authentication endpoints."""

from anithing import db
from anithing.models import User


class TestAuthAPI:
    """Test cases for authentication endpoints."""

    def test_register(self, client, reward_pool):
        response = client.post(
            "/api/v1/auth/register",
            json={"email": "New@Example.com", "password": "longenough", "display_name": "New"},
        )
        assert response.status_code == 201
        data = response.json["data"]
        assert data["token"]
        assert data["user"]["email"] == "new@example.com"
        assert data["user"]["current_name"] == "Common Hero"

    def test_register_validation(self, client):
        response = client.post(
            "/api/v1/auth/register", json={"email": "nope", "password": "short"}
        )
        assert response.status_code == 400
        details = response.json["error"]["details"]
        assert set(details) == {"email", "password"}

    def test_register_duplicate_email(self, client, test_user):
        response = client.post(
            "/api/v1/auth/register",
            json={"email": test_user["email"], "password": "longenough"},
        )
        assert response.status_code == 409

    def test_login(self, client, test_user):
        response = client.post(
            "/api/v1/auth/login",
            json={"email": test_user["email"], "password": "password123"},
        )
        assert response.status_code == 200
        assert "token" in response.json["data"]

    def test_login_wrong_password(self, client, test_user):
        response = client.post(
            "/api/v1/auth/login",
            json={"email": test_user["email"], "password": "wrong-password"},
        )
        assert response.status_code == 401

    def test_get_current_user(self, auth_client, test_user):
        response = auth_client.get("/api/v1/auth/me")
        assert response.status_code == 200
        assert response.json["data"]["user"]["id"] == test_user["id"]

    def test_archived_user_is_forbidden(self, app, auth_client, test_user):
        with app.app_context():
            db.session.get(User, test_user["id"]).archive()
            db.session.commit()

        response = auth_client.get("/api/v1/auth/me")
        assert response.status_code == 403

    def test_get_current_user_unauthorized(self, client):
        response = client.get("/api/v1/auth/me")
        assert response.status_code == 401

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json == {"status": "ok"}
