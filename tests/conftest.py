"""Pytest configuration and fixtures."""

import pytest

from anithing import create_app, db
from anithing.models import RewardName, RewardTier, Title, User
from anithing.services.reward_service import RewardService


@pytest.fixture
def app():
    """Create and configure a test application instance."""
    app = create_app("testing")

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    """Create a test client."""
    return app.test_client()


@pytest.fixture
def reward_pool(app):
    """One active name per tier."""
    with app.app_context():
        for tier in RewardTier:
            db.session.add(
                RewardName(
                    name=f"{tier.value.title()} Hero",
                    tier=tier.value,
                    source_anime="Test Anime",
                )
            )
        db.session.commit()


@pytest.fixture
def test_user(app, reward_pool):
    """Create a test user in the database."""
    with app.app_context():
        user = User(email="test@example.com", display_name="Test User")
        user.set_password("password123")
        db.session.add(user)
        db.session.flush()
        RewardService().assign_starting_name(user)
        db.session.commit()

        # Refresh to get the ID
        db.session.refresh(user)
        return {"id": user.id, "email": user.email}


@pytest.fixture
def titles(app):
    """An anime with 12 episodes and a manga with 40 chapters."""
    with app.app_context():
        anime = Title(
            media_type="anime",
            title="Shingeki no Kyojin",
            title_english="Attack on Titan",
            episodes=12,
            score=8.5,
        )
        manga = Title(
            media_type="manga",
            title="Berserk",
            chapters=40,
            volumes=4,
            score=9.4,
        )
        db.session.add_all([anime, manga])
        db.session.commit()
        return {"anime": anime.id, "manga": manga.id}


@pytest.fixture
def auth_headers(client, test_user):
    """Get authorization headers with JWT token."""
    response = client.post(
        "/api/v1/auth/dev",
        json={"email": test_user["email"]},
    )
    assert response.status_code == 200
    token = response.json["data"]["token"]
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_client(client, auth_headers):
    """Create an authenticated test client wrapper."""

    class AuthenticatedClient:
        def __init__(self, client, headers):
            self._client = client
            self._headers = headers

        def get(self, *args, **kwargs):
            kwargs.setdefault("headers", {}).update(self._headers)
            return self._client.get(*args, **kwargs)

        def post(self, *args, **kwargs):
            kwargs.setdefault("headers", {}).update(self._headers)
            return self._client.post(*args, **kwargs)

    return AuthenticatedClient(client, auth_headers)
