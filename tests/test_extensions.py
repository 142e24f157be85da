"""Tests for per-app extension wiring: Redis, Sentry and rate limits."""

import pytest

from anithing import alerts, create_app, db
from anithing import extensions
from anithing.config import TestingConfig
from anithing.extensions import get_redis_client


class TestRedisClient:
    """Redis client bound to the app."""

    def test_client_follows_app_config(self, monkeypatch):
        monkeypatch.setattr(TestingConfig, "REDIS_URL", "redis://cache.internal:6380/3")
        app = create_app("testing")

        with app.app_context():
            kwargs = get_redis_client().connection_pool.connection_kwargs
        assert kwargs["host"] == "cache.internal"
        assert kwargs["port"] == 6380
        assert kwargs["db"] == 3

    def test_each_app_gets_its_own_client(self, app):
        other = create_app("testing")
        assert other.extensions["redis"] is not app.extensions["redis"]

    def test_alert_cooldown_uses_app_client(self, app, monkeypatch):
        class CoolingDown:
            def set(self, key, value, ex=None, nx=False):
                return False

        posted = []
        monkeypatch.setattr(alerts, "_post_webhook", lambda *args: posted.append(args) or True)
        app.config["ALERT_WEBHOOK_URL"] = "http://hooks.test/alerts"
        app.extensions["redis"] = CoolingDown()

        assert alerts.alert_operators("pool_empty", "Reward pool empty") is False
        assert posted == []


class TestSentry:
    """Sentry setup from app config."""

    @pytest.fixture
    def sentry_calls(self, monkeypatch):
        calls = []
        monkeypatch.setattr(extensions.sentry_sdk, "init", lambda **kwargs: calls.append(kwargs))
        return calls

    def test_disabled_without_dsn(self, sentry_calls):
        create_app("testing")
        assert sentry_calls == []

    def test_dsn_and_sampling_come_from_config(self, monkeypatch, sentry_calls):
        monkeypatch.setattr(TestingConfig, "SENTRY_DSN", "https://key@sentry.test/1")
        monkeypatch.setattr(TestingConfig, "SENTRY_TRACES_SAMPLE_RATE", 0.5)
        monkeypatch.setattr(TestingConfig, "SENTRY_ENVIRONMENT", "staging")
        create_app("testing")

        assert len(sentry_calls) == 1
        assert sentry_calls[0]["dsn"] == "https://key@sentry.test/1"
        assert sentry_calls[0]["traces_sample_rate"] == 0.5
        assert sentry_calls[0]["environment"] == "staging"
        assert sentry_calls[0]["send_default_pii"] is False


class TestRateLimits:
    """Replay endpoints are limited separately from the default limits."""

    @pytest.fixture
    def limited_client(self, monkeypatch):
        monkeypatch.setattr(TestingConfig, "RATELIMIT_ENABLED", True)
        monkeypatch.setattr(TestingConfig, "DEFAULT_RATE_LIMIT", "2 per day")
        app = create_app("testing")
        with app.app_context():
            db.create_all()
            yield app.test_client()
            db.session.remove()
            db.drop_all()

    def test_default_limit_applies_to_ordinary_routes(self, limited_client):
        codes = [limited_client.get("/api/v1/auth/me").status_code for _ in range(3)]
        assert codes == [401, 401, 429]

        response = limited_client.get("/api/v1/auth/me")
        assert response.json["error"]["code"] == "RATE_LIMITED"
        assert "Retry-After" in response.headers

    @pytest.mark.parametrize(
        "path", ["/api/v1/library/entries", "/api/v1/library/progress", "/api/v1/library/rating", "/api/v1/reviews"]
    )
    def test_replay_endpoints_skip_default_limit(self, limited_client, path):
        codes = {limited_client.post(path, json={}).status_code for _ in range(5)}
        assert codes == {401}
