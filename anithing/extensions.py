"""Flask extensions that need per-app settings: cache, rate limiter, Redis, Sentry."""

import redis
import sentry_sdk
from flask import current_app
from flask_caching import Cache
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from sentry_sdk.integrations.flask import FlaskIntegration
from sentry_sdk.integrations.redis import RedisIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

cache = Cache()


def _default_limits() -> str:
    return current_app.config["DEFAULT_RATE_LIMIT"]


# Storage comes from RATELIMIT_STORAGE_URI. Routes with their own
# limit (loot boxes, offline replay) are not counted against the default.
limiter = Limiter(key_func=get_remote_address, default_limits=[_default_limits])


def init_redis(app):
    """Attach a Redis client for REDIS_URL to the app. Connects on first use."""
    app.extensions["redis"] = redis.from_url(app.config["REDIS_URL"], decode_responses=True)


def get_redis_client() -> redis.Redis:
    """Redis client of the current app."""
    return current_app.extensions["redis"]


def init_sentry(app):
    """Initialize Sentry error tracking when SENTRY_DSN is configured."""
    dsn = app.config.get("SENTRY_DSN")
    if not dsn:
        app.logger.warning("SENTRY_DSN not set, error tracking disabled")
        return

    sentry_sdk.init(
        dsn=dsn,
        integrations=[
            FlaskIntegration(),
            SqlalchemyIntegration(),
            RedisIntegration(),
        ],
        traces_sample_rate=app.config["SENTRY_TRACES_SAMPLE_RATE"],
        environment=app.config["SENTRY_ENVIRONMENT"],
        send_default_pii=False,
    )
    app.logger.info(f"Sentry initialized for {app.config['SENTRY_ENVIRONMENT']}")
