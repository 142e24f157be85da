"""Operator alerting for data-integrity problems and error bursts."""

import logging
import time

import redis
import requests
from flask import current_app

from anithing.extensions import get_redis_client

logger = logging.getLogger(__name__)

# Redis keys for alert tracking
ALERT_SENT_KEY = "anithing:alerts:sent"
ERROR_COUNT_KEY = "anithing:errors:5xx:count"


def _post_webhook(webhook_url: str, title: str, lines: list[str]) -> bool:
    """Deliver an alert message to the operator webhook."""
    text = f"[anithing] {title}"
    if lines:
        text += "\n" + "\n".join(f"- {line}" for line in lines[:5])

    try:
        response = requests.post(webhook_url, json={"text": text}, timeout=5)
    except requests.RequestException as e:
        logger.error(f"Failed to deliver operator alert '{title}': {e}")
        return False

    if not response.ok:
        logger.error(
            f"Operator webhook rejected alert '{title}': {response.status_code}"
        )
        return False
    return True


def alert_operators(key: str, title: str, details: list[str] | None = None) -> bool:
    """
    Raise an operator alert.

    Alerts are always logged at error level. When ALERT_WEBHOOK_URL is set
    they are also posted to the webhook, at most once per ALERT_COOLDOWN
    seconds for the same key.

    Returns True if the webhook accepted the alert.
    """
    details = details or []
    logger.error(f"OPERATOR ALERT [{key}] {title}: {'; '.join(details)}")

    webhook_url = current_app.config.get("ALERT_WEBHOOK_URL", "")
    if not webhook_url:
        return False

    cooldown = current_app.config.get("ALERT_COOLDOWN", 600)
    cooldown_key = f"{ALERT_SENT_KEY}:{key}"
    try:
        client = get_redis_client()
        # SET NX doubles as the cooldown check
        if not client.set(cooldown_key, "1", ex=cooldown, nx=True):
            logger.info(f"Alert {key} suppressed by cooldown")
            return False
    except redis.RedisError as e:
        logger.warning(f"Alert cooldown unavailable, sending anyway: {e}")

    return _post_webhook(webhook_url, title, details)


def track_5xx_error(app, path: str, status_code: int):
    """Track 5xx errors in Redis and alert if threshold exceeded."""
    if not app.config.get("ALERT_WEBHOOK_URL"):
        return

    window = app.config.get("ERROR_ALERT_WINDOW", 300)
    threshold = app.config.get("ERROR_ALERT_THRESHOLD", 10)

    error_key = f"{ERROR_COUNT_KEY}:{int(time.time() // window)}"
    try:
        client = get_redis_client()
        pipe = client.pipeline()
        pipe.rpush(error_key, f"{status_code} {path}")
        pipe.expire(error_key, window * 2)
        pipe.llen(error_key)
        error_count = pipe.execute()[2]
        samples = client.lrange(error_key, 0, 4) if error_count >= threshold else []
    except redis.RedisError as e:
        logger.warning(f"5xx tracking unavailable: {e}")
        return

    if error_count >= threshold:
        alert_operators(
            "5xx_burst",
            f"{error_count} server errors in the last {window // 60} minutes",
            samples,
        )
