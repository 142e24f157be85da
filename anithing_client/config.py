"""Sync agent configuration."""

import os
from dataclasses import dataclass, field


def _env_int(name: str, default: int) -> int:
    return int(os.environ.get(name, default))


def _env_float(name: str, default: float) -> float:
    return float(os.environ.get(name, default))


@dataclass
class Config:
    """Sync agent configuration."""

    # Backend API
    API_URL: str = field(
        default_factory=lambda: os.environ.get(
            "ANITHING_API_URL", "http://localhost:5000/api/v1"
        )
    )
    API_TOKEN: str = field(
        default_factory=lambda: os.environ.get("ANITHING_API_TOKEN", "")
    )
    REQUEST_TIMEOUT: float = field(
        default_factory=lambda: _env_float("ANITHING_REQUEST_TIMEOUT", 10.0)
    )

    # Local database
    CACHE_DB_URL: str = field(
        default_factory=lambda: os.environ.get(
            "ANITHING_CACHE_DB_URL", "sqlite+aiosqlite:///anithing_cache.db"
        )
    )

    # Offline queue
    FLUSH_INTERVAL_SECONDS: int = field(
        default_factory=lambda: _env_int("ANITHING_FLUSH_INTERVAL_SECONDS", 60)
    )
    MAX_RETRIES: int = field(
        default_factory=lambda: _env_int("ANITHING_MAX_RETRIES", 5)
    )
    # In-flight rows older than this belong to a process that died mid-replay
    IN_FLIGHT_TIMEOUT_SECONDS: int = field(
        default_factory=lambda: _env_int("ANITHING_IN_FLIGHT_TIMEOUT_SECONDS", 120)
    )

    # Local cache
    EVICTION_INTERVAL_HOURS: int = field(
        default_factory=lambda: _env_int("ANITHING_EVICTION_INTERVAL_HOURS", 24)
    )
    CACHE_RETENTION_DAYS: int = field(
        default_factory=lambda: _env_int("ANITHING_CACHE_RETENTION_DAYS", 7)
    )
    RECENT_LIMIT: int = field(
        default_factory=lambda: _env_int("ANITHING_RECENT_LIMIT", 20)
    )
    SEARCH_HISTORY_LIMIT: int = field(
        default_factory=lambda: _env_int("ANITHING_SEARCH_HISTORY_LIMIT", 50)
    )

    def __post_init__(self):
        self.API_URL = self.API_URL.rstrip("/")
        if self.MAX_RETRIES < 1:
            raise ValueError("MAX_RETRIES must be at least 1")
        if self.IN_FLIGHT_TIMEOUT_SECONDS <= self.REQUEST_TIMEOUT:
            raise ValueError("IN_FLIGHT_TIMEOUT_SECONDS must exceed REQUEST_TIMEOUT")
