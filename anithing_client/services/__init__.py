"""Sync agent services."""

from anithing_client.services.media_cache import MediaCache, MediaRepository
from anithing_client.services.offline_queue import FlushResult, OfflineQueue

__all__ = ["FlushResult", "MediaCache", "MediaRepository", "OfflineQueue"]
