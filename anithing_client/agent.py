"""Sync agent: wires the local store, API client, queue and cache together."""

import logging
from datetime import timedelta

import httpx
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from anithing_client.api_client import ApiClient
from anithing_client.config import Config
from anithing_client.database import LocalStore
from anithing_client.services.media_cache import MediaCache, MediaRepository
from anithing_client.services.offline_queue import FlushResult, OfflineQueue

logger = logging.getLogger(__name__)


class SyncAgent:
    """
    Owns every client-side resource for one account on one device.

    Nothing is created at import time; build one agent per process and
    pass it where needed.
    """

    def __init__(self, config: Config, transport: httpx.AsyncBaseTransport | None = None):
        self.config = config
        self.store = LocalStore(config.CACHE_DB_URL)
        self.api = ApiClient(config, transport=transport)
        self.queue = OfflineQueue(
            self.store,
            self.api,
            max_retries=config.MAX_RETRIES,
            request_timeout=config.REQUEST_TIMEOUT,
            stale_after=timedelta(seconds=config.IN_FLIGHT_TIMEOUT_SECONDS),
        )
        self.cache = MediaCache(
            self.store,
            recent_limit=config.RECENT_LIMIT,
            search_history_limit=config.SEARCH_HISTORY_LIMIT,
        )
        self.media = MediaRepository(self.api, self.cache)
        self.scheduler: AsyncIOScheduler | None = None

    @property
    def retention(self) -> timedelta:
        return timedelta(days=self.config.CACHE_RETENTION_DAYS)

    async def open(self) -> None:
        """Prepare the local database and recover actions orphaned by a crash."""
        await self.store.init()
        await self.queue.recover_in_flight()

    async def flush(self) -> FlushResult:
        return await self.queue.flush()

    async def evict(self) -> int:
        return await self.cache.evict_older_than(self.retention)

    async def start(self) -> None:
        """Open the store, run one eviction sweep and schedule the periodic jobs."""
        await self.open()
        await self.evict()

        self.scheduler = AsyncIOScheduler()

        # Flush and eviction are independent jobs
        self.scheduler.add_job(
            self.flush,
            IntervalTrigger(seconds=self.config.FLUSH_INTERVAL_SECONDS),
            id="flush_offline_queue",
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.add_job(
            self.evict,
            IntervalTrigger(hours=self.config.EVICTION_INTERVAL_HOURS),
            id="evict_media_cache",
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.start()

        logger.info(
            f"Sync agent started: flush every {self.config.FLUSH_INTERVAL_SECONDS}s, "
            f"eviction every {self.config.EVICTION_INTERVAL_HOURS}h"
        )

    async def stop(self) -> None:
        """Stop scheduled jobs and release HTTP and database resources."""
        if self.scheduler is not None:
            self.scheduler.shutdown(wait=False)
            self.scheduler = None
        await self.api.close()
        await self.store.close()
        logger.info("Sync agent stopped")

    async def __aenter__(self) -> "SyncAgent":
        await self.open()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()
