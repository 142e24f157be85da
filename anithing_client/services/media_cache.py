"""Local cache of recently viewed titles and past searches."""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from sqlalchemy import delete, select

from anithing_client.api_client import ApiClient
from anithing_client.database import CachedMedia, LocalStore, SearchHistory
from anithing_client.errors import NetworkError

logger = logging.getLogger(__name__)

# Columns stored directly; everything else in a title payload lands in `details`
_COLUMNS = ("media_type", "title", "image_url", "synopsis", "score")


class MediaCache:
    """
    Key-value cache of title snapshots keyed by title id.

    Reads are always fresh queries; nothing is memoized in process.
    """

    def __init__(
        self,
        store: LocalStore,
        recent_limit: int = 20,
        search_history_limit: int = 50,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.store = store
        self.recent_limit = recent_limit
        self.search_history_limit = search_history_limit
        self.clock = clock

    async def put(self, media: dict) -> CachedMedia:
        """Insert or replace a title snapshot, stamping it with the current time."""
        fields = {key: media.get(key) for key in _COLUMNS}
        details = {
            key: value
            for key, value in media.items()
            if key not in _COLUMNS and key not in ("id", "cached_at", "stale")
        }

        async with self.store.session() as session:
            row = await session.get(CachedMedia, media["id"])
            if row is None:
                row = CachedMedia(id=media["id"])
                session.add(row)
            for key, value in fields.items():
                setattr(row, key, value)
            row.details = details
            row.cached_at = self.clock()
            await session.commit()
        return row

    async def get(self, media_id: int) -> dict | None:
        async with self.store.session() as session:
            row = await session.get(CachedMedia, media_id)
            return row.to_dict() if row else None

    async def recent(self, limit: int | None = None) -> list[dict]:
        """Most recently cached titles first."""
        async with self.store.session() as session:
            rows = await session.scalars(
                select(CachedMedia)
                .order_by(CachedMedia.cached_at.desc(), CachedMedia.id.desc())
                .limit(limit or self.recent_limit)
            )
            return [row.to_dict() for row in rows.all()]

    async def evict_older_than(self, window: timedelta) -> int:
        """Delete entries cached more than `window` ago. Returns the count removed."""
        cutoff = self.clock() - window
        async with self.store.session() as session:
            result = await session.execute(
                delete(CachedMedia).where(CachedMedia.cached_at < cutoff)
            )
            await session.commit()

        logger.info(f"Evicted {result.rowcount} cached titles older than {cutoff}")
        return result.rowcount

    async def add_search(self, query: str, results: list[int]) -> None:
        """Record a search, keeping only the newest entries."""
        async with self.store.session() as session:
            session.add(
                SearchHistory(query=query, results=results, searched_at=self.clock())
            )
            await session.flush()

            keep = (
                select(SearchHistory.id)
                .order_by(SearchHistory.searched_at.desc(), SearchHistory.id.desc())
                .limit(self.search_history_limit)
            )
            await session.execute(
                delete(SearchHistory).where(SearchHistory.id.not_in(keep))
            )
            await session.commit()

    async def search_history(self, limit: int = 10) -> list[dict]:
        async with self.store.session() as session:
            rows = await session.scalars(
                select(SearchHistory)
                .order_by(SearchHistory.searched_at.desc(), SearchHistory.id.desc())
                .limit(limit)
            )
            return [row.to_dict() for row in rows.all()]


class MediaRepository:
    """Remote-first title lookups that fall back to the cache when offline."""

    def __init__(self, api: ApiClient, cache: MediaCache):
        self.api = api
        self.cache = cache

    async def get_title(self, title_id: int) -> dict:
        """
        Fetch a title and refresh its cache entry.

        On a network failure the cached copy is returned with ``stale``
        set; with nothing cached the error propagates.
        """
        try:
            title = await self.api.get_title(title_id)
        except NetworkError:
            cached = await self.cache.get(title_id)
            if cached is None:
                raise
            logger.info(f"Serving cached title {title_id} while offline")
            return {**cached, "stale": True}

        await self.cache.put(title)
        return {**title, "stale": False}

    async def search(self, query: str, media_type: str | None = None) -> list[dict]:
        results = await self.api.search_titles(query, media_type)
        await self.cache.add_search(query, [item["id"] for item in results])
        return results
