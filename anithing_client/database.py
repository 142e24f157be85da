"""Local SQLite store for the sync agent."""

from datetime import datetime

from sqlalchemy import JSON, DateTime, Float, Integer, String, Text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class OfflineAction(Base):
    """A library mutation waiting to be replayed against the backend."""

    __tablename__ = "offline_actions"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    seq: Mapped[int] = mapped_column(Integer, unique=True, index=True)
    type: Mapped[str] = mapped_column(String(32), index=True)
    entity_id: Mapped[str] = mapped_column(String(64), index=True)
    payload: Mapped[dict] = mapped_column(JSON)
    enqueued_at: Mapped[datetime] = mapped_column(DateTime)
    retry_count: Mapped[int] = mapped_column(Integer, default=0)
    status: Mapped[str] = mapped_column(String(16), default="pending", index=True)
    claimed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    @property
    def ordering_key(self) -> tuple[str, str]:
        return (self.type, self.entity_id)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "seq": self.seq,
            "type": self.type,
            "entity_id": self.entity_id,
            "payload": self.payload,
            "enqueued_at": self.enqueued_at.isoformat(),
            "retry_count": self.retry_count,
            "status": self.status,
            "claimed_at": self.claimed_at.isoformat() if self.claimed_at else None,
            "last_error": self.last_error,
        }


class CachedMedia(Base):
    """A title snapshot kept for offline browsing."""

    __tablename__ = "cached_media"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    media_type: Mapped[str] = mapped_column(String(10))
    title: Mapped[str] = mapped_column(String(500))
    image_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    synopsis: Mapped[str | None] = mapped_column(Text, nullable=True)
    score: Mapped[float | None] = mapped_column(Float, nullable=True)
    details: Mapped[dict] = mapped_column(JSON, default=dict)
    cached_at: Mapped[datetime] = mapped_column(DateTime, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "media_type": self.media_type,
            "title": self.title,
            "image_url": self.image_url,
            "synopsis": self.synopsis,
            "score": self.score,
            **(self.details or {}),
            "cached_at": self.cached_at.isoformat(),
        }


class SearchHistory(Base):
    """A past search and the result ids it returned."""

    __tablename__ = "search_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    query: Mapped[str] = mapped_column(String(255))
    results: Mapped[list] = mapped_column(JSON, default=list)
    searched_at: Mapped[datetime] = mapped_column(DateTime, index=True)

    def to_dict(self) -> dict:
        return {
            "query": self.query,
            "results": self.results,
            "searched_at": self.searched_at.isoformat(),
        }


class LocalStore:
    """Owns the async engine and session factory for one database file."""

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        self.engine = create_async_engine(url, echo=echo)
        self.session = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False
        )

    async def init(self) -> None:
        """Create tables if missing."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        await self.engine.dispose()
