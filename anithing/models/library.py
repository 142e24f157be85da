"""Title catalog and user library models."""

from datetime import datetime
from enum import Enum

from anithing import db


class MediaType(str, Enum):
    """Kinds of titles in the catalog."""

    ANIME = "anime"
    MANGA = "manga"


class ListStatus(str, Enum):
    """Library entry status."""

    WATCHING = "watching"
    COMPLETED = "completed"
    ON_HOLD = "on_hold"
    DROPPED = "dropped"
    PLAN_TO_WATCH = "plan_to_watch"


class Title(db.Model):
    """Anime or manga record synced from external catalogs."""

    __tablename__ = "titles"

    id = db.Column(db.Integer, primary_key=True)
    anilist_id = db.Column(db.Integer, unique=True, nullable=True, index=True)
    media_type = db.Column(db.String(10), nullable=False, index=True)

    title = db.Column(db.String(500), nullable=False, index=True)
    title_english = db.Column(db.String(500), nullable=True)
    title_japanese = db.Column(db.String(500), nullable=True)
    image_url = db.Column(db.String(512), nullable=True)
    synopsis = db.Column(db.Text, nullable=True)
    score = db.Column(db.Float, nullable=True)
    status = db.Column(db.String(30), nullable=True)
    genres = db.Column(db.JSON, nullable=True)

    # Anime
    episodes = db.Column(db.Integer, nullable=True)
    # Manga
    chapters = db.Column(db.Integer, nullable=True)
    volumes = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(
        db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    @property
    def total_units(self) -> int | None:
        """Episode count for anime, chapter count for manga."""
        if self.media_type == MediaType.MANGA.value:
            return self.chapters
        return self.episodes

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        data = {
            "id": self.id,
            "media_type": self.media_type,
            "title": self.title,
            "title_english": self.title_english,
            "title_japanese": self.title_japanese,
            "image_url": self.image_url,
            "synopsis": self.synopsis,
            "score": self.score,
            "status": self.status,
            "genres": self.genres or [],
        }
        if self.media_type == MediaType.MANGA.value:
            data["chapters"] = self.chapters
            data["volumes"] = self.volumes
        else:
            data["episodes"] = self.episodes
        return data


class LibraryEntry(db.Model):
    """A title on a user's list with watch/read progress."""

    __tablename__ = "library_entries"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title_id = db.Column(
        db.Integer,
        db.ForeignKey("titles.id", ondelete="CASCADE"),
        nullable=False,
    )

    status = db.Column(
        db.String(20), default=ListStatus.PLAN_TO_WATCH.value, nullable=False
    )
    progress = db.Column(db.Integer, default=0, nullable=False)
    rating = db.Column(db.Integer, nullable=True)

    # Client timestamp of the last applied progress update
    progress_client_ts = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(
        db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    __table_args__ = (
        db.UniqueConstraint("user_id", "title_id", name="unique_library_entry"),
        db.CheckConstraint("progress >= 0", name="ck_progress_non_negative"),
    )

    title = db.relationship("Title")

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "title_id": self.title_id,
            "media_type": self.title.media_type if self.title else None,
            "title": self.title.title if self.title else None,
            "status": self.status,
            "progress": self.progress,
            "rating": self.rating,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class Review(db.Model):
    """User review of a title."""

    __tablename__ = "reviews"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title_id = db.Column(
        db.Integer,
        db.ForeignKey("titles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    headline = db.Column(db.String(200), nullable=True)
    content = db.Column(db.Text, nullable=False)
    rating = db.Column(db.Integer, nullable=True)
    spoiler_warning = db.Column(db.Boolean, default=False, nullable=False)

    # Idempotency key supplied by offline clients
    client_ref = db.Column(db.String(64), unique=True, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "title_id": self.title_id,
            "headline": self.headline,
            "content": self.content,
            "rating": self.rating,
            "spoiler_warning": self.spoiler_warning,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
