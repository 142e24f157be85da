"""Library service: list entries, progress, ratings and reviews."""

import logging
from datetime import datetime
from typing import Any

from sqlalchemy.exc import IntegrityError

from anithing import db
from anithing.models.activity import ACTIVITY_POINTS, ActivityType
from anithing.models.library import LibraryEntry, ListStatus, Review, Title
from anithing.services.ledger_service import LedgerService

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 10


class LibraryService:
    """
    Service for library mutations.

    Every mutation here may arrive more than once (offline clients replay
    with at-least-once delivery), so each is written to be safe to repeat:
    upserts, absolute progress values, and review idempotency keys.
    Points are only awarded when state actually changes.
    """

    def __init__(self, ledger: LedgerService | None = None):
        self.ledger = ledger or LedgerService()

    def _award(self, user_id: int, activity: ActivityType, metadata: dict) -> None:
        points = ACTIVITY_POINTS.get(activity, 0)
        if points:
            self.ledger.award_points(user_id, activity, points, metadata)

    def _get_entry(self, user_id: int, title_id: int) -> LibraryEntry | None:
        return LibraryEntry.query.filter_by(user_id=user_id, title_id=title_id).first()

    def _create_entry(self, user_id: int, title_id: int, status: str) -> LibraryEntry | None:
        """Insert an entry; returns None if a concurrent request created it first."""
        entry = LibraryEntry(user_id=user_id, title_id=title_id, status=status)
        try:
            with db.session.begin_nested():
                db.session.add(entry)
        except IntegrityError:
            return None
        return entry

    def get_title(self, title_id: int) -> Title | None:
        """Get a catalog title."""
        return db.session.get(Title, title_id)

    def search_titles(
        self, query: str, media_type: str | None = None, limit: int = 20
    ) -> list[dict]:
        """Case-insensitive search on romaji and English titles."""
        pattern = f"%{query.strip()}%"
        q = Title.query.filter(
            db.or_(Title.title.ilike(pattern), Title.title_english.ilike(pattern))
        )
        if media_type:
            q = q.filter(Title.media_type == media_type)
        titles = (
            q.order_by(Title.score.is_(None), Title.score.desc(), Title.id)
            .limit(limit)
            .all()
        )
        return [t.to_dict() for t in titles]

    def get_library(self, user_id: int, status: str | None = None) -> list[dict]:
        """User's list, most recently updated first."""
        q = LibraryEntry.query.filter_by(user_id=user_id)
        if status:
            q = q.filter_by(status=status)
        entries = q.order_by(LibraryEntry.updated_at.desc()).all()
        return [e.to_dict() for e in entries]

    def add_to_list(
        self,
        user_id: int,
        title_id: int,
        status: str = ListStatus.PLAN_TO_WATCH.value,
        media_type: str | None = None,
    ) -> dict[str, Any]:
        """Add a title to the user's list, or change its status if present."""
        title = self.get_title(title_id)
        if not title:
            return {"error": "title_not_found"}

        if media_type and media_type != title.media_type:
            return {"error": "media_type_mismatch"}

        if status not in {s.value for s in ListStatus}:
            return {"error": "invalid_status"}

        entry = self._get_entry(user_id, title_id)
        created = False
        if entry is None:
            entry = self._create_entry(user_id, title_id, status)
            created = entry is not None
            if entry is None:
                entry = self._get_entry(user_id, title_id)
        entry.status = status
        db.session.commit()

        if created:
            self._award(user_id, ActivityType.ADD_TO_LIST, {"title_id": title_id})
            logger.info(f"User {user_id} added title {title_id} as {status}")

        return {"success": True, "entry": entry.to_dict(), "created": created}

    def update_progress(
        self,
        user_id: int,
        title_id: int,
        progress: int,
        client_ts: datetime | None = None,
    ) -> dict[str, Any]:
        """
        Set absolute progress (episodes or chapters).

        An update stamped earlier than the last applied one is acknowledged
        but not applied, so a late replay cannot roll progress back.
        """
        if not isinstance(progress, int) or progress < 0:
            return {"error": "invalid_progress"}

        title = self.get_title(title_id)
        if not title:
            return {"error": "title_not_found"}

        total = title.total_units
        if total is not None and progress > total:
            return {"error": "progress_exceeds_total", "total": total}

        entry = self._get_entry(user_id, title_id)
        if entry is None:
            entry = self._create_entry(
                user_id, title_id, ListStatus.WATCHING.value
            ) or self._get_entry(user_id, title_id)

        if (
            client_ts is not None
            and entry.progress_client_ts is not None
            and client_ts < entry.progress_client_ts
        ):
            db.session.commit()
            logger.info(
                f"Ignored stale progress {progress} for user {user_id} title {title_id}"
            )
            return {"success": True, "applied": False, "entry": entry.to_dict()}

        was_completed = entry.status == ListStatus.COMPLETED.value
        entry.progress = progress
        if client_ts is not None:
            entry.progress_client_ts = client_ts

        completed_now = False
        if total and progress >= total and not was_completed:
            entry.status = ListStatus.COMPLETED.value
            completed_now = True
        elif entry.status == ListStatus.PLAN_TO_WATCH.value and progress > 0:
            entry.status = ListStatus.WATCHING.value

        db.session.commit()

        if completed_now:
            self._award(user_id, ActivityType.COMPLETE_TITLE, {"title_id": title_id})

        return {"success": True, "applied": True, "entry": entry.to_dict()}

    def rate_title(self, user_id: int, title_id: int, rating: int) -> dict[str, Any]:
        """Rate a title on the user's list (adds it if missing)."""
        if not isinstance(rating, int) or not MIN_RATING <= rating <= MAX_RATING:
            return {"error": "invalid_rating", "min": MIN_RATING, "max": MAX_RATING}

        if not self.get_title(title_id):
            return {"error": "title_not_found"}

        entry = self._get_entry(user_id, title_id)
        if entry is None:
            entry = self._create_entry(
                user_id, title_id, ListStatus.PLAN_TO_WATCH.value
            ) or self._get_entry(user_id, title_id)

        first_rating = entry.rating is None
        entry.rating = rating
        db.session.commit()

        if first_rating:
            self._award(user_id, ActivityType.RATE_TITLE, {"title_id": title_id})

        return {"success": True, "entry": entry.to_dict()}

    def write_review(
        self,
        user_id: int,
        title_id: int,
        content: str,
        rating: int | None = None,
        headline: str | None = None,
        spoiler_warning: bool = False,
        client_ref: str | None = None,
    ) -> dict[str, Any]:
        """Post a review. A repeated client_ref returns the original review."""
        if not content or not content.strip():
            return {"error": "empty_review"}

        if rating is not None and (
            not isinstance(rating, int) or not MIN_RATING <= rating <= MAX_RATING
        ):
            return {"error": "invalid_rating", "min": MIN_RATING, "max": MAX_RATING}

        if not self.get_title(title_id):
            return {"error": "title_not_found"}

        if client_ref:
            existing = Review.query.filter_by(client_ref=client_ref).first()
            if existing:
                if existing.user_id != user_id:
                    return {"error": "client_ref_conflict"}
                return {"success": True, "review": existing.to_dict(), "duplicate": True}

        review = Review(
            user_id=user_id,
            title_id=title_id,
            content=content.strip(),
            rating=rating,
            headline=headline,
            spoiler_warning=bool(spoiler_warning),
            client_ref=client_ref,
        )
        try:
            with db.session.begin_nested():
                db.session.add(review)
        except IntegrityError:
            existing = Review.query.filter_by(client_ref=client_ref).first() if client_ref else None
            if existing is None:
                raise
            return {"success": True, "review": existing.to_dict(), "duplicate": True}
        db.session.commit()

        self._award(user_id, ActivityType.WRITE_REVIEW, {"title_id": title_id})
        logger.info(f"User {user_id} reviewed title {title_id}")

        return {"success": True, "review": review.to_dict(), "duplicate": False}
