"""Point activity log."""

from datetime import datetime
from enum import Enum

from anithing import db


class ActivityType(str, Enum):
    """Activity types recorded by the point ledger."""

    # Library
    ADD_TO_LIST = "add_to_list"
    RATE_TITLE = "rate_title"
    WRITE_REVIEW = "write_review"
    COMPLETE_TITLE = "complete_title"

    # Engagement
    DAILY_LOGIN = "daily_login"
    ACHIEVEMENT = "achievement"

    # Economy
    BOX_PURCHASE = "box_purchase"
    LOOT_BOX_OPENED = "loot_box_opened"
    ADJUSTMENT = "adjustment"


# Points awarded for library activity
ACTIVITY_POINTS = {
    ActivityType.ADD_TO_LIST: 5,
    ActivityType.RATE_TITLE: 5,
    ActivityType.WRITE_REVIEW: 20,
    ActivityType.COMPLETE_TITLE: 25,
}


class PointActivity(db.Model):
    """Audit row for every ledger mutation (and loot box openings)."""

    __tablename__ = "point_activities"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    activity_type = db.Column(db.String(30), nullable=False, index=True)

    # Positive = earned, negative = spent
    points_earned = db.Column(db.Integer, default=0, nullable=False)

    # "metadata" is reserved on declarative models
    details = db.Column("metadata", db.JSON, nullable=True)

    created_at = db.Column(
        db.DateTime, default=datetime.utcnow, nullable=False, index=True
    )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "activity_type": self.activity_type,
            "points_earned": self.points_earned,
            "metadata": self.details or {},
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
