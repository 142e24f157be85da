"""Reward models: tiers, loot boxes, the name pool and acquisition history."""

from datetime import date, datetime
from enum import Enum

from anithing import db


class RewardTier(str, Enum):
    """Rarity class of a collectible name, rarest first."""

    GOD = "GOD"
    LEGENDARY = "LEGENDARY"
    EPIC = "EPIC"
    RARE = "RARE"
    UNCOMMON = "UNCOMMON"
    COMMON = "COMMON"


class BoxType(str, Enum):
    """Loot box kinds, each with its own odds."""

    STANDARD = "standard"
    PREMIUM = "premium"
    ULTRA = "ultra"


# Rarity order used when walking the cumulative bands
TIER_ORDER = [
    RewardTier.GOD,
    RewardTier.LEGENDARY,
    RewardTier.EPIC,
    RewardTier.RARE,
    RewardTier.UNCOMMON,
    RewardTier.COMMON,
]

# Cumulative upper bounds per box type, in TIER_ORDER.
# A draw d selects the first tier whose bound is > d, so GOD on a
# standard box covers [0, 0.0001). The last bound is always 1.0.
# Band widths (%):
#   standard: GOD 0.01, LEGENDARY 0.49, EPIC 4.5, RARE 15, UNCOMMON 30, COMMON 50
#   premium:  GOD 0.05, LEGENDARY 0.75, EPIC 7.2, RARE 17, UNCOMMON 25, COMMON 50
#   ultra:    GOD 0.1,  LEGENDARY 0.9,  EPIC 9,   RARE 20, UNCOMMON 30, COMMON 40
BOX_ODDS = {
    BoxType.STANDARD: [
        (RewardTier.GOD, 0.0001),
        (RewardTier.LEGENDARY, 0.005),
        (RewardTier.EPIC, 0.05),
        (RewardTier.RARE, 0.2),
        (RewardTier.UNCOMMON, 0.5),
        (RewardTier.COMMON, 1.0),
    ],
    BoxType.PREMIUM: [
        (RewardTier.GOD, 0.0005),
        (RewardTier.LEGENDARY, 0.008),
        (RewardTier.EPIC, 0.08),
        (RewardTier.RARE, 0.25),
        (RewardTier.UNCOMMON, 0.5),
        (RewardTier.COMMON, 1.0),
    ],
    BoxType.ULTRA: [
        (RewardTier.GOD, 0.001),
        (RewardTier.LEGENDARY, 0.01),
        (RewardTier.EPIC, 0.1),
        (RewardTier.RARE, 0.3),
        (RewardTier.UNCOMMON, 0.6),
        (RewardTier.COMMON, 1.0),
    ],
}

# Price of each box in points
BOX_COSTS = {
    BoxType.STANDARD: 100,
    BoxType.PREMIUM: 500,
    BoxType.ULTRA: 1000,
}

# Name given at signup when the COMMON pool is empty
DEFAULT_STARTING_NAME = "Wandering Otaku"


class RewardState(db.Model):
    """
    Per-user reward state: points, streak, active name.

    Counters are only changed through the ledger and reward services,
    which use guarded UPDATE statements so they never go negative.
    """

    __tablename__ = "reward_states"

    user_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )

    total_points = db.Column(db.Integer, default=0, nullable=False)
    daily_points = db.Column(db.Integer, default=0, nullable=False)
    daily_points_date = db.Column(db.Date, nullable=True)

    login_streak = db.Column(db.Integer, default=0, nullable=False)
    longest_streak = db.Column(db.Integer, default=0, nullable=False)
    last_login_date = db.Column(db.Date, nullable=True)

    current_name = db.Column(db.String(100), nullable=True)
    current_tier = db.Column(
        db.String(20), default=RewardTier.COMMON.value, nullable=False
    )
    first_box_opened = db.Column(db.Boolean, default=False, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(
        db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    __table_args__ = (
        db.CheckConstraint("total_points >= 0", name="ck_total_points_non_negative"),
        db.CheckConstraint("daily_points >= 0", name="ck_daily_points_non_negative"),
        db.CheckConstraint("login_streak >= 0", name="ck_login_streak_non_negative"),
    )

    user = db.relationship(
        "User", backref=db.backref("reward_state", uselist=False)
    )

    def daily_points_for(self, today: date) -> int:
        """Daily points as seen on `today` (zero once the day has rolled over)."""
        if self.daily_points_date != today:
            return 0
        return self.daily_points

    def to_dict(self, today: date | None = None) -> dict:
        """Convert to dictionary."""
        today = today or date.today()
        return {
            "user_id": self.user_id,
            "total_points": self.total_points,
            "daily_points": self.daily_points_for(today),
            "login_streak": self.login_streak,
            "longest_streak": self.longest_streak,
            "current_name": self.current_name,
            "current_tier": self.current_tier,
            "first_box_opened": self.first_box_opened,
        }


class BoxInventory(db.Model):
    """Loot boxes owned by a user, one row per box type."""

    __tablename__ = "box_inventory"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    box_type = db.Column(db.String(20), nullable=False)
    quantity = db.Column(db.Integer, default=0, nullable=False)

    updated_at = db.Column(
        db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    __table_args__ = (
        db.UniqueConstraint("user_id", "box_type", name="unique_user_box_type"),
        db.CheckConstraint("quantity >= 0", name="ck_box_quantity_non_negative"),
    )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {"box_type": self.box_type, "quantity": self.quantity}


class RewardName(db.Model):
    """Pool of names that can drop from loot boxes."""

    __tablename__ = "reward_names"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False)
    tier = db.Column(db.String(20), nullable=False, index=True)

    # catalog: a named anime character; generated: an original persona
    generation_method = db.Column(db.String(20), default="catalog", nullable=False)
    source_anime = db.Column(db.String(200), nullable=True)
    description = db.Column(db.Text, nullable=True)
    personality = db.Column(db.Text, nullable=True)

    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "tier": self.tier,
            "generation_method": self.generation_method,
            "source_anime": self.source_anime,
            "description": self.description,
            "personality": self.personality,
        }


class AcquisitionHistory(db.Model):
    """Every name a user has obtained, with loot box draw audit data."""

    __tablename__ = "acquisition_history"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = db.Column(db.String(100), nullable=False)
    tier = db.Column(db.String(20), nullable=False)
    acquired_method = db.Column(db.String(20), nullable=False)  # signup, loot_box
    box_type = db.Column(db.String(20), nullable=True)

    # Provably fair draw data (loot_box only)
    server_seed = db.Column(db.String(64), nullable=True)
    client_seed = db.Column(db.String(64), nullable=True)
    nonce = db.Column(db.BigInteger, nullable=True)
    draw_hash = db.Column(db.String(64), nullable=True)
    draw_value = db.Column(db.Float, nullable=True)

    acquired_at = db.Column(
        db.DateTime, default=datetime.utcnow, nullable=False, index=True
    )

    __table_args__ = (db.Index("ix_acquisition_user_name", "user_id", "name"),)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "tier": self.tier,
            "acquired_method": self.acquired_method,
            "box_type": self.box_type,
            "acquired_at": self.acquired_at.isoformat() if self.acquired_at else None,
        }
