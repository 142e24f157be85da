"""Database models."""

from anithing.models.activity import ACTIVITY_POINTS, ActivityType, PointActivity
from anithing.models.library import (
    LibraryEntry,
    ListStatus,
    MediaType,
    Review,
    Title,
)
from anithing.models.reward import (
    BOX_COSTS,
    BOX_ODDS,
    TIER_ORDER,
    AcquisitionHistory,
    BoxInventory,
    BoxType,
    RewardName,
    RewardState,
    RewardTier,
)
from anithing.models.user import User

__all__ = [
    "User",
    # Rewards
    "RewardTier",
    "BoxType",
    "TIER_ORDER",
    "BOX_ODDS",
    "BOX_COSTS",
    "RewardState",
    "BoxInventory",
    "RewardName",
    "AcquisitionHistory",
    # Ledger
    "PointActivity",
    "ActivityType",
    "ACTIVITY_POINTS",
    # Library
    "Title",
    "LibraryEntry",
    "Review",
    "MediaType",
    "ListStatus",
]
