"""Business logic services."""

from anithing.services.ledger_service import LedgerService
from anithing.services.library_service import LibraryService
from anithing.services.reward_service import RewardResult, RewardService

__all__ = [
    "LedgerService",
    "LibraryService",
    "RewardService",
    "RewardResult",
]
