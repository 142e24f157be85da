"""Typed errors raised by the reward and ledger services."""


class RewardsError(Exception):
    """Base class for errors surfaced to API callers."""

    code = "REWARDS_ERROR"
    status_code = 400
    message = "Reward operation failed"

    def __init__(self, message: str | None = None, **details):
        super().__init__(message or self.message)
        self.message = message or self.message
        self.details = details


class InsufficientInventoryError(RewardsError):
    """User has no box of the requested type. Not retryable."""

    code = "INSUFFICIENT_INVENTORY"
    status_code = 409
    message = "No loot boxes of this type available"


class InsufficientFundsError(RewardsError):
    """User does not have enough points. Not retryable."""

    code = "INSUFFICIENT_FUNDS"
    status_code = 402
    message = "Not enough points"


class EmptyPoolError(RewardsError):
    """No active names exist for a tier. A data bug, operators are alerted."""

    code = "EMPTY_POOL"
    status_code = 500
    message = "Reward pool is empty for this tier"


class NameNotOwnedError(RewardsError):
    """User tried to activate a name they never acquired."""

    code = "NAME_NOT_OWNED"
    status_code = 404
    message = "Name not found in your collection"
