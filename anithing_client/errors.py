"""Errors raised by the sync agent."""


class SyncError(Exception):
    """Base class for sync agent errors."""


class NetworkError(SyncError):
    """The backend could not be reached or failed on its side. Retryable."""


class RemoteTimeoutError(NetworkError):
    """The request did not complete within the configured timeout."""


class RateLimitedError(NetworkError):
    """The backend asked us to slow down (429). Retry after ``retry_after`` seconds."""

    def __init__(self, message: str, retry_after: float | None = None):
        super().__init__(message)
        self.retry_after = retry_after


class AuthenticationError(SyncError):
    """The API token is missing or expired. Re-authenticate, then flush again."""


class RemoteRejectedError(SyncError):
    """The backend refused the request (4xx). Not retryable."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        status_code: int | None = None,
        details: dict | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}


class InsufficientInventoryError(RemoteRejectedError):
    """No box of the requested type was available to open."""


class InsufficientFundsError(RemoteRejectedError):
    """The point balance did not cover a purchase."""


REJECTION_CLASSES = {
    "INSUFFICIENT_INVENTORY": InsufficientInventoryError,
    "INSUFFICIENT_FUNDS": InsufficientFundsError,
}
