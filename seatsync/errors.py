"""
Error taxonomy for seat synchronization.

Every failure recorded on a cache entry is one of these classes, so
consumers can tell a dead network from a throttled origin.
"""
from typing import Any, Optional


class SeatSyncError(Exception):
    """Base class for failures while fetching seat data."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status = status


class NetworkError(SeatSyncError):
    """Transport-level failure, no response was received."""
    pass


class ServerError(SeatSyncError):
    """Non-2xx, non-429 response from the origin, or a 2xx body that can't be decoded."""

    def __init__(self, message: str, status: Optional[int] = None, body: Any = None):
        super().__init__(message, status=status)
        self.body = body


class RateLimitedError(SeatSyncError):
    """The origin (or the local backoff window) refused the request."""

    def __init__(
        self,
        message: str = "Rate limited",
        retry_after_ms: Optional[int] = None,
        body: Any = None,
    ):
        super().__init__(message, status=429)
        self.retry_after_ms = retry_after_ms
        self.body = body


def classify_error(exc: BaseException) -> SeatSyncError:
    """Map an arbitrary fetch failure onto the taxonomy."""
    if isinstance(exc, SeatSyncError):
        return exc
    return NetworkError(str(exc) or exc.__class__.__name__)
