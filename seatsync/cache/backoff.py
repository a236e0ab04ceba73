"""
Rate-limit cool-down tracking.
"""
import logging
from typing import Callable, Optional

from .core import CacheEntry

logger = logging.getLogger("cache.backoff")

MIN_BACKOFF_MS = 15000
MAX_BACKOFF_MS = 120000


class BackoffPolicy:
    """
    Computes the window during which fetches for a key are refused locally
    after the origin answered 429.

    Without a server Retry-After the window doubles on each consecutive
    rate-limit failure, from MIN_BACKOFF_MS up to MAX_BACKOFF_MS. A
    successful fetch clears the window and puts the backoff back to the
    floor. A server Retry-After sets the window verbatim, but the recorded
    backoff never drops below the floor.
    """

    def __init__(
        self,
        clock: Callable[[], int],
        min_backoff_ms: int = MIN_BACKOFF_MS,
        max_backoff_ms: int = MAX_BACKOFF_MS,
    ):
        self._clock = clock
        self.min_backoff_ms = min_backoff_ms
        self.max_backoff_ms = max_backoff_ms

    def on_success(self, entry: CacheEntry) -> None:
        entry.rate_limited_until = None
        entry.rate_limit_backoff_ms = self.min_backoff_ms

    def next_backoff_ms(self, entry: CacheEntry, retry_after_ms: Optional[int] = None) -> int:
        if retry_after_ms is not None:
            return retry_after_ms
        if entry.rate_limit_backoff_ms:
            return min(entry.rate_limit_backoff_ms * 2, self.max_backoff_ms)
        return self.min_backoff_ms

    def on_rate_limited(self, entry: CacheEntry, retry_after_ms: Optional[int] = None) -> int:
        """
        Open (or extend) the cool-down window for the entry.

        Args:
            entry: The cache entry that was throttled
            retry_after_ms: Server-supplied Retry-After, used verbatim

        Returns:
            The backoff applied, in milliseconds
        """
        backoff = self.next_backoff_ms(entry, retry_after_ms)
        entry.rate_limited_until = self._clock() + backoff
        # A short Retry-After must not drag the doubling base below the floor
        entry.rate_limit_backoff_ms = max(backoff, self.min_backoff_ms)
        logger.warning(
            f"Rate limited, refusing fetches for {backoff}ms "
            f"(retry_after={'server' if retry_after_ms is not None else 'computed'})"
        )
        return backoff

    def is_rate_limited(self, entry: CacheEntry) -> bool:
        return entry.is_rate_limited(self._clock())

    def remaining_ms(self, entry: CacheEntry) -> int:
        """Milliseconds left in the cool-down window, 0 when none is active."""
        if entry.rate_limited_until is None:
            return 0
        return max(0, entry.rate_limited_until - self._clock())
