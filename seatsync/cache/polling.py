"""
Per-observer refresh scheduling: staleness-on-activate and interval polling.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from seatsync.errors import RateLimitedError
from .backoff import BackoffPolicy
from .coordinator import FetchCoordinator
from .store import CacheStore

logger = logging.getLogger("cache.polling")

DEFAULT_CACHE_TTL_MS = 15000


@dataclass(frozen=True)
class SubscriptionOptions:
    """How one observer wants its key kept fresh."""
    enabled: bool = True
    refresh_interval_ms: Optional[int] = None
    cache_duration_ms: int = DEFAULT_CACHE_TTL_MS


class PollingScheduler:
    """
    Triggers background refreshes on behalf of active observers.

    Nothing here mutates cache entries; refreshes go through the
    coordinator, so polling observers of one key still share a single
    in-flight fetch.
    """

    def __init__(
        self,
        store: CacheStore,
        coordinator: FetchCoordinator,
        backoff: BackoffPolicy,
        clock: Callable[[], int],
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._store = store
        self._coordinator = coordinator
        self._backoff = backoff
        self._clock = clock
        self._sleep = sleep
        self._active = 0

    @property
    def active_observers(self) -> int:
        return self._active

    def activate(self, key: str, options: SubscriptionOptions) -> Callable[[], None]:
        """
        Start refresh scheduling for one observer of key.

        Returns:
            Idempotent function stopping this observer's scheduling
        """
        if not options.enabled:
            return lambda: None

        self.refresh_if_stale(key, options.cache_duration_ms)

        poller: Optional[asyncio.Task] = None
        if options.refresh_interval_ms:
            poller = asyncio.get_running_loop().create_task(
                self._poll(key, options.refresh_interval_ms),
                name=f"seat-poll:{key}",
            )
            logger.debug(f"Polling {key} every {options.refresh_interval_ms}ms")

        self._active += 1
        disposed = False

        def deactivate() -> None:
            nonlocal disposed
            if disposed:
                return
            disposed = True
            self._active -= 1
            if poller is not None:
                poller.cancel()

        return deactivate

    def refresh_if_stale(self, key: str, cache_duration_ms: int) -> bool:
        """
        Start a refresh when the entry was never fetched or has outlived
        cache_duration_ms and nothing is in flight.

        Returns:
            True if a refresh was started
        """
        entry = self._store.get(key)
        if entry.loading or not entry.is_stale(self._clock(), cache_duration_ms):
            return False
        logger.debug(f"Seats for {key} are stale, refreshing")
        return self._trigger(key)

    def _trigger(self, key: str) -> bool:
        try:
            self._coordinator.start(key)
        except RateLimitedError as e:
            logger.debug(f"Skipped refresh for {key}: rate limited for {e.retry_after_ms}ms")
            return False
        return True

    async def _poll(self, key: str, interval_ms: int) -> None:
        while True:
            await self._sleep(interval_ms / 1000)
            if self._backoff.is_rate_limited(self._store.get(key)):
                logger.debug(f"Skipping poll tick for {key}: rate limited")
                continue
            self._trigger(key)
