"""
Public entry point of the seat cache: subscribe, refresh, read.
"""
import dataclasses
import logging
import time
from typing import Any, Callable, Dict, Optional, Tuple

from seatsync.models import SeatRecord
from .backoff import BackoffPolicy
from .coordinator import FetchCoordinator, FetchFn
from .core import EntrySnapshot
from .hub import Listener, SubscriptionHub
from .polling import PollingScheduler, SubscriptionOptions
from .store import CacheStore

logger = logging.getLogger("cache.manager")


def now_ms() -> int:
    """Wall clock in epoch milliseconds."""
    return int(time.time() * 1000)


class Subscription:
    """
    One observer's interest in a key.

    Calling the subscription (or close(), or leaving its with-block) stops
    notifications and this observer's polling. It never cancels a fetch
    other observers may be sharing.
    """

    def __init__(
        self,
        manager: "SeatCacheManager",
        key: str,
        options: SubscriptionOptions,
        unsubscribe: Callable[[], None],
        deactivate: Callable[[], None],
    ):
        self._manager = manager
        self.key = key
        self.options = options
        self._unsubscribe = unsubscribe
        self._deactivate = deactivate
        self.closed = False

    def read(self) -> EntrySnapshot:
        """Current snapshot as this observer sees it; disabled observers never see loading."""
        snapshot = self._manager.read(self.key)
        if not self.options.enabled and snapshot.loading:
            return dataclasses.replace(snapshot, loading=False)
        return snapshot

    async def refresh(self, ignore_rate_limit: bool = False) -> Tuple[SeatRecord, ...]:
        return await self._manager.refresh(self.key, ignore_rate_limit=ignore_rate_limit)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            self._deactivate()
        finally:
            self._unsubscribe()

    __call__ = close

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class SeatCacheManager:
    """
    Seat availability cache with:
    - Single-flight refresh per event key
    - Staleness-triggered refresh when an observer activates
    - Optional interval polling per observer
    - Exponential backoff after rate-limit responses
    - Synchronous fan-out of every state change to the key's observers
    """

    def __init__(
        self,
        fetch_fn: FetchFn,
        clock: Callable[[], int] = now_ms,
        default_cache_duration_ms: Optional[int] = None,
        store: Optional[CacheStore] = None,
        backoff: Optional[BackoffPolicy] = None,
    ):
        self.store = store if store is not None else CacheStore()
        self.hub = SubscriptionHub()
        self.backoff = backoff or BackoffPolicy(clock)
        self.coordinator = FetchCoordinator(self.store, self.hub, self.backoff, fetch_fn, clock)
        self.scheduler = PollingScheduler(self.store, self.coordinator, self.backoff, clock)
        self._default_options = SubscriptionOptions()
        if default_cache_duration_ms is not None:
            self._default_options = SubscriptionOptions(cache_duration_ms=default_cache_duration_ms)

    def subscribe(
        self,
        key: str,
        listener: Listener,
        options: Optional[SubscriptionOptions] = None,
    ) -> Subscription:
        """
        Register listener for key and start refresh scheduling.

        Must be called from the event loop when the observer is enabled.
        If activation fails the listener is removed before the error
        propagates.
        """
        if not key:
            raise ValueError("An event key is required to subscribe")
        options = options or self._default_options

        unsubscribe = self.hub.subscribe(key, listener)
        try:
            deactivate = self.scheduler.activate(key, options)
        except BaseException:
            unsubscribe()
            raise
        return Subscription(self, key, options, unsubscribe, deactivate)

    async def refresh(self, key: str, ignore_rate_limit: bool = False) -> Tuple[SeatRecord, ...]:
        """
        Manually refresh key.

        Raises:
            RateLimitedError: Backoff window active, or origin answered 429
            NetworkError, ServerError: Other fetch failures
        """
        if not key:
            return ()
        return await self.coordinator.refresh(key, ignore_rate_limit=ignore_rate_limit)

    def read(self, key: str) -> EntrySnapshot:
        """Synchronous snapshot; Idle defaults before the first fetch."""
        if not key:
            return EntrySnapshot()
        return self.store.get(key).snapshot()

    def refresh_if_stale(self, key: str, cache_duration_ms: Optional[int] = None) -> bool:
        """Apply the activation staleness rule without registering an observer."""
        if cache_duration_ms is None:
            cache_duration_ms = self._default_options.cache_duration_ms
        return self.scheduler.refresh_if_stale(key, cache_duration_ms)

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        return {
            "entries": len(self.store),
            "subscribed_keys": len(self.hub.keys()),
            "listeners": sum(self.hub.listener_count(k) for k in self.hub.keys()),
            "active_observers": self.scheduler.active_observers,
            "coordinator": self.coordinator.get_stats(),
        }


def create_seat_cache_manager(
    settings=None,
    fetch_fn: Optional[FetchFn] = None,
    clock: Callable[[], int] = now_ms,
) -> SeatCacheManager:
    """
    Composition root: one store, one hub and one coordinator shared by
    every observer of the returned manager.
    """
    if settings is None:
        from config.settings import settings
    if fetch_fn is None:
        from seatsync.api_client import SeatApiClient
        fetch_fn = SeatApiClient.from_settings(settings).fetch_seats
    return SeatCacheManager(
        fetch_fn=fetch_fn,
        clock=clock,
        default_cache_duration_ms=settings.seat_cache_ttl_ms,
    )
