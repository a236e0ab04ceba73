"""
Seat availability cache with single-flight refresh, staleness polling and
rate-limit backoff.
"""
from .core import CacheEntry, EntrySnapshot, EntryState
from .store import CacheStore
from .backoff import BackoffPolicy, MIN_BACKOFF_MS, MAX_BACKOFF_MS
from .hub import SubscriptionHub
from .coordinator import FetchCoordinator
from .polling import PollingScheduler, SubscriptionOptions, DEFAULT_CACHE_TTL_MS
from .manager import SeatCacheManager, Subscription, create_seat_cache_manager, now_ms

__all__ = [
    # Core types
    "CacheEntry",
    "EntrySnapshot",
    "EntryState",
    # Components
    "CacheStore",
    "BackoffPolicy",
    "MIN_BACKOFF_MS",
    "MAX_BACKOFF_MS",
    "SubscriptionHub",
    "FetchCoordinator",
    "PollingScheduler",
    "SubscriptionOptions",
    "DEFAULT_CACHE_TTL_MS",
    # Facade
    "SeatCacheManager",
    "Subscription",
    "create_seat_cache_manager",
    "now_ms",
]
