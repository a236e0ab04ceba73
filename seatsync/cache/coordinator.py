"""
Single-flight seat fetching.

When several observers ask for the same event's seats at once, only one
upstream call is made and every caller shares its outcome.
"""
import asyncio
import functools
import logging
from typing import Any, Awaitable, Callable, Dict, Sequence, Tuple

from seatsync.errors import RateLimitedError, classify_error
from seatsync.models import SeatRecord
from .backoff import BackoffPolicy
from .core import CacheEntry
from .hub import SubscriptionHub
from .store import CacheStore

logger = logging.getLogger("cache.coordinator")

FetchFn = Callable[[str], Awaitable[Sequence[SeatRecord]]]


class FetchCoordinator:
    """
    Issues at most one network fetch per key at a time and writes the
    outcome into the cache store.

    Pattern:
    - First refresh for a key creates the fetch task and stores it on the
      entry as the in-flight marker, before anything is awaited
    - Later refreshes for the same key await that same task
    - On completion the entry is updated, the marker cleared and
      subscribers notified, whatever the outcome

    Usage:
        coordinator = FetchCoordinator(store, hub, backoff, client.fetch_seats, clock)
        seats = await coordinator.refresh("evt-1")
    """

    def __init__(
        self,
        store: CacheStore,
        hub: SubscriptionHub,
        backoff: BackoffPolicy,
        fetch_fn: FetchFn,
        clock: Callable[[], int],
    ):
        self._store = store
        self._hub = hub
        self._backoff = backoff
        self._fetch_fn = fetch_fn
        self._clock = clock

        self._stats = {
            "fetches": 0,
            "coalesced": 0,
            "short_circuited": 0,
            "failures": 0,
            "rate_limited": 0,
        }

    async def refresh(self, key: str, ignore_rate_limit: bool = False) -> Tuple[SeatRecord, ...]:
        """
        Fetch seats for key, or join the fetch already in flight.

        Cancelling the caller does not cancel the shared fetch.

        Raises:
            RateLimitedError: If the key's backoff window is active (no call
                is made) or the origin answered 429
            NetworkError, ServerError: Classified fetch failures
        """
        task = self.start(key, ignore_rate_limit=ignore_rate_limit)
        return await asyncio.shield(task)

    def start(self, key: str, ignore_rate_limit: bool = False) -> "asyncio.Task":
        """
        Join or begin the fetch for key without awaiting it.

        Must be called from the event loop. Checking and setting the
        in-flight marker happens here, synchronously.
        """
        entry = self._store.get(key)

        if entry.in_flight is not None:
            self._stats["coalesced"] += 1
            logger.debug(f"Coalescing seat refresh for {key}")
            return entry.in_flight

        if not ignore_rate_limit and self._backoff.is_rate_limited(entry):
            self._stats["short_circuited"] += 1
            remaining = self._backoff.remaining_ms(entry)
            logger.debug(f"Refusing seat refresh for {key}, rate limited for {remaining}ms")
            raise RateLimitedError("Rate limited", retry_after_ms=remaining)

        task = asyncio.get_running_loop().create_task(
            self._run_fetch(key), name=f"seat-fetch:{key}"
        )
        task.add_done_callback(functools.partial(self._on_done, key))

        def mark_loading(e: CacheEntry) -> None:
            e.in_flight = task
            e.loading = True
            e.error = None

        self._store.set(key, mark_loading)
        self._stats["fetches"] += 1
        logger.info(f"Fetching seats for {key}")
        self._hub.notify(key)
        return task

    async def _run_fetch(self, key: str) -> Tuple[SeatRecord, ...]:
        try:
            seats = tuple(await self._fetch_fn(key))
        except Exception as exc:
            error = classify_error(exc)
            self._stats["failures"] += 1

            def record_failure(e: CacheEntry) -> None:
                e.error = error
                if isinstance(error, RateLimitedError):
                    self._stats["rate_limited"] += 1
                    self._backoff.on_rate_limited(e, error.retry_after_ms)

            self._store.set(key, record_failure)
            logger.warning(f"Seat fetch failed for {key}: {error.message}")
            if error is exc:
                raise
            raise error from exc
        else:
            def record_success(e: CacheEntry) -> None:
                e.seats = seats
                e.updated_at = self._clock()
                e.error = None
                self._backoff.on_success(e)

            self._store.set(key, record_success)
            logger.info(f"Fetched {len(seats)} seats for {key}")
            return seats
        finally:
            self._store.set(key, self._clear_in_flight)
            self._hub.notify(key)

    @staticmethod
    def _clear_in_flight(entry: CacheEntry) -> None:
        entry.in_flight = None
        entry.loading = False

    def _on_done(self, key: str, task: "asyncio.Task") -> None:
        if task.cancelled():
            # A task cancelled before its first step never reaches the finally above
            entry = self._store.get(key)
            if entry.in_flight is task:
                self._clear_in_flight(entry)
                self._hub.notify(key)
            return
        # Outcome is already recorded on the entry
        task.exception()

    @property
    def active_requests(self) -> int:
        """Number of currently in-flight fetches."""
        return sum(1 for key in self._store.keys() if self._store.get(key).in_flight is not None)

    def get_stats(self) -> Dict[str, Any]:
        """Get coordinator statistics."""
        return {
            **self._stats,
            "active_requests": self.active_requests,
            "active_keys": [
                key for key in self._store.keys() if self._store.get(key).in_flight is not None
            ],
        }
