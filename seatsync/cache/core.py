"""
Core cache data structures.
"""
import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple
from enum import Enum

from seatsync.errors import SeatSyncError, RateLimitedError
from seatsync.models import SeatRecord


class EntryState(Enum):
    """Lifecycle state of a cache entry."""
    IDLE = "idle"                  # Never fetched, nothing in flight
    LOADING = "loading"            # Fetch in flight
    FRESH = "fresh"                # Last fetch succeeded
    ERRORED = "errored"            # Last fetch failed
    RATE_LIMITED = "rate_limited"  # Last fetch was throttled by the origin


@dataclass
class CacheEntry:
    """
    Per-event seat state. Mutated only by the fetch coordinator and the
    backoff policy; everything else reads it.
    """
    seats: Tuple[SeatRecord, ...] = ()
    loading: bool = False
    error: Optional[SeatSyncError] = None
    updated_at: Optional[int] = None           # epoch ms of last successful fetch
    rate_limited_until: Optional[int] = None   # epoch ms
    rate_limit_backoff_ms: Optional[int] = None
    in_flight: Optional["asyncio.Task"] = field(default=None, repr=False)

    @property
    def state(self) -> EntryState:
        if self.in_flight is not None:
            return EntryState.LOADING
        if isinstance(self.error, RateLimitedError):
            return EntryState.RATE_LIMITED
        if self.error is not None:
            return EntryState.ERRORED
        if self.updated_at is not None:
            return EntryState.FRESH
        return EntryState.IDLE

    def is_stale(self, now_ms: int, cache_duration_ms: int) -> bool:
        """True if never fetched or older than the cache duration."""
        return self.updated_at is None or now_ms - self.updated_at > cache_duration_ms

    def is_rate_limited(self, now_ms: int) -> bool:
        return self.rate_limited_until is not None and self.rate_limited_until > now_ms

    def snapshot(self) -> "EntrySnapshot":
        return EntrySnapshot(
            seats=self.seats,
            loading=self.loading,
            error=self.error,
            updated_at=self.updated_at,
            rate_limited_until=self.rate_limited_until,
            state=self.state,
        )


@dataclass(frozen=True)
class EntrySnapshot:
    """Read-only view of a cache entry handed to observers."""
    seats: Tuple[SeatRecord, ...] = ()
    loading: bool = False
    error: Optional[SeatSyncError] = None
    updated_at: Optional[int] = None
    rate_limited_until: Optional[int] = None
    state: EntryState = EntryState.IDLE

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON response."""
        return {
            "seats": [seat.to_dict() for seat in self.seats],
            "loading": self.loading,
            "error": self.error.message if self.error else None,
            "updatedAt": self.updated_at,
            "rateLimitedUntil": self.rate_limited_until,
            "state": self.state.value,
        }
