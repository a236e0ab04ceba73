"""
Keyed table of seat cache entries.
"""
import logging
from typing import Callable, Dict, List

from .core import CacheEntry

logger = logging.getLogger("cache.store")


class CacheStore:
    """
    Single source of truth for seat data, loading/error state and backoff
    state, one entry per event key.

    Built once by the composition root and shared by reference. All access
    happens on the event loop thread, so mutations never interleave.
    """

    def __init__(self):
        self._entries: Dict[str, CacheEntry] = {}

    def get(self, key: str) -> CacheEntry:
        """Return the entry for key, creating an empty one on first access."""
        entry = self._entries.get(key)
        if entry is None:
            entry = CacheEntry()
            self._entries[key] = entry
        return entry

    def set(self, key: str, mutation: Callable[[CacheEntry], None]) -> CacheEntry:
        """Apply a synchronous mutation to the entry for key."""
        entry = self.get(key)
        mutation(entry)
        return entry

    def keys(self) -> List[str]:
        return list(self._entries.keys())

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def evict(self, key: str) -> bool:
        """
        Drop the entry for key.

        Returns:
            True if removed, False if absent or a fetch is still in flight
        """
        entry = self._entries.get(key)
        if entry is None or entry.in_flight is not None:
            return False
        del self._entries[key]
        logger.info(f"Evicted seat cache entry: {key}")
        return True

    def clear(self) -> int:
        """
        Drop every idle entry.

        Returns:
            Number of entries cleared
        """
        idle = [k for k, e in self._entries.items() if e.in_flight is None]
        for key in idle:
            del self._entries[key]
        logger.info(f"Cleared {len(idle)} seat cache entries")
        return len(idle)
