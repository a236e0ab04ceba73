"""
Per-key listener registry with synchronous fan-out.
"""
import logging
from typing import Callable, Dict, List

logger = logging.getLogger("cache.hub")

Listener = Callable[[], None]


class SubscriptionHub:
    """
    Registers observers per event key and notifies all of them when the
    key's cache entry changes.

    A key's listener set is dropped as soon as its last listener leaves,
    so subscribe/unsubscribe churn doesn't grow the registry.
    """

    def __init__(self):
        # key -> {registration token -> listener}
        self._listeners: Dict[str, Dict[object, Listener]] = {}

    def subscribe(self, key: str, listener: Listener) -> Callable[[], None]:
        """
        Register a listener for key.

        Returns:
            Idempotent function removing this registration
        """
        listeners = self._listeners.setdefault(key, {})
        token = object()
        listeners[token] = listener
        logger.debug(f"Listener added for {key} (total: {len(listeners)})")

        def unsubscribe() -> None:
            current = self._listeners.get(key)
            if current is None or token not in current:
                return
            del current[token]
            logger.debug(f"Listener removed for {key} (remaining: {len(current)})")
            if not current:
                del self._listeners[key]

        return unsubscribe

    def notify(self, key: str) -> None:
        """Invoke every listener currently registered for key exactly once."""
        listeners = self._listeners.get(key)
        if not listeners:
            return
        # Listeners may unsubscribe while we iterate
        for listener in list(listeners.values()):
            try:
                listener()
            except Exception:
                logger.exception(f"Seat listener for {key} raised")

    def listener_count(self, key: str) -> int:
        return len(self._listeners.get(key, ()))

    def keys(self) -> List[str]:
        return list(self._listeners.keys())
