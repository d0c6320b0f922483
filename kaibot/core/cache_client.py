"""Process-local TTL cache backing the template cache and the push throttle."""

import logging
import time
from typing import NamedTuple


logger = logging.getLogger(__name__)


class _Entry(NamedTuple):
    value: str
    expires_at: float | None


class InMemoryCache:
    """String values with optional expiry, checked lazily on access.

    The bot runs in a single event loop, so operations need no locking.
    Nothing is shared between processes.
    """

    def __init__(self) -> None:
        self._entries: dict[str, _Entry] = {}

    def _live(self, key: str) -> _Entry | None:
        entry = self._entries.get(key)
        if entry is not None and entry.expires_at is not None and entry.expires_at < time.time():
            del self._entries[key]
            return None
        return entry

    @staticmethod
    def _deadline(ttl_seconds: int) -> float | None:
        return time.time() + ttl_seconds if ttl_seconds > 0 else None

    async def get(self, key: str) -> str | None:
        """Cached value, or None when absent or expired."""
        entry = self._live(key)
        return entry.value if entry else None

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store a value; a TTL of 0 keeps it until cleared."""
        self._entries[key] = _Entry(value, self._deadline(ttl_seconds))

    async def increment(self, key: str) -> int | None:
        """Add one to a counter, starting at 1. None if the value is not numeric.

        The counter keeps its existing expiry.
        """
        entry = self._live(key)
        if entry is None:
            self._entries[key] = _Entry("1", None)
            return 1
        try:
            count = int(entry.value) + 1
        except ValueError:
            logger.warning("cache_increment_non_numeric", extra={"key": key})
            return None
        self._entries[key] = entry._replace(value=str(count))
        return count

    async def expire(self, key: str, ttl_seconds: int) -> bool:
        """Reset the TTL of a live key. False when the key is absent."""
        entry = self._live(key)
        if entry is None:
            return False
        self._entries[key] = entry._replace(expires_at=self._deadline(ttl_seconds))
        return True

    async def clear(self) -> None:
        """Drop every entry."""
        self._entries.clear()


# Global cache client instance
cache_client = InMemoryCache()
