"""Simple in-memory TTL cache.

Used for menu feeds, which are fetched from a remote spreadsheet and are
allowed to be a few minutes stale.
"""
import logging
import threading
import time
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class SimpleCache:
    """In-memory cache with TTL support and size limit."""

    MAX_ENTRIES = 1000

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._cache: dict = {}
        self._expiry: dict = {}
        self._clock = clock
        self._lock = threading.Lock()

    def _evict_expired(self):
        now = self._clock()
        expired = [k for k, exp in self._expiry.items() if exp <= now]
        for k in expired:
            self._cache.pop(k, None)
            self._expiry.pop(k, None)

    def get(self, key: str) -> Optional[Any]:
        """Get value from cache if not expired."""
        with self._lock:
            if key in self._cache:
                if self._clock() < self._expiry.get(key, 0):
                    return self._cache[key]
                del self._cache[key]
                del self._expiry[key]
            return None

    def set(self, key: str, value: Any, ttl_seconds: int = 300):
        """Set value in cache with TTL."""
        with self._lock:
            if len(self._cache) >= self.MAX_ENTRIES:
                self._evict_expired()
            if len(self._cache) >= self.MAX_ENTRIES:
                oldest_keys = sorted(self._expiry, key=self._expiry.get)[:100]
                for k in oldest_keys:
                    self._cache.pop(k, None)
                    self._expiry.pop(k, None)
                logger.debug(f"Cache full, evicted {len(oldest_keys)} oldest entries")
            self._cache[key] = value
            self._expiry[key] = self._clock() + ttl_seconds

    def delete(self, key: str):
        with self._lock:
            self._cache.pop(key, None)
            self._expiry.pop(key, None)

    def clear_prefix(self, prefix: str):
        """Clear all keys with given prefix."""
        with self._lock:
            for key in [k for k in self._cache if k.startswith(prefix)]:
                self._cache.pop(key, None)
                self._expiry.pop(key, None)

    def clear(self):
        with self._lock:
            self._cache.clear()
            self._expiry.clear()
