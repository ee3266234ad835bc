"""Thread-safe key/value cache with optional expiry and size bound."""

import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any


@dataclass
class CacheEntry:
    """A cached value."""

    value: Any
    expires_at: float | None


class TTLCache:
    """Small in-memory cache shared between poll workers.

    Expired entries are dropped when read. When ``max_entries`` is exceeded
    the oldest insertion is evicted.
    """

    def __init__(
        self,
        ttl_seconds: float | None = None,
        max_entries: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the cache.

        Args:
            ttl_seconds: Entry lifetime, or None to keep entries forever.
            max_entries: Size bound, or None for unbounded.
            clock: Time source (injectable for tests).
        """
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: str) -> Any | None:
        """Get a value if present and not expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None

            if entry.expires_at is not None and self._clock() >= entry.expires_at:
                del self._entries[key]
                return None

            return entry.value

    def set(self, key: str, value: Any) -> None:
        """Store a value, evicting the oldest entries past the size bound."""
        expires_at = None
        if self.ttl_seconds is not None:
            expires_at = self._clock() + self.ttl_seconds

        with self._lock:
            self._entries.pop(key, None)
            self._entries[key] = CacheEntry(value=value, expires_at=expires_at)

            if self.max_entries is not None:
                while len(self._entries) > self.max_entries:
                    self._entries.popitem(last=False)

    def invalidate(self, key: str) -> bool:
        """Remove one entry.

        Returns:
            True if the key was present.
        """
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        """Remove all entries."""
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
