"""Lightweight in-memory TTL cache for the homestead budget web app.

Rendered summaries and phase budgets are cached per input key so repeated
page views skip re-aggregation.  Keys include the project load sequence, so a
refresh naturally stops hitting stale entries.
"""

import time
import threading
from typing import Any, Callable


class TTLCache:
    """Thread-safe in-memory cache with time-to-live (TTL) expiry.

    Entries expire after ``ttl_seconds`` seconds. A maximum of ``maxsize``
    entries are retained; when the cache is full the entry closest to expiry
    is evicted.

    Usage::

        cache = TTLCache(maxsize=64, ttl_seconds=300)
        summary = cache.get_or_set(("summary", seq), lambda: build_summary())
    """

    def __init__(self, maxsize: int = 128, ttl_seconds: float = 300.0) -> None:
        self._maxsize = maxsize
        self._ttl = ttl_seconds
        # key -> (value, expires_at)
        self._store: dict[Any, tuple[Any, float]] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def _lookup(self, key: Any) -> tuple[bool, Any]:
        # Caller holds the lock
        entry = self._store.get(key)
        if entry is None:
            self._misses += 1
            return False, None
        value, expires_at = entry
        if time.monotonic() > expires_at:
            del self._store[key]
            self._misses += 1
            return False, None
        self._hits += 1
        return True, value

    def _insert(self, key: Any, value: Any) -> None:
        # Caller holds the lock
        if key not in self._store and len(self._store) >= self._maxsize:
            soonest = min(self._store, key=lambda k: self._store[k][1])
            del self._store[soonest]
        self._store[key] = (value, time.monotonic() + self._ttl)

    def get(self, key: Any) -> Any | None:
        """Return cached value for *key*, or ``None`` if absent or expired."""
        with self._lock:
            return self._lookup(key)[1]

    def set(self, key: Any, value: Any) -> None:
        """Store *value* under *key* with the configured TTL."""
        with self._lock:
            self._insert(key, value)

    def get_or_set(self, key: Any, factory: Callable[[], Any]) -> Any:
        """Return the cached value for *key*, computing it with *factory* on a miss.

        The factory runs outside the lock; if two callers race on the same
        key the later result wins, which is harmless for pure computations.
        """
        with self._lock:
            found, value = self._lookup(key)
        if found:
            return value
        value = factory()
        with self._lock:
            self._insert(key, value)
        return value

    def clear(self) -> None:
        """Remove all entries and reset the hit/miss counters."""
        with self._lock:
            self._store.clear()
            self._hits = 0
            self._misses = 0

    def stats(self) -> dict[str, int]:
        """Return ``hits``, ``misses`` and live ``size``."""
        with self._lock:
            now = time.monotonic()
            expired = [k for k, (_, exp) in self._store.items() if now > exp]
            for k in expired:
                del self._store[k]
            return {
                "hits": self._hits,
                "misses": self._misses,
                "size": len(self._store),
            }
