"""
Result Cache

In-memory, time-expiring key/value storage for read-heavy query results.

This module provides the cache interface consumed by the search and record
services together with a process-local implementation.

Design choices
--------------
- In-memory only (no persistence across process restarts).
- Absolute expiry per entry; an expired entry is a miss and is evicted on read.
- Values are replaced wholesale on `set`, never mutated in place.
- Thread-safe access using a re-entrant lock.
- The clock is injectable so expiry can be tested deterministically.
- Services receive a `Cache` instance instead of importing a module global,
  so a distributed implementation can be dropped in with the same interface.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from threading import RLock
from typing import Any, Callable, Dict, List, Optional, Protocol

logger = logging.getLogger("portal.cache")


class Cache(Protocol):
    """
    Minimal cache contract used by the services.

    `get` returns None on a miss; callers recompute and `set` explicitly.
    """

    def get(self, key: str) -> Optional[Any]: ...

    def set(self, key: str, value: Any, ttl_ms: int) -> None: ...

    def delete(self, key: str) -> bool: ...

    def delete_prefix(self, prefix: str) -> int: ...


# ---------------------------------------------------------------------
# Cache Keys
# ---------------------------------------------------------------------

class CacheKeys:
    """Key builders for every cached value in the portal."""

    SEARCH_FACETS = "search:facets"
    METADATA_PREFIX = "metadata:"

    @staticmethod
    def metadata_record(record_id: Any) -> str:
        return f"metadata:{record_id}"


# ---------------------------------------------------------------------
# In-memory implementation
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class CacheEntry:
    value: Any
    expires_at: float


class InMemoryCache:
    """
    Process-wide cache mapping string keys to values with an expiry time.

    Expiry timestamps are expressed in seconds of the injected clock
    (`time.monotonic` by default); TTLs are given in milliseconds.
    """

    def __init__(
        self,
        default_ttl_ms: int = 5 * 60 * 1000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store: Dict[str, CacheEntry] = {}
        self._lock = RLock()
        self._default_ttl_ms = default_ttl_ms
        self._clock = clock

    # ------------------------------------------------------------------
    # Core operations
    # ------------------------------------------------------------------

    def get(self, key: str) -> Optional[Any]:
        """
        Return the cached value for `key`, or None if absent or expired.
        """
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None

            if self._clock() >= entry.expires_at:
                del self._store[key]
                return None

            return entry.value

    def set(self, key: str, value: Any, ttl_ms: Optional[int] = None) -> None:
        """
        Store `value` under `key`, replacing any previous entry.

        Parameters
        ----------
        key : str
            Cache key.

        value : Any
            Value to cache. None cannot be cached because it signals a miss.

        ttl_ms : Optional[int]
            Time to live in milliseconds. Defaults to the instance default.
        """
        if value is None:
            return

        ttl = self._default_ttl_ms if ttl_ms is None else ttl_ms
        expires_at = self._clock() + ttl / 1000.0

        with self._lock:
            self._store[key] = CacheEntry(value=value, expires_at=expires_at)

    def delete(self, key: str) -> bool:
        """
        Remove a single key. Returns True if an entry was removed.
        """
        with self._lock:
            return self._store.pop(key, None) is not None

    def delete_prefix(self, prefix: str) -> int:
        """
        Remove every key starting with `prefix`. Returns the number removed.
        """
        with self._lock:
            doomed = [key for key in self._store if key.startswith(prefix)]
            for key in doomed:
                del self._store[key]
            return len(doomed)

    # ------------------------------------------------------------------
    # Utility operations
    # ------------------------------------------------------------------

    def has(self, key: str) -> bool:
        return self.get(key) is not None

    def cleanup(self) -> int:
        """
        Evict all expired entries. Returns the number evicted.
        """
        now = self._clock()
        with self._lock:
            expired = [key for key, entry in self._store.items() if now >= entry.expires_at]
            for key in expired:
                del self._store[key]

        if expired:
            logger.debug("Evicted %d expired cache entries", len(expired))
        return len(expired)

    def clear(self) -> None:
        """
        Remove all entries.

        Intended primarily for test setup/teardown or administrative resets.
        """
        with self._lock:
            self._store.clear()

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            keys: List[str] = list(self._store.keys())
        return {"size": len(keys), "keys": keys}

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)


# ---------------------------------------------------------------------
# Invalidation tracking
# ---------------------------------------------------------------------

class InvalidationTracker:
    """
    Counts invalidations per key scope.

    A reader takes `token(scope)` before recomputing a value and stores the
    result only if `is_current(scope, token)` still holds afterwards, so a
    recompute that overlapped an invalidation is returned but never cached.
    """

    def __init__(self) -> None:
        self._generations: Dict[str, int] = {}
        self._lock = RLock()

    def token(self, scope: str) -> int:
        with self._lock:
            return self._generations.get(scope, 0)

    def bump(self, scope: str) -> None:
        with self._lock:
            self._generations[scope] = self._generations.get(scope, 0) + 1

    def is_current(self, scope: str, token: int) -> bool:
        return self.token(scope) == token


# ---------------------------------------------------------------------
# Fail-open helpers
# ---------------------------------------------------------------------

def safe_get(cache: Cache, key: str) -> Optional[Any]:
    """
    Read through `cache`, treating any backend error as a miss.
    """
    try:
        return cache.get(key)
    except Exception:
        logger.exception("Cache read failed for key %s; treating as miss", key)
        return None


def safe_set(cache: Cache, key: str, value: Any, ttl_ms: int) -> None:
    try:
        cache.set(key, value, ttl_ms)
    except Exception:
        logger.exception("Cache write failed for key %s", key)


def safe_delete(cache: Cache, key: str) -> None:
    try:
        cache.delete(key)
    except Exception:
        logger.exception("Cache delete failed for key %s", key)


def safe_delete_prefix(cache: Cache, prefix: str) -> None:
    try:
        removed = cache.delete_prefix(prefix)
    except Exception:
        logger.exception("Cache prefix delete failed for %s", prefix)
        return
    logger.debug("Invalidated %d cache entries under %s", removed, prefix)
