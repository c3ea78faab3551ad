"""
Response Cache Implementation

Thread-safe in-memory storage for proxied upstream responses.

Features:
- Thread-safe operations with Lock
- TTL-based expiration with per-entry override
- LRU eviction when max entries exceeded
- Content-agnostic values (image bytes, time-list records)
"""

import time
import logging
from collections import OrderedDict
from dataclasses import dataclass
from threading import Lock
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """
    Cache entry data structure
    """
    key: str                 # Canonical upstream URL or namespaced key
    value: Any               # Stored payload
    inserted_at: float       # Clock reading when written
    ttl: float               # Time to live in seconds

    def is_expired(self, now: float) -> bool:
        """Check if this entry has expired at the given clock reading"""
        return now - self.inserted_at >= self.ttl


class ResponseCache:
    """
    Bounded, time-expiring key/value store shared by the proxy operations.

    Recency is tracked by an OrderedDict: the first entry is always the
    least recently read or written.
    """

    def __init__(
        self,
        max_entries: int = 500,
        default_ttl: float = 120.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize response cache

        Args:
            max_entries: Maximum number of live entries to keep
            default_ttl: Default time-to-live in seconds
            clock: Monotonic time source, injectable for tests
        """
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        if default_ttl <= 0:
            raise ValueError("default_ttl must be positive")

        self._store: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = Lock()
        self._max_entries = max_entries
        self._default_ttl = default_ttl
        self._clock = clock
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    @property
    def max_entries(self) -> int:
        return self._max_entries

    @property
    def default_ttl(self) -> float:
        return self._default_ttl

    def get(self, key: str) -> Optional[Any]:
        """
        Get cached value by key

        Returns:
            Stored value if present and not expired, None otherwise
        """
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                self._misses += 1
                return None

            if entry.is_expired(self._clock()):
                del self._store[key]
                self._misses += 1
                return None

            self._store.move_to_end(key)
            self._hits += 1
            return entry.value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """
        Store a value

        Args:
            key: Cache key
            value: Payload, stored as-is
            ttl: Optional TTL in seconds overriding the default
        """
        if ttl is not None and ttl <= 0:
            raise ValueError("ttl must be positive")

        with self._lock:
            now = self._clock()
            self._store.pop(key, None)
            self._cleanup_expired(now)

            while len(self._store) >= self._max_entries:
                evicted_key, _ = self._store.popitem(last=False)
                self._evictions += 1
                logger.debug(f"[ResponseCache] LRU evicted: {evicted_key[:60]}...")

            self._store[key] = CacheEntry(
                key=key,
                value=value,
                inserted_at=now,
                ttl=ttl if ttl is not None else self._default_ttl,
            )

    def delete(self, key: str) -> bool:
        """
        Delete cache entry

        Returns:
            True if deleted, False if not found
        """
        with self._lock:
            return self._store.pop(key, None) is not None

    def clear(self) -> int:
        """
        Clear all cache entries

        Returns:
            Number of entries deleted
        """
        with self._lock:
            count = len(self._store)
            self._store.clear()
            return count

    def cleanup_expired(self) -> int:
        """
        Remove all expired entries

        Returns:
            Number of entries removed
        """
        with self._lock:
            removed = self._cleanup_expired(self._clock())
        if removed:
            logger.info(f"[ResponseCache] Cleaned up {removed} expired entries")
        return removed

    def stats(self) -> Dict[str, Any]:
        """
        Get cache statistics
        """
        with self._lock:
            now = self._clock()
            live = sum(1 for e in self._store.values() if not e.is_expired(now))
            lookups = self._hits + self._misses
            return {
                "total_entries": len(self._store),
                "live_entries": live,
                "max_entries": self._max_entries,
                "default_ttl_seconds": self._default_ttl,
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
                "hit_rate": round(self._hits / lookups, 3) if lookups else 0.0,
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            entry = self._store.get(key)  # type: ignore[arg-type]
            return entry is not None and not entry.is_expired(self._clock())

    def _cleanup_expired(self, now: float) -> int:
        """
        Remove expired entries (internal, assumes lock held)

        Returns:
            Number of entries removed
        """
        expired = [k for k, v in self._store.items() if v.is_expired(now)]
        for k in expired:
            del self._store[k]
        return len(expired)
