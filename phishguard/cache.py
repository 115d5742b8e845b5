"""Unified caching abstraction for PhishGuard.

Provides consistent caching behavior across:
- Domain reputation lookups (1 hour)
- Full URL analyses (10 minutes)

Supports:
- In-memory caching with per-cache TTL
- Age-based sweeping independent of TTL (housekeeping)
- Predicate invalidation (e.g. every analysis of a blocked domain)
- Snapshot/restore for persistence
- Thread-safe operations
"""

import logging
import threading
import time
from typing import Any, Callable, Dict, Iterable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CacheEntry:
    """Represents a cached value with the time it was recorded."""

    __slots__ = ("value", "recorded_at")

    def __init__(self, value: Any, recorded_at: float):
        self.value = value
        self.recorded_at = recorded_at

    def age(self, now: float) -> float:
        return now - self.recorded_at

    def is_valid(self, ttl_seconds: float, now: float) -> bool:
        """An entry is valid iff it is younger than the TTL."""
        return self.age(now) < ttl_seconds


class CacheManager:
    """
    In-memory TTL cache.

    Entries are replaced whole under a lock, so concurrent writers for the
    same key resolve to the last write and readers never see a partial entry.

    Usage:
        cache = CacheManager(ttl_seconds=3600, namespace="reputation")

        cache.set("example.com", entry)
        cached = cache.get("example.com")
    """

    def __init__(
        self,
        ttl_seconds: float = 3600,
        namespace: str = "",
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize cache manager.

        Args:
            ttl_seconds: Validity window for entries
            namespace: Label used in logs and stats
            clock: Time source returning seconds (injectable for tests)
        """
        self.ttl_seconds = ttl_seconds
        self.namespace = namespace
        self._clock = clock

        self._memory: Dict[str, CacheEntry] = {}
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> Optional[Any]:
        """
        Get cached value if present and not expired.

        Expired entries are dropped on access.
        """
        now = self._clock()
        with self._lock:
            entry = self._memory.get(key)
            if entry is not None:
                if entry.is_valid(self.ttl_seconds, now):
                    self._hits += 1
                    return entry.value
                del self._memory[key]
            self._misses += 1
        return None

    def get_entry(self, key: str) -> Optional[CacheEntry]:
        """Return the raw entry regardless of expiry."""
        with self._lock:
            return self._memory.get(key)

    def set(self, key: str, value: Any) -> None:
        """Store value, overwriting any previous entry for the key."""
        entry = CacheEntry(value=value, recorded_at=self._clock())
        with self._lock:
            self._memory[key] = entry

    def delete(self, key: str) -> bool:
        """Delete cached value. Returns True if an entry was removed."""
        with self._lock:
            return self._memory.pop(key, None) is not None

    def invalidate(self, predicate: Callable[[str], bool]) -> int:
        """Delete every entry whose key matches predicate."""
        with self._lock:
            doomed = [k for k in self._memory if predicate(k)]
            for k in doomed:
                del self._memory[k]
        if doomed:
            logger.debug("Invalidated %d %s cache entries", len(doomed), self.namespace or "cache")
        return len(doomed)

    def sweep(self, max_age_seconds: float) -> int:
        """Evict entries older than max_age_seconds, whatever their TTL."""
        now = self._clock()
        with self._lock:
            doomed = [k for k, e in self._memory.items() if e.age(now) > max_age_seconds]
            for k in doomed:
                del self._memory[k]
        return len(doomed)

    def clear(self) -> None:
        """Clear all cached values."""
        with self._lock:
            self._memory.clear()

    def snapshot(self, serialize: Callable[[Any], Any] = lambda v: v) -> list[dict]:
        """Export entries as plain dicts for persistence."""
        with self._lock:
            return [
                {"key": key, "value": serialize(entry.value), "recorded_at": entry.recorded_at}
                for key, entry in self._memory.items()
            ]

    def restore(
        self,
        items: Iterable[dict],
        deserialize: Callable[[Any], Any] = lambda v: v,
    ) -> int:
        """Load entries from a snapshot, skipping expired or malformed ones."""
        now = self._clock()
        restored = 0
        with self._lock:
            for item in items or []:
                try:
                    key = str(item["key"])
                    entry = CacheEntry(deserialize(item["value"]), float(item["recorded_at"]))
                except (KeyError, TypeError, ValueError) as exc:
                    logger.debug("Skipping malformed %s cache item: %s", self.namespace, exc)
                    continue
                if not entry.is_valid(self.ttl_seconds, now):
                    continue
                self._memory[key] = entry
                restored += 1
        return restored

    def __len__(self) -> int:
        with self._lock:
            return len(self._memory)

    def stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        with self._lock:
            return {
                "namespace": self.namespace,
                "ttl_seconds": self.ttl_seconds,
                "entries": len(self._memory),
                "hits": self._hits,
                "misses": self._misses,
            }


# Convenience factory functions for the engine's caches


def create_reputation_cache(
    ttl_seconds: float = 3600,
    clock: Callable[[], float] = time.time,
) -> CacheManager:
    """Create cache for domain reputation lookups."""
    return CacheManager(ttl_seconds=ttl_seconds, namespace="reputation", clock=clock)


def create_analysis_cache(
    ttl_seconds: float = 600,
    clock: Callable[[], float] = time.time,
) -> CacheManager:
    """Create cache for full URL analyses."""
    return CacheManager(ttl_seconds=ttl_seconds, namespace="analysis", clock=clock)
