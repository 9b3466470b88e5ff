"""
Per-query response cache.

Adapters and the citation-metrics provider receive a ``QueryCache`` instead
of reaching for module-level state. ``TTLQueryCache`` wraps
``cachetools.TTLCache`` (LRU eviction plus time-based expiry);
``NullQueryCache`` stores nothing and is the default in tests.

Writes are idempotent and last-writer-wins: two concurrent requests with the
same query signature may both fetch and both write, which is harmless, so no
lock is taken.
"""

import logging
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from cachetools import TTLCache

logger = logging.getLogger(__name__)


@runtime_checkable
class QueryCache(Protocol):
    """Minimal get/set/expire contract."""

    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any) -> None: ...

    def expire(self, key: str) -> bool: ...


@dataclass
class CacheStats:
    """Cache statistics."""

    hits: int = 0
    misses: int = 0
    expirations: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "expirations": self.expirations,
            "hit_rate": round(self.hit_rate, 3),
        }


class TTLQueryCache:
    """
    In-memory TTL cache keyed by query signature.

    Example:
        cache = TTLQueryCache(maxsize=512, ttl=300)
        cache.set("pubmed|diabetes|1|25", result)
        cache.get("pubmed|diabetes|1|25")
    """

    def __init__(self, maxsize: int = 512, ttl: float = 300.0):
        self._cache: TTLCache[str, Any] = TTLCache(maxsize=maxsize, ttl=ttl)
        self._stats = CacheStats()

    @property
    def stats(self) -> CacheStats:
        return self._stats

    def get(self, key: str) -> Any | None:
        try:
            value = self._cache[key]
        except KeyError:
            self._stats.misses += 1
            return None
        self._stats.hits += 1
        return value

    def set(self, key: str, value: Any) -> None:
        self._cache[key] = value

    def expire(self, key: str) -> bool:
        """Drop one entry; returns True if it was present."""
        try:
            del self._cache[key]
        except KeyError:
            return False
        self._stats.expirations += 1
        return True

    def cleanup_expired(self) -> int:
        """Purge entries whose TTL elapsed. TTLCache otherwise expires lazily."""
        removed = len(self._cache.expire())
        self._stats.expirations += removed
        if removed:
            logger.debug(f"Purged {removed} expired cache entries")
        return removed

    def clear(self) -> int:
        count = len(self._cache)
        self._cache.clear()
        return count

    def __len__(self) -> int:
        return len(self._cache)

    def __contains__(self, key: str) -> bool:
        return key in self._cache


class NullQueryCache:
    """Cache that never stores anything."""

    def get(self, key: str) -> Any | None:
        return None

    def set(self, key: str, value: Any) -> None:
        return None

    def expire(self, key: str) -> bool:
        return False
