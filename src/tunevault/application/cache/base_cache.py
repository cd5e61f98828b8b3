"""Cache interface and TTL-based in-memory implementation."""

import asyncio
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TypeVar

K = TypeVar("K")  # Key type
V = TypeVar("V")  # Value type


@dataclass
class CacheEntry[V]:
    """Cached value plus the moment it was stored."""

    value: V
    created_at: float
    ttl_seconds: int

    # Wall-clock based. A backwards clock jump makes entries live a bit longer, harmless for
    # catalog data that changes on a scale of days.
    def is_expired(self) -> bool:
        """Check if cache entry is expired."""
        return time.time() > (self.created_at + self.ttl_seconds)


class BaseCache[K, V](ABC):
    """Base cache interface."""

    @abstractmethod
    async def get(self, key: K) -> V | None:
        """Get value from cache.

        Args:
            key: Cache key

        Returns:
            Cached value if found and not expired, None otherwise
        """
        pass

    @abstractmethod
    async def set(self, key: K, value: V, ttl_seconds: int = 3600) -> None:
        """Store value under key for ttl_seconds."""
        pass

    @abstractmethod
    async def cleanup_expired(self) -> int:
        """Drop every expired entry.

        Returns:
            Number of entries removed
        """
        pass


class InMemoryCache(BaseCache[K, V]):
    """Dictionary-backed cache guarded by an asyncio lock.

    Process-local: a restart starts cold, and two worker processes keep two
    caches. Good enough for release lookups, which repeat heavily within one
    scan (re-scans of the same library ask for the same releases again).
    """

    # Hey future me, every touch of self._cache goes through the lock. get() mutates too (it evicts
    # expired entries), so don't be fooled by the name into skipping the lock there.
    def __init__(self) -> None:
        """Initialize in-memory cache."""
        self._cache: dict[K, CacheEntry[V]] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: K) -> V | None:
        """Get value from cache, evicting it when expired."""
        async with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                return None

            if entry.is_expired():
                del self._cache[key]
                return None

            return entry.value

    async def set(self, key: K, value: V, ttl_seconds: int = 3600) -> None:
        """Store value, overwriting any existing entry."""
        async with self._lock:
            self._cache[key] = CacheEntry(
                value=value,
                created_at=time.time(),
                ttl_seconds=ttl_seconds,
            )

    async def cleanup_expired(self) -> int:
        """Remove expired entries in bulk.

        Returns:
            Number of entries removed
        """
        async with self._lock:
            expired_keys = [
                key for key, entry in self._cache.items() if entry.is_expired()
            ]
            for key in expired_keys:
                del self._cache[key]
            return len(expired_keys)
