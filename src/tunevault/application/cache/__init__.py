"""In-process caches for catalog responses."""

from .base_cache import BaseCache, CacheEntry, InMemoryCache

__all__ = ["BaseCache", "CacheEntry", "InMemoryCache"]
