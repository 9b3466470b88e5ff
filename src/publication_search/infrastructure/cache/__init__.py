"""Caching layer."""

from .query_cache import CacheStats, NullQueryCache, QueryCache, TTLQueryCache

__all__ = ["QueryCache", "TTLQueryCache", "NullQueryCache", "CacheStats"]
