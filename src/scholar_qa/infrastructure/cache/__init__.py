"""
Cache infrastructure.

- QueryCache: TTL cache of ranked search results keyed by query text
"""

from .query_cache import CachedResult, CacheStats, QueryCache

__all__ = ["CacheStats", "CachedResult", "QueryCache"]
