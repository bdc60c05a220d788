"""
QueryCache - ranked search results keyed by normalized query text.

Backed by ``cachetools.TLRUCache``: the entry's own ``ttl`` decides when it
expires, and the least recently used entry is evicted once ``max_size`` is
reached. Entries are frozen tuples; a second ``put`` on the same query
replaces the entry (last writer wins).
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable
from dataclasses import dataclass

from cachetools import TLRUCache

from scholar_qa.domain.entities import PaperRecord

logger = logging.getLogger(__name__)


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    expirations: int = 0

    @property
    def hit_rate(self) -> float:
        """Share of lookups served from the cache (0.0 when none yet)."""
        lookups = self.hits + self.misses
        return self.hits / lookups if lookups else 0.0


@dataclass(frozen=True, slots=True)
class CachedResult:
    papers: tuple[PaperRecord, ...]
    ttl: float
    created_at: float


def _expires_at(_query: str, entry: CachedResult, now: float) -> float:
    return now + entry.ttl


class QueryCache:
    """
    Process-wide cache shared by every request.

    Example:
        cache = QueryCache(max_size=512, default_ttl=3600)
        cache.put("CRISPR off-target", papers)
        cache.get("  crispr off-target ")  # same entry
    """

    def __init__(self, max_size: int = 512, default_ttl: float = 3600.0) -> None:
        self._default_ttl = default_ttl
        self._entries: TLRUCache[str, CachedResult] = TLRUCache(
            maxsize=max_size,
            ttu=_expires_at,
            timer=time.monotonic,
        )
        self.stats = CacheStats()

    @staticmethod
    def normalize_key(query: str) -> str:
        return query.strip().lower()

    def get(self, query: str) -> list[PaperRecord] | None:
        """A new list of the cached papers, or None when absent or expired."""
        entry = self._entries.get(self.normalize_key(query))
        if entry is None:
            self.stats.misses += 1
            return None
        self.stats.hits += 1
        return list(entry.papers)

    def put(self, query: str, papers: Iterable[PaperRecord], ttl: float | None = None) -> None:
        """Store ``papers`` for ``query``; ``ttl`` defaults to the cache-wide value."""
        key = self.normalize_key(query)
        entry = CachedResult(
            papers=tuple(papers),
            ttl=self._default_ttl if ttl is None else ttl,
            created_at=time.time(),
        )
        self._entries[key] = entry
        logger.debug(f"Cached {len(entry.papers)} papers for '{key}' (ttl={entry.ttl}s)")

    def invalidate(self, query: str) -> bool:
        """Drop one query's entry. False when there was none."""
        return self._entries.pop(self.normalize_key(query), None) is not None

    def invalidate_expired(self) -> int:
        """Purge expired entries now instead of on next access; returns how many."""
        expired = self._entries.expire() or []
        self.stats.expirations += len(expired)
        return len(expired)

    def clear(self) -> int:
        count = len(self._entries)
        self._entries.clear()
        return count

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, query: str) -> bool:
        return self.normalize_key(query) in self._entries
