"""
QueryAggregator - Multi-Source Search, Merging and Ranking

Pipeline for one query:
1. Cache lookup
2. Query expansion
3. Concurrent fan-out: every term × every source adapter
4. Deduplication by normalized title (keep-first)
5. Source balancing so no single provider dominates
6. Scoring and ranking
7. Truncate, cache, return

Architecture Decision:
    Deduplication, balancing and scoring are pure functions over
    PaperRecord lists so they can be tested without any network.
    Only ``aggregate()`` touches adapters, the expander and the cache.

Example:
    >>> aggregator = QueryAggregator(adapters, expander, cache)
    >>> papers = await aggregator.aggregate("protein folding", target_count=20)
"""

from __future__ import annotations

import dataclasses
import logging
import math
import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from scholar_qa.domain.entities import PaperRecord
from scholar_qa.shared.async_utils import gather_with_errors, timeout_with_fallback
from scholar_qa.shared.exceptions import SourceUnavailableError

if TYPE_CHECKING:
    from scholar_qa.infrastructure.cache import QueryCache
    from scholar_qa.infrastructure.sources import BaseSourceAdapter

    from .query_expander import QueryExpander

logger = logging.getLogger(__name__)


# =============================================================================
# Configuration
# =============================================================================


@dataclass(frozen=True)
class RankingConfig:
    """Weights of the additive relevance score."""

    recency_window: int = 5  # years until the recency bonus reaches 0
    citation_factor: float = 2.0
    citation_cap: float = 10.0
    title_match_bonus: float = 5.0
    abstract_match_bonus: float = 3.0
    abstract_bonus: float = 2.0
    cited_bonus: float = 1.0
    authors_bonus: float = 2.0


@dataclass
class AggregationStats:
    """Statistics from the last aggregation run."""

    total_input: int = 0
    unique_papers: int = 0
    duplicates_removed: int = 0
    returned: int = 0
    by_source: dict[str, int] = field(default_factory=dict)
    failed_calls: int = 0
    terms: list[str] = field(default_factory=list)
    cache_hit: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "total_input": self.total_input,
            "unique_papers": self.unique_papers,
            "duplicates_removed": self.duplicates_removed,
            "returned": self.returned,
            "by_source": self.by_source,
            "failed_calls": self.failed_calls,
            "terms": self.terms,
            "cache_hit": self.cache_hit,
        }


# =============================================================================
# Pure helpers
# =============================================================================


def normalize_title(title: str) -> str:
    """Lowercase, drop punctuation, collapse whitespace."""
    if not title:
        return ""
    title = title.lower()
    title = re.sub(r"[^\w\s]", "", title)
    return re.sub(r"\s+", " ", title).strip()


def deduplicate(papers: Sequence[PaperRecord]) -> list[PaperRecord]:
    """
    Drop papers whose normalized title contains, or is contained in, the
    title of a paper kept earlier. Keep-first, so the result is idempotent.

    Untitled or punctuation-only titles never match anything.
    """
    kept: list[PaperRecord] = []
    kept_titles: list[str] = []

    for paper in papers:
        title = "" if paper.is_untitled else normalize_title(paper.title)
        if title and any(title in other or other in title for other in kept_titles):
            continue
        kept.append(paper)
        if title:
            kept_titles.append(title)

    return kept


def balance_sources(papers: Sequence[PaperRecord], target_count: int) -> list[PaperRecord]:
    """
    Cap each source's share, then top up by citation count.

    First pass keeps up to ``ceil(target_count / n_sources)`` per source in
    arrival order. If that leaves the list short of ``target_count``, the
    leftovers of all sources are added most-cited first.
    """
    if not papers or target_count <= 0:
        return []

    by_source: dict[str, list[PaperRecord]] = {}
    for paper in papers:
        by_source.setdefault(paper.source, []).append(paper)

    per_source = math.ceil(target_count / len(by_source))
    selected: list[PaperRecord] = []
    leftovers: list[PaperRecord] = []
    for group in by_source.values():
        selected.extend(group[:per_source])
        leftovers.extend(group[per_source:])

    if len(selected) < target_count and leftovers:
        leftovers.sort(key=lambda p: p.citation_count, reverse=True)
        selected.extend(leftovers[: target_count - len(selected)])

    return selected


def score(
    paper: PaperRecord,
    query: str,
    config: RankingConfig | None = None,
    current_year: int | None = None,
) -> float:
    """Additive relevance score: recency, citations, query match, completeness."""
    config = config or RankingConfig()
    current_year = current_year or datetime.now(timezone.utc).year
    total = 0.0

    # Recency (a future year counts as the current one)
    if paper.has_year:
        years_old = max(0, current_year - int(paper.year))
        total += max(0, config.recency_window - years_old)

    # Citations (log-damped, capped)
    total += min(config.citation_factor * math.log1p(paper.citation_count), config.citation_cap)

    # Query match
    needle = query.lower().strip()
    if needle:
        if needle in paper.title.lower():
            total += config.title_match_bonus
        if paper.has_abstract and needle in paper.abstract.lower():
            total += config.abstract_match_bonus

    # Completeness
    if paper.has_abstract:
        total += config.abstract_bonus
    if paper.citation_count > 0:
        total += config.cited_bonus
    if paper.authors:
        total += config.authors_bonus

    return total


def rank(papers: Sequence[PaperRecord], query: str, config: RankingConfig | None = None) -> list[PaperRecord]:
    """Score every paper and sort best-first (stable for ties)."""
    current_year = datetime.now(timezone.utc).year
    scored = [
        dataclasses.replace(p, relevance_score=score(p, query, config, current_year))
        for p in papers
    ]
    scored.sort(key=lambda p: p.relevance_score, reverse=True)
    return scored


# =============================================================================
# QueryAggregator
# =============================================================================


class QueryAggregator:
    """Fan a query out to every source and return one ranked list."""

    def __init__(
        self,
        adapters: Sequence[BaseSourceAdapter],
        expander: QueryExpander,
        cache: QueryCache,
        cache_ttl: float | None = None,
        search_timeout: float = 30.0,
        ranking: RankingConfig | None = None,
    ) -> None:
        self._adapters = list(adapters)
        self._expander = expander
        self._cache = cache
        self._cache_ttl = cache_ttl
        self._search_timeout = search_timeout
        self._ranking = ranking or RankingConfig()
        self._last_stats = AggregationStats()

    @property
    def last_stats(self) -> AggregationStats:
        """
        Stats of the most recent ``aggregate()`` call, for logs and tests.

        The aggregator is shared across requests, so under concurrent load
        this belongs to whichever call started last. Do not read it to
        describe a specific request.
        """
        return self._last_stats

    @property
    def source_names(self) -> list[str]:
        return [a.source_name for a in self._adapters]

    async def aggregate(self, query: str, target_count: int = 20) -> list[PaperRecord]:
        """
        Ranked, deduplicated, source-balanced papers for ``query``.

        Raises:
            SourceUnavailableError: every adapter call failed
        """
        stats = AggregationStats()
        self._last_stats = stats

        cached = self._cache.get(query)
        if cached is not None:
            logger.info(f"Cache hit for '{query}' ({len(cached)} papers)")
            stats.cache_hit = True
            stats.returned = len(cached)
            return cached[:target_count]

        terms = await self._expander.expand(query)
        stats.terms = terms
        per_call = max(1, math.ceil(target_count / len(terms)))

        raw = await self._search_all(terms, per_call, stats)
        stats.total_input = len(raw)
        for paper in raw:
            stats.by_source[paper.source] = stats.by_source.get(paper.source, 0) + 1

        unique = deduplicate(raw)
        stats.unique_papers = len(unique)
        stats.duplicates_removed = len(raw) - len(unique)

        balanced = balance_sources(unique, target_count)
        ranked = rank(balanced, query, self._ranking)[:target_count]
        stats.returned = len(ranked)

        self._cache.put(query, ranked, self._cache_ttl)
        logger.info(
            f"Aggregated '{query}': {stats.total_input} raw, {stats.unique_papers} unique, "
            f"{stats.returned} returned, {stats.failed_calls} failed calls"
        )
        return ranked

    async def _search_all(self, terms: list[str], per_call: int, stats: AggregationStats) -> list[PaperRecord]:
        calls = [(term, adapter) for term in terms for adapter in self._adapters]
        results = await gather_with_errors(
            *(self._search_one(adapter, term, per_call) for term, adapter in calls),
            return_exceptions=True,
        )

        papers: list[PaperRecord] = []
        for (term, adapter), result in zip(calls, results, strict=True):
            if isinstance(result, BaseException):
                stats.failed_calls += 1
                logger.warning(f"{adapter.source_name} failed for '{term}': {result}")
                continue
            papers.extend(result)

        if calls and stats.failed_calls == len(calls):
            raise SourceUnavailableError("All academic sources failed", source="all")
        return papers

    async def _search_one(self, adapter: BaseSourceAdapter, term: str, limit: int) -> list[PaperRecord]:
        def on_timeout() -> list[PaperRecord]:
            raise SourceUnavailableError(f"Timed out after {self._search_timeout}s", source=adapter.source_name)

        return await timeout_with_fallback(adapter.search(term, limit), self._search_timeout, on_timeout)
