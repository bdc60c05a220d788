"""Tests for QueryAggregator and its pure ranking helpers."""

from __future__ import annotations

import asyncio
import math

import pytest

from scholar_qa.application.search import (
    QueryAggregator,
    balance_sources,
    deduplicate,
    normalize_title,
    rank,
    score,
)
from scholar_qa.domain.entities import NO_ABSTRACT, UNKNOWN_YEAR, UNTITLED
from scholar_qa.shared.exceptions import SourceUnavailableError

# ============================================================
# Deduplication
# ============================================================


class TestDeduplicate:
    def test_normalize_title(self):
        assert normalize_title("  Deep-Learning:  for X! ") == "deeplearning for x"

    def test_case_and_punctuation_duplicates(self, make_paper):
        first = make_paper(title="Deep Learning for X", source="Semantic Scholar")
        second = make_paper(title="deep learning for x!", source="arXiv")

        assert deduplicate([first, second]) == [first]

    def test_substring_containment(self, make_paper):
        short = make_paper(title="Graph neural networks")
        longer = make_paper(title="Graph Neural Networks: A Review of Methods and Applications")

        assert deduplicate([short, longer]) == [short]
        assert deduplicate([longer, short]) == [longer]

    def test_untitled_never_match(self, make_paper):
        papers = [make_paper(title=UNTITLED), make_paper(title=UNTITLED), make_paper(title="!!!")]

        assert len(deduplicate(papers)) == 3

    def test_idempotent(self, make_paper):
        papers = [
            make_paper(title="Deep Learning for X"),
            make_paper(title="deep learning for x!"),
            make_paper(title="Learning"),
            make_paper(title="Something else entirely"),
            make_paper(title="Deep learning"),
        ]

        once = deduplicate(papers)
        assert deduplicate(once) == once


# ============================================================
# Source balancing
# ============================================================


class TestBalanceSources:
    def test_minority_source_survives(self, make_paper):
        majority = [make_paper(source="Semantic Scholar", citation_count=1000) for _ in range(90)]
        minority = [make_paper(source="arXiv", citation_count=0) for _ in range(10)]

        result = balance_sources(majority + minority, 20)

        assert len(result) == 20
        assert sum(p.source == "arXiv" for p in result) == 10

    def test_tops_up_by_citations(self, make_paper):
        a = [make_paper(source="A", citation_count=c) for c in (1, 50, 3, 40)]
        b = [make_paper(source="B", citation_count=0)]

        result = balance_sources(a + b, 4)

        # per source = 2 → a[0], a[1], b[0]; then the most-cited leftover a[3]
        assert result == [a[0], a[1], b[0], a[3]]

    def test_empty(self):
        assert balance_sources([], 20) == []


# ============================================================
# Scoring
# ============================================================


class TestScore:
    def test_components(self, make_paper):
        paper = make_paper(
            title="Advances in protein folding",
            abstract="We study protein folding in vivo.",
            authors=("A B",),
            year="2023",
            citation_count=0,
        )
        # recency 4 + citations 0 + title 5 + abstract 3 + abstract present 2 + authors 2
        assert score(paper, "Protein Folding", current_year=2024) == pytest.approx(16.0)

    def test_citations_capped(self, make_paper):
        paper = make_paper(title="t", abstract=NO_ABSTRACT, authors=(), year=UNKNOWN_YEAR, citation_count=100_000)
        # citations 10 (capped) + cited 1
        assert score(paper, "zzz", current_year=2024) == pytest.approx(11.0)

    def test_log_citations(self, make_paper):
        paper = make_paper(title="t", abstract=NO_ABSTRACT, authors=(), year=UNKNOWN_YEAR, citation_count=9)
        assert score(paper, "zzz", current_year=2024) == pytest.approx(2 * math.log(10) + 1)

    def test_old_paper_no_recency(self, make_paper):
        paper = make_paper(title="t", abstract=NO_ABSTRACT, authors=(), year="1990", citation_count=0)
        assert score(paper, "zzz", current_year=2024) == 0.0

    def test_future_year_gets_full_recency_only(self, make_paper):
        paper = make_paper(title="t", abstract=NO_ABSTRACT, authors=(), year="9999", citation_count=0)
        assert score(paper, "zzz", current_year=2026) == 5.0

    def test_future_year_does_not_outrank_good_match(self, make_paper):
        junk = make_paper(title="unrelated", abstract=NO_ABSTRACT, authors=(), year="9999", citation_count=0)
        good = make_paper(title="sleep and memory", abstract="sleep memory consolidation", year="2024", citation_count=300)

        ranked = rank([junk, good], "sleep")

        assert ranked[0].id == good.id

    def test_rank_sorts_descending_and_sets_score(self, make_paper):
        weak = make_paper(title="unrelated", citation_count=0, authors=())
        strong = make_paper(title="crispr screens", citation_count=500)

        ranked = rank([weak, strong], "crispr")

        assert ranked[0].id == strong.id
        assert ranked[0].relevance_score > ranked[1].relevance_score
        assert weak.relevance_score == 0.0


# ============================================================
# Aggregation
# ============================================================


class TestQueryAggregator:
    @pytest.mark.asyncio
    async def test_fan_out_per_term_and_source(self, adapter_factory, static_expander, query_cache, make_paper):
        static_expander.terms = ["q", "q alt", "q other"]
        s2 = adapter_factory("Semantic Scholar", [make_paper(source="Semantic Scholar") for _ in range(10)])
        arxiv = adapter_factory("arXiv", [make_paper(source="arXiv") for _ in range(10)])
        aggregator = QueryAggregator([s2, arxiv], static_expander, query_cache)

        papers = await aggregator.aggregate("q", target_count=20)

        # ceil(20 / 3) per call, one call per term × adapter
        assert s2.calls == [("q", 7), ("q alt", 7), ("q other", 7)]
        assert len(arxiv.calls) == 3
        assert len(papers) <= 20
        assert aggregator.last_stats.terms == ["q", "q alt", "q other"]
        assert aggregator.last_stats.duplicates_removed > 0

    @pytest.mark.asyncio
    async def test_single_source_failure_is_absorbed(self, adapter_factory, static_expander, query_cache, make_paper):
        ok = adapter_factory("arXiv", [make_paper(source="arXiv")])
        broken = adapter_factory("CORE", error=SourceUnavailableError("down", source="CORE"))
        aggregator = QueryAggregator([ok, broken], static_expander, query_cache)

        papers = await aggregator.aggregate("q", target_count=5)

        assert len(papers) == 1
        assert aggregator.last_stats.failed_calls == 1

    @pytest.mark.asyncio
    async def test_all_sources_failed(self, adapter_factory, static_expander, query_cache):
        adapters = [
            adapter_factory("arXiv", error=SourceUnavailableError("down", source="arXiv")),
            adapter_factory("CORE", error=RuntimeError("boom")),
        ]
        aggregator = QueryAggregator(adapters, static_expander, query_cache)

        with pytest.raises(SourceUnavailableError, match="All academic sources failed"):
            await aggregator.aggregate("q", target_count=5)
        assert "q" not in query_cache

    @pytest.mark.asyncio
    async def test_zero_results_is_not_failure(self, adapter_factory, static_expander, query_cache):
        aggregator = QueryAggregator([adapter_factory("arXiv", [])], static_expander, query_cache)

        assert await aggregator.aggregate("q", target_count=5) == []

    @pytest.mark.asyncio
    async def test_timeout_counts_as_failure(self, adapter_factory, static_expander, query_cache, make_paper):
        class SlowAdapter:
            source_name = "Slow"

            async def search(self, query, limit):
                await asyncio.sleep(1)
                return []

        fast = adapter_factory("arXiv", [make_paper(source="arXiv")])
        aggregator = QueryAggregator([SlowAdapter(), fast], static_expander, query_cache, search_timeout=0.01)

        papers = await aggregator.aggregate("q", target_count=5)

        assert len(papers) == 1
        assert aggregator.last_stats.failed_calls == 1

    @pytest.mark.asyncio
    async def test_results_cached(self, adapter_factory, static_expander, query_cache, make_paper):
        adapter = adapter_factory("arXiv", [make_paper(source="arXiv")])
        aggregator = QueryAggregator([adapter], static_expander, query_cache)

        first = await aggregator.aggregate("Protein Folding", target_count=5)
        second = await aggregator.aggregate("  protein folding ", target_count=5)

        assert first == second
        assert len(adapter.calls) == 1
        assert aggregator.last_stats.cache_hit is True

    @pytest.mark.asyncio
    async def test_twelve_unique_from_thirty_raw(self, adapter_factory, static_expander, query_cache, make_paper):
        titles = [f"Unique study {chr(65 + i)} of sleep" for i in range(12)]
        sources = ["Semantic Scholar", "arXiv", "PubMed", "CORE"]
        adapters = []
        for n, source in enumerate(sources):
            count = 8 if n < 3 else 6
            papers = [make_paper(title=titles[(n * 3 + i) % 12], source=source) for i in range(count)]
            adapters.append(adapter_factory(source, papers))
        aggregator = QueryAggregator(adapters, static_expander, query_cache)

        papers = await aggregator.aggregate("sleep", target_count=20)

        assert aggregator.last_stats.total_input == 30
        assert aggregator.last_stats.unique_papers == 12
        assert len(papers) == 12
        assert len({normalize_title(p.title) for p in papers}) == 12
