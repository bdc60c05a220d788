"""Tests for RelevanceFilter."""

from __future__ import annotations

import pytest

from scholar_qa.application.search import RelevanceFilter, format_candidates, parse_selection
from scholar_qa.infrastructure.llm import ModelTier
from scholar_qa.shared.exceptions import ProviderResponseInvalidError, TextGenerationError


@pytest.fixture
def papers(make_paper):
    return [make_paper(title=f"Candidate {i}") for i in range(8)]


class TestParseSelection:
    def test_valid_indices(self):
        assert parse_selection("[3, 0, 7]", count=8, max_papers=5) == [3, 0, 7]

    def test_drops_invalid_and_duplicates(self):
        assert parse_selection('[1, 1, -1, 99, "2", true, 2.0, 4]', count=8, max_papers=5) == [1, 4]

    def test_caps_selection(self):
        assert parse_selection("[0, 1, 2, 3, 4, 5]", count=8, max_papers=3) == [0, 1, 2]

    def test_not_an_array(self):
        with pytest.raises(ProviderResponseInvalidError):
            parse_selection('{"indices": [1]}', count=8, max_papers=3)


class TestFormatCandidates:
    def test_truncates_abstract_and_authors(self, make_paper):
        paper = make_paper(abstract="x" * 900, authors=("A One", "B Two", "C Three", "D Four"))

        text = format_candidates([paper])

        assert text.startswith("[0] Title: ")
        assert "x" * 500 in text and "x" * 501 not in text
        assert text.endswith("Authors: A One, B Two, C Three")


class TestRelevanceFilter:
    @pytest.mark.asyncio
    async def test_noop_within_cap(self, provider_factory, papers):
        provider = provider_factory()

        result = await RelevanceFilter(provider).filter("q", papers[:3], max_papers=5)

        assert result == papers[:3]
        assert provider.complete_calls == []

    @pytest.mark.asyncio
    async def test_selects_in_model_order(self, provider_factory, papers):
        provider = provider_factory(complete_replies=["```json\n[5, 2, 0]\n```"])

        result = await RelevanceFilter(provider).filter("q", papers, max_papers=3)

        assert result == [papers[5], papers[2], papers[0]]
        prompt, _, options = provider.complete_calls[0]
        assert "[7] Title: Candidate 7" in prompt
        assert options.tier is ModelTier.CHEAP

    @pytest.mark.asyncio
    async def test_fail_open_on_garbage(self, provider_factory, papers):
        provider = provider_factory(complete_replies=["The best papers are 1 and 2."])

        assert await RelevanceFilter(provider).filter("q", papers, max_papers=3) == papers

    @pytest.mark.asyncio
    async def test_fail_open_on_provider_error(self, provider_factory, papers):
        provider = provider_factory(complete_replies=[TextGenerationError("down")])

        assert await RelevanceFilter(provider).filter("q", papers, max_papers=3) == papers

    @pytest.mark.asyncio
    async def test_fail_open_on_empty_selection(self, provider_factory, papers):
        provider = provider_factory(complete_replies=["[42, -1]"])

        assert await RelevanceFilter(provider).filter("q", papers, max_papers=3) == papers
