"""
Pytest configuration and shared fixtures.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

import pytest

from scholar_qa.domain.entities import PaperRecord
from scholar_qa.infrastructure.cache import QueryCache
from scholar_qa.infrastructure.llm import CompletionOptions

# ============================================================
# Fakes
# ============================================================


class FakeProvider:
    """
    Scripted text-generation provider.

    ``complete_replies`` and ``stream_replies`` are consumed in call order.
    An Exception in either list is raised instead of replying.
    """

    def __init__(
        self,
        complete_replies: list[Any] | None = None,
        stream_replies: list[Any] | None = None,
    ) -> None:
        self.complete_replies = list(complete_replies or [])
        self.stream_replies = list(stream_replies or [])
        self.complete_calls: list[tuple[str, str | None, CompletionOptions | None]] = []
        self.stream_calls: list[tuple[str, str | None, CompletionOptions | None]] = []
        self.streams_closed = 0

    async def complete(
        self,
        prompt: str,
        system_instruction: str | None = None,
        options: CompletionOptions | None = None,
    ) -> str:
        self.complete_calls.append((prompt, system_instruction, options))
        reply = self.complete_replies.pop(0) if self.complete_replies else ""
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def stream(
        self,
        prompt: str,
        system_instruction: str | None = None,
        options: CompletionOptions | None = None,
    ) -> AsyncIterator[str]:
        self.stream_calls.append((prompt, system_instruction, options))
        tokens = self.stream_replies.pop(0) if self.stream_replies else []
        if isinstance(tokens, Exception):
            raise tokens
        try:
            for token in tokens:
                yield token
        finally:
            self.streams_closed += 1


class FakeAdapter:
    """Source adapter returning canned papers (or raising)."""

    def __init__(self, source_name: str, papers: list[PaperRecord] | None = None, error: Exception | None = None):
        self.source_name = source_name
        self.papers = list(papers or [])
        self.error = error
        self.calls: list[tuple[str, int]] = []
        self.closed = False

    async def search(self, query: str, limit: int) -> list[PaperRecord]:
        self.calls.append((query, limit))
        if self.error is not None:
            raise self.error
        return self.papers[:limit]

    async def close(self) -> None:
        self.closed = True


class StaticExpander:
    """Expander that returns fixed terms."""

    def __init__(self, terms: list[str] | None = None) -> None:
        self.terms = terms
        self.calls: list[str] = []

    async def expand(self, query: str) -> list[str]:
        self.calls.append(query)
        return list(self.terms) if self.terms else [query]


# ============================================================
# Fixtures
# ============================================================


@pytest.fixture
def make_paper():
    """Factory for PaperRecord with sensible defaults."""
    counter = iter(range(1, 10_000))

    def _make(**overrides: Any) -> PaperRecord:
        n = next(counter)
        fields = {
            "title": f"Paper number {n} on protein folding",
            "abstract": f"Abstract of paper {n}.",
            "authors": ("Jane Smith", "Wei Zhang"),
            "year": "2021",
            "citation_count": 10,
            "reference_count": 5,
            "link": f"https://example.org/{n}",
            "source": "Semantic Scholar",
            "id": f"p{n}",
        }
        fields.update(overrides)
        if isinstance(fields["authors"], list):
            fields["authors"] = tuple(fields["authors"])
        return PaperRecord(**fields)

    return _make


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def provider_factory():
    return FakeProvider


@pytest.fixture
def adapter_factory():
    return FakeAdapter


@pytest.fixture
def static_expander():
    return StaticExpander()


@pytest.fixture
def query_cache():
    return QueryCache(max_size=32, default_ttl=60)
