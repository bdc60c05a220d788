"""
RelevanceFilter - Let the cheap model pick the most relevant papers.

Fails open: if the model errors, replies with garbage, or selects nothing,
the unfiltered list is returned.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from scholar_qa.application import prompts
from scholar_qa.domain.entities import PaperRecord
from scholar_qa.infrastructure.llm import CompletionOptions, ModelTier, TextGenerationProvider
from scholar_qa.shared.exceptions import ProviderResponseInvalidError, TextGenerationError
from scholar_qa.shared.json_reply import parse_json_reply

logger = logging.getLogger(__name__)

ABSTRACT_PREVIEW_CHARS = 500
AUTHORS_PREVIEW = 3


def format_candidates(papers: Sequence[PaperRecord]) -> str:
    """Numbered paper list shown to the model."""
    blocks = []
    for i, paper in enumerate(papers):
        authors = ", ".join(paper.authors[:AUTHORS_PREVIEW]) or "Unknown"
        blocks.append(
            f"[{i}] Title: {paper.title}\n"
            f"Abstract: {paper.abstract[:ABSTRACT_PREVIEW_CHARS]}\n"
            f"Year: {paper.year}\n"
            f"Authors: {authors}"
        )
    return "\n\n".join(blocks)


def parse_selection(reply: str, count: int, max_papers: int) -> list[int]:
    """
    Valid indices from a JSON array reply, first occurrence only.

    Raises:
        ProviderResponseInvalidError: reply is not a JSON array
    """
    values = parse_json_reply(reply, list)
    selected: list[int] = []
    for value in values:
        if isinstance(value, bool) or not isinstance(value, int):
            continue
        if 0 <= value < count and value not in selected:
            selected.append(value)
        if len(selected) >= max_papers:
            break
    return selected


class RelevanceFilter:
    """Reduce a candidate list to at most ``max_papers`` entries."""

    def __init__(self, provider: TextGenerationProvider) -> None:
        self._provider = provider

    async def filter(self, question: str, papers: Sequence[PaperRecord], max_papers: int) -> list[PaperRecord]:
        papers = list(papers)
        if len(papers) <= max_papers:
            return papers

        prompt = prompts.FILTER_PROMPT.format(
            question=question,
            count=len(papers),
            max_papers=max_papers,
            papers=format_candidates(papers),
        )
        try:
            reply = await self._provider.complete(
                prompt,
                prompts.FILTER_SYSTEM,
                CompletionOptions(tier=ModelTier.CHEAP, temperature=0.2, max_tokens=200),
            )
            selected = parse_selection(reply, len(papers), max_papers)
        except TextGenerationError as e:
            logger.warning(f"Relevance filter failed, keeping all {len(papers)} papers: {e}")
            return papers
        except ProviderResponseInvalidError as e:
            logger.warning(f"Relevance filter reply unusable, keeping all {len(papers)} papers: {e}")
            return papers

        if not selected:
            logger.warning(f"Relevance filter selected nothing, keeping all {len(papers)} papers")
            return papers

        logger.info(f"Relevance filter kept {len(selected)} of {len(papers)} papers")
        return [papers[i] for i in selected]
