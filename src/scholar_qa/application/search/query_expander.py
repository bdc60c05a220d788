"""
QueryExpander - Turn one research question into a handful of search terms.

1. Non-English queries are translated to English (cheap tier)
2. Short queries get 2-3 alternative phrasings (cheap tier, JSON array)
3. Terms are deduplicated, original first

The expander never fails: every provider problem degrades to fewer terms.
"""

from __future__ import annotations

import logging

from scholar_qa.application import prompts
from scholar_qa.infrastructure.llm import CompletionOptions, ModelTier, TextGenerationProvider
from scholar_qa.shared.exceptions import ProviderResponseInvalidError, TextGenerationError
from scholar_qa.shared.json_reply import parse_json_reply

logger = logging.getLogger(__name__)

# Queries at or above this length are specific enough already
EXPANSION_LENGTH_THRESHOLD = 100
MAX_ALTERNATIVES = 3

_CHEAP = CompletionOptions(tier=ModelTier.CHEAP, temperature=0.2, max_tokens=200)


def is_non_english(text: str) -> bool:
    """Coarse heuristic: any character outside ASCII."""
    return any(ord(ch) > 127 for ch in text)


def dedupe_terms(terms: list[str], limit: int) -> list[str]:
    """Case-sensitive dedup preserving order; blank terms dropped."""
    seen: set[str] = set()
    result = []
    for term in terms:
        term = term.strip()
        if not term or term in seen:
            continue
        seen.add(term)
        result.append(term)
        if len(result) >= limit:
            break
    return result


class QueryExpander:
    """
    Produce search terms for a query.

    Example:
        expander = QueryExpander(provider)
        terms = await expander.expand("transformer protein folding")
        # ["transformer protein folding", "attention models protein structure", ...]
    """

    def __init__(
        self,
        provider: TextGenerationProvider,
        length_threshold: int = EXPANSION_LENGTH_THRESHOLD,
        max_alternatives: int = MAX_ALTERNATIVES,
    ) -> None:
        self._provider = provider
        self._length_threshold = length_threshold
        self._max_alternatives = max_alternatives

    async def expand(self, query: str) -> list[str]:
        """Return at least one term; the (translated) query is always first."""
        query = query.strip()
        if is_non_english(query):
            query = await self.translate(query)

        alternatives: list[str] = []
        if len(query) < self._length_threshold:
            alternatives = await self.alternatives(query)

        terms = dedupe_terms([query, *alternatives], limit=1 + self._max_alternatives)
        logger.info(f"Expanded '{query}' into {len(terms)} terms: {terms}")
        return terms or [query]

    async def translate(self, query: str) -> str:
        """English translation, or the original when translation fails."""
        try:
            reply = await self._provider.complete(
                prompts.TRANSLATION_PROMPT.format(query=query),
                prompts.TRANSLATION_SYSTEM,
                _CHEAP,
            )
        except TextGenerationError as e:
            logger.warning(f"Translation failed, using original query: {e}")
            return query

        translated = reply.strip().strip('"').strip()
        if not translated:
            return query
        logger.info(f"Translated query '{query}' -> '{translated}'")
        return translated

    async def alternatives(self, query: str) -> list[str]:
        """Up to ``max_alternatives`` rephrasings; empty on any failure."""
        try:
            reply = await self._provider.complete(
                prompts.EXPANSION_PROMPT.format(query=query),
                prompts.EXPANSION_SYSTEM,
                _CHEAP,
            )
            values = parse_json_reply(reply, list)
        except TextGenerationError as e:
            logger.warning(f"Query expansion failed: {e}")
            return []
        except ProviderResponseInvalidError as e:
            logger.warning(f"Query expansion reply unusable: {e}")
            return []

        return [v for v in values if isinstance(v, str)][: self._max_alternatives]
