"""
Semantic Scholar Integration

Cross-domain academic search via the Semantic Scholar Graph API.

API Documentation: https://api.semanticscholar.org/api-docs/

Rate limits: 100 requests / 5 minutes without a key, higher with ``x-api-key``.
"""

from __future__ import annotations

import logging
from typing import Any

from scholar_qa.domain.entities import PaperRecord

from .base_client import BaseSourceAdapter

logger = logging.getLogger(__name__)

S2_API_BASE = "https://api.semanticscholar.org/graph/v1"
S2_PAPER_PAGE = "https://www.semanticscholar.org/paper"

# Fields requested per paper
DEFAULT_FIELDS = [
    "paperId",
    "title",
    "authors",
    "year",
    "abstract",
    "citationCount",
    "referenceCount",
    "externalIds",
    "url",
]

# The search endpoint rejects larger pages
MAX_LIMIT = 100


class SemanticScholarAdapter(BaseSourceAdapter):
    """
    Semantic Scholar paper search.

    Usage:
        adapter = SemanticScholarAdapter(api_key="...")
        papers = await adapter.search("graph neural networks", limit=5)
    """

    source_name = "Semantic Scholar"

    def __init__(self, api_key: str | None = None, timeout: float = 30.0, **kwargs: Any) -> None:
        """
        Args:
            api_key: Optional S2 API key (sent as ``x-api-key``)
            timeout: Request timeout in seconds
        """
        headers = {"Accept": "application/json"}
        if api_key:
            headers["x-api-key"] = api_key
        kwargs.setdefault("min_interval", 0.1 if api_key else 0.5)
        super().__init__(base_url=S2_API_BASE, timeout=timeout, headers=headers, **kwargs)

    async def search(self, query: str, limit: int) -> list[PaperRecord]:
        params = {
            "query": query,
            "limit": max(1, min(limit, MAX_LIMIT)),
            "fields": ",".join(DEFAULT_FIELDS),
        }
        data = await self._make_request("/paper/search", params=params)
        if not isinstance(data, dict):
            raise self._unavailable("Unexpected response shape")

        papers = []
        for item in data.get("data") or []:
            if not isinstance(item, dict):
                logger.warning(f"{self.source_name}: skipping malformed entry {item!r:.80}")
                continue
            papers.append(self._to_record(item))

        logger.info(f"{self.source_name}: '{query}' returned {len(papers)} papers")
        return papers[:limit]

    def _to_record(self, item: dict[str, Any]) -> PaperRecord:
        paper_id = item.get("paperId")
        link = f"{S2_PAPER_PAGE}/{paper_id}" if paper_id else item.get("url")
        return PaperRecord.build(
            source=self.source_name,
            id=paper_id,
            title=item.get("title"),
            abstract=item.get("abstract"),
            authors=item.get("authors"),
            year=item.get("year"),
            citation_count=item.get("citationCount"),
            reference_count=item.get("referenceCount"),
            link=link,
        )
