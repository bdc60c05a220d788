"""
CORE Integration

Open-access research outputs via the CORE v3 API.

API Documentation: https://api.core.ac.uk/docs/v3

An API key is required (sent as a Bearer token).
"""

from __future__ import annotations

import logging
from typing import Any

from scholar_qa.domain.entities import PaperRecord

from .base_client import BaseSourceAdapter

logger = logging.getLogger(__name__)

CORE_API_BASE = "https://api.core.ac.uk/v3"
CORE_WORK_PAGE = "https://core.ac.uk/works"


def _work_link(work: dict[str, Any]) -> str | None:
    """DOI first, then the download URL, then the CORE landing page."""
    doi = work.get("doi")
    if isinstance(doi, str) and doi.strip():
        doi = doi.strip()
        return doi if doi.startswith("http") else f"https://doi.org/{doi}"
    download_url = work.get("downloadUrl")
    if isinstance(download_url, str) and download_url.strip():
        return download_url.strip()
    work_id = work.get("id")
    return f"{CORE_WORK_PAGE}/{work_id}" if work_id is not None else None


class CoreAdapter(BaseSourceAdapter):
    """CORE open-access search."""

    source_name = "CORE"

    def __init__(self, api_key: str | None = None, timeout: float = 30.0, **kwargs: Any) -> None:
        headers = {"Accept": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        kwargs.setdefault("min_interval", 0.5)
        super().__init__(base_url=CORE_API_BASE, timeout=timeout, headers=headers, **kwargs)

    async def search(self, query: str, limit: int) -> list[PaperRecord]:
        data = await self._make_request("/search/works", params={"q": query, "limit": max(1, limit)})
        if not isinstance(data, dict):
            raise self._unavailable("Unexpected response shape")

        papers = []
        for work in data.get("results") or []:
            if not isinstance(work, dict):
                logger.warning(f"{self.source_name}: skipping malformed entry {work!r:.80}")
                continue
            papers.append(self._normalize_work(work))

        logger.info(f"{self.source_name}: '{query}' returned {len(papers)} papers")
        return papers[:limit]

    def _normalize_work(self, work: dict[str, Any]) -> PaperRecord:
        """Authors arrive as ``{"name": ...}`` objects or plain strings."""
        work_id = work.get("id")
        return PaperRecord.build(
            source=self.source_name,
            id=str(work_id) if work_id is not None else None,
            title=work.get("title"),
            abstract=work.get("abstract"),
            authors=work.get("authors"),
            year=work.get("yearPublished") or work.get("publishedDate"),
            citation_count=work.get("citationCount"),
            reference_count=len(work["references"]) if isinstance(work.get("references"), list) else None,
            link=_work_link(work),
        )
