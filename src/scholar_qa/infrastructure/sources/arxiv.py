"""
arXiv Integration

Preprint search via the arXiv export API (Atom feed).

API: http://export.arxiv.org/api/query
arXiv asks clients to keep to roughly one request every three seconds.
"""

from __future__ import annotations

import logging
import re
from typing import Any

import defusedxml.ElementTree as ET  # Security: prevent XML attacks
from defusedxml import DefusedXmlException

from scholar_qa.domain.entities import PaperRecord

from .base_client import BaseSourceAdapter

logger = logging.getLogger(__name__)

ARXIV_API_URL = "https://export.arxiv.org/api/query"
ARXIV_ABS_URL = "https://arxiv.org/abs"

NAMESPACES = {
    "atom": "http://www.w3.org/2005/Atom",
    "arxiv": "http://arxiv.org/schemas/atom",
}

_ID_PATTERN = re.compile(r"arxiv\.org/abs/(.+)")


def _text(entry: Any, path: str) -> str | None:
    elem = entry.find(path, NAMESPACES)
    if elem is None or not elem.text:
        return None
    return elem.text


class ArxivAdapter(BaseSourceAdapter):
    """
    arXiv preprint search.

    arXiv reports no citation or reference counts; both stay 0.
    """

    source_name = "arXiv"

    def __init__(self, timeout: float = 30.0, **kwargs: Any) -> None:
        kwargs.setdefault("min_interval", 1.0)
        super().__init__(base_url=ARXIV_API_URL, timeout=timeout, **kwargs)

    async def search(self, query: str, limit: int) -> list[PaperRecord]:
        params = {
            "search_query": f"all:{query}",
            "start": 0,
            "max_results": max(1, limit),
            "sortBy": "relevance",
            "sortOrder": "descending",
        }
        xml_text = await self._make_request(ARXIV_API_URL, params=params, expect_json=False)
        papers = self._parse_atom_response(xml_text)
        logger.info(f"{self.source_name}: '{query}' returned {len(papers)} papers")
        return papers[:limit]

    def _parse_atom_response(self, xml_text: str) -> list[PaperRecord]:
        """Parse Atom XML response from arXiv."""
        try:
            root = ET.fromstring(xml_text)
        except (ET.ParseError, DefusedXmlException) as e:
            raise self._unavailable(f"Unparseable Atom feed: {e}") from e

        papers = []
        for entry in root.findall("atom:entry", NAMESPACES):
            # Extract ID from URL like http://arxiv.org/abs/1234.5678v1
            arxiv_id = None
            raw_id = _text(entry, "atom:id")
            if raw_id:
                match = _ID_PATTERN.search(raw_id)
                if match:
                    arxiv_id = match.group(1).strip()

            authors = [
                name.text for author in entry.findall("atom:author", NAMESPACES)
                if (name := author.find("atom:name", NAMESPACES)) is not None and name.text
            ]

            papers.append(
                PaperRecord.build(
                    source=self.source_name,
                    id=arxiv_id,
                    title=_text(entry, "atom:title"),
                    abstract=_text(entry, "atom:summary"),
                    authors=authors,
                    year=_text(entry, "atom:published"),
                    link=f"{ARXIV_ABS_URL}/{arxiv_id}" if arxiv_id else raw_id,
                )
            )
        return papers
