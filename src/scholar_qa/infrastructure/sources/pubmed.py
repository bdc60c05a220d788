"""
PubMed Integration

Biomedical literature search via NCBI E-utilities:
``esearch`` (JSON) to find PMIDs, then ``efetch`` (XML) for the records.

API Documentation: https://www.ncbi.nlm.nih.gov/books/NBK25500/

Rate limits: 3 requests/second without an API key, 10/second with one.
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

ENTREZ_BASE = "https://eutils.ncbi.nlm.nih.gov/entrez/eutils"
PUBMED_PAGE = "https://pubmed.ncbi.nlm.nih.gov"

_YEAR = re.compile(r"(\d{4})")


def _itertext(elem: Any) -> str:
    return "".join(elem.itertext()).strip() if elem is not None else ""


class PubMedAdapter(BaseSourceAdapter):
    """
    PubMed search through E-utilities.

    PubMed does not report citation counts in efetch; both counts stay 0.
    """

    source_name = "PubMed"

    def __init__(
        self,
        api_key: str | None = None,
        email: str | None = None,
        tool: str = "scholar-qa",
        timeout: float = 30.0,
        **kwargs: Any,
    ) -> None:
        """
        Args:
            api_key: Optional NCBI API key (raises the rate limit)
            email: Contact email NCBI asks clients to send
            tool: Tool name sent with every request
        """
        self._api_key = api_key
        self._email = email
        self._tool = tool
        kwargs.setdefault("min_interval", 0.1 if api_key else 0.34)
        super().__init__(base_url=ENTREZ_BASE, timeout=timeout, **kwargs)

    def _common_params(self) -> dict[str, str]:
        params = {"db": "pubmed", "tool": self._tool}
        if self._api_key:
            params["api_key"] = self._api_key
        if self._email:
            params["email"] = self._email
        return params

    async def search(self, query: str, limit: int) -> list[PaperRecord]:
        pmids = await self._esearch(query, limit)
        if not pmids:
            logger.info(f"{self.source_name}: '{query}' returned 0 papers")
            return []

        xml_text = await self._make_request(
            "/efetch.fcgi",
            params={**self._common_params(), "id": ",".join(pmids), "retmode": "xml"},
            expect_json=False,
        )
        papers = self._parse_efetch(xml_text)
        logger.info(f"{self.source_name}: '{query}' returned {len(papers)} papers")
        return papers[:limit]

    async def _esearch(self, query: str, limit: int) -> list[str]:
        data = await self._make_request(
            "/esearch.fcgi",
            params={
                **self._common_params(),
                "term": query,
                "retmax": max(1, limit),
                "retmode": "json",
                "sort": "relevance",
            },
        )
        try:
            id_list = data["esearchresult"]["idlist"]
        except (KeyError, TypeError) as e:
            raise self._unavailable(f"Unexpected esearch response: {e}") from e
        return [str(pmid) for pmid in id_list]

    def _parse_efetch(self, xml_text: str) -> list[PaperRecord]:
        try:
            root = ET.fromstring(xml_text)
        except (ET.ParseError, DefusedXmlException) as e:
            raise self._unavailable(f"Unparseable efetch XML: {e}") from e

        papers = []
        for article in root.iter("PubmedArticle"):
            citation = article.find("MedlineCitation")
            if citation is None:
                logger.warning(f"{self.source_name}: skipping article without MedlineCitation")
                continue
            pmid = _itertext(citation.find("PMID"))
            data = citation.find("Article")
            if data is None:
                data = citation

            abstract_parts = [_itertext(part) for part in data.findall("Abstract/AbstractText")]

            papers.append(
                PaperRecord.build(
                    source=self.source_name,
                    id=pmid,
                    title=_itertext(data.find("ArticleTitle")),
                    abstract=" ".join(part for part in abstract_parts if part),
                    authors=self._extract_authors(data),
                    year=self._extract_year(data),
                    link=f"{PUBMED_PAGE}/{pmid}/" if pmid else None,
                )
            )
        return papers

    @staticmethod
    def _extract_authors(article_data: Any) -> list[str]:
        """``ForeName LastName`` per author, or the collective name."""
        authors = []
        for author in article_data.findall("AuthorList/Author"):
            last_name = _itertext(author.find("LastName"))
            if last_name:
                fore_name = _itertext(author.find("ForeName"))
                authors.append(f"{fore_name} {last_name}".strip())
                continue
            collective = _itertext(author.find("CollectiveName"))
            if collective:
                authors.append(collective)
        return authors

    @staticmethod
    def _extract_year(article_data: Any) -> str | None:
        pub_date = article_data.find("Journal/JournalIssue/PubDate")
        if pub_date is None:
            return None
        year = _itertext(pub_date.find("Year"))
        if year:
            return year
        match = _YEAR.search(_itertext(pub_date.find("MedlineDate")))
        return match.group(1) if match else None
