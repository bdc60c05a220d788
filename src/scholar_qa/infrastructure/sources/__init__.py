"""
Academic search source adapters.

Each adapter implements ``async search(query, limit) -> list[PaperRecord]``
and raises SourceUnavailableError when the provider cannot be used.

Sources:
- Semantic Scholar: cross-domain, citation counts
- arXiv: preprints (physics, CS, math, ...)
- PubMed: biomedical literature via E-utilities
- CORE: open-access research outputs (API key required)
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from enum import Enum
from typing import Any

from scholar_qa.shared.exceptions import ConfigurationError

from .arxiv import ArxivAdapter
from .base_client import BaseSourceAdapter
from .core import CoreAdapter
from .pubmed import PubMedAdapter
from .semantic_scholar import SemanticScholarAdapter

logger = logging.getLogger(__name__)


class SearchSource(Enum):
    """Available search sources."""

    SEMANTIC_SCHOLAR = "semantic_scholar"
    ARXIV = "arxiv"
    PUBMED = "pubmed"
    CORE = "core"


DEFAULT_SOURCES: tuple[SearchSource, ...] = (
    SearchSource.SEMANTIC_SCHOLAR,
    SearchSource.ARXIV,
    SearchSource.PUBMED,
    SearchSource.CORE,
)


def parse_sources(value: str | Iterable[str] | None) -> list[SearchSource]:
    """
    Parse a comma-separated source list ("semantic_scholar,arxiv").

    Empty input means all sources. Unknown names raise ConfigurationError.
    """
    if value is None:
        return list(DEFAULT_SOURCES)
    names = value.split(",") if isinstance(value, str) else list(value)
    sources: list[SearchSource] = []
    for name in names:
        name = name.strip().lower()
        if not name:
            continue
        try:
            source = SearchSource(name)
        except ValueError as e:
            raise ConfigurationError(f"Unknown search source: {name!r}") from e
        if source not in sources:
            sources.append(source)
    return sources or list(DEFAULT_SOURCES)


def create_source_adapters(config: Mapping[str, Any]) -> list[BaseSourceAdapter]:
    """
    Build the enabled adapters in a stable order.

    Recognized keys: ``sources``, ``timeout``, ``s2_api_key``,
    ``ncbi_api_key``, ``ncbi_email``, ``core_api_key``.
    CORE is skipped with a warning when it has no API key.
    """
    timeout = float(config.get("timeout") or 30.0)
    adapters: list[BaseSourceAdapter] = []

    for source in parse_sources(config.get("sources")):
        if source is SearchSource.SEMANTIC_SCHOLAR:
            adapters.append(SemanticScholarAdapter(api_key=config.get("s2_api_key"), timeout=timeout))
        elif source is SearchSource.ARXIV:
            adapters.append(ArxivAdapter(timeout=timeout))
        elif source is SearchSource.PUBMED:
            adapters.append(
                PubMedAdapter(
                    api_key=config.get("ncbi_api_key"),
                    email=config.get("ncbi_email"),
                    timeout=timeout,
                )
            )
        elif source is SearchSource.CORE:
            if not config.get("core_api_key"):
                logger.warning("CORE_API_KEY not set, CORE source disabled")
                continue
            adapters.append(CoreAdapter(api_key=config["core_api_key"], timeout=timeout))

    if not adapters:
        raise ConfigurationError("No academic search sources enabled")
    logger.info(f"Search sources enabled: {', '.join(a.source_name for a in adapters)}")
    return adapters


__all__ = [
    "DEFAULT_SOURCES",
    "ArxivAdapter",
    "BaseSourceAdapter",
    "CoreAdapter",
    "PubMedAdapter",
    "SearchSource",
    "SemanticScholarAdapter",
    "create_source_adapters",
    "parse_sources",
]
