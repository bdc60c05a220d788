"""
Citation keys and citation blocks for the analysis prompt.

A key is the first author's surname followed by the year, e.g. ``Smith2021``.
Keys are not disambiguated: two papers by Smith in 2021 share ``Smith2021``.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from scholar_qa.domain.entities import UNKNOWN_YEAR, CitationEntry, PaperRecord

UNKNOWN_AUTHOR = "Unknown"
NO_DATE = "n.d."


def citation_key(paper: PaperRecord) -> str:
    """``<surname><year>``; "Unknown" without authors, "n.d." without a year."""
    surname = UNKNOWN_AUTHOR
    for author in paper.authors:
        tokens = author.split()
        if tokens:
            surname = tokens[-1]
            break

    year = paper.year.strip() if paper.year else ""
    if not year or year == UNKNOWN_YEAR:
        year = NO_DATE
    return f"{surname}{year}"


def build_keys(papers: Sequence[PaperRecord]) -> list[CitationEntry]:
    return [
        CitationEntry(paper=paper, citation_key=citation_key(paper), index=i)
        for i, paper in enumerate(papers, start=1)
    ]


def render_block(entry: CitationEntry) -> str:
    paper = entry.paper
    return (
        f"Citation [{entry.citation_key}]:\n"
        f"Title: {paper.title}\n"
        f"Abstract: {paper.abstract}\n"
        f"Authors: {', '.join(paper.authors)}\n"
        f"Year: {paper.year}"
    )


def render_blocks(entries: Sequence[CitationEntry]) -> str:
    return "\n\n".join(render_block(e) for e in entries)


def citation_mapping(entries: Sequence[CitationEntry]) -> list[dict[str, Any]]:
    return [e.to_mapping() for e in entries]
