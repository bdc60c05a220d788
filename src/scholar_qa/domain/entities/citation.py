"""Citation entities: a paper paired with its short inline citation key."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .paper import PaperRecord


@dataclass(frozen=True, slots=True)
class CitationEntry:
    """PaperRecord augmented with a citation key and its 1-based position."""

    paper: PaperRecord
    citation_key: str
    index: int

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.paper.to_dict(),
            "citationKey": self.citation_key,
            "index": self.index,
        }

    def to_mapping(self) -> dict[str, Any]:
        """Item of the ``citationMapping`` list in the final result."""
        return {
            "key": self.citation_key,
            "title": self.paper.title,
            "authors": list(self.paper.authors),
            "year": self.paper.year,
            "link": self.paper.link,
        }
