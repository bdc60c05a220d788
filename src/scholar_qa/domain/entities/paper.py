"""
PaperRecord - Normalized Paper Model for Multi-Source Search

Every academic source speaks its own schema: authors arrive as plain strings,
lists of strings, or lists of ``{name}`` objects; years as ints, strings or
full dates; counts may be missing or null. Adapters funnel all of that through
``PaperRecord.build()`` so downstream stages only ever see one shape.

Architecture Decision:
    Records are frozen. The aggregator derives scored copies with
    ``dataclasses.replace`` and the query cache shares instances across
    requests, so nothing may mutate a record in place.

Example:
    >>> paper = PaperRecord.build(
    ...     title="Attention Is All You Need",
    ...     authors=[{"name": "Ashish Vaswani"}],
    ...     year=2017,
    ...     source="arXiv",
    ... )
    >>> paper.authors
    ('Ashish Vaswani',)
    >>> paper.abstract
    'No abstract available'
"""

from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

# Sentinels used when a source omits a field
UNTITLED = "Untitled"
NO_ABSTRACT = "No abstract available"
UNKNOWN_YEAR = "unknown"

_YEAR_PATTERN = re.compile(r"(?<!\d)(\d{4})(?!\d)")
_AUTHOR_NAME_KEYS = ("name", "display_name", "full_name", "fullName")


def _new_id() -> str:
    return uuid.uuid4().hex


# =============================================================================
# Field coercion
# =============================================================================


def coerce_text(value: Any, fallback: str) -> str:
    """Collapse whitespace and fall back when the value is empty or not text."""
    if value is None:
        return fallback
    if isinstance(value, (list, tuple)):
        value = " ".join(str(v) for v in value if v is not None)
    if not isinstance(value, (str, int, float)) or isinstance(value, bool):
        return fallback
    text = re.sub(r"\s+", " ", str(value)).strip()
    return text or fallback


def _author_name(author: Any) -> str:
    if isinstance(author, str):
        return author.strip()
    if isinstance(author, dict):
        for key in _AUTHOR_NAME_KEYS:
            name = author.get(key)
            if isinstance(name, str) and name.strip():
                return name.strip()
        given = author.get("given") or author.get("fore_name") or author.get("forename") or ""
        family = author.get("family") or author.get("last_name") or author.get("lastname") or ""
        if isinstance(given, str) and isinstance(family, str):
            return f"{given} {family}".strip()
    return ""


def coerce_authors(value: Any) -> tuple[str, ...]:
    """
    Normalize any author representation into a tuple of display names.

    Accepts a single string ("A. Smith, B. Jones" is split on ';' only, commas
    are part of "Last, First" names), a list of strings, or a list of objects.
    """
    if value is None:
        return ()
    if isinstance(value, str):
        parts = [p.strip() for p in value.split(";")]
        return tuple(re.sub(r"\s+", " ", p) for p in parts if p)
    if isinstance(value, dict):
        value = [value]
    if not isinstance(value, (list, tuple)):
        return ()

    names = []
    for author in value:
        name = re.sub(r"\s+", " ", _author_name(author))
        if name:
            names.append(name)
    return tuple(names)


def coerce_year(value: Any) -> str:
    """Extract a four-digit year from an int, string or date string."""
    if value is None or isinstance(value, bool):
        return UNKNOWN_YEAR
    match = _YEAR_PATTERN.search(str(value))
    if not match:
        return UNKNOWN_YEAR
    return match.group(1)


def coerce_count(value: Any) -> int:
    """Coerce a count to a non-negative int, 0 when unusable."""
    if value is None or isinstance(value, bool):
        return 0
    try:
        count = int(value)
    except (TypeError, ValueError):
        return 0
    return max(count, 0)


# =============================================================================
# PaperRecord
# =============================================================================


@dataclass(frozen=True, slots=True)
class PaperRecord:
    """A normalized academic paper. No field is ever absent."""

    title: str = UNTITLED
    abstract: str = NO_ABSTRACT
    authors: tuple[str, ...] = ()
    year: str = UNKNOWN_YEAR
    citation_count: int = 0
    reference_count: int = 0
    link: str = ""
    source: str = ""
    id: str = field(default_factory=_new_id)
    relevance_score: float = 0.0

    @classmethod
    def build(
        cls,
        *,
        source: str,
        title: Any = None,
        abstract: Any = None,
        authors: Any = None,
        year: Any = None,
        citation_count: Any = None,
        reference_count: Any = None,
        link: Any = None,
        id: Any = None,
    ) -> PaperRecord:
        """
        Build a record from raw provider values, applying every fallback.

        A coercion failure on one field degrades that field to its sentinel
        instead of aborting the record.
        """
        fields: dict[str, Any] = {}
        coercions = (
            ("title", lambda: coerce_text(title, UNTITLED), UNTITLED),
            ("abstract", lambda: coerce_text(abstract, NO_ABSTRACT), NO_ABSTRACT),
            ("authors", lambda: coerce_authors(authors), ()),
            ("year", lambda: coerce_year(year), UNKNOWN_YEAR),
            ("citation_count", lambda: coerce_count(citation_count), 0),
            ("reference_count", lambda: coerce_count(reference_count), 0),
            ("link", lambda: coerce_text(link, ""), ""),
            ("id", lambda: coerce_text(id, "") or _new_id(), None),
        )
        for name, coerce, fallback in coercions:
            try:
                fields[name] = coerce()
            except Exception as e:
                logger.warning(f"{source}: could not parse {name} ({e}), using fallback")
                fields[name] = fallback if fallback is not None else _new_id()

        return cls(source=source, **fields)

    @property
    def has_abstract(self) -> bool:
        return self.abstract != NO_ABSTRACT

    @property
    def has_year(self) -> bool:
        return self.year != UNKNOWN_YEAR

    @property
    def is_untitled(self) -> bool:
        return self.title == UNTITLED

    def to_dict(self) -> dict[str, Any]:
        """Convert to the camelCase wire format."""
        return {
            "id": self.id,
            "title": self.title,
            "abstract": self.abstract,
            "authors": list(self.authors),
            "year": self.year,
            "citationCount": self.citation_count,
            "referenceCount": self.reference_count,
            "link": self.link,
            "source": self.source,
            "relevanceScore": round(self.relevance_score, 4),
        }
