"""Domain entities."""

from .citation import CitationEntry
from .paper import (
    NO_ABSTRACT,
    UNKNOWN_YEAR,
    UNTITLED,
    PaperRecord,
    coerce_authors,
    coerce_count,
    coerce_text,
    coerce_year,
)
from .pipeline import EventStatus, PipelineEvent, PipelineStage, PipelineState

__all__ = [
    "NO_ABSTRACT",
    "UNKNOWN_YEAR",
    "UNTITLED",
    "CitationEntry",
    "EventStatus",
    "PaperRecord",
    "PipelineEvent",
    "PipelineStage",
    "PipelineState",
    "coerce_authors",
    "coerce_count",
    "coerce_text",
    "coerce_year",
]
