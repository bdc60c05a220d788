"""
Domain Layer - Core Business Entities

Contains:
- entities: PaperRecord, CitationEntry, pipeline state and events
"""

from .entities import (
    CitationEntry,
    EventStatus,
    PaperRecord,
    PipelineEvent,
    PipelineStage,
    PipelineState,
)

__all__ = [
    "CitationEntry",
    "EventStatus",
    "PaperRecord",
    "PipelineEvent",
    "PipelineStage",
    "PipelineState",
]
