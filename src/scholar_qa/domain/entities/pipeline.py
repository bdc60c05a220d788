"""
Pipeline domain entities for answering one research question.

- PipelineStage: state machine positions
- PipelineState: transient per-request state, mutated only by the orchestrator
- PipelineEvent: one server-sent event delivered to the caller
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .citation import CitationEntry
    from .paper import PaperRecord


class PipelineStage(Enum):
    """Stages of the question pipeline."""

    EVALUATING = "evaluating"
    RETRIEVING = "retrieving"
    FILTERING = "filtering"
    ANALYZING = "analyzing"
    GENERATING = "generating"
    DONE = "done"
    FAILED = "failed"


class EventStatus(Enum):
    """Discriminator carried in every streamed event."""

    CONNECTED = "connected"
    STAGE_UPDATE = "stage_update"
    SUBSTAGE_UPDATE = "substage_update"
    PAPERS_FINDING = "papers_finding"
    STREAMING = "streaming"
    TOKEN = "token"
    CHUNK_COMPLETE = "chunk_complete"
    COMPLETE = "complete"
    ERROR = "error"


TERMINAL_STATUSES: frozenset[EventStatus] = frozenset({EventStatus.COMPLETE, EventStatus.ERROR})


@dataclass(frozen=True, slots=True)
class PipelineEvent:
    """A single event emitted by the orchestrator."""

    status: EventStatus
    data: dict[str, Any] = field(default_factory=dict)
    # Exception behind an error event; never serialized
    cause: BaseException | None = field(default=None, compare=False, repr=False)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def stage(self) -> str | None:
        return self.data.get("stage")

    def to_dict(self) -> dict[str, Any]:
        return {"status": self.status.value, **self.data}

    def to_sse(self) -> str:
        """Render as one server-sent event frame."""
        return f"data: {json.dumps(self.to_dict(), ensure_ascii=False)}\n\n"


@dataclass
class PipelineState:
    """Transient state for one in-flight question."""

    question: str
    stage: PipelineStage = PipelineStage.EVALUATING
    query_word: str | None = None
    direct: bool = False
    papers: list[PaperRecord] = field(default_factory=list)
    citations: list[CitationEntry] = field(default_factory=list)
    accumulated_analysis: str = ""
    accumulated_answer: str = ""
    process_steps: list[str] = field(default_factory=list)

    def advance(self, stage: PipelineStage) -> None:
        self.stage = stage

    def record_step(self, label: str) -> None:
        self.process_steps.append(label)
