"""
ResearchPipeline - Answer one research question as a stream of events.

State machine:
    evaluating → generating (direct answer)                        → done
    evaluating → retrieving → filtering → analyzing → generating  → done
    any state  → failed

Every stage is announced with a ``stage_update``. Text stages announce
``streaming``, emit one ``token`` per increment and finish with a
``chunk_complete`` carrying the full stage text. The stream always ends with
exactly one ``complete`` or ``error`` event.

Architecture Decision:
    ``run()`` is an async generator. The transport decides how to deliver
    events (SSE frames, or draining into one JSON body via ``answer()``).
    Closing the generator closes the provider stream in flight, so an early
    client disconnect stops upstream generation.

Example:
    >>> pipeline = ResearchPipeline(provider, aggregator, relevance_filter)
    >>> async for event in pipeline.run("How does CRISPR base editing work?"):
    ...     print(event.to_sse())
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import AsyncIterator, Sequence
from contextlib import aclosing
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from scholar_qa.application import prompts
from scholar_qa.domain.entities import (
    CitationEntry,
    EventStatus,
    PaperRecord,
    PipelineEvent,
    PipelineStage,
    PipelineState,
)
from scholar_qa.infrastructure.llm import CompletionOptions, ModelTier, TextGenerationProvider
from scholar_qa.shared.exceptions import MissingInputError, PipelineError, ProviderResponseInvalidError
from scholar_qa.shared.json_reply import parse_json_reply

from .citation_builder import build_keys, citation_mapping, render_blocks

if TYPE_CHECKING:
    from scholar_qa.application.search import QueryAggregator, RelevanceFilter

logger = logging.getLogger(__name__)

EVALUATION_OPTIONS = CompletionOptions(tier=ModelTier.CHEAP, temperature=0.2, max_tokens=300)
DIRECT_ANSWER_OPTIONS = CompletionOptions(tier=ModelTier.PREMIUM, temperature=0.3, max_tokens=1500)
ANALYSIS_OPTIONS = CompletionOptions(tier=ModelTier.PREMIUM, temperature=0.2, max_tokens=1500)
ANSWER_OPTIONS = CompletionOptions(tier=ModelTier.PREMIUM, temperature=0.3, max_tokens=1500)


def new_request_id() -> str:
    return uuid.uuid4().hex[:8]


@dataclass(frozen=True)
class PipelineConfig:
    """Tunables of one pipeline instance."""

    target_count: int = 20
    max_papers: int = 10
    analysis_batch_size: int = 5
    cache_ttl: float = 3600.0
    search_timeout: float = 30.0
    expansion_length_threshold: int = 100


@dataclass(frozen=True)
class EvaluationDecision:
    can_answer: bool
    answer: str = ""
    query_word: str = ""


def parse_evaluation(reply: str) -> EvaluationDecision:
    """
    Decode the evaluator's strict-JSON verdict.

    Raises:
        ProviderResponseInvalidError: not an object, missing keys,
            non-bool ``canAnswer`` or empty ``queryWord``
    """
    data = parse_json_reply(reply, dict)
    can_answer = data.get("canAnswer")
    if not isinstance(can_answer, bool):
        raise ProviderResponseInvalidError("'canAnswer' must be a boolean", raw=reply)

    if can_answer:
        answer = data.get("answer")
        if not isinstance(answer, str):
            raise ProviderResponseInvalidError("'answer' missing", raw=reply)
        return EvaluationDecision(can_answer=True, answer=answer.strip())

    query_word = data.get("queryWord")
    if not isinstance(query_word, str) or not query_word.strip():
        raise ProviderResponseInvalidError("'queryWord' missing or empty", raw=reply)
    return EvaluationDecision(can_answer=False, query_word=query_word.strip())


def _batches(entries: Sequence[CitationEntry], size: int) -> list[Sequence[CitationEntry]]:
    size = max(1, size)
    return [entries[i : i + size] for i in range(0, len(entries), size)]


class ResearchPipeline:
    """Drive one question from evaluation to a cited answer."""

    def __init__(
        self,
        provider: TextGenerationProvider,
        aggregator: QueryAggregator,
        relevance_filter: RelevanceFilter,
        config: PipelineConfig | None = None,
    ) -> None:
        self._provider = provider
        self._aggregator = aggregator
        self._filter = relevance_filter
        self._config = config or PipelineConfig()

    @property
    def config(self) -> PipelineConfig:
        return self._config

    # =========================================================================
    # Public API
    # =========================================================================

    async def run(self, question: str, request_id: str | None = None) -> AsyncIterator[PipelineEvent]:
        """
        Yield the events for one question.

        Raises:
            MissingInputError: blank question (before any event)
        """
        if not question or not question.strip():
            raise MissingInputError("query")
        question = question.strip()
        request_id = request_id or new_request_id()
        state = PipelineState(question=question)

        logger.info(f"[{request_id}] Question: {question!r}")
        yield PipelineEvent(
            EventStatus.CONNECTED,
            {"requestId": request_id, "message": "Connected, processing question"},
        )

        try:
            async with aclosing(self._execute(state, request_id)) as events:
                async for event in events:
                    yield event
        except Exception as e:
            failed_stage = state.stage
            state.advance(PipelineStage.FAILED)
            logger.exception(f"[{request_id}] Pipeline failed during {failed_stage.value}: {e}")
            yield PipelineEvent(EventStatus.ERROR, {"stage": failed_stage.value, "error": str(e)}, cause=e)

    async def answer(self, question: str, request_id: str | None = None) -> dict[str, Any]:
        """
        Run the pipeline to completion and return the result payload.

        Raises:
            MissingInputError: blank question
            PipelineError: a stage failed
        """
        async with aclosing(self.run(question, request_id)) as events:
            async for event in events:
                if event.status is EventStatus.COMPLETE:
                    return event.data["result"]
                if event.status is EventStatus.ERROR:
                    raise PipelineError(event.data["error"], stage=event.data["stage"]) from event.cause
        raise PipelineError("Pipeline ended without a result", stage=PipelineStage.FAILED.value)

    # =========================================================================
    # Stages
    # =========================================================================

    async def _execute(self, state: PipelineState, request_id: str) -> AsyncIterator[PipelineEvent]:
        yield self._enter(state, PipelineStage.EVALUATING, "Evaluating if question requires research...")
        decision = await self._evaluate(state.question)
        state.record_step("Evaluated question scope")
        logger.info(
            f"[{request_id}] Decision: "
            + ("internal knowledge" if decision.can_answer else f"research with '{decision.query_word}'")
        )

        if decision.can_answer:
            async with aclosing(self._direct_answer(state, decision)) as events:
                async for event in events:
                    yield event
            return

        state.query_word = decision.query_word
        state.record_step("Determined research needed")

        # Retrieving
        yield self._enter(
            state,
            PipelineStage.RETRIEVING,
            f'Searching for relevant papers using keyword: "{state.query_word}"',
        )
        yield PipelineEvent(
            EventStatus.SUBSTAGE_UPDATE,
            {
                "stage": state.stage.value,
                "substage": "searching",
                "message": f"Querying {', '.join(self._aggregator.source_names)}",
            },
        )
        papers = await self._aggregator.aggregate(state.query_word, self._config.target_count)
        state.papers = papers
        state.record_step(f"Retrieved {len(papers)} papers")
        yield self._papers_event(state, papers)
        logger.info(f"[{request_id}] Retrieved {len(papers)} papers")

        if not papers:
            state.record_step("Generated response")
            state.advance(PipelineStage.DONE)
            yield self._complete(
                {
                    "answer": prompts.NO_PAPERS_ANSWER.format(question=state.question, query_word=state.query_word),
                    "queryWord": state.query_word,
                    "citations": [],
                    "processSteps": list(state.process_steps),
                }
            )
            return

        # Filtering
        yield self._enter(state, PipelineStage.FILTERING, "Selecting the most relevant papers...")
        selected = await self._filter.filter(state.question, papers, self._config.max_papers)
        if len(selected) < len(papers):
            state.record_step(f"Selected {len(selected)} most relevant papers")
        state.papers = selected

        # Analyzing
        state.citations = build_keys(selected)
        yield self._enter(state, PipelineStage.ANALYZING, f"Analyzing {len(selected)} research papers...")
        async with aclosing(self._analyze(state)) as events:
            async for event in events:
                yield event
        state.record_step("Analyzed paper content")

        # Generating
        yield self._enter(state, PipelineStage.GENERATING, "Generating final answer with proper citations...")
        keys = list(dict.fromkeys(entry.citation_key for entry in state.citations))
        prompt = prompts.ANSWER_PROMPT.format(
            question=state.question,
            analysis=state.accumulated_analysis,
            keys=", ".join(f"[{key}]" for key in keys),
        )
        async with aclosing(self._stream_stage(state, prompt, prompts.ANSWER_SYSTEM, ANSWER_OPTIONS)) as events:
            async for event in events:
                yield event
        state.record_step("Generated comprehensive answer with citations")

        state.advance(PipelineStage.DONE)
        logger.info(f"[{request_id}] Answer complete ({len(state.accumulated_answer)} chars)")
        yield self._complete(
            {
                "answer": state.accumulated_answer,
                "citations": [entry.to_dict() for entry in state.citations],
                "queryWord": state.query_word,
                "paperAnalysis": state.accumulated_analysis,
                "citationMapping": citation_mapping(state.citations),
                "processSteps": list(state.process_steps),
            }
        )

    async def _evaluate(self, question: str) -> EvaluationDecision:
        reply = await self._provider.complete(
            prompts.EVALUATION_PROMPT.format(question=question),
            prompts.EVALUATION_SYSTEM,
            EVALUATION_OPTIONS,
        )
        return parse_evaluation(reply)

    async def _direct_answer(self, state: PipelineState, decision: EvaluationDecision) -> AsyncIterator[PipelineEvent]:
        state.direct = True
        state.record_step("Determined internal knowledge sufficient")
        yield self._enter(state, PipelineStage.GENERATING, "Generating answer from internal knowledge...")

        prompt = prompts.DIRECT_ANSWER_PROMPT.format(question=state.question)
        stream = self._stream_stage(
            state,
            prompt,
            prompts.DIRECT_ANSWER_SYSTEM,
            DIRECT_ANSWER_OPTIONS,
            fallback=decision.answer,
        )
        async with aclosing(stream) as events:
            async for event in events:
                yield event
        state.record_step("Generated answer")

        state.advance(PipelineStage.DONE)
        yield self._complete(
            {
                "answer": state.accumulated_answer,
                "citations": [],
                "processSteps": list(state.process_steps),
                "note": prompts.DIRECT_ANSWER_NOTE,
            }
        )

    async def _analyze(self, state: PipelineState) -> AsyncIterator[PipelineEvent]:
        """Stream the analysis, in batches when there are many papers."""
        batches = _batches(state.citations, self._config.analysis_batch_size)
        yield self._streaming(state, "Streaming paper analysis...")

        outputs: list[str] = []
        for number, batch in enumerate(batches, start=1):
            if len(batches) > 1:
                yield PipelineEvent(
                    EventStatus.SUBSTAGE_UPDATE,
                    {
                        "stage": state.stage.value,
                        "substage": "batch",
                        "message": f"Analyzing batch {number} of {len(batches)} ({len(batch)} papers)",
                    },
                )
            if outputs:
                yield self._token(state, "\n\n")

            prompt = prompts.ANALYSIS_PROMPT.format(question=state.question, citations=render_blocks(batch))
            parts: list[str] = []
            async with aclosing(self._tokens(prompt, prompts.ANALYSIS_SYSTEM, ANALYSIS_OPTIONS)) as tokens:
                async for token in tokens:
                    parts.append(token)
                    yield self._token(state, token)
            outputs.append("".join(parts))

        state.accumulated_analysis = "\n\n".join(outputs)
        yield self._chunk_complete(state, state.accumulated_analysis)

    async def _stream_stage(
        self,
        state: PipelineState,
        prompt: str,
        system_instruction: str,
        options: CompletionOptions,
        fallback: str = "",
    ) -> AsyncIterator[PipelineEvent]:
        """Stream one answer into ``state.accumulated_answer``."""
        yield self._streaming(state, "Streaming answer...")
        parts: list[str] = []
        async with aclosing(self._tokens(prompt, system_instruction, options)) as tokens:
            async for token in tokens:
                parts.append(token)
                yield self._token(state, token)

        if not parts and fallback:
            parts.append(fallback)
            yield self._token(state, fallback)

        state.accumulated_answer = "".join(parts)
        yield self._chunk_complete(state, state.accumulated_answer)

    async def _tokens(self, prompt: str, system_instruction: str, options: CompletionOptions) -> AsyncIterator[str]:
        async with aclosing(self._provider.stream(prompt, system_instruction, options)) as stream:
            async for token in stream:
                if token:
                    yield token

    # =========================================================================
    # Event builders
    # =========================================================================

    @staticmethod
    def _enter(state: PipelineState, stage: PipelineStage, message: str) -> PipelineEvent:
        state.advance(stage)
        return PipelineEvent(EventStatus.STAGE_UPDATE, {"stage": stage.value, "message": message})

    @staticmethod
    def _streaming(state: PipelineState, message: str) -> PipelineEvent:
        return PipelineEvent(EventStatus.STREAMING, {"stage": state.stage.value, "message": message})

    @staticmethod
    def _token(state: PipelineState, content: str) -> PipelineEvent:
        return PipelineEvent(EventStatus.TOKEN, {"stage": state.stage.value, "content": content})

    @staticmethod
    def _chunk_complete(state: PipelineState, content: str) -> PipelineEvent:
        return PipelineEvent(EventStatus.CHUNK_COMPLETE, {"stage": state.stage.value, "content": content})

    @staticmethod
    def _complete(result: dict[str, Any]) -> PipelineEvent:
        return PipelineEvent(EventStatus.COMPLETE, {"result": result})

    @staticmethod
    def _papers_event(state: PipelineState, papers: Sequence[PaperRecord]) -> PipelineEvent:
        sources: dict[str, int] = {}
        for paper in papers:
            sources[paper.source] = sources.get(paper.source, 0) + 1
        return PipelineEvent(
            EventStatus.PAPERS_FINDING,
            {
                "stage": state.stage.value,
                "count": len(papers),
                "sources": sources,
                "papers": [{"title": p.title, "source": p.source, "year": p.year} for p in papers],
            },
        )
