"""
HTTP API Server for Scholar QA.

Endpoints:
- GET  /question?query=...[&sse=true]  JSON result, or SSE when sse=true
- POST /question {"query": ..., "stream": false}
- GET  /stream-question?query=...      always SSE
- GET  /health

Server-sent events carry one JSON object per frame (``data: {...}\\n\\n``)
with a ``status`` discriminator; the last frame is ``complete`` or ``error``.
"""

from __future__ import annotations

import logging
import traceback
from collections.abc import AsyncIterator
from contextlib import aclosing, asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI, Query, Request
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel

from scholar_qa.application.answer import ResearchPipeline, new_request_id
from scholar_qa.container import ApplicationContainer, close_container
from scholar_qa.shared.exceptions import MissingInputError, PipelineError, StreamTransportError

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for the server process."""
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)


# Pydantic models for API requests/responses
class QuestionRequest(BaseModel):
    """Body of POST /question."""

    query: str | None = None
    stream: bool = False


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    environment: str
    timestamp: str


class ErrorResponse(BaseModel):
    """Error response model."""

    error: str
    stage: str | None = None
    traceback: str | None = None


def _require_query(query: str | None) -> str:
    if query is None or not query.strip():
        raise MissingInputError("query")
    return query.strip()


def create_app(container: ApplicationContainer) -> FastAPI:
    """
    Create the FastAPI app around a configured container.

    Args:
        container: Container whose ``config`` is already loaded

    Returns:
        Configured FastAPI instance.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info(f"Scholar QA API starting ({container.config.app.environment() or 'production'})")
        yield
        logger.info("Scholar QA API shutting down")
        await close_container(container)

    version = container.config.app.version() or "0.0.0"
    app = FastAPI(
        title="Scholar QA",
        description="Research questions answered from scholarly literature, with citations.",
        version=version,
        lifespan=lifespan,
    )
    app.state.container = container

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def is_development() -> bool:
        return (container.config.app.environment() or "") == "development"

    def pipeline() -> ResearchPipeline:
        return container.pipeline()

    # =========================================================================
    # Error handlers
    # =========================================================================

    @app.exception_handler(MissingInputError)
    async def missing_input_handler(request: Request, exc: MissingInputError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.exception_handler(RequestValidationError)
    async def validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        # An unreadable POST /question body carries no usable question
        if request.method == "POST" and request.url.path == "/question":
            return await missing_input_handler(request, MissingInputError("query"))
        return await request_validation_exception_handler(request, exc)

    def error_response(exc: Exception, stage: str | None) -> JSONResponse:
        body = ErrorResponse(error=str(exc), stage=stage)
        if is_development():
            body.traceback = "".join(traceback.format_exception(exc))
        return JSONResponse(status_code=500, content=body.model_dump(exclude_none=True))

    # =========================================================================
    # Handlers
    # =========================================================================

    async def event_stream(request: Request, query: str, request_id: str) -> AsyncIterator[str]:
        async with aclosing(pipeline().run(query, request_id)) as events:
            try:
                async for event in events:
                    if await request.is_disconnected():
                        raise StreamTransportError()
                    yield event.to_sse()
            except StreamTransportError as e:
                logger.warning(f"[{request_id}] {e}, stopping pipeline")

    def sse_response(request: Request, query: str) -> StreamingResponse:
        request_id = new_request_id()
        logger.info(f"[{request_id}] SSE request: {query!r}")
        return StreamingResponse(
            event_stream(request, query, request_id),
            media_type="text/event-stream",
            headers=SSE_HEADERS,
        )

    async def json_response(query: str) -> JSONResponse:
        request_id = new_request_id()
        logger.info(f"[{request_id}] JSON request: {query!r}")
        try:
            result = await pipeline().answer(query, request_id)
        except PipelineError as e:
            logger.error(f"[{request_id}] Request failed in {e.stage}: {e}")
            return error_response(e, e.stage)
        return JSONResponse(content=result)

    @app.get("/health", response_model=HealthResponse)
    async def health_check() -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse(
            status="ok",
            version=version,
            environment=container.config.app.environment() or "production",
            timestamp=datetime.now(timezone.utc).isoformat(),
        )

    @app.get("/question", responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}})
    async def ask_question(
        request: Request,
        query: str | None = Query(default=None),
        sse: bool = Query(default=False),
    ) -> Any:
        """Answer a question as JSON, or as server-sent events with ``sse=true``."""
        query = _require_query(query)
        if sse:
            return sse_response(request, query)
        return await json_response(query)

    @app.post("/question", responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}})
    async def post_question(request: Request, body: QuestionRequest | None = None) -> Any:
        """Answer a question sent as a JSON body."""
        body = body or QuestionRequest()
        query = _require_query(body.query)
        if body.stream:
            return sse_response(request, query)
        return await json_response(query)

    @app.get("/stream-question", responses={400: {"model": ErrorResponse}})
    async def stream_question(request: Request, query: str | None = Query(default=None)) -> StreamingResponse:
        """Always stream server-sent events."""
        return sse_response(request, _require_query(query))

    return app
