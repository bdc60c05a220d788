"""
Exception hierarchy for Scholar QA.

    ScholarQAError
    ├── APIError
    │   ├── SourceUnavailableError     one academic source failed
    │   ├── RateLimitError             429 / open circuit breaker
    │   └── TextGenerationError        language-model call failed
    ├── DataError
    │   └── ProviderResponseInvalidError
    ├── ValidationError
    │   └── MissingInputError          blank question (HTTP 400)
    ├── StreamTransportError           SSE client went away
    ├── PipelineError                  a stage failed (HTTP 500)
    └── ConfigurationError             bad or missing settings

Recoverable conditions (one source down, an unusable filter reply) are
absorbed where they occur. Everything else moves the pipeline to ``failed``.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum, auto
from typing import Any


class ErrorSeverity(Enum):
    WARNING = auto()  # request continues
    ERROR = auto()  # request fails
    CRITICAL = auto()  # process cannot serve requests
    TRANSIENT = auto()  # retry may help


class ErrorCategory(Enum):
    API = "api"
    VALIDATION = "validation"
    DATA = "data"
    CONFIGURATION = "config"
    TRANSPORT = "transport"
    PIPELINE = "pipeline"


@dataclass(frozen=True, slots=True)
class ErrorContext:
    """Where an error happened and what the caller can do about it."""

    operation: str | None = None
    source: str | None = None
    stage: str | None = None
    input_value: Any = None
    suggestion: str | None = None
    retry_after: float | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


def _context(context: ErrorContext | None, **overrides: Any) -> ErrorContext:
    """Copy ``context`` with the non-None ``overrides`` applied."""
    return replace(context or ErrorContext(), **{k: v for k, v in overrides.items() if v is not None})


class ScholarQAError(Exception):
    """Base exception: message plus context, severity, category and retry hint."""

    category: ErrorCategory = ErrorCategory.API
    severity: ErrorSeverity = ErrorSeverity.ERROR
    retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        context: ErrorContext | None = None,
        severity: ErrorSeverity | None = None,
        retryable: bool | None = None,
    ) -> None:
        super().__init__(message)
        self.context = context or ErrorContext()
        if severity is not None:
            self.severity = severity
        if retryable is not None:
            self.retryable = retryable

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready representation."""
        result: dict[str, Any] = {
            "error": str(self),
            "category": self.category.value,
            "severity": self.severity.name.lower(),
            "retryable": self.retryable,
        }
        optional = {
            "stage": self.context.stage,
            "source": self.context.source,
            "suggestion": self.context.suggestion,
            "retry_after_seconds": self.context.retry_after,
        }
        result.update({k: v for k, v in optional.items() if v})
        return result


# =============================================================================
# External services
# =============================================================================


class APIError(ScholarQAError):
    retryable = True


class SourceUnavailableError(APIError):
    """An academic search provider failed or used up its retries."""

    severity = ErrorSeverity.TRANSIENT

    def __init__(
        self,
        message: str = "Source unavailable",
        *,
        source: str = "unknown",
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(f"{source}: {message}", context=_context(context, source=source, operation="search"))
        self.source = source


class RateLimitError(APIError):
    """A rate limit or an open circuit breaker blocked the call."""

    severity = ErrorSeverity.TRANSIENT

    def __init__(
        self,
        message: str = "API rate limit exceeded",
        *,
        retry_after: float = 1.0,
        context: ErrorContext | None = None,
    ) -> None:
        ctx = _context(context, retry_after=retry_after)
        if ctx.suggestion is None:
            ctx = replace(ctx, suggestion="Wait and retry the request")
        super().__init__(message, context=ctx)


class TextGenerationError(APIError):
    """The text-generation provider call failed."""

    retryable = False

    def __init__(self, message: str = "Text generation failed", *, context: ErrorContext | None = None) -> None:
        super().__init__(message, context=context)


# =============================================================================
# Data and validation
# =============================================================================


class DataError(ScholarQAError):
    category = ErrorCategory.DATA


class ProviderResponseInvalidError(DataError):
    """The model did not return the strict JSON a stage requires."""

    def __init__(self, message: str, *, raw: str | None = None, context: ErrorContext | None = None) -> None:
        super().__init__(f"Invalid provider response: {message}", context=_context(context, input_value=raw))
        self.raw = raw


class ValidationError(ScholarQAError):
    category = ErrorCategory.VALIDATION
    severity = ErrorSeverity.WARNING


class MissingInputError(ValidationError):
    """A required request field is absent or blank."""

    def __init__(
        self,
        field_name: str = "query",
        message: str | None = None,
        *,
        context: ErrorContext | None = None,
    ) -> None:
        ctx = context or ErrorContext(suggestion=f"Provide a non-empty '{field_name}'")
        super().__init__(message or f"Missing {field_name} parameter", context=ctx)
        self.field_name = field_name


# =============================================================================
# Transport, pipeline and configuration
# =============================================================================


class StreamTransportError(ScholarQAError):
    """The SSE connection to the caller broke."""

    category = ErrorCategory.TRANSPORT
    severity = ErrorSeverity.WARNING

    def __init__(self, message: str = "Client disconnected", *, context: ErrorContext | None = None) -> None:
        super().__init__(message, context=context)


class PipelineError(ScholarQAError):
    """A pipeline stage failed; ``stage`` names it."""

    category = ErrorCategory.PIPELINE

    def __init__(self, message: str, *, stage: str, context: ErrorContext | None = None) -> None:
        super().__init__(message, context=_context(context, stage=stage))
        self.stage = stage


class ConfigurationError(ScholarQAError):
    """Settings are missing or malformed (API key, source names, numbers)."""

    category = ErrorCategory.CONFIGURATION
    severity = ErrorSeverity.CRITICAL
