"""
Shared kernel for Scholar QA.

Provides:
- Unified exception hierarchy
- Async utilities for external API calls
- Strict JSON parsing of model replies
"""

from .async_utils import (
    CircuitBreaker,
    backoff_delay,
    gather_with_errors,
    timeout_with_fallback,
)
from .exceptions import (
    APIError,
    ConfigurationError,
    DataError,
    ErrorCategory,
    ErrorContext,
    ErrorSeverity,
    MissingInputError,
    PipelineError,
    ProviderResponseInvalidError,
    RateLimitError,
    ScholarQAError,
    SourceUnavailableError,
    StreamTransportError,
    TextGenerationError,
    ValidationError,
)
from .json_reply import parse_json_reply, strip_code_fences

__all__ = [
    "APIError",
    "CircuitBreaker",
    "ConfigurationError",
    "DataError",
    "ErrorCategory",
    "ErrorContext",
    "ErrorSeverity",
    "MissingInputError",
    "PipelineError",
    "ProviderResponseInvalidError",
    "RateLimitError",
    "ScholarQAError",
    "SourceUnavailableError",
    "StreamTransportError",
    "TextGenerationError",
    "ValidationError",
    "backoff_delay",
    "gather_with_errors",
    "parse_json_reply",
    "strip_code_fences",
    "timeout_with_fallback",
]
