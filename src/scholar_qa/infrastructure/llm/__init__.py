"""
Text generation providers.

- OpenAIProvider: OpenAI-compatible chat completions (complete + stream)
"""

from .base import CompletionOptions, ModelTier, TextGenerationProvider
from .openai_provider import DEFAULT_CHEAP_MODEL, DEFAULT_PREMIUM_MODEL, OpenAIProvider

__all__ = [
    "DEFAULT_CHEAP_MODEL",
    "DEFAULT_PREMIUM_MODEL",
    "CompletionOptions",
    "ModelTier",
    "OpenAIProvider",
    "TextGenerationProvider",
]
