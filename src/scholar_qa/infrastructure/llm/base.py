"""Text-generation contract shared by every provider."""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass
from enum import Enum
from typing import Protocol


class ModelTier(Enum):
    """Cheap tier for routing/JSON tasks, premium tier for user-facing prose."""

    CHEAP = "cheap"
    PREMIUM = "premium"


@dataclass(frozen=True, slots=True)
class CompletionOptions:
    tier: ModelTier = ModelTier.CHEAP
    temperature: float = 0.2
    max_tokens: int | None = None


class TextGenerationProvider(Protocol):
    """
    Anything that can complete a prompt, either in one piece or as a stream.

    Both methods raise TextGenerationError when the provider call fails.
    """

    async def complete(
        self,
        prompt: str,
        system_instruction: str | None = None,
        options: CompletionOptions | None = None,
    ) -> str: ...

    def stream(
        self,
        prompt: str,
        system_instruction: str | None = None,
        options: CompletionOptions | None = None,
    ) -> AsyncIterator[str]: ...
