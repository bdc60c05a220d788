"""
OpenAI-compatible chat-completion provider.

Works against api.openai.com or any gateway speaking the same protocol
(``base_url``). Two model tiers are configured: a cheap model for
evaluation, expansion and filtering, and a premium model for analysis and
the final answer.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator

import openai
from openai import AsyncOpenAI

from scholar_qa.shared.exceptions import ConfigurationError, TextGenerationError

from .base import CompletionOptions, ModelTier

logger = logging.getLogger(__name__)

DEFAULT_CHEAP_MODEL = "gpt-4o-mini"
DEFAULT_PREMIUM_MODEL = "gpt-4o"


class OpenAIProvider:
    """
    Text generation through ``openai.AsyncOpenAI``.

    Usage:
        provider = OpenAIProvider(api_key="sk-...")
        text = await provider.complete("Summarize ...", options=CompletionOptions(tier=ModelTier.CHEAP))
        async for token in provider.stream("Explain ..."):
            ...
    """

    def __init__(
        self,
        api_key: str | None,
        base_url: str | None = None,
        cheap_model: str = DEFAULT_CHEAP_MODEL,
        premium_model: str = DEFAULT_PREMIUM_MODEL,
        timeout: float = 60.0,
        client: AsyncOpenAI | None = None,
    ) -> None:
        if client is None:
            if not api_key:
                raise ConfigurationError("OPENAI_API_KEY is required for text generation")
            client = AsyncOpenAI(api_key=api_key, base_url=base_url or None, timeout=timeout)
        self._client = client
        self._models = {
            ModelTier.CHEAP: cheap_model,
            ModelTier.PREMIUM: premium_model,
        }

    def model_for(self, tier: ModelTier) -> str:
        return self._models[tier]

    @staticmethod
    def _messages(prompt: str, system_instruction: str | None) -> list[dict[str, str]]:
        messages = []
        if system_instruction:
            messages.append({"role": "system", "content": system_instruction})
        messages.append({"role": "user", "content": prompt})
        return messages

    def _request_kwargs(self, options: CompletionOptions) -> dict:
        kwargs = {
            "model": self._models[options.tier],
            "temperature": options.temperature,
        }
        if options.max_tokens is not None:
            kwargs["max_tokens"] = options.max_tokens
        return kwargs

    async def complete(
        self,
        prompt: str,
        system_instruction: str | None = None,
        options: CompletionOptions | None = None,
    ) -> str:
        """Return the full completion text ("" when the model sent nothing)."""
        options = options or CompletionOptions()
        try:
            response = await self._client.chat.completions.create(
                messages=self._messages(prompt, system_instruction),
                **self._request_kwargs(options),
            )
        except openai.OpenAIError as e:
            logger.error(f"Completion failed ({options.tier.value}): {e}")
            raise TextGenerationError(f"Completion failed: {e}") from e

        if not response.choices:
            return ""
        return (response.choices[0].message.content or "").strip()

    async def stream(
        self,
        prompt: str,
        system_instruction: str | None = None,
        options: CompletionOptions | None = None,
    ) -> AsyncIterator[str]:
        """
        Yield text increments in arrival order.

        The upstream HTTP stream is closed when the consumer stops early.
        """
        options = options or CompletionOptions(tier=ModelTier.PREMIUM)
        try:
            response = await self._client.chat.completions.create(
                messages=self._messages(prompt, system_instruction),
                stream=True,
                **self._request_kwargs(options),
            )
        except openai.OpenAIError as e:
            logger.error(f"Stream failed to start ({options.tier.value}): {e}")
            raise TextGenerationError(f"Stream failed: {e}") from e

        try:
            async for chunk in response:
                if not chunk.choices:
                    continue
                content = chunk.choices[0].delta.content
                if content:
                    yield content
        except openai.OpenAIError as e:
            logger.error(f"Stream interrupted ({options.tier.value}): {e}")
            raise TextGenerationError(f"Stream interrupted: {e}") from e
        finally:
            await response.close()
