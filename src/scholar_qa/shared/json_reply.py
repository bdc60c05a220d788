"""Parsing of strict-JSON replies from language models."""

from __future__ import annotations

import json
import re
from typing import Any, TypeVar

from .exceptions import ProviderResponseInvalidError

T = TypeVar("T")

_FENCE = re.compile(r"^\s*```[a-zA-Z0-9_-]*\s*\n?(.*?)\n?\s*```\s*$", re.DOTALL)


def strip_code_fences(text: str) -> str:
    """Remove a surrounding Markdown code fence (```json ... ```), if any."""
    match = _FENCE.match(text)
    if match:
        return match.group(1).strip()
    return text.strip()


def parse_json_reply(text: str | None, expected: type[T]) -> T:
    """
    Decode a model reply that must be a JSON value of type ``expected``.

    Raises:
        ProviderResponseInvalidError: empty reply, invalid JSON, or wrong type
    """
    if not text or not text.strip():
        raise ProviderResponseInvalidError("empty reply", raw=text)
    cleaned = strip_code_fences(text)
    try:
        value: Any = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise ProviderResponseInvalidError(f"not JSON ({e.msg})", raw=text) from e
    if not isinstance(value, expected):
        raise ProviderResponseInvalidError(
            f"expected {expected.__name__}, got {type(value).__name__}",
            raw=text,
        )
    return value
