"""Shared LLM calling utilities.

Centralizes the generative text capability used by the outline generator
and the section writer.  Calls go through the Anthropic Messages API;
components receive a :class:`TextGenerator` (or any callable with the
same signature) at construction time so tests can substitute fakes.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Protocol

import anthropic

logger = logging.getLogger(__name__)


class LLMError(Exception):
    """Base error for LLM calls."""


class CompleteFn(Protocol):
    def __call__(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        max_tokens: int,
        temperature: float,
        label: str = ...,
    ) -> str: ...


# ---------------------------------------------------------------------------
# Model name mapping
# ---------------------------------------------------------------------------

_MODEL_MAP: dict[str, str] = {
    "sonnet": "claude-sonnet-4-6",
    "haiku": "claude-haiku-4-5-20251001",
    "opus": "claude-opus-4-6",
}

_DEFAULT_MODEL = "claude-sonnet-4-6"


def _resolve_model(model: str | None) -> str:
    """Resolve a short model name to an API model ID."""
    if model is None:
        return _DEFAULT_MODEL
    return _MODEL_MAP.get(model, model)


class TextGenerator:
    """Generative text capability backed by the Anthropic API.

    The client is built eagerly so a missing key fails at startup
    rather than on the first request.
    """

    def __init__(self, api_key: str, *, model: str | None = None, timeout: int = 120) -> None:
        if not api_key.strip():
            raise LLMError("ANTHROPIC_API_KEY not set")
        self.model = _resolve_model(model)
        self._client = anthropic.Anthropic(api_key=api_key, timeout=timeout)

    def __call__(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        max_tokens: int,
        temperature: float,
        label: str = "completion",
    ) -> str:
        """Return the stripped response text.

        Raises:
            LLMError: On any API failure or an empty response.
        """
        logger.debug("Calling Anthropic API model=%s (%s)", self.model, label)

        kwargs: dict[str, object] = {
            "model": self.model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [{"role": "user", "content": user_prompt}],
        }
        if system_prompt.strip():
            kwargs["system"] = system_prompt

        try:
            response = self._client.messages.create(**kwargs)  # type: ignore[arg-type]
        except anthropic.APIError as exc:
            raise LLMError(f"Anthropic API failed (label={label}): {exc}") from exc

        text_parts: list[str] = []
        for block in response.content:
            if block.type == "text":
                text_parts.append(block.text)

        result = "".join(text_parts).strip()
        if not result:
            raise LLMError(f"Anthropic API returned empty response (label={label})")
        return result


# ---------------------------------------------------------------------------
# JSON output helpers
# ---------------------------------------------------------------------------

_JSON_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?```", re.DOTALL)
_JSON_ARRAY_RE = re.compile(r"\[.*\]", re.DOTALL)


def strip_json_fences(text: str) -> str:
    """Strip markdown code fences from LLM JSON output.

    Handles Claude's tendency to wrap JSON in ```json ... ``` blocks.
    """
    text = text.strip()
    match = _JSON_FENCE_RE.search(text)
    if match:
        return match.group(1).strip()
    return text


def extract_json_array(text: str) -> list[object]:
    """Return the first JSON array found in *text*, or ``[]``.

    Never raises: malformed or missing arrays yield an empty list.
    """
    match = _JSON_ARRAY_RE.search(strip_json_fences(text))
    if not match:
        return []
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError:
        logger.debug("No valid JSON array in LLM output")
        return []
    return parsed if isinstance(parsed, list) else []
