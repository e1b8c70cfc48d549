"""Completion backend selection and JSON helpers for model replies."""

from __future__ import annotations

import json
import logging
import os
from json import JSONDecodeError
from typing import Any

from openai import OpenAI

from errors import ModelReplyError

DEFAULT_PROVIDER = "anthropic"
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
OPENAI_TEMPERATURE = float(os.getenv("OPENAI_TEMPERATURE", "0.1"))

LOGGER = logging.getLogger(__name__)


def complete(prompt: str, *, system: str | None = None, max_tokens: int = 1000) -> str:
    """Send one user prompt to the configured completion backend and return its text.

    COMPLETION_PROVIDER picks the backend, "anthropic" by default or "openai".
    """
    provider = os.getenv("COMPLETION_PROVIDER", DEFAULT_PROVIDER).strip().lower()

    if provider == "anthropic":
        from anthropic_client import claude_chat  # noqa: PLC0415

        return claude_chat(prompt, system=system, max_tokens=max_tokens)
    if provider == "openai":
        return _openai_complete(prompt, system, max_tokens)
    raise ValueError(f"Unknown COMPLETION_PROVIDER: {provider!r}")


def _openai_complete(prompt: str, system: str | None, max_tokens: int) -> str:
    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        raise RuntimeError("OPENAI_API_KEY environment variable is required")

    messages = [{"role": "user", "content": prompt}]
    if system:
        messages.insert(0, {"role": "system", "content": system})

    LOGGER.debug("OpenAI request model=%s prompt_chars=%s", OPENAI_MODEL, len(prompt))
    response = OpenAI(api_key=api_key).chat.completions.create(
        model=OPENAI_MODEL,
        temperature=OPENAI_TEMPERATURE,
        max_completion_tokens=max_tokens,
        messages=messages,
    )

    reply = (response.choices[0].message.content or "").strip()
    if not reply:
        raise ModelReplyError(f"{OPENAI_MODEL} returned no text")
    return reply


def parse_json_object(reply: str) -> dict[str, Any]:
    """Decode a model reply into a JSON object, tolerating prose around it."""
    try:
        parsed = json.loads(reply)
    except JSONDecodeError:
        parsed = _first_embedded_object(reply)

    if not isinstance(parsed, dict):
        raise ModelReplyError(f"Expected a JSON object, got {type(parsed).__name__}")
    return parsed


def _first_embedded_object(reply: str) -> dict[str, Any]:
    decoder = json.JSONDecoder()
    start = reply.find("{")
    while start != -1:
        try:
            candidate, _ = decoder.raw_decode(reply, start)
        except JSONDecodeError:
            candidate = None
        if isinstance(candidate, dict):
            return candidate
        start = reply.find("{", start + 1)
    raise ModelReplyError("No JSON object found in model reply")
