"""Single-turn Claude completions for term generation and relevance scoring."""

from __future__ import annotations

import logging
import os
from typing import Any

import anthropic

from errors import ModelReplyError

DEFAULT_CLAUDE_MODEL = "claude-3-5-sonnet-20241022"
CLAUDE_TEMPERATURE = float(os.getenv("CLAUDE_TEMPERATURE", "0.2"))

LOGGER = logging.getLogger(__name__)


def claude_chat(prompt: str, *, system: str | None = None, max_tokens: int = 1024) -> str:
    """Send ``prompt`` as the only user turn and return Claude's text reply.

    Raises RuntimeError without ANTHROPIC_API_KEY and ModelReplyError when the
    reply carries no text.
    """
    api_key = os.getenv("ANTHROPIC_API_KEY")
    if not api_key:
        raise RuntimeError("ANTHROPIC_API_KEY environment variable is required")

    model = os.getenv("CLAUDE_MODEL", DEFAULT_CLAUDE_MODEL)
    request: dict[str, Any] = {
        "model": model,
        "max_tokens": max_tokens,
        "temperature": CLAUDE_TEMPERATURE,
        "messages": [{"role": "user", "content": prompt}],
    }
    if system:
        request["system"] = system

    LOGGER.debug("Claude request model=%s prompt_chars=%s", model, len(prompt))
    response = anthropic.Anthropic(api_key=api_key).messages.create(**request)

    reply = "".join(block.text for block in response.content if getattr(block, "type", None) == "text").strip()
    if not reply:
        raise ModelReplyError(f"{model} returned no text")
    return reply
