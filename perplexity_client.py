"""Perplexity API client for resolving a discussion's subject paper to a PMID."""

from __future__ import annotations

import logging
import os
import re

import requests

PERPLEXITY_API_URL = "https://api.perplexity.ai/chat/completions"
PERPLEXITY_MODEL = os.getenv("PERPLEXITY_MODEL", "sonar-pro")
PERPLEXITY_TEMPERATURE = float(os.getenv("PERPLEXITY_TEMPERATURE", "0.1"))
REQUEST_TIMEOUT_SECONDS = 60
NOT_FOUND = "NOT_FOUND"

LOGGER = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a research assistant specialized in identifying PubMed papers. "
    "Return ONLY the PMID number without any additional text. "
    f"If you can't find a PMID, respond with '{NOT_FOUND}'."
)

_PMID_DIGITS = re.compile(r"\b(\d{1,8})\b")


def resolve_pmid(text: str) -> str | None:
    """Ask Perplexity for the PMID of the paper described by ``text``.

    Returns None when no key is configured, the model answers NOT_FOUND,
    or the request fails; the caller then continues without a subject paper.
    """
    api_key = os.getenv("PERPLEXITY_API_KEY")
    if not api_key:
        LOGGER.warning("PMID resolution skipped: no PERPLEXITY_API_KEY configured.")
        return None
    if not text.strip():
        return None

    LOGGER.info("Resolving PMID with Perplexity for text: %s...", text[:100])
    try:
        content = _call_perplexity(api_key=api_key, text=text)
    except (requests.RequestException, RuntimeError) as exc:
        LOGGER.warning("Perplexity PMID resolution failed: %s", exc)
        return None

    pmid = parse_pmid_reply(content)
    LOGGER.info("Perplexity PMID resolution result: %s", pmid or NOT_FOUND)
    return pmid


def parse_pmid_reply(content: str) -> str | None:
    """Extract the PMID from a model reply, or None for NOT_FOUND / no digits."""
    if NOT_FOUND in content.upper():
        return None
    match = _PMID_DIGITS.search(content)
    return match.group(1) if match else None


def _call_perplexity(api_key: str, text: str) -> str:
    payload = {
        "model": PERPLEXITY_MODEL,
        "temperature": PERPLEXITY_TEMPERATURE,
        "top_p": 0.9,
        "max_tokens": 50,
        "messages": [
            {"role": "system", "content": SYSTEM_PROMPT},
            {
                "role": "user",
                "content": f'Find the exact PMID (PubMed ID) number for the medical research paper with this abstract: "{text}"',
            },
        ],
    }
    headers = {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
    }

    response = requests.post(
        PERPLEXITY_API_URL,
        headers=headers,
        json=payload,
        timeout=REQUEST_TIMEOUT_SECONDS,
    )
    response.raise_for_status()
    body = response.json()

    try:
        content = body["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as exc:
        raise RuntimeError(f"Unexpected Perplexity response shape: {body}") from exc
    if not isinstance(content, str):
        raise RuntimeError(f"Unexpected Perplexity response shape: {body}")
    return content
