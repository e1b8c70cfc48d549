"""Turn free-text discussion content into PubMed search terms."""

from __future__ import annotations

import logging
import re

from llm_client import complete

MAX_TERMS = 12

LOGGER = logging.getLogger(__name__)

_TERM_PROMPT = """Generate 3-5 relevant PubMed search terms based on this discussion content. Return only the search terms, one per line, with no additional text or formatting:

{text}"""

# Leading "-", "*", "•" bullets or "1." / "2)" numbering the model sometimes adds.
_LIST_MARKER = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s*")


def generate_search_terms(discussion_text: str) -> list[str]:
    """Return 1-12 search terms for the discussion text.

    Falls back to the raw text as the single term when the model call fails
    or yields nothing usable, so the pipeline always has something to search.
    """
    text = discussion_text.strip()
    if not text:
        return []

    try:
        reply = complete(_TERM_PROMPT.format(text=text))
        terms = parse_terms(reply)
        if not terms:
            raise ValueError("Model reply contained no search terms")
    except Exception as exc:  # broad by design: term generation must never block a search
        LOGGER.warning("Search term generation failed, using raw discussion text: %s", exc)
        return [text]

    LOGGER.info("Generated %s search terms: %s", len(terms), terms)
    return terms


def parse_terms(reply: str) -> list[str]:
    """Split a newline-delimited reply into unique, non-empty terms."""
    terms: dict[str, None] = {}
    for line in reply.splitlines():
        term = _LIST_MARKER.sub("", line).strip().strip('"')
        if term:
            terms[term] = None
    return list(terms)[:MAX_TERMS]
