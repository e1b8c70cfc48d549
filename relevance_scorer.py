"""Model-backed relevance scoring and three-line summaries for papers."""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from typing import Any

from errors import ModelReplyError
from llm_client import complete, parse_json_object
from models import MAX_RELEVANCE_SCORE, MIN_RELEVANCE_SCORE, Paper, RelevanceAssessment

FALLBACK_SCORE = 5
FALLBACK_SUMMARY = "1. Error analyzing paper\n2. Please try again later\n3. Service temporarily unavailable"

LOGGER = logging.getLogger(__name__)

_SCORE_PROMPT = """Task: Analyze the relevance of a research paper to given discussion content.

Discussion content:
{discussion}

Paper content:
{paper}

Respond with a JSON object in this exact format (and nothing else):
{{
  "relevanceScore": <number between 1 and 10>,
  "summary": "<three line summary with each line separated by \\n>"
}}"""


def score_paper(paper: Paper, discussion_text: str) -> RelevanceAssessment:
    """Rate one paper against the discussion; never raises.

    Any request or parse failure yields FALLBACK_SCORE and FALLBACK_SUMMARY.
    """
    prompt = _SCORE_PROMPT.format(discussion=discussion_text, paper=paper.content)
    try:
        reply = complete(prompt)
        assessment = parse_assessment(reply)
    except Exception as exc:  # broad by design: one bad paper must not abort the batch
        LOGGER.warning("Relevance scoring failed for paper_id=%s: %s", paper.paper_id, exc)
        return RelevanceAssessment(score=FALLBACK_SCORE, summary=FALLBACK_SUMMARY)

    LOGGER.debug("Relevance score for paper_id=%s: %s", paper.paper_id, assessment.score)
    return assessment


def parse_assessment(reply: str) -> RelevanceAssessment:
    """Parse the scorer's JSON reply, clamping the score into range."""
    parsed = parse_json_object(reply)

    summary = parsed.get("summary")
    if not isinstance(summary, str) or not summary.strip():
        raise ModelReplyError("Scoring response is missing a summary")

    return RelevanceAssessment(score=_coerce_score(parsed.get("relevanceScore")), summary=summary.strip())


def score_papers(
    papers: list[Paper],
    discussion_text: str,
    *,
    batch_size: int = 5,
    batch_delay: float = 1.0,
) -> list[Paper]:
    """Score papers batch by batch, concurrently within each batch.

    Batches run sequentially with ``batch_delay`` seconds between them to stay
    under the completion API's rate limits. Output order matches input order.
    """
    batch_size = max(1, batch_size)
    scored: list[Paper] = []

    for start in range(0, len(papers), batch_size):
        if start:
            time.sleep(batch_delay)
        batch = papers[start : start + batch_size]
        with ThreadPoolExecutor(max_workers=len(batch)) as executor:
            assessments = list(executor.map(lambda p: score_paper(p, discussion_text), batch))
        scored.extend(
            replace(paper, relevance_score=assessment.score, summary=assessment.summary)
            for paper, assessment in zip(batch, assessments)
        )

    LOGGER.info("Scored %s papers in batches of %s", len(scored), batch_size)
    return scored


def _coerce_score(value: Any) -> int:
    if isinstance(value, bool):
        raise ModelReplyError(f"Invalid relevance score: {value!r}")
    try:
        score = int(round(float(value)))
    except (TypeError, ValueError) as exc:
        raise ModelReplyError(f"Invalid relevance score: {value!r}") from exc
    return min(max(score, MIN_RELEVANCE_SCORE), MAX_RELEVANCE_SCORE)
