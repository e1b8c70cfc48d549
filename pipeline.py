"""Aggregation pipeline: subject paper, its references and keyword hits merged into one ranking.

Stages run strictly in sequence:

1. find the subject PMID (literal "PMID: n" in the text, else Perplexity);
2. fetch the subject paper and expand its references one at a time;
3. generate search terms, search PubMed per term and score every hit;
4. keep the best-scoring keyword hits that are not already in the direct set;
5. rank subject first, then by relevance score.
"""

from __future__ import annotations

import logging
import math
import re
import time
from dataclasses import dataclass, field, replace

from config import PipelineSettings, load_settings
from errors import PaperSearchError
from filters import dedupe_papers, merge_papers, rank_papers, replace_paper
from models import Paper, SearchConfiguration
from perplexity_client import resolve_pmid
from pubmed_client import PubMedClient
from relevance_scorer import score_paper, score_papers
from term_generator import generate_search_terms

REFERENCE_SUMMARY = (
    "1. Referenced by the subject paper\n"
    "2. Retrieved from the PubMed reference list\n"
    "3. Not individually scored against the discussion"
)
CITING_SUMMARY = (
    "1. Cites the selected paper\n"
    "2. Retrieved from PubMed citation links\n"
    "3. Not individually scored against the discussion"
)

_PMID_PATTERN = re.compile(r"\bPMID\s*:?\s*(\d{1,8})\b", re.IGNORECASE)

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class SearchOutcome:
    """Ranked papers plus the intermediate values worth showing to the user."""

    papers: list[Paper] = field(default_factory=list)
    search_terms: list[str] = field(default_factory=list)
    subject_id: str | None = None


def extract_pmid(text: str) -> str | None:
    """Return the first literal "PMID: 12345678" identifier in the text."""
    match = _PMID_PATTERN.search(text)
    return match.group(1) if match else None


def reference_budget(config: SearchConfiguration, settings: PipelineSettings) -> int:
    return math.floor(config.max_results * settings.reference_ratio)


def keyword_addition_limit(config: SearchConfiguration, settings: PipelineSettings) -> int:
    return max(settings.min_keyword_additions, math.floor(config.max_results * settings.keyword_ratio))


def per_term_request_size(config: SearchConfiguration, current_count: int, term_count: int) -> int:
    remaining = max(2, config.max_results - current_count)
    return max(1, math.ceil(remaining / max(term_count, 1)))


def run_search(
    discussion_text: str,
    config: SearchConfiguration,
    *,
    client: PubMedClient | None = None,
    settings: PipelineSettings | None = None,
) -> SearchOutcome:
    """Produce one ranked, deduplicated paper list for the discussion text.

    Upstream failures never propagate: a failed stage degrades to fewer papers,
    and an unexpected failure yields an empty outcome.
    """
    settings = settings or load_settings()
    client = client or PubMedClient(settings=settings)
    outcome = SearchOutcome()

    try:
        _run_stages(discussion_text, config, client, settings, outcome)
    except PaperSearchError as exc:
        LOGGER.exception("Search aborted: %s", exc)
        return SearchOutcome(search_terms=outcome.search_terms)

    LOGGER.info(
        "Search complete: subject=%s terms=%s papers=%s",
        outcome.subject_id,
        len(outcome.search_terms),
        len(outcome.papers),
    )
    return outcome


def _run_stages(
    text: str,
    config: SearchConfiguration,
    client: PubMedClient,
    settings: PipelineSettings,
    outcome: SearchOutcome,
) -> None:
    pmid = extract_pmid(text)
    if pmid is None:
        pmid = resolve_pmid(text)

    direct: list[Paper] = []
    if pmid:
        direct = _collect_direct_set(pmid, text, config, client, settings)
    else:
        LOGGER.info("No subject PMID found; running keyword search only")
    if direct:
        outcome.subject_id = direct[0].paper_id

    outcome.search_terms = generate_search_terms(text)[: settings.max_terms]
    direct_ids = {paper.paper_id for paper in direct}
    keyword_hits = _keyword_search(outcome.search_terms, text, config, direct_ids, client, settings)

    limit = keyword_addition_limit(config, settings) if direct else config.max_results
    additions = select_keyword_additions(keyword_hits, direct_ids, limit)
    LOGGER.info(
        "Merge: direct=%s keyword_hits=%s additions=%s limit=%s",
        len(direct),
        len(keyword_hits),
        len(additions),
        limit,
    )
    outcome.papers = rank_papers(dedupe_papers([*direct, *additions]))


def select_keyword_additions(keyword_hits: list[Paper], exclude_ids: set[str], limit: int) -> list[Paper]:
    """Best-scoring keyword hits not already in ``exclude_ids``, at most ``limit``."""
    seen = set(exclude_ids)
    additions: list[Paper] = []
    for paper in sorted(keyword_hits, key=lambda p: -p.relevance_score):
        if len(additions) >= limit:
            break
        if paper.paper_id in seen:
            continue
        seen.add(paper.paper_id)
        additions.append(paper)
    return additions


def _collect_direct_set(
    pmid: str,
    text: str,
    config: SearchConfiguration,
    client: PubMedClient,
    settings: PipelineSettings,
) -> list[Paper]:
    try:
        fetched = client.fetch_papers([pmid])
    except PaperSearchError as exc:
        LOGGER.error("Subject paper fetch failed for pmid=%s: %s", pmid, exc)
        return []
    if not fetched:
        LOGGER.warning("Subject pmid=%s not found in PubMed", pmid)
        return []

    subject = fetched[0]
    assessment = score_paper(subject, text)
    subject = replace(
        subject,
        is_subject=True,
        relevance_score=settings.subject_score,
        summary=assessment.summary,
    )
    if not config.include_references:
        return [subject]

    try:
        reference_ids = client.fetch_references(pmid)
    except PaperSearchError as exc:
        LOGGER.warning("Reference lookup failed for pmid=%s: %s", pmid, exc)
        reference_ids = []
    if not reference_ids:
        reference_ids = list(subject.reference_ids)
    else:
        subject = replace(subject, reference_ids=tuple(reference_ids))

    candidates = [ref_id for ref_id in reference_ids if ref_id != pmid][: reference_budget(config, settings)]
    references = _fetch_derived(candidates, REFERENCE_SUMMARY, client, settings)
    LOGGER.info(
        "Subject pmid=%s: references_known=%s expanded=%s",
        pmid,
        len(reference_ids),
        len(references),
    )
    return dedupe_papers([subject, *references])


def _keyword_search(
    terms: list[str],
    text: str,
    config: SearchConfiguration,
    exclude_ids: set[str],
    client: PubMedClient,
    settings: PipelineSettings,
) -> list[Paper]:
    if not terms:
        return []

    per_term = per_term_request_size(config, len(exclude_ids), len(terms))
    collected: dict[str, Paper] = {}

    for index, term in enumerate(terms):
        if index:
            time.sleep(settings.batch_delay)
        try:
            pmids = client.search(term, per_term)
            new_ids = [pmid for pmid in pmids if pmid not in collected and pmid not in exclude_ids]
            fetched = client.fetch_papers(new_ids) if new_ids else []
        except PaperSearchError as exc:
            LOGGER.error("Keyword search failed for term=%r: %s", term, exc)
            continue

        scored = score_papers(
            fetched,
            text,
            batch_size=settings.scoring_batch_size,
            batch_delay=settings.batch_delay,
        )
        for paper in scored:
            collected.setdefault(paper.paper_id, paper)
        LOGGER.info("Term %r: requested=%s new=%s", term, per_term, len(scored))

    return list(collected.values())


def _fetch_derived(
    pmids: list[str],
    summary: str,
    client: PubMedClient,
    settings: PipelineSettings,
) -> list[Paper]:
    """Fetch papers one at a time with a fixed score and summary, skipping failures."""
    papers: list[Paper] = []
    for index, pmid in enumerate(pmids):
        if index:
            time.sleep(settings.reference_delay)
        try:
            fetched = client.fetch_papers([pmid])
        except PaperSearchError as exc:
            LOGGER.warning("Skipping pmid=%s: %s", pmid, exc)
            continue
        if not fetched:
            LOGGER.warning("Skipping pmid=%s: no PubMed record", pmid)
            continue
        papers.append(replace(fetched[0], relevance_score=settings.derived_score, summary=summary))
    return papers


def expand_selection(
    papers: list[Paper],
    paper_id: str,
    config: SearchConfiguration,
    *,
    client: PubMedClient | None = None,
    settings: PipelineSettings | None = None,
) -> list[Paper]:
    """Load citing papers and referenced papers for a selected paper.

    Returns a new list: the selected paper updated with its citing ids,
    followed by any papers not already present. Raises KeyError if
    ``paper_id`` is not in ``papers``.
    """
    selected = next((paper for paper in papers if paper.paper_id == paper_id), None)
    if selected is None:
        raise KeyError(paper_id)

    settings = settings or load_settings()
    client = client or PubMedClient(settings=settings)
    result = list(papers)
    present = {paper.paper_id for paper in result}

    if config.include_citations and selected.citing_ids is None:
        try:
            citing_ids = client.fetch_citations(paper_id)
        except PaperSearchError as exc:
            LOGGER.warning("Citation lookup failed for pmid=%s: %s", paper_id, exc)
        else:
            selected = replace(selected, citing_ids=tuple(citing_ids))
            result = replace_paper(result, selected)
            missing = [pmid for pmid in citing_ids if pmid not in present][: config.max_results]
            result = merge_papers(result, _fetch_derived(missing, CITING_SUMMARY, client, settings))
            present.update(paper.paper_id for paper in result)

    if config.include_references and selected.reference_ids:
        missing = [pmid for pmid in selected.reference_ids if pmid not in present][: config.max_results]
        result = merge_papers(result, _fetch_derived(missing, REFERENCE_SUMMARY, client, settings))

    LOGGER.info("Expanded pmid=%s: papers before=%s after=%s", paper_id, len(papers), len(result))
    return result
