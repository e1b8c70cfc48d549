"""Plain-text rendering of the ranked paper list and a selected paper's detail view."""

from __future__ import annotations

from models import MAX_RELEVANCE_SCORE, Paper

_RULE = "-" * 72


def render_paper_list(papers: list[Paper], search_terms: list[str] | None = None) -> str:
    """Numbered result list, subject paper marked with an asterisk."""
    lines: list[str] = []
    if search_terms:
        lines.append(f"Search terms: {' | '.join(search_terms)}")
        lines.append("")

    if not papers:
        lines.append("No papers found")
        return "\n".join(lines)

    lines.append(f"{len(papers)} papers found")
    for rank, paper in enumerate(papers, 1):
        marker = "*" if paper.is_subject else " "
        lines.append(
            f"{rank:>3}.{marker} [{paper.paper_id}] {paper.title} "
            f"({paper.year}) Score: {paper.relevance_score}/{MAX_RELEVANCE_SCORE}"
        )
    return "\n".join(lines)


def render_paper_detail(paper: Paper, note: str | None = None) -> str:
    lines = [
        _RULE,
        paper.title,
        f"{paper.journal} · {paper.pub_date}",
        _RULE,
        f"Authors: {paper.authors}",
        f"PMID: {paper.paper_id}",
    ]
    if paper.doi:
        lines.append(f"DOI: {paper.doi}")
    lines.append(f"URL: {paper.url}")
    if paper.is_subject:
        lines.append("Subject paper identified from the discussion")

    lines += ["", "Abstract:", paper.abstract, "", "Quick summary:", paper.summary or "-"]

    citing = "not loaded" if paper.citing_ids is None else str(len(paper.citing_ids))
    lines += ["", f"Cited by: {citing}", f"References: {len(paper.reference_ids)}"]

    if note:
        lines += ["", "Research notes:", note]
    return "\n".join(lines)
