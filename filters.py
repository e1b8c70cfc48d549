"""Pure list operations over result sets: dedup, merge, rank and text filtering."""

from __future__ import annotations

from typing import Iterable

from models import Paper


def dedupe_papers(papers: Iterable[Paper]) -> list[Paper]:
    """Drop repeated paper_ids, keeping the first occurrence."""
    seen: set[str] = set()
    unique: list[Paper] = []
    for paper in papers:
        if paper.paper_id in seen:
            continue
        seen.add(paper.paper_id)
        unique.append(paper)
    return unique


def merge_papers(existing: list[Paper], incoming: Iterable[Paper]) -> list[Paper]:
    """Append incoming papers whose ids are not already present."""
    return dedupe_papers([*existing, *incoming])


def rank_papers(papers: Iterable[Paper]) -> list[Paper]:
    """Subject paper first, then by relevance score descending.

    The sort is stable, so equal-scored papers keep their incoming order.
    """
    return sorted(papers, key=lambda p: (not p.is_subject, -p.relevance_score))


def replace_paper(papers: list[Paper], updated: Paper) -> list[Paper]:
    """Return a copy of ``papers`` with the entry sharing updated's id swapped out."""
    return [updated if p.paper_id == updated.paper_id else p for p in papers]


def filter_papers(papers: Iterable[Paper], text: str) -> list[Paper]:
    """Case-insensitive substring match over title, authors, journal and abstract.

    Blank filter text keeps everything.
    """
    needle = text.strip().lower()
    if not needle:
        return list(papers)

    return [
        paper
        for paper in papers
        if any(needle in field.lower() for field in (paper.title, paper.authors, paper.journal, paper.abstract))
    ]
