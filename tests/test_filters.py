from __future__ import annotations

import pytest

from filters import dedupe_papers, filter_papers, merge_papers, rank_papers, replace_paper
from models import Paper


def _paper(pmid: str, title: str = "", score: int = 5, subject: bool = False, **overrides: object) -> Paper:
    fields: dict[str, object] = {
        "paper_id": pmid,
        "title": title or f"Paper {pmid}",
        "authors": "Smith J, Doe A",
        "journal": "Critical Care",
        "year": "2022",
        "pub_date": "2022 May",
        "abstract": "An abstract.",
        "url": f"https://pubmed.ncbi.nlm.nih.gov/{pmid}/",
        "relevance_score": score,
        "is_subject": subject,
    }
    fields.update(overrides)
    return Paper(**fields)  # type: ignore[arg-type]


def test_dedupe_keeps_first_occurrence() -> None:
    first = _paper("1", score=9)
    papers = dedupe_papers([first, _paper("2"), _paper("1", score=2)])

    assert [p.paper_id for p in papers] == ["1", "2"]
    assert papers[0] is first


def test_merge_appends_only_unseen_ids() -> None:
    existing = [_paper("1"), _paper("2")]

    merged = merge_papers(existing, [_paper("2", score=10), _paper("3")])

    assert [p.paper_id for p in merged] == ["1", "2", "3"]
    assert merged[1].relevance_score == 5
    assert [p.paper_id for p in existing] == ["1", "2"]


def test_rank_puts_subject_first_then_score_desc_stable() -> None:
    papers = [_paper("a", score=7), _paper("b", score=9), _paper("s", score=3, subject=True), _paper("c", score=7)]

    assert [p.paper_id for p in rank_papers(papers)] == ["s", "b", "a", "c"]


def test_replace_paper_swaps_matching_id() -> None:
    papers = [_paper("1"), _paper("2")]
    updated = _paper("2", score=8)

    result = replace_paper(papers, updated)

    assert result[1] is updated
    assert papers[1] is not updated


@pytest.mark.parametrize("text, expected", [
    ("", ["1", "2", "3"]),
    ("   ", ["1", "2", "3"]),
    ("SEPSIS", ["1"]),
    ("doe a", ["1", "2", "3"]),
    ("lancet", ["3"]),
    ("lactate", ["2"]),
    ("no match anywhere", []),
])
def test_filter_papers(text: str, expected: list[str]) -> None:
    papers = [
        _paper("1", title="Sepsis outcomes"),
        _paper("2", abstract="Serum lactate clearance was measured."),
        _paper("3", journal="Lancet"),
    ]

    assert [p.paper_id for p in filter_papers(papers, text)] == expected
