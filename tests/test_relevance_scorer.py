from __future__ import annotations

from unittest.mock import patch

import pytest

from errors import ModelReplyError
from models import Paper
from relevance_scorer import FALLBACK_SCORE, FALLBACK_SUMMARY, parse_assessment, score_paper, score_papers

_SAMPLE_PAPER = Paper(
    paper_id="12345678",
    title="Procalcitonin-guided antibiotic therapy",
    authors="Smith J",
    journal="Lancet",
    year="2019",
    pub_date="2019 Feb",
    abstract="We evaluated procalcitonin-guided discontinuation of antibiotics.",
    url="https://pubmed.ncbi.nlm.nih.gov/12345678/",
)


def _paper(pmid: str) -> Paper:
    return Paper(
        paper_id=pmid,
        title=f"Paper {pmid}",
        authors="Doe A",
        journal="BMJ",
        year="2020",
        pub_date="2020",
        abstract="abstract",
        url=f"https://pubmed.ncbi.nlm.nih.gov/{pmid}/",
    )


def test_parse_assessment_with_wrapping_text() -> None:
    reply = 'Here you go:\n{"relevanceScore": 8, "summary": "Line one\\nLine two\\nLine three"}\nDone.'

    assessment = parse_assessment(reply)

    assert assessment.score == 8
    assert assessment.summary == "Line one\nLine two\nLine three"


@pytest.mark.parametrize("raw, expected", [(15, 10), (0, 1), (-3, 1), ("7", 7), (6.6, 7)])
def test_parse_assessment_clamps_and_coerces_score(raw: object, expected: int) -> None:
    reply = f'{{"relevanceScore": {raw!r}, "summary": "s"}}'.replace("'", '"')

    assert parse_assessment(reply).score == expected


def test_parse_assessment_requires_summary() -> None:
    with pytest.raises(ModelReplyError):
        parse_assessment('{"relevanceScore": 4, "summary": "   "}')


def test_parse_assessment_rejects_non_numeric_score() -> None:
    with pytest.raises(ModelReplyError):
        parse_assessment('{"relevanceScore": "high", "summary": "s"}')


def test_score_paper_sends_discussion_and_paper_content() -> None:
    with patch("relevance_scorer.complete", return_value='{"relevanceScore": 9, "summary": "a\\nb\\nc"}') as mock_complete:
        assessment = score_paper(_SAMPLE_PAPER, "Should we stop antibiotics early in sepsis?")

    assert assessment.score == 9
    prompt = mock_complete.call_args.args[0]
    assert "Should we stop antibiotics early in sepsis?" in prompt
    assert "Title: Procalcitonin-guided antibiotic therapy" in prompt
    assert "Abstract: We evaluated" in prompt


def test_score_paper_falls_back_when_request_fails() -> None:
    with patch("relevance_scorer.complete", side_effect=RuntimeError("ANTHROPIC_API_KEY environment variable is required")):
        assessment = score_paper(_SAMPLE_PAPER, "discussion")

    assert assessment.score == FALLBACK_SCORE == 5
    assert assessment.summary == FALLBACK_SUMMARY


def test_score_paper_falls_back_on_unparseable_reply() -> None:
    with patch("relevance_scorer.complete", return_value="I think this paper is quite relevant."):
        assessment = score_paper(_SAMPLE_PAPER, "discussion")

    assert assessment.score == FALLBACK_SCORE
    assert assessment.summary == FALLBACK_SUMMARY


def test_score_papers_keeps_order_and_sleeps_between_batches() -> None:
    papers = [_paper(str(n)) for n in range(1, 8)]

    def fake_complete(prompt: str) -> str:
        pmid = next(p.paper_id for p in papers if f"Title: Paper {p.paper_id}\n" in prompt)
        return f'{{"relevanceScore": {pmid}, "summary": "summary {pmid}"}}'

    with patch("relevance_scorer.complete", side_effect=fake_complete), \
         patch("relevance_scorer.time.sleep") as mock_sleep:
        scored = score_papers(papers, "discussion", batch_size=3, batch_delay=1.5)

    assert [p.paper_id for p in scored] == [str(n) for n in range(1, 8)]
    assert [p.relevance_score for p in scored] == list(range(1, 8))
    assert scored[3].summary == "summary 4"
    assert mock_sleep.call_count == 2
    mock_sleep.assert_called_with(1.5)


def test_score_papers_empty_input() -> None:
    assert score_papers([], "discussion") == []
