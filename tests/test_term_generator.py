from __future__ import annotations

from unittest.mock import patch

from term_generator import MAX_TERMS, generate_search_terms, parse_terms

_DISCUSSION = "Early discontinuation of antibiotics guided by procalcitonin in septic ICU patients."


def test_generate_search_terms_splits_lines_and_drops_blanks() -> None:
    reply = "procalcitonin sepsis\n\nantibiotic discontinuation ICU\n  \nbiomarker-guided therapy\n"

    with patch("term_generator.complete", return_value=reply):
        terms = generate_search_terms(_DISCUSSION)

    assert terms == ["procalcitonin sepsis", "antibiotic discontinuation ICU", "biomarker-guided therapy"]


def test_generate_search_terms_prompt_embeds_discussion() -> None:
    with patch("term_generator.complete", return_value="term") as mock_complete:
        generate_search_terms(_DISCUSSION)

    prompt = mock_complete.call_args.args[0]
    assert _DISCUSSION in prompt
    assert "one per line" in prompt


def test_generate_search_terms_is_stable_for_identical_input() -> None:
    with patch("term_generator.complete", return_value="a\nb\nc"):
        first = generate_search_terms(_DISCUSSION)
        second = generate_search_terms(_DISCUSSION)

    assert first == second == ["a", "b", "c"]


def test_generate_search_terms_falls_back_to_raw_text_on_error() -> None:
    with patch("term_generator.complete", side_effect=RuntimeError("ANTHROPIC_API_KEY environment variable is required")):
        terms = generate_search_terms(f"  {_DISCUSSION}  ")

    assert terms == [_DISCUSSION]


def test_generate_search_terms_falls_back_on_empty_reply() -> None:
    with patch("term_generator.complete", return_value="\n \n"):
        assert generate_search_terms(_DISCUSSION) == [_DISCUSSION]


def test_generate_search_terms_blank_input_skips_model() -> None:
    with patch("term_generator.complete") as mock_complete:
        assert generate_search_terms("   ") == []

    mock_complete.assert_not_called()


def test_parse_terms_strips_list_markers_and_duplicates() -> None:
    reply = '1. sepsis\n2) procalcitonin\n- "antibiotic stewardship"\n* sepsis\n• ICU'

    assert parse_terms(reply) == ["sepsis", "procalcitonin", "antibiotic stewardship", "ICU"]


def test_parse_terms_caps_term_count() -> None:
    reply = "\n".join(f"term {n}" for n in range(20))

    assert len(parse_terms(reply)) == MAX_TERMS == 12
