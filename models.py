"""Shared typed models for the search pipeline."""

from __future__ import annotations

from dataclasses import dataclass

MIN_RELEVANCE_SCORE = 1
MAX_RELEVANCE_SCORE = 10

NO_ABSTRACT = "No abstract available"


@dataclass(frozen=True, slots=True)
class Paper:
    """Normalized PubMed record used across retrieval, scoring and display."""

    paper_id: str
    title: str
    authors: str
    journal: str
    year: str
    pub_date: str
    abstract: str
    url: str
    doi: str | None = None
    relevance_score: int = 5
    summary: str = ""
    # None until the citing papers have been looked up.
    citing_ids: tuple[str, ...] | None = None
    reference_ids: tuple[str, ...] = ()
    is_subject: bool = False

    def __post_init__(self) -> None:
        if not MIN_RELEVANCE_SCORE <= self.relevance_score <= MAX_RELEVANCE_SCORE:
            raise ValueError(
                f"relevance_score must be in [{MIN_RELEVANCE_SCORE}, {MAX_RELEVANCE_SCORE}], "
                f"got {self.relevance_score}"
            )
        if not self.abstract:
            object.__setattr__(self, "abstract", NO_ABSTRACT)

    @property
    def content(self) -> str:
        """Title and abstract block sent to the relevance scorer."""
        return f"Title: {self.title}\nAbstract: {self.abstract}"


@dataclass(frozen=True, slots=True)
class SearchConfiguration:
    """User-facing knobs for one search submission."""

    max_results: int = 20
    include_citations: bool = True
    include_references: bool = True

    def __post_init__(self) -> None:
        if self.max_results < 1:
            raise ValueError(f"max_results must be >= 1, got {self.max_results}")


@dataclass(frozen=True, slots=True)
class RelevanceAssessment:
    score: int
    summary: str
