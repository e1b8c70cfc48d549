"""Session-scoped search state: results, selection, notes and filter text."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace

from config import PipelineSettings
from filters import filter_papers
from models import Paper, SearchConfiguration
from pipeline import expand_selection, run_search
from pubmed_client import PubMedClient

LOGGER = logging.getLogger(__name__)


@dataclass
class SearchSession:
    """In-memory state for one search-and-browse session.

    A new submission replaces the results and selection; notes survive
    because they are keyed by PMID.
    """

    client: PubMedClient | None = None
    settings: PipelineSettings | None = None
    config: SearchConfiguration = field(default_factory=SearchConfiguration)
    discussion_text: str = ""
    search_terms: list[str] = field(default_factory=list)
    papers: list[Paper] = field(default_factory=list)
    selected_id: str | None = None
    notes: dict[str, str] = field(default_factory=dict)
    filter_text: str = ""
    expanded_ids: set[str] = field(default_factory=set)

    def submit(self, discussion_text: str, config: SearchConfiguration | None = None) -> list[Paper]:
        """Run a new search and replace the current results with it."""
        if config is not None:
            self.config = config
        outcome = run_search(discussion_text, self.config, client=self.client, settings=self.settings)

        self.discussion_text = discussion_text
        self.search_terms = outcome.search_terms
        self.papers = outcome.papers
        self.selected_id = None
        self.expanded_ids = set()
        LOGGER.info("Session search stored %s papers", len(self.papers))
        return self.papers

    def select(self, paper_id: str) -> Paper:
        """Select a paper, loading its citations and references the first time.

        References are expanded once per paper; a citation lookup that failed
        is tried again on the next selection.
        """
        paper = next((p for p in self.papers if p.paper_id == paper_id), None)
        if paper is None:
            raise KeyError(paper_id)

        citations_pending = self.config.include_citations and paper.citing_ids is None
        if paper_id not in self.expanded_ids:
            config = self.config
        elif citations_pending:
            config = replace(self.config, include_references=False)
        else:
            config = None

        if config is not None:
            self.papers = expand_selection(
                self.papers,
                paper_id,
                config,
                client=self.client,
                settings=self.settings,
            )
            self.expanded_ids.add(paper_id)

        self.selected_id = paper_id
        return self.selected_paper

    @property
    def selected_paper(self) -> Paper | None:
        if self.selected_id is None:
            return None
        return next((paper for paper in self.papers if paper.paper_id == self.selected_id), None)

    def save_note(self, paper_id: str, note: str) -> None:
        """Store a note for a paper; a blank note removes it."""
        if note.strip():
            self.notes[paper_id] = note
        else:
            self.notes.pop(paper_id, None)

    def visible_papers(self) -> list[Paper]:
        return filter_papers(self.papers, self.filter_text)
