"""CSV export of a session's ranked results."""

from __future__ import annotations

import csv
import logging
from datetime import UTC, datetime
from pathlib import Path

from models import Paper

LOGGER = logging.getLogger(__name__)

CSV_COLUMNS = [
    "rank",
    "pmid",
    "title",
    "authors",
    "journal",
    "year",
    "pub_date",
    "doi",
    "url",
    "relevance_score",
    "is_subject",
    "summary",
    "abstract",
    "citing_pmids",     # empty until citations were loaded for this paper
    "reference_pmids",
    "note",
    "exported_at",
]


def write_results(papers: list[Paper], path: str | Path, notes: dict[str, str] | None = None) -> Path:
    """Write the ranked list to ``path`` (overwriting it) and return the path."""
    output = Path(path)
    notes = notes or {}
    exported_at = datetime.now(UTC).isoformat()

    with output.open("w", newline="", encoding="utf-8") as fh:
        writer = csv.DictWriter(fh, fieldnames=CSV_COLUMNS)
        writer.writeheader()
        for rank, paper in enumerate(papers, 1):
            writer.writerow({
                "rank": rank,
                "pmid": paper.paper_id,
                "title": paper.title,
                "authors": paper.authors,
                "journal": paper.journal,
                "year": paper.year,
                "pub_date": paper.pub_date,
                "doi": paper.doi or "",
                "url": paper.url,
                "relevance_score": paper.relevance_score,
                "is_subject": paper.is_subject,
                "summary": paper.summary,
                "abstract": paper.abstract,
                "citing_pmids": ";".join(paper.citing_ids or ()),
                "reference_pmids": ";".join(paper.reference_ids),
                "note": notes.get(paper.paper_id, ""),
                "exported_at": exported_at,
            })

    LOGGER.info("Exported %s papers to %s", len(papers), output)
    return output
