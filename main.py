"""CLI entrypoint: find PubMed papers relevant to a piece of discussion text."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from config import load_settings
from csv_sink import write_results
from models import SearchConfiguration
from pubmed_client import PubMedClient
from report import render_paper_detail, render_paper_list
from session import SearchSession


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line flags."""
    parser = argparse.ArgumentParser(description="Search PubMed for papers relevant to discussion content")
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--text", help="Discussion content to search for")
    source.add_argument("--file", type=Path, help="Read discussion content from a file")
    parser.add_argument("--max-results", type=int, default=20, help="Maximum number of papers to return")
    parser.add_argument(
        "--no-citations",
        action="store_true",
        help="Do not load citing papers when a paper is selected",
    )
    parser.add_argument(
        "--no-references",
        action="store_true",
        help="Do not expand the subject paper's references",
    )
    parser.add_argument("--select", metavar="PMID", help="Show detail for this paper and load its citations")
    parser.add_argument("--note", help="Attach a research note to the selected paper")
    parser.add_argument("--filter", default="", help="Only list papers whose text contains this string")
    parser.add_argument("--export", type=Path, metavar="CSV", help="Write the ranked list to a CSV file")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def read_discussion(args: argparse.Namespace) -> str:
    if args.text is not None:
        return args.text
    if args.file is not None:
        return args.file.read_text(encoding="utf-8")
    return sys.stdin.read()


def run(args: argparse.Namespace) -> int:
    """Run one search session and print the results. Returns the exit code."""
    discussion = read_discussion(args).strip()
    if not discussion:
        logging.error("No discussion content given")
        return 2

    config = SearchConfiguration(
        max_results=args.max_results,
        include_citations=not args.no_citations,
        include_references=not args.no_references,
    )
    settings = load_settings()
    session = SearchSession(client=PubMedClient(settings=settings), settings=settings, config=config)
    session.filter_text = args.filter

    session.submit(discussion)
    print(render_paper_list(session.visible_papers(), session.search_terms))

    if args.select:
        try:
            paper = session.select(args.select)
        except KeyError:
            logging.error("PMID %s is not in the result list", args.select)
            return 1
        if args.note:
            session.save_note(paper.paper_id, args.note)
        print()
        print(render_paper_detail(paper, session.notes.get(paper.paper_id)))

    if args.export:
        write_results(session.visible_papers(), args.export, notes=session.notes)
        logging.info("Wrote %s", args.export)

    return 0


def main(argv: list[str] | None = None) -> int:
    """Initialize config and execute one search."""
    load_dotenv()
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
    )
    return run(args)


if __name__ == "__main__":
    sys.exit(main())
