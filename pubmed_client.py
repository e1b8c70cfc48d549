"""PubMed E-utilities client: search, summaries, citation and reference links."""

from __future__ import annotations

import logging
import os
import time
import xml.etree.ElementTree as ET
from typing import Any, Iterable, NamedTuple

import requests

from config import PipelineSettings, load_settings
from errors import MalformedResponseError, PaperSearchError, RateLimitedError, UpstreamUnavailableError
from models import NO_ABSTRACT, Paper

EUTILS_BASE_URL = "https://eutils.ncbi.nlm.nih.gov/entrez/eutils"
PUBMED_ARTICLE_URL = "https://pubmed.ncbi.nlm.nih.gov/{pmid}/"
CITED_IN_LINKNAME = "pubmed_pubmed_citedin"
REFERENCES_LINKNAME = "pubmed_pubmed_refs"
RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}
MIN_SUMMARY_BATCH = 5
MAX_SUMMARY_BATCH = 10

LOGGER = logging.getLogger(__name__)


class ArticleDetails(NamedTuple):
    """Fields only available from the efetch article markup."""

    abstract: str | None
    doi: str | None
    reference_ids: tuple[str, ...]


class PubMedClient:
    """Thin wrapper around the E-utilities endpoints used by the pipeline.

    Every request is preceded by a fixed delay, and a transient failure is
    retried according to ``settings.retry`` before the upstream error is
    raised to the caller.
    """

    def __init__(
        self,
        api_key: str | None = None,
        *,
        session: requests.Session | None = None,
        settings: PipelineSettings | None = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else os.getenv("PUBMED_API_KEY")
        self.session = session or requests.Session()
        self.settings = settings or load_settings()

    def search(self, term: str, max_results: int) -> list[str]:
        """Return PMIDs matching ``term`` in PubMed's relevance order."""
        body = self._call(
            "esearch.fcgi",
            {"db": "pubmed", "term": term, "retmax": max_results, "retmode": "json"},
        )
        result = body.get("esearchresult")
        if not isinstance(result, dict) or not isinstance(result.get("idlist"), list):
            raise MalformedResponseError(f"Unexpected esearch response shape: {body}")

        pmids = [_as_str(item) for item in result["idlist"]]
        LOGGER.info("PubMed search: term=%r retmax=%s found=%s", term, max_results, len(pmids))
        return [pmid for pmid in pmids if pmid]

    def fetch_papers(self, pmids: Iterable[str]) -> list[Paper]:
        """Fetch metadata, abstract, DOI and reference list for each PMID.

        Ids are requested in chunks to bound the payload size; the output
        follows the input order and silently omits ids PubMed has no record for.
        """
        ordered = list(dict.fromkeys(pmid for pmid in pmids if pmid))
        batch_size = min(max(self.settings.summary_batch_size, MIN_SUMMARY_BATCH), MAX_SUMMARY_BATCH)

        papers: list[Paper] = []
        for start in range(0, len(ordered), batch_size):
            papers.extend(self._fetch_batch(ordered[start : start + batch_size]))
        return papers

    def fetch_citations(self, pmid: str) -> list[str]:
        """Return PMIDs of papers citing ``pmid``."""
        return self._fetch_links(pmid, CITED_IN_LINKNAME)

    def fetch_references(self, pmid: str) -> list[str]:
        """Return PMIDs of papers referenced by ``pmid``."""
        return self._fetch_links(pmid, REFERENCES_LINKNAME)

    def _fetch_batch(self, pmids: list[str]) -> list[Paper]:
        joined = ",".join(pmids)
        summary = self._call(
            "esummary.fcgi",
            {"db": "pubmed", "id": joined, "retmode": "json", "version": "2.0"},
        )
        result = summary.get("result")
        if not isinstance(result, dict):
            raise MalformedResponseError(f"Unexpected esummary response shape: {summary}")

        markup = self._call("efetch.fcgi", {"db": "pubmed", "id": joined, "retmode": "xml"}, as_json=False)
        articles = parse_articles(markup)

        papers: list[Paper] = []
        for pmid in pmids:
            record = result.get(pmid)
            if not isinstance(record, dict) or record.get("error"):
                LOGGER.warning("PubMed summary: no usable record for pmid=%s", pmid)
                continue
            papers.append(_build_paper(pmid, record, articles.get(pmid)))
        return papers

    def _fetch_links(self, pmid: str, linkname: str) -> list[str]:
        body = self._call(
            "elink.fcgi",
            {
                "dbfrom": "pubmed",
                "db": "pubmed",
                "id": pmid,
                "cmd": "neighbor_score",
                "linkname": linkname,
                "retmode": "json",
            },
        )
        linksets = body.get("linksets")
        if not isinstance(linksets, list):
            raise MalformedResponseError(f"Unexpected elink response shape: {body}")

        linked: dict[str, None] = {}
        for linkset in linksets:
            if not isinstance(linkset, dict):
                continue
            for linkset_db in linkset.get("linksetdbs") or []:
                if not isinstance(linkset_db, dict) or linkset_db.get("linkname") != linkname:
                    continue
                for link in linkset_db.get("links") or []:
                    link_id = _as_str(link.get("id") if isinstance(link, dict) else link)
                    if link_id and link_id != pmid:
                        linked[link_id] = None

        LOGGER.info("PubMed links: pmid=%s linkname=%s count=%s", pmid, linkname, len(linked))
        return list(linked)

    def _call(self, endpoint: str, params: dict[str, Any], *, as_json: bool = True) -> Any:
        """Send one E-utilities request, retrying transient failures per the retry policy."""
        policy = self.settings.retry
        query = dict(params)
        if self.api_key:
            query["api_key"] = self.api_key

        last_error: PaperSearchError | None = None
        for attempt in range(1, policy.max_attempts + 1):
            time.sleep(self.settings.request_delay if attempt == 1 else policy.delay_seconds)
            try:
                return self._send(endpoint, query, as_json=as_json)
            except (UpstreamUnavailableError, RateLimitedError) as exc:
                if not _is_transient(exc):
                    raise
                last_error = exc
                LOGGER.warning(
                    "PubMed %s failed on attempt %s/%s: %s",
                    endpoint,
                    attempt,
                    policy.max_attempts,
                    exc,
                )

        if last_error is None:
            raise UpstreamUnavailableError(
                f"PubMed {endpoint} was never attempted: max_attempts={policy.max_attempts}"
            )
        raise last_error

    def _send(self, endpoint: str, query: dict[str, Any], *, as_json: bool) -> Any:
        url = f"{EUTILS_BASE_URL}/{endpoint}"
        try:
            response = self.session.get(url, params=query, timeout=self.settings.timeout_seconds)
        except requests.RequestException as exc:
            raise UpstreamUnavailableError(f"PubMed {endpoint} request failed: {exc}") from exc

        status = response.status_code
        if status >= 400:
            payload = _json_or_none(response)
            if isinstance(payload, dict) and payload.get("error"):
                raise RateLimitedError(f"PubMed {endpoint} error: {payload['error']}", payload=payload)
            raise UpstreamUnavailableError(f"PubMed {endpoint} returned HTTP {status}", status=status)

        if not as_json:
            return response.text

        body = _json_or_none(response)
        if not isinstance(body, dict):
            raise MalformedResponseError(f"PubMed {endpoint} did not return a JSON object")
        if body.get("error"):
            raise RateLimitedError(f"PubMed {endpoint} error: {body['error']}", payload=body)
        return body


def parse_articles(markup: str) -> dict[str, ArticleDetails]:
    """Index efetch ``PubmedArticle`` elements by PMID."""
    if not markup or not markup.strip():
        return {}
    try:
        root = ET.fromstring(markup)
    except ET.ParseError as exc:
        raise MalformedResponseError(f"Could not parse efetch XML: {exc}") from exc

    articles: dict[str, ArticleDetails] = {}
    for article in root.iter("PubmedArticle"):
        pmid = _as_str(article.findtext("MedlineCitation/PMID"))
        if not pmid:
            continue
        articles[pmid] = ArticleDetails(
            abstract=_abstract_text(article),
            doi=_article_doi(article),
            reference_ids=_reference_ids(article),
        )
    return articles


def _abstract_text(article: ET.Element) -> str | None:
    sections: list[str] = []
    for element in article.findall("MedlineCitation/Article/Abstract/AbstractText"):
        text = " ".join("".join(element.itertext()).split())
        if not text:
            continue
        label = element.get("Label")
        sections.append(f"{label}: {text}" if label else text)
    return "\n".join(sections) or None


def _article_doi(article: ET.Element) -> str | None:
    for element in article.findall("PubmedData/ArticleIdList/ArticleId"):
        if element.get("IdType") == "doi" and _as_str(element.text):
            return _as_str(element.text)
    for element in article.findall("MedlineCitation/Article/ELocationID"):
        if element.get("EIdType") == "doi" and _as_str(element.text):
            return _as_str(element.text)
    return None


def _reference_ids(article: ET.Element) -> tuple[str, ...]:
    ids: dict[str, None] = {}
    for element in article.findall("PubmedData/ReferenceList/Reference/ArticleIdList/ArticleId"):
        value = _as_str(element.text)
        if element.get("IdType") == "pubmed" and value:
            ids[value] = None
    return tuple(ids)


def _build_paper(pmid: str, record: dict[str, Any], details: ArticleDetails | None) -> Paper:
    pub_date = _as_str(record.get("pubdate"))
    return Paper(
        paper_id=pmid,
        title=_as_str(record.get("title")) or "No title available",
        authors=_format_authors(record.get("authors")),
        journal=_as_str(record.get("source")) or "Unknown journal",
        year=pub_date.split()[0] if pub_date else "Unknown year",
        pub_date=pub_date or "Unknown date",
        abstract=(details.abstract if details else None) or NO_ABSTRACT,
        url=PUBMED_ARTICLE_URL.format(pmid=pmid),
        doi=(details.doi if details else None) or _summary_doi(record),
        reference_ids=details.reference_ids if details else (),
    )


def _format_authors(value: Any) -> str:
    if not isinstance(value, list):
        return "Unknown authors"
    names = [_as_str(author.get("name")) for author in value if isinstance(author, dict)]
    return ", ".join(name for name in names if name) or "Unknown authors"


def _summary_doi(record: dict[str, Any]) -> str | None:
    for article_id in record.get("articleids") or []:
        if isinstance(article_id, dict) and article_id.get("idtype") == "doi":
            return _as_str(article_id.get("value"))
    return None


def _is_transient(exc: PaperSearchError) -> bool:
    if isinstance(exc, RateLimitedError):
        return True
    status = getattr(exc, "status", None)
    return status is None or status in RETRYABLE_STATUS_CODES


def _json_or_none(response: requests.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def _as_str(value: Any) -> str | None:
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value.strip() if isinstance(value, str) and value.strip() else None
