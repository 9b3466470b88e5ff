"""
PubMed adapter (primary source).

Search is a two-step E-utilities round trip through Biopython's Entrez
module: ``esearch`` for the PMID page, then ``efetch`` for the records.
Entrez calls are blocking, so they run on worker threads, throttled by a
token bucket (3 req/s, or 10 req/s with an API key) and retried with
tenacity on transient NCBI errors.

``normalize_pubmed_article`` converts one parsed ``PubmedArticle`` into a
``PublicationRecord`` and is usable on its own.
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Any

from Bio import Entrez
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from publication_search.core.async_utils import RateLimiter
from publication_search.core.exceptions import MalformedRecordError, SourceUnavailableError, is_retryable_error
from publication_search.infrastructure.cache.query_cache import QueryCache
from publication_search.models.publication import PublicationRecord, SourceName, SourceQuery

from .base_adapter import DEFAULT_CALL_TIMEOUT, BaseSourceAdapter

logger = logging.getLogger(__name__)

# Retry settings for transient NCBI errors
MAX_RETRIES = 3
RETRY_DELAY = 2  # seconds
MAX_RETMAX = 500

PUBMED_ARTICLE_URL = "https://pubmed.ncbi.nlm.nih.gov/{pmid}/"

_DATE_FILTER_RE = re.compile(r"\[\s*dp\s*\]", re.IGNORECASE)
_YEAR_RE = re.compile(r"(\d{4})")


def build_pubmed_term(query: SourceQuery) -> str:
    """Append a ``[dp]`` publication-date clause unless the query has one."""
    q = query.q.strip()
    if query.date_range is None or query.date_range.is_empty or _DATE_FILTER_RE.search(q):
        return q
    start, end = query.date_range.pubmed_bounds()
    return f"({q}) AND ({start}:{end}[dp])"


# =============================================================================
# Normalizer
# =============================================================================

def normalize_pubmed_article(article: dict[str, Any]) -> PublicationRecord | None:
    """
    Map one Entrez ``PubmedArticle`` dict to a record.

    Returns None when the article has no title or PMID.
    """
    medline = article.get("MedlineCitation", {})
    article_data = medline.get("Article", {})
    pubmed_data = article.get("PubmedData", {})

    pmid = str(medline.get("PMID", "")).strip()
    title = str(article_data.get("ArticleTitle", "") or "").strip()
    if not pmid or not title:
        logger.debug(f"Dropping PubMed record without title/PMID: {pmid!r}")
        return None

    year, month, day = _extract_pub_date(article_data)
    return PublicationRecord(
        id=pmid,
        pmid=pmid,
        source=SourceName.PUBMED.value,
        title=title,
        abstract=_extract_abstract(article_data),
        authors=_extract_authors(article_data),
        journal=str(article_data.get("Journal", {}).get("Title", "") or ""),
        year=year,
        month=month,
        day=day,
        doi=_extract_doi(article_data, pubmed_data),
        url=PUBMED_ARTICLE_URL.format(pmid=pmid),
        keywords=_extract_keywords(medline),
        mesh_major_topics=_extract_mesh_major_topics(medline),
    )


def _attrs(element: Any) -> dict[str, str]:
    return getattr(element, "attributes", None) or {}


def _extract_authors(article_data: dict[str, Any]) -> list[str]:
    authors = []
    for author in article_data.get("AuthorList", []):
        if "LastName" in author:
            fore = author.get("ForeName", "") or author.get("Initials", "")
            authors.append(f"{fore} {author['LastName']}".strip())
        elif "CollectiveName" in author:
            authors.append(str(author["CollectiveName"]))
    return authors


def _extract_abstract(article_data: dict[str, Any]) -> str:
    """Structured abstracts keep their section labels ("Background: ...")."""
    parts = article_data.get("Abstract", {}).get("AbstractText", [])
    if isinstance(parts, str):
        parts = [parts]
    sections = []
    for part in parts:
        text = str(part).strip()
        if not text:
            continue
        label = _attrs(part).get("Label")
        sections.append(f"{label}: {text}" if label else text)
    return "\n\n".join(sections)


def _extract_pub_date(article_data: dict[str, Any]) -> tuple[int | None, str, str]:
    pub_date = article_data.get("Journal", {}).get("JournalIssue", {}).get("PubDate", {})
    year_text = str(pub_date.get("Year", "") or "")
    if not year_text and "MedlineDate" in pub_date:
        match = _YEAR_RE.search(str(pub_date["MedlineDate"]))
        year_text = match.group(1) if match else ""
    year = int(year_text) if year_text.isdigit() else None
    return year, str(pub_date.get("Month", "") or ""), str(pub_date.get("Day", "") or "")


def _extract_doi(article_data: dict[str, Any], pubmed_data: dict[str, Any]) -> str:
    """ELocationID with EIdType=doi first, then the ArticleIdList."""
    for eloc in article_data.get("ELocationID", []):
        if _attrs(eloc).get("EIdType") == "doi":
            return str(eloc)
    for aid in pubmed_data.get("ArticleIdList", []):
        if _attrs(aid).get("IdType") == "doi":
            return str(aid)
    return ""


def _extract_keywords(medline: dict[str, Any]) -> list[str]:
    keywords = []
    for kw_list in medline.get("KeywordList", []):
        keywords.extend(str(kw).strip() for kw in kw_list if str(kw).strip())
    return keywords


def _extract_mesh_major_topics(medline: dict[str, Any]) -> list[str]:
    """Descriptors flagged MajorTopicYN="Y"."""
    topics = []
    for heading in medline.get("MeshHeadingList", []):
        descriptor = heading.get("DescriptorName")
        if descriptor is not None and _attrs(descriptor).get("MajorTopicYN") == "Y":
            topics.append(str(descriptor))
    return topics


# =============================================================================
# Adapter
# =============================================================================

class PubMedAdapter(BaseSourceAdapter):
    """
    Primary-source adapter over NCBI E-utilities.

    Example:
        adapter = PubMedAdapter(email="me@example.org")
        result = await adapter.search(SourceQuery(q="glioblastoma[tiab]", page_size=50))
    """

    source_name = SourceName.PUBMED.value
    max_page_size = MAX_RETMAX

    def __init__(
        self,
        email: str | None = None,
        api_key: str | None = None,
        cache: QueryCache | None = None,
        call_timeout: float = DEFAULT_CALL_TIMEOUT,
    ) -> None:
        super().__init__(cache=cache, call_timeout=call_timeout)
        Entrez.email = email or "publication-search@example.org"  # type: ignore[assignment]
        if api_key:
            Entrez.api_key = api_key  # type: ignore[assignment]
        Entrez.max_tries = 1  # retries are handled by tenacity
        self._limiter = RateLimiter(rate=10.0 if api_key else 3.0, per=1.0)

    async def _search(self, query: SourceQuery) -> tuple[list[PublicationRecord], int]:
        term = build_pubmed_term(query)
        retmax = min(query.page_size, self.max_page_size)
        retstart = (query.page - 1) * retmax
        sort = "pub_date" if query.sort == "date" else "relevance"

        try:
            id_list, total = await self._search_ids_with_retry(term, retmax, retstart, sort)
            if not id_list:
                return [], total
            papers = await self._fetch_with_retry(list(id_list))
        except ValueError as e:
            raise MalformedRecordError(str(e), source=self.source_name) from e
        except (OSError, RuntimeError) as e:
            raise SourceUnavailableError(str(e), source=self.source_name) from e

        records = []
        for article in papers.get("PubmedArticle", []):
            record = normalize_pubmed_article(article)
            if record is not None:
                records.append(record)
        return records, total

    @retry(
        stop=stop_after_attempt(MAX_RETRIES),
        wait=wait_exponential(multiplier=RETRY_DELAY, min=RETRY_DELAY, max=RETRY_DELAY * 4),
        retry=retry_if_exception(is_retryable_error),
        reraise=True,
    )
    async def _search_ids_with_retry(self, term: str, retmax: int, retstart: int, sort: str) -> tuple[list[str], int]:
        """esearch; returns (id_list, total_count)."""
        await self._limiter.acquire()
        handle = await asyncio.to_thread(
            Entrez.esearch, db="pubmed", term=term, retmax=retmax, retstart=retstart, sort=sort
        )
        try:
            record = await asyncio.to_thread(Entrez.read, handle)
        finally:
            handle.close()

        for warn_type, warn_msgs in (record.get("WarningList") or {}).items():
            if isinstance(warn_msgs, list) and warn_msgs:
                logger.debug(f"NCBI {warn_type}: {warn_msgs}")

        return [str(pmid) for pmid in record.get("IdList", [])], int(record.get("Count", 0))

    @retry(
        stop=stop_after_attempt(MAX_RETRIES),
        wait=wait_exponential(multiplier=RETRY_DELAY, min=RETRY_DELAY, max=RETRY_DELAY * 4),
        retry=retry_if_exception(is_retryable_error),
        reraise=True,
    )
    async def _fetch_with_retry(self, id_list: list[str]) -> dict[str, Any]:
        """efetch the parsed XML for a PMID page."""
        await self._limiter.acquire()
        handle = await asyncio.to_thread(Entrez.efetch, db="pubmed", id=",".join(id_list), retmode="xml")
        try:
            return await asyncio.to_thread(Entrez.read, handle)
        finally:
            handle.close()
