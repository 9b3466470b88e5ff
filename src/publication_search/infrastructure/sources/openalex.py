"""
OpenAlex adapter (open-catalog source).

API Documentation: https://docs.openalex.org/

OpenAlex stores abstracts as an inverted index (word -> positions); the
normalizer rebuilds plain text from it. Dates go in as
``from_publication_date``/``to_publication_date`` filters.
"""

from __future__ import annotations

import logging
from typing import Any

from publication_search.core.async_utils import CircuitBreaker
from publication_search.core.exceptions import MalformedRecordError
from publication_search.infrastructure.cache.query_cache import QueryCache
from publication_search.models.publication import PublicationRecord, SourceName, SourceQuery

from .base_adapter import DEFAULT_CALL_TIMEOUT, BaseSourceAdapter
from .base_client import BaseAPIClient

logger = logging.getLogger(__name__)

OA_API_BASE = "https://api.openalex.org"
OA_WORKS_URL = f"{OA_API_BASE}/works"
MAX_PER_PAGE = 200

DEFAULT_EMAIL = "publication-search@example.org"


def rebuild_abstract(inverted_index: dict[str, list[int]] | None) -> str:
    """
    Reconstruct plain text from an OpenAlex ``abstract_inverted_index``.

    Example:
        >>> rebuild_abstract({"world": [1], "Hello": [0], "again": [3], "hello": [2]})
        'Hello world hello again'
    """
    if not inverted_index or not isinstance(inverted_index, dict):
        return ""
    word_positions = []
    for word, positions in inverted_index.items():
        if not isinstance(positions, list):
            continue
        for pos in positions:
            word_positions.append((pos, word))
    word_positions.sort(key=lambda x: x[0])
    return " ".join(word for _, word in word_positions).strip()


def normalize_openalex_work(work: dict[str, Any]) -> PublicationRecord | None:
    """Map one OpenAlex work to a record; None when it has no title."""
    title = (work.get("title") or work.get("display_name") or "").strip()
    if not title:
        return None

    openalex_url = work.get("id", "") or ""
    ids = work.get("ids", {}) or {}

    pmid = str(ids.get("pmid", "") or "")
    pmid = pmid.removeprefix("https://pubmed.ncbi.nlm.nih.gov/").rstrip("/") or None

    authors = []
    for authorship in work.get("authorships", []) or []:
        name = (authorship.get("author", {}) or {}).get("display_name")
        if name:
            authors.append(name)

    primary = work.get("primary_location", {}) or {}
    best_oa = work.get("best_oa_location", {}) or {}
    journal = ((primary.get("source") or {}).get("display_name")
               or (best_oa.get("source") or {}).get("display_name")
               or "")

    pub_date = work.get("publication_date", "") or ""
    year_part, month, day = (pub_date.split("-") + ["", "", ""])[:3]
    year_value = year_part or str(work.get("publication_year") or "")
    year = int(year_value) if year_value.isdigit() else None

    keywords = [kw.get("display_name", "") for kw in work.get("keywords", []) or [] if kw.get("display_name")]

    doi = work.get("doi") or ids.get("doi") or ""
    return PublicationRecord(
        id=openalex_url.removeprefix("https://openalex.org/") or doi or title,
        source=SourceName.OPENALEX.value,
        title=title,
        abstract=rebuild_abstract(work.get("abstract_inverted_index")),
        authors=authors,
        journal=journal,
        year=year,
        month=month,
        day=day,
        doi=doi,
        pmid=pmid,
        url=openalex_url or (f"https://doi.org/{doi}" if doi else ""),
        citation_count=int(work.get("cited_by_count") or 0),
        keywords=keywords,
    )


class OpenAlexAdapter(BaseAPIClient, BaseSourceAdapter):
    """
    OpenAlex works search.

    Usage:
        adapter = OpenAlexAdapter(mailto="you@example.org")
        result = await adapter.search(SourceQuery(q="migraine mold", page_size=100))
    """

    _service_name = "OpenAlex"
    source_name = SourceName.OPENALEX.value
    max_page_size = MAX_PER_PAGE

    def __init__(
        self,
        mailto: str | None = None,
        cache: QueryCache | None = None,
        call_timeout: float = DEFAULT_CALL_TIMEOUT,
        timeout: float = 30.0,
        circuit_breaker: CircuitBreaker | None = None,
    ) -> None:
        self._email = mailto or DEFAULT_EMAIL
        BaseAPIClient.__init__(
            self,
            timeout=timeout,
            min_interval=0.1,
            headers={
                "User-Agent": f"publication-search/1.0 (mailto:{self._email})",
                "Accept": "application/json",
            },
            circuit_breaker=circuit_breaker,
        )
        BaseSourceAdapter.__init__(self, cache=cache, call_timeout=call_timeout)

    def build_params(self, query: SourceQuery) -> dict[str, str]:
        params = {
            "search": query.q,
            "per-page": str(min(query.page_size, self.max_page_size)),
            "page": str(query.page),
            "sort": "publication_date:desc" if query.sort == "date" else "relevance_score:desc",
            "mailto": self._email,
        }
        if query.date_range is not None and not query.date_range.is_empty:
            start, end = query.date_range.iso_bounds()
            filters = []
            if start:
                filters.append(f"from_publication_date:{start}")
            if end:
                filters.append(f"to_publication_date:{end}")
            params["filter"] = ",".join(filters)
        return params

    async def _search(self, query: SourceQuery) -> tuple[list[PublicationRecord], int]:
        data = await self._make_request(OA_WORKS_URL, params=self.build_params(query))
        if not isinstance(data, dict):
            raise MalformedRecordError("expected a JSON object", source=self._service_name)

        records = []
        for work in data.get("results", []) or []:
            record = normalize_openalex_work(work)
            if record is not None:
                records.append(record)
        total = int((data.get("meta") or {}).get("count") or 0)
        return records, total
