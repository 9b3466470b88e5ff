"""
Semantic Scholar adapter (citation-graph source).

API Documentation: https://api.semanticscholar.org/api-docs/

The public endpoint rate-limits aggressively, so 429s back off linearly in
4-second steps with at most two retries. An API key from
``SEMANTIC_SCHOLAR_API_KEY`` is sent as ``x-api-key`` when configured.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from publication_search.core.async_utils import CircuitBreaker
from publication_search.core.exceptions import MalformedRecordError
from publication_search.infrastructure.cache.query_cache import QueryCache
from publication_search.models.publication import PublicationRecord, SourceName, SourceQuery

from .base_adapter import DEFAULT_CALL_TIMEOUT, BaseSourceAdapter
from .base_client import BaseAPIClient

logger = logging.getLogger(__name__)

S2_API_BASE = "https://api.semanticscholar.org/graph/v1"
S2_SEARCH_URL = f"{S2_API_BASE}/paper/search"
MAX_LIMIT = 100

SEARCH_FIELDS = [
    "paperId",
    "title",
    "authors",
    "year",
    "abstract",
    "citationCount",
    "influentialCitationCount",
    "url",
    "openAccessPdf",
    "externalIds",
    "venue",
]


def _optional_int(value: Any) -> int | None:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def normalize_s2_paper(paper: dict[str, Any]) -> PublicationRecord | None:
    """Map one Semantic Scholar paper to a record; None when untitled."""
    title = (paper.get("title") or "").strip()
    if not title:
        return None

    external = paper.get("externalIds", {}) or {}
    paper_id = paper.get("paperId") or ""
    pmid = external.get("PubMed")
    year = paper.get("year")

    return PublicationRecord(
        id=paper_id or external.get("DOI") or title,
        source=SourceName.SEMANTIC_SCHOLAR.value,
        title=title,
        abstract=paper.get("abstract") or "",
        authors=[a.get("name", "") for a in paper.get("authors", []) or [] if a.get("name")],
        journal=paper.get("venue") or "",
        year=int(year) if isinstance(year, int) or (isinstance(year, str) and year.isdigit()) else None,
        doi=external.get("DOI") or "",
        pmid=str(pmid) if pmid else None,
        url=paper.get("url") or (f"https://www.semanticscholar.org/paper/{paper_id}" if paper_id else ""),
        citation_count=int(paper.get("citationCount") or 0),
        influential_citation_count=_optional_int(paper.get("influentialCitationCount")),
    )


class SemanticScholarAdapter(BaseAPIClient, BaseSourceAdapter):
    """
    Semantic Scholar paper search.

    Usage:
        adapter = SemanticScholarAdapter(api_key=None)
        result = await adapter.search(SourceQuery(q="deep learning radiology", page_size=50))
    """

    _service_name = "SemanticScholar"
    _MAX_RETRIES = 2
    source_name = SourceName.SEMANTIC_SCHOLAR.value
    max_page_size = MAX_LIMIT

    def __init__(
        self,
        api_key: str | None = None,
        cache: QueryCache | None = None,
        call_timeout: float = DEFAULT_CALL_TIMEOUT,
        timeout: float = 30.0,
        circuit_breaker: CircuitBreaker | None = None,
    ) -> None:
        headers = {"Accept": "application/json", "User-Agent": "publication-search/1.0"}
        if api_key:
            headers["x-api-key"] = api_key
        BaseAPIClient.__init__(
            self,
            timeout=timeout,
            min_interval=0.5,
            headers=headers,
            circuit_breaker=circuit_breaker,
        )
        BaseSourceAdapter.__init__(self, cache=cache, call_timeout=call_timeout)

    @staticmethod
    def _backoff(attempt: int) -> float:
        return float((attempt + 1) * 2)

    def _get_retry_after(self, response: httpx.Response, attempt: int) -> float:
        if response.status_code == 429:
            return float((attempt + 1) * 4)
        return super()._get_retry_after(response, attempt)

    def build_params(self, query: SourceQuery) -> dict[str, str]:
        limit = min(query.page_size, self.max_page_size)
        params = {
            "query": query.q.replace("-", " "),
            "offset": str((query.page - 1) * limit),
            "limit": str(limit),
            "fields": ",".join(SEARCH_FIELDS),
        }
        if query.date_range is not None and not query.date_range.is_empty:
            start, end = query.date_range.bounds()
            params["year"] = f"{start.year}-{end.year}"
        return params

    async def _search(self, query: SourceQuery) -> tuple[list[PublicationRecord], int]:
        data = await self._make_request(S2_SEARCH_URL, params=self.build_params(query))
        if not isinstance(data, dict):
            raise MalformedRecordError("expected a JSON object", source=self._service_name)

        records = []
        for paper in data.get("data", []) or []:
            record = normalize_s2_paper(paper)
            if record is not None:
                records.append(record)
        return records, int(data.get("total") or 0)
