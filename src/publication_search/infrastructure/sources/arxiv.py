"""
arXiv adapter (preprint source).

API Documentation: https://info.arxiv.org/help/api/user-manual.html

Responses are Atom XML, parsed with defusedxml. The API has no date filter
for free-text search, so a requested date range is applied to the parsed
entries by publication year.
"""

from __future__ import annotations

import logging
import re

import defusedxml.ElementTree as ET  # Security: prevent XML attacks

from publication_search.core.async_utils import CircuitBreaker
from publication_search.core.exceptions import MalformedRecordError
from publication_search.infrastructure.cache.query_cache import QueryCache
from publication_search.models.publication import PublicationRecord, SourceName, SourceQuery

from .base_adapter import DEFAULT_CALL_TIMEOUT, BaseSourceAdapter
from .base_client import BaseAPIClient

logger = logging.getLogger(__name__)

ARXIV_API_URL = "http://export.arxiv.org/api/query"
MAX_RESULTS = 100

ATOM_NS = {
    "atom": "http://www.w3.org/2005/Atom",
    "arxiv": "http://arxiv.org/schemas/atom",
    "opensearch": "http://a9.com/-/spec/opensearch/1.1/",
}

_ID_RE = re.compile(r"arxiv\.org/abs/(.+)")
_WORD_RE = re.compile(r"[\w][\w.-]*")
_BOOLEAN_WORDS = frozenset({"and", "or", "not"})


def build_search_query(q: str) -> str:
    """``migraine "mold exposure"`` -> ``all:migraine AND all:mold AND all:exposure``."""
    terms = [t for t in _WORD_RE.findall(q.replace('"', " ")) if t.lower() not in _BOOLEAN_WORDS]
    return " AND ".join(f"all:{t}" for t in terms)


def _text(entry: ET.Element, path: str) -> str:
    elem = entry.find(path, ATOM_NS)
    if elem is None or elem.text is None:
        return ""
    return " ".join(elem.text.split())


def parse_atom_feed(xml_text: str) -> tuple[list[PublicationRecord], int | None]:
    """Parse an arXiv Atom feed into records and the advertised total."""
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as e:
        raise MalformedRecordError(str(e), source="arXiv") from e

    records = []
    for entry in root.findall("atom:entry", ATOM_NS):
        record = normalize_arxiv_entry(entry)
        if record is not None:
            records.append(record)

    total_text = _text(root, "opensearch:totalResults")
    return records, int(total_text) if total_text.isdigit() else None


def normalize_arxiv_entry(entry: ET.Element) -> PublicationRecord | None:
    """Map one Atom ``entry`` to a record; None when untitled."""
    title = _text(entry, "atom:title")
    if not title:
        return None

    id_url = _text(entry, "atom:id")
    match = _ID_RE.search(id_url)
    arxiv_id = match.group(1) if match else id_url

    authors = []
    for author in entry.findall("atom:author", ATOM_NS):
        name = _text(author, "atom:name")
        if name:
            authors.append(name)

    published = _text(entry, "atom:published")
    year = int(published[:4]) if published[:4].isdigit() else None

    abs_url = id_url
    for link in entry.findall("atom:link", ATOM_NS):
        href = link.get("href", "")
        if "/abs/" in href:
            abs_url = href

    return PublicationRecord(
        id=arxiv_id,
        source=SourceName.ARXIV.value,
        title=title,
        abstract=_text(entry, "atom:summary"),
        authors=authors,
        journal="arXiv",
        year=year,
        month=published[5:7] if len(published) >= 7 else "",
        day=published[8:10] if len(published) >= 10 else "",
        doi=_text(entry, "arxiv:doi"),
        url=abs_url,
    )


class ArxivAdapter(BaseAPIClient, BaseSourceAdapter):
    """
    arXiv preprint search.

    Usage:
        adapter = ArxivAdapter()
        result = await adapter.search(SourceQuery(q="protein folding transformer", page_size=50))
    """

    _service_name = "arXiv"
    source_name = SourceName.ARXIV.value
    max_page_size = MAX_RESULTS

    def __init__(
        self,
        cache: QueryCache | None = None,
        call_timeout: float = DEFAULT_CALL_TIMEOUT,
        timeout: float = 30.0,
        circuit_breaker: CircuitBreaker | None = None,
    ) -> None:
        BaseAPIClient.__init__(
            self,
            timeout=timeout,
            min_interval=1.0,
            headers={"User-Agent": "publication-search/1.0"},
            circuit_breaker=circuit_breaker,
        )
        BaseSourceAdapter.__init__(self, cache=cache, call_timeout=call_timeout)

    def build_params(self, query: SourceQuery) -> dict[str, str]:
        max_results = min(query.page_size, self.max_page_size)
        return {
            "search_query": build_search_query(query.q),
            "start": str((query.page - 1) * max_results),
            "max_results": str(max_results),
            "sortBy": "submittedDate" if query.sort == "date" else "relevance",
            "sortOrder": "descending",
        }

    async def _search(self, query: SourceQuery) -> tuple[list[PublicationRecord], int]:
        params = self.build_params(query)
        if not params["search_query"]:
            return [], 0

        xml_text = await self._make_request(ARXIV_API_URL, params=params, expect_json=False)
        records, total = parse_atom_feed(xml_text)

        if query.date_range is not None and not query.date_range.is_empty:
            records = [r for r in records if query.date_range.contains_year(r.year)]

        if total is None:
            start, max_results = int(params["start"]), int(params["max_results"])
            total = start + len(records) + (1 if len(records) == max_results else 0)
        return records, total
