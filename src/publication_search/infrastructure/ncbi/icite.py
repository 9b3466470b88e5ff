"""
iCite Module - NIH Citation Metrics

Implements ``CitationMetricsProvider`` over NIH's iCite API:
- citation_count: Total citations
- relative_citation_ratio (RCR): Field-normalized citation metric, used as
  the record's influence metric

API Documentation: https://icite.od.nih.gov/api
"""

from __future__ import annotations

import logging
from typing import Any

from publication_search.application.ports import CitationMetrics
from publication_search.core.async_utils import CircuitBreaker
from publication_search.infrastructure.cache.query_cache import NullQueryCache, QueryCache
from publication_search.infrastructure.sources.base_client import BaseAPIClient

logger = logging.getLogger(__name__)

ICITE_API_BASE = "https://icite.od.nih.gov/api/pubs"
MAX_PMIDS_PER_REQUEST = 200  # iCite API limit
ICITE_FIELDS = ["pmid", "citation_count", "relative_citation_ratio"]


def parse_icite_item(item: dict[str, Any]) -> CitationMetrics:
    count = item.get("citation_count")
    rcr = item.get("relative_citation_ratio")
    return CitationMetrics(
        citation_count=int(count) if count is not None else None,
        influence_metric=float(rcr) if rcr is not None else None,
    )


class ICiteCitationMetrics(BaseAPIClient):
    """
    Batch citation lookup keyed by PMID, cached per PMID.

    Example:
        provider = ICiteCitationMetrics(cache=TTLQueryCache(ttl=600))
        metrics = await provider.get_metrics(["31452104", "30049270"])
    """

    _service_name = "iCite"
    _MAX_RETRIES = 2

    def __init__(
        self,
        cache: QueryCache | None = None,
        timeout: float = 30.0,
        circuit_breaker: CircuitBreaker | None = None,
    ) -> None:
        super().__init__(
            base_url=ICITE_API_BASE,
            timeout=timeout,
            min_interval=0.1,
            headers={"Accept": "application/json"},
            circuit_breaker=circuit_breaker,
        )
        self._cache: QueryCache = cache if cache is not None else NullQueryCache()

    @staticmethod
    def _cache_key(pmid: str) -> str:
        return f"icite|{pmid}"

    async def get_metrics(self, pmids: list[str]) -> dict[str, CitationMetrics]:
        """
        Citation metrics for ``pmids``; cached entries are served locally and
        only the misses are fetched, ``MAX_PMIDS_PER_REQUEST`` at a time.
        """
        results: dict[str, CitationMetrics] = {}
        missing: list[str] = []
        for pmid in dict.fromkeys(p for p in pmids if p):
            cached = self._cache.get(self._cache_key(pmid))
            if cached is not None:
                results[pmid] = cached
            else:
                missing.append(pmid)

        if missing:
            logger.debug(f"iCite cache: {len(results)} hits, {len(missing)} misses")

        for i in range(0, len(missing), MAX_PMIDS_PER_REQUEST):
            batch = missing[i : i + MAX_PMIDS_PER_REQUEST]
            data = await self._make_request(
                "",
                params={"pmids": ",".join(batch), "fl": ",".join(ICITE_FIELDS)},
            )
            for item in (data or {}).get("data", []):
                pmid = str(item.get("pmid", ""))
                if not pmid:
                    continue
                metrics = parse_icite_item(item)
                results[pmid] = metrics
                self._cache.set(self._cache_key(pmid), metrics)

        return results
