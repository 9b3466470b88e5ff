"""
Source adapter template.

Every adapter exposes the same contract::

    await adapter.search(SourceQuery(q, date_range, page, page_size, sort))
    -> SourceResult(source, items, total_count, error)

``search`` wraps the source-specific ``_search`` with the per-query cache,
a per-call time budget, and failure containment: any error (retries
exhausted, timeout, malformed payload, unexpected crash) becomes an empty
``SourceResult`` whose ``error`` is set. Failed results are never cached.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod

from publication_search.core.exceptions import PublicationSearchError
from publication_search.infrastructure.cache.query_cache import NullQueryCache, QueryCache
from publication_search.models.publication import PublicationRecord, SourceQuery, SourceResult

logger = logging.getLogger(__name__)

DEFAULT_CALL_TIMEOUT = 45.0


class BaseSourceAdapter(ABC):
    """Cache, time budget and failure containment around ``_search``."""

    source_name: str = "source"
    max_page_size: int = 100

    def __init__(self, cache: QueryCache | None = None, call_timeout: float = DEFAULT_CALL_TIMEOUT) -> None:
        self._cache: QueryCache = cache if cache is not None else NullQueryCache()
        self._call_timeout = call_timeout

    def cache_key(self, query: SourceQuery) -> str:
        dr = query.date_range
        window = f"{dr.min_date or ''}:{dr.max_date or ''}" if dr else ":"
        return f"{self.source_name}|{query.q}|{window}|{query.page}|{query.page_size}|{query.sort}"

    async def search(self, query: SourceQuery) -> SourceResult:
        key = self.cache_key(query)
        cached = self._cache.get(key)
        if cached is not None:
            logger.debug(f"{self.source_name}: cache hit for {query.q!r}")
            return cached

        try:
            async with asyncio.timeout(self._call_timeout):
                items, total = await self._search(query)
        except TimeoutError:
            logger.warning(f"{self.source_name}: call exceeded {self._call_timeout:.0f}s budget")
            return SourceResult.failed(self.source_name, "timeout")
        except PublicationSearchError as e:
            logger.warning(f"{self.source_name}: degraded to empty result ({e})")
            return SourceResult.failed(self.source_name, str(e))
        except Exception as e:
            logger.exception(f"{self.source_name}: unexpected adapter failure")
            return SourceResult.failed(self.source_name, f"{type(e).__name__}: {e}")

        result = SourceResult(source=self.source_name, items=items, total_count=max(total, len(items)))
        logger.info(f"{self.source_name}: {len(items)} records (total {result.total_count}) for {query.q[:80]!r}")
        self._cache.set(key, result)
        return result

    @abstractmethod
    async def _search(self, query: SourceQuery) -> tuple[list[PublicationRecord], int]:
        """Fetch one page of normalized records and the upstream total count."""

    async def close(self) -> None:
        return None
