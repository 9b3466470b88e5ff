"""
TieredRetrievalController - fan a QueryMeta out to the enabled sources.

Three retrieval paths:

1. Exact lookups (identifier, pasted title): PubMed only.
2. Multi-concept queries with both tiers built:
       PubMed tier 1 (disease AND exposure AND toxicity)
         -> fewer than ``tier_trigger`` hits? PubMed tier 2 (disease AND exposure)
       concurrently: OpenAlex, Semantic Scholar, arXiv on the tier-2 text
3. Everything else: one combined batch, PubMed and OpenAlex sharing half the
   batch each, Semantic Scholar and arXiv a smaller slice.

Branches run under ``gather_settled``: a slow or broken source only loses
its own records. Merging keeps the fixed source order and removes duplicates
through the Deduplicator.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field

from publication_search.application.ports import SourceAdapter
from publication_search.config import RankingPolicy
from publication_search.core.async_utils import gather_settled
from publication_search.models.publication import (
    PRIMARY_SOURCE,
    PublicationRecord,
    SourceName,
    SourceQuery,
    SourceResult,
)
from publication_search.models.query import DateRange, QueryMeta, SortOrder

from .deduplicator import DedupStats, Deduplicator

logger = logging.getLogger(__name__)

MERGE_ORDER: tuple[str, ...] = tuple(s.value for s in SourceName)


@dataclass
class RetrievalOutcome:
    """Merged candidates plus per-call bookkeeping."""
    records: list[PublicationRecord] = field(default_factory=list)
    results: list[SourceResult] = field(default_factory=list)
    tiered: bool = False
    dedup: DedupStats = field(default_factory=DedupStats)

    @property
    def attempted_sources(self) -> list[str]:
        return list(dict.fromkeys(r.source for r in self.results))

    @property
    def failed_sources(self) -> list[str]:
        failed = {r.source for r in self.results if not r.ok}
        return [s for s in self.attempted_sources if s in failed]

    @property
    def all_failed(self) -> bool:
        """True only when calls were made and every one of them errored."""
        return bool(self.results) and all(not r.ok for r in self.results)

    @property
    def source_counts(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for record in self.records:
            counts[record.source] = counts.get(record.source, 0) + 1
        return counts

    @property
    def sources_used(self) -> list[str]:
        counts = self.source_counts
        return [s for s in MERGE_ORDER if counts.get(s)] + [s for s in counts if s not in MERGE_ORDER]


class TieredRetrievalController:
    """
    Usage:
        controller = TieredRetrievalController({"pubmed": pubmed, "openalex": openalex})
        outcome = await controller.retrieve(meta, page_size=10)
    """

    def __init__(
        self,
        adapters: Mapping[str, SourceAdapter],
        policy: RankingPolicy | None = None,
        deduplicator: Deduplicator | None = None,
    ) -> None:
        self._adapters = dict(adapters)
        self._policy = policy or RankingPolicy.default()
        self._deduplicator = deduplicator or Deduplicator()

    @property
    def available_sources(self) -> list[str]:
        return [s for s in MERGE_ORDER if s in self._adapters]

    def active_sources(self, sources: list[str] | tuple[str, ...] | None = None) -> list[str]:
        """Sources a request fans out to: the requested subset plus the primary."""
        available = self.available_sources
        if sources is None:
            return available
        wanted = set(sources) | {PRIMARY_SOURCE}
        return [s for s in available if s in wanted]

    async def retrieve(
        self,
        meta: QueryMeta,
        *,
        date_range: DateRange | None = None,
        sort: SortOrder = "relevance",
        page_size: int = 10,
        sources: list[str] | tuple[str, ...] | None = None,
    ) -> RetrievalOutcome:
        active = self.active_sources(sources)
        batch = self._policy.batch_for(meta.is_multi_concept, page_size)

        if meta.is_exact_search:
            outcome = await self._retrieve_exact(meta, date_range, sort, batch)
        elif meta.is_multi_concept and meta.tier1_query and meta.tier2_query:
            outcome = await self._retrieve_tiered(meta, active, date_range, sort, batch)
        else:
            outcome = await self._retrieve_combined(meta, active, date_range, sort, batch)

        ordered = sorted(
            (r for r in outcome.results if r.ok),
            key=lambda r: MERGE_ORDER.index(r.source) if r.source in MERGE_ORDER else len(MERGE_ORDER),
        )
        merged = [item for r in ordered for item in r.items]
        outcome.records, outcome.dedup = self._deduplicator.deduplicate(merged)

        logger.info(
            f"Retrieved {len(outcome.records)} unique records "
            f"(tiered={outcome.tiered}, counts={outcome.source_counts}, failed={outcome.failed_sources})"
        )
        return outcome

    # -------------------------------------------------------------------------

    async def _search(self, source: str, query: SourceQuery) -> SourceResult:
        adapter = self._adapters.get(source)
        if adapter is None:
            return SourceResult.failed(source, "source not configured")
        return await adapter.search(query)

    @staticmethod
    def _settle(sources: list[str], results: list[SourceResult | Exception]) -> list[SourceResult]:
        settled = []
        for source, result in zip(sources, results, strict=True):
            if isinstance(result, Exception):
                logger.warning(f"{source}: branch raised {type(result).__name__}: {result}")
                settled.append(SourceResult.failed(source, str(result) or type(result).__name__))
            else:
                settled.append(result)
        return settled

    def _secondary_size(self, batch: int) -> int:
        return max(self._policy.min_secondary_page_size, min(self._policy.secondary_page_size, batch // 6))

    async def _retrieve_exact(
        self, meta: QueryMeta, date_range: DateRange | None, sort: SortOrder, batch: int
    ) -> RetrievalOutcome:
        result = await self._search(
            PRIMARY_SOURCE,
            SourceQuery(q=meta.query_for(PRIMARY_SOURCE), date_range=date_range, page_size=batch, sort=sort),
        )
        return RetrievalOutcome(results=[result])

    async def _pubmed_tiers(
        self, meta: QueryMeta, date_range: DateRange | None, sort: SortOrder, batch: int
    ) -> list[SourceResult]:
        tier1 = await self._search(
            PRIMARY_SOURCE, SourceQuery(q=meta.tier1_query or "", date_range=date_range, page_size=batch, sort=sort)
        )
        hits = tier1.total_count or len(tier1.items)
        if hits >= self._policy.tier_trigger or meta.tier1_query == meta.tier2_query:
            return [tier1]

        logger.debug(f"Tier 1 returned {hits} hits; widening to tier 2")
        tier2 = await self._search(
            PRIMARY_SOURCE, SourceQuery(q=meta.tier2_query or "", date_range=date_range, page_size=batch, sort=sort)
        )
        return [tier1, tier2]

    async def _retrieve_tiered(
        self,
        meta: QueryMeta,
        active: list[str],
        date_range: DateRange | None,
        sort: SortOrder,
        batch: int,
    ) -> RetrievalOutcome:
        sizes = {
            SourceName.OPENALEX.value: min(200, batch),
            SourceName.SEMANTIC_SCHOLAR.value: self._policy.secondary_page_size,
            SourceName.ARXIV.value: self._policy.secondary_page_size,
        }
        secondaries = [s for s in active if s in sizes and meta.query_for(s)]

        settled = await gather_settled(
            self._pubmed_tiers(meta, date_range, sort, batch),
            *(
                self._search(
                    s, SourceQuery(q=meta.query_for(s), date_range=date_range, page_size=sizes[s], sort=sort)
                )
                for s in secondaries
            ),
        )

        pubmed_branch = settled[0]
        if isinstance(pubmed_branch, Exception):
            logger.warning(f"{PRIMARY_SOURCE}: tier branch raised {pubmed_branch!r}")
            results = [SourceResult.failed(PRIMARY_SOURCE, str(pubmed_branch) or type(pubmed_branch).__name__)]
        else:
            results = list(pubmed_branch)
        results.extend(self._settle(secondaries, settled[1:]))
        return RetrievalOutcome(results=results, tiered=True)

    async def _retrieve_combined(
        self,
        meta: QueryMeta,
        active: list[str],
        date_range: DateRange | None,
        sort: SortOrder,
        batch: int,
    ) -> RetrievalOutcome:
        secondary = self._secondary_size(batch)
        sizes = {
            SourceName.PUBMED.value: max(1, batch // 2),
            SourceName.OPENALEX.value: max(1, batch // 2),
            SourceName.SEMANTIC_SCHOLAR.value: secondary,
            SourceName.ARXIV.value: secondary,
        }
        # The primary runs even when alone
        if active == [PRIMARY_SOURCE]:
            sizes[PRIMARY_SOURCE] = batch

        targets = [s for s in active if s in sizes and meta.query_for(s)]
        settled = await gather_settled(
            *(
                self._search(
                    s, SourceQuery(q=meta.query_for(s), date_range=date_range, page_size=sizes[s], sort=sort)
                )
                for s in targets
            )
        )
        return RetrievalOutcome(results=self._settle(targets, settled))
