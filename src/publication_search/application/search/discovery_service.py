"""
PublicationDiscoveryService - the end-to-end search pipeline.

    SearchRequest
      -> QueryBuilder            (normalize, classify, build per-source queries)
      -> TieredRetrievalController (fan out, merge, deduplicate)
      -> citation enrichment     (optional CitationMetricsProvider)
      -> RelevanceScorer         (relevance, exact phrase, exposure level)
      -> ConceptGate + thresholds, multi-concept fallback
      -> ProfileMatcher          (optional personalization)
      -> CompositeRanker         (score, sort, paginate)
      -> page-only enrichment    (title simplification, read state)
      -> RankedPage

A request whose every source call failed raises CatastrophicFailureError;
a request that reached its sources and found nothing returns an empty page.
"""

from __future__ import annotations

import logging
from datetime import date

from publication_search.application.ports import (
    CitationMetricsProvider,
    ProfileStore,
    ReadStateLookup,
    TitleSimplifier,
)
from publication_search.config import RankingPolicy
from publication_search.core.exceptions import CatastrophicFailureError, ErrorContext
from publication_search.models.publication import (
    ExposureMatchLevel,
    PublicationRecord,
    RankedPage,
    ScoredRecord,
)
from publication_search.models.query import QueryKind, QueryMeta, SearchRequest, UserProfile

from .composite_ranker import CompositeRanker
from .concept_gate import ConceptGate
from .personalization import ProfileMatcher
from .query_builder import QueryBuilder
from .relevance_scorer import RelevanceScorer
from .tiered_retrieval import TieredRetrievalController

logger = logging.getLogger(__name__)


class PublicationDiscoveryService:
    """
    Multi-source publication search with concept-aware ranking.

    Usage:
        service = PublicationDiscoveryService(TieredRetrievalController(adapters))
        page = await service.search(SearchRequest(query="migraine mold exposure"))

    Args:
        retrieval: Source fan-out and merge
        query_builder: Defaults to a QueryBuilder honoring the policy's exposure mode
        policy: Thresholds and weights
        citation_metrics: Optional batch citation lookup keyed by PMID
        title_simplifier: Optional plain-language titles for the returned page
        profile_store: Optional profile lookup for ``SearchRequest.user_id``
        read_state: Optional per-user read markers for the returned page
        require_abstract: Drop records without an abstract before scoring
    """

    def __init__(
        self,
        retrieval: TieredRetrievalController,
        *,
        query_builder: QueryBuilder | None = None,
        policy: RankingPolicy | None = None,
        citation_metrics: CitationMetricsProvider | None = None,
        title_simplifier: TitleSimplifier | None = None,
        profile_store: ProfileStore | None = None,
        read_state: ReadStateLookup | None = None,
        require_abstract: bool = False,
        today: date | None = None,
    ) -> None:
        self._policy = policy or RankingPolicy.default()
        self._retrieval = retrieval
        self._builder = query_builder or QueryBuilder(simplified_exposure=self._policy.simplified_exposure)
        self._ranker = CompositeRanker(self._policy, today=today)
        self._citation_metrics = citation_metrics
        self._title_simplifier = title_simplifier
        self._profile_store = profile_store
        self._read_state = read_state
        self._require_abstract = require_abstract
        self._today = today

    def build_query(self, request: SearchRequest) -> QueryMeta:
        return self._builder.build(request.query, self._retrieval.active_sources(request.sources))

    async def search(self, request: SearchRequest) -> RankedPage:
        meta = self.build_query(request)
        logger.info(f"Search {request.query!r}: kind={meta.kind.value} multi_concept={meta.is_multi_concept}")

        outcome = await self._retrieval.retrieve(
            meta,
            date_range=request.date_range,
            sort=request.sort,
            page_size=request.page_size,
            sources=request.sources,
        )
        if outcome.all_failed:
            raise CatastrophicFailureError(
                outcome.failed_sources,
                context=ErrorContext(operation="search", input_value=request.query),
            )

        records = outcome.records
        if self._require_abstract and not meta.is_exact_search:
            records = [r for r in records if r.abstract.strip()]

        await self._enrich_citations(records)

        scorer = RelevanceScorer(meta, self._policy)
        scored = [scorer.score(r) for r in records]

        gate = ConceptGate(meta)
        main, fallback_applied = self._filter(meta, gate, scored)
        weak = self._weak_candidates(meta, gate, scored, main)

        profile = await self._resolve_profile(request)
        if profile is not None:
            matcher = ProfileMatcher(profile, raw_query=request.query, today=self._today)
            for item in [*main, *weak]:
                matcher.apply(item)

        for item in main:
            item.multi_concept_strength = gate.strength(item.record)

        wants_recent = meta.intent.wants_recent
        ranked = self._ranker.rank(main, wants_recent, pin_exact=meta.kind is QueryKind.EXACT_TITLE)
        window = self._ranker.paginate(ranked, request.page, request.page_size)

        related: list[ScoredRecord] = []
        if weak and len(ranked) < self._policy.weak_bucket_trigger:
            related = self._ranker.rank(weak, wants_recent)[: self._policy.weak_bucket_limit]

        await self._simplify_titles(window.items, profile)
        await self._mark_read(window.items, request.user_id)

        logger.info(
            f"Search {request.query!r}: {window.total_count} ranked, page {request.page} "
            f"({len(window.items)} items), weak={len(related)}, fallback={fallback_applied}"
        )
        return RankedPage(
            items=window.items,
            total_count=window.total_count,
            has_more=window.has_more,
            page=request.page,
            page_size=request.page_size,
            source_counts=outcome.source_counts,
            sources_used=outcome.sources_used,
            related_weak_exposure=related,
            display_keywords=meta.display_keywords[:3],
            fallback_applied=fallback_applied,
        )

    # =========================================================================
    # Filtering
    # =========================================================================

    def _filter(
        self, meta: QueryMeta, gate: ConceptGate, scored: list[ScoredRecord]
    ) -> tuple[list[ScoredRecord], bool]:
        """Concept gate plus per-source relevance floor, with the multi-concept fallback."""
        if meta.is_exact_search:
            return list(scored), False

        kept = [
            item
            for item in scored
            if gate.passes(item.record)
            and (item.relevance_score >= 1.0 or item.relevance_score >= self._policy.threshold_for(item.source))
        ]
        if kept or not scored or not gate.is_multi_concept:
            return kept, False

        relaxed = [item for item in scored if gate.passes_fallback(item.record)]
        logger.info(f"Multi-concept gate emptied {len(scored)} candidates; fallback kept {len(relaxed)}")
        return relaxed, True

    def _weak_candidates(
        self,
        meta: QueryMeta,
        gate: ConceptGate,
        scored: list[ScoredRecord],
        main: list[ScoredRecord],
    ) -> list[ScoredRecord]:
        if not gate.is_multi_concept or meta.is_exact_search:
            return []
        in_main = {id(item) for item in main}
        return [
            item
            for item in scored
            if item.exposure_match_level is ExposureMatchLevel.WEAK
            and id(item) not in in_main
            and gate.keeps_weak_candidate(item.record)
        ]

    # =========================================================================
    # Collaborators
    # =========================================================================

    async def _enrich_citations(self, records: list[PublicationRecord]) -> None:
        if self._citation_metrics is None:
            return
        pmids = list(dict.fromkeys(r.pmid for r in records if r.pmid))
        if not pmids:
            return
        try:
            metrics = await self._citation_metrics.get_metrics(pmids)
        except Exception as e:
            logger.warning(f"Citation metrics unavailable, ranking without them: {e}")
            return

        for record in records:
            found = metrics.get(record.pmid or "")
            if found is None:
                continue
            if found.citation_count is not None:
                record.citation_count = found.citation_count
            if found.influence_metric is not None:
                record.influence_metric = found.influence_metric

    async def _resolve_profile(self, request: SearchRequest) -> UserProfile | None:
        if request.profile is not None:
            return request.profile
        if not request.user_id or self._profile_store is None:
            return None
        try:
            return await self._profile_store.get_profile(request.user_id)
        except Exception as e:
            logger.warning(f"Profile lookup failed for {request.user_id}: {e}")
            return None

    async def _simplify_titles(self, items: list[ScoredRecord], profile: UserProfile | None) -> None:
        if not items or self._title_simplifier is None:
            return
        if profile is not None and profile.is_researcher:
            return
        try:
            simplified = await self._title_simplifier.simplify_titles([i.record.title for i in items])
        except Exception as e:
            logger.warning(f"Title simplification failed, keeping original titles: {e}")
            return
        for item, title in zip(items, simplified, strict=False):
            item.simplified_title = title or item.record.title

    async def _mark_read(self, items: list[ScoredRecord], user_id: str | None) -> None:
        if not items or not user_id or self._read_state is None:
            return
        ids = [i.record.pmid or i.record.id for i in items]
        try:
            read = await self._read_state.read_ids(user_id, ids)
        except Exception as e:
            logger.warning(f"Read-state lookup failed for {user_id}: {e}")
            return
        for item, record_id in zip(items, ids, strict=True):
            item.is_read = record_id in read
