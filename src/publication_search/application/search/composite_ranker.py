"""
CompositeRanker - blend relevance, influence, recency and personalization.

Scores (all in [0, 1]):

    citation  = log10(1 + c) / log10(1 + P95(c over the batch)), capped at 1
    influence = 0.7 * citation + 0.3 * min(1, metric / 3)   (citation alone without metric)
    recency   = 1 / (1 + age), rescaled so the oldest record scores 0 and
                a current-year record scores 1
    final     = wM * match + wR * relevance + wI * influence + wY * recency

Weights come from RankingPolicy and switch to the recency-heavy set when the
query asks for recent work.

Sort order (after pinning records whose title equals the query):
    1. final (within score_tie_tolerance counts as a tie)
    2. relevance
    3. multi-concept title strength
    4. influence
    5. influential citation count (Semantic Scholar)
    6. source richness, then id (keeps pages stable across requests)
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date
from functools import cmp_to_key

from publication_search.config import RankingPolicy
from publication_search.models.publication import SOURCE_PRIORITY, ScoredRecord

UNKNOWN_AGE_YEARS = 10
MIN_PLAUSIBLE_YEAR = 1800


def percentile(values: list[int], fraction: float) -> int:
    """Nearest-rank percentile: ``sorted(values)[floor(n * fraction)]``, clamped."""
    if not values:
        return 0
    ordered = sorted(values)
    index = min(len(ordered) - 1, math.floor(len(ordered) * fraction))
    return ordered[index]


def citation_score(count: int | None, p95: int) -> float:
    if p95 <= 0:
        return 0.0
    return min(1.0, math.log10(1 + max(0, count or 0)) / math.log10(1 + p95))


def influence_score(citation: float, metric: float | None, policy: RankingPolicy) -> float:
    if metric is None or metric <= 0:
        return citation
    normalized = min(1.0, metric / policy.influence_metric_cap)
    return policy.influence_blend * citation + (1 - policy.influence_blend) * normalized


def age_years(year: int | None, current_year: int) -> int:
    if year is None or year <= MIN_PLAUSIBLE_YEAR:
        return UNKNOWN_AGE_YEARS
    return max(0, current_year - year)


def recency_score(age: int, max_age: int) -> float:
    """
    Inverse age rescaled between the oldest age and the current year.

    >>> recency_score(0, 10)
    1.0
    >>> recency_score(10, 10)
    0.0
    """
    floor = 1 / (1 + max_age)
    raw = 1 / (1 + age)
    if floor >= 1:
        return 1.0
    return min(1.0, max(0.0, (raw - floor) / (1 - floor)))


@dataclass
class Page:
    items: list[ScoredRecord]
    total_count: int
    has_more: bool


class CompositeRanker:
    """
    Usage:
        ranker = CompositeRanker(RankingPolicy.default())
        ranked = ranker.rank(scored, wants_recent=meta.intent.wants_recent)
        page = ranker.paginate(ranked, page=1, page_size=10)
    """

    def __init__(self, policy: RankingPolicy | None = None, today: date | None = None) -> None:
        self._policy = policy or RankingPolicy.default()
        self._today = today

    @property
    def current_year(self) -> int:
        return (self._today or date.today()).year

    def score(self, items: list[ScoredRecord], wants_recent: bool = False) -> None:
        """Fill citation, influence, recency and final scores in place."""
        if not items:
            return
        policy = self._policy
        weights = policy.weights_for(wants_recent)
        now = self.current_year

        counts = [max(0, r.record.citation_count or 0) for r in items]
        p95 = percentile(counts, policy.citation_percentile)

        known_ages = [
            now - r.record.year
            for r in items
            if r.record.year is not None and r.record.year > MIN_PLAUSIBLE_YEAR
        ]
        max_age = max([*known_ages, 1])

        for item in items:
            item.citation_score = citation_score(item.record.citation_count, p95)
            item.influence_score = influence_score(item.citation_score, item.record.influence_metric, policy)
            item.recency_score = recency_score(age_years(item.record.year, now), max_age)
            item.final_score = (
                weights.match * item.match_score
                + weights.relevance * item.relevance_score
                + weights.influence * item.influence_score
                + weights.recency * item.recency_score
            )

    def _compare(self, a: ScoredRecord, b: ScoredRecord) -> int:
        tolerance = self._policy.score_tie_tolerance
        if abs(a.final_score - b.final_score) > tolerance:
            return -1 if a.final_score > b.final_score else 1
        if abs(a.relevance_score - b.relevance_score) > tolerance:
            return -1 if a.relevance_score > b.relevance_score else 1
        if a.multi_concept_strength != b.multi_concept_strength:
            return b.multi_concept_strength - a.multi_concept_strength
        if a.influence_score != b.influence_score:
            return -1 if a.influence_score > b.influence_score else 1
        ia = a.record.influential_citation_count or 0
        ib = b.record.influential_citation_count or 0
        if ia != ib:
            return ib - ia
        pa = SOURCE_PRIORITY.get(a.source, len(SOURCE_PRIORITY))
        pb = SOURCE_PRIORITY.get(b.source, len(SOURCE_PRIORITY))
        if pa != pb:
            return pa - pb
        return (a.record.id > b.record.id) - (a.record.id < b.record.id)

    def sort(self, items: list[ScoredRecord], pin_exact: bool = False) -> list[ScoredRecord]:
        ordered = sorted(items, key=cmp_to_key(self._compare))
        # Stable partition: titles equal to the query always lead, then (for
        # pasted-title searches) every other verbatim hit
        pinned = [i for i in ordered if i.exact_title]
        if pin_exact:
            pinned += [i for i in ordered if i.exact_match and not i.exact_title]
        if pinned:
            ids = {id(i) for i in pinned}
            ordered = pinned + [i for i in ordered if id(i) not in ids]
        return ordered

    def rank(self, items: list[ScoredRecord], wants_recent: bool = False, pin_exact: bool = False) -> list[ScoredRecord]:
        self.score(items, wants_recent)
        return self.sort(items, pin_exact)

    @staticmethod
    def paginate(items: list[ScoredRecord], page: int, page_size: int) -> Page:
        start = (page - 1) * page_size
        end = start + page_size
        return Page(items=items[start:end], total_count=len(items), has_more=end < len(items))
