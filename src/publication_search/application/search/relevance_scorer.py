"""
RelevanceScorer - how well one record matches the query, in [0, 1].

Signals, combined as R = max(title emphasis, field weighted):

1. Field-weighted match: per term, weights over title / major subjects /
   keywords / abstract; the score is max(average, best single term) so a
   single strong title hit is not diluted by absent terms.
2. Title emphasis: ratio of terms present in title+keywords vs anywhere.

    all terms in title                        -> 0.96
    all present, >= half in title             -> 0.825 .. 0.9
    all present anywhere                      -> 0.5 .. 0.75
    partial                                   -> 0.5 * fraction present

Overrides and boosts applied afterwards:
- exact phrase (raw or search query found verbatim) -> 1.0
- title equal to the query, ignoring case and punctuation -> 1.0, pinned first
- identifier and pasted-title searches              -> 1.0
- non-primary source already at the boost floor     -> +cross_source_boost
- strong exposure match with a rare term in title   -> +exposure_boost
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass

from publication_search.config import RankingPolicy
from publication_search.models.publication import ExposureMatchLevel, PublicationRecord, ScoredRecord
from publication_search.models.query import QueryKind, QueryMeta

from .concept_gate import assess_exposure_match, term_regex

RELEVANCE_META_WORDS = frozenset({
    "latest", "recent", "new", "updated", "emerging",
    "publications", "publication", "papers", "articles", "research", "studies",
})

TITLE_EMPHASIS_ALL_IN_TITLE = 0.96

_QUOTE_RE = re.compile(r"['\"‘’“”`]")
_NON_WORD_RE = re.compile(r"[^\w]+")
_WHITESPACE_RE = re.compile(r"\s+")


def relevance_terms(meta: QueryMeta) -> list[str]:
    """
    Core concept terms without meta words like "latest" or "papers".

    Falls back to the full core list, then to the raw query terms.
    """
    core = [t for t in meta.core_concept_terms if t and t.strip()]
    if core:
        specific = [t for t in core if t.lower().strip() not in RELEVANCE_META_WORDS]
        return specific or core
    return list(meta.query_terms)


def normalize_phrase_text(text: str) -> str:
    """
    Case-fold, drop apostrophes and quotes, turn other punctuation into spaces.

    >>> normalize_phrase_text("Alzheimer's Disease: A Review")
    'alzheimers disease a review'
    """
    lowered = _QUOTE_RE.sub("", (text or "").lower())
    return _WHITESPACE_RE.sub(" ", _NON_WORD_RE.sub(" ", lowered)).strip()


def has_exact_phrase(record: PublicationRecord, phrases: Sequence[str]) -> bool:
    """True when any phrase occurs, word-bounded, in title, abstract or keywords."""
    haystack = normalize_phrase_text(f"{record.title} {record.abstract} {' '.join(record.keywords)}")
    if not haystack:
        return False
    for phrase in phrases:
        needle = normalize_phrase_text(phrase)
        if needle and re.search(rf"(?<!\w){re.escape(needle)}(?!\w)", haystack):
            return True
    return False


def is_exact_title(record: PublicationRecord, raw_query: str) -> bool:
    """Normalized title equals the normalized query (case and punctuation ignored)."""
    title = normalize_phrase_text(record.title)
    return bool(title) and title == normalize_phrase_text(raw_query)


def field_weighted_relevance(record: PublicationRecord, terms: Sequence[str], policy: RankingPolicy) -> float:
    cleaned = [t.strip().lower() for t in terms if t and t.strip()]
    if not cleaned:
        return 0.0

    title = record.title.lower()
    mesh = " ".join(record.mesh_major_topics).lower()
    keywords = " ".join(record.keywords).lower()
    abstract = record.abstract.lower()
    total_weight = policy.title_weight + policy.mesh_weight + policy.keywords_weight + policy.abstract_weight

    weighted_sum = 0.0
    best = 0.0
    for t in cleaned:
        pattern = term_regex(t)
        term_score = (
            policy.title_weight * bool(pattern.search(title))
            + policy.mesh_weight * bool(pattern.search(mesh))
            + policy.keywords_weight * bool(pattern.search(keywords))
            + policy.abstract_weight * bool(pattern.search(abstract))
        ) / total_weight
        weighted_sum += term_score
        best = max(best, term_score)

    return max(weighted_sum / len(cleaned), best)


def title_emphasis_relevance(record: PublicationRecord, terms: Sequence[str]) -> float:
    cleaned = [t.strip().lower() for t in terms if t and len(t.strip()) >= 2]
    if not cleaned:
        return 0.0

    title_kw = f"{record.title} {' '.join(record.keywords)}".lower()
    full_text = f"{title_kw} {record.abstract}".lower()
    in_title = sum(1 for t in cleaned if term_regex(t).search(title_kw))
    anywhere = sum(1 for t in cleaned if term_regex(t).search(full_text))

    ratio_title = in_title / len(cleaned)
    ratio_anywhere = anywhere / len(cleaned)
    if ratio_title == 1:
        return TITLE_EMPHASIS_ALL_IN_TITLE
    if ratio_anywhere == 1 and ratio_title >= 0.5:
        return 0.75 + ratio_title * 0.15
    if ratio_anywhere == 1:
        return 0.5 + ratio_title * 0.25
    return ratio_anywhere * 0.5


@dataclass
class RelevanceResult:
    score: float
    exact_match: bool = False
    exact_title: bool = False
    exposure_match_level: ExposureMatchLevel = ExposureMatchLevel.NONE


class RelevanceScorer:
    """
    Scores records against one query.

    Usage:
        scorer = RelevanceScorer(meta, RankingPolicy.default())
        scored = [scorer.score(r) for r in records]
    """

    def __init__(self, meta: QueryMeta, policy: RankingPolicy | None = None) -> None:
        self._meta = meta
        self._policy = policy or RankingPolicy.default()
        self._terms = relevance_terms(meta)
        self._phrases = meta.phrase_candidates
        self._exposure_terms = [] if meta.is_exact_search else list(meta.modifier_concept_terms)

    @property
    def terms(self) -> list[str]:
        return list(self._terms)

    def evaluate(self, record: PublicationRecord) -> RelevanceResult:
        exact = has_exact_phrase(record, self._phrases)
        exact_title = is_exact_title(record, self._meta.raw_query)
        exact = exact or exact_title

        if self._meta.is_exact_search:
            if self._meta.kind in (QueryKind.PMID, QueryKind.PMCID):
                exact = exact or self._matches_identifier(record)
            return RelevanceResult(score=1.0, exact_match=exact, exact_title=exact_title)

        if exact:
            relevance = 1.0
        else:
            relevance = max(
                title_emphasis_relevance(record, self._terms),
                field_weighted_relevance(record, self._terms, self._policy),
            )
            if not record.is_primary and relevance >= self._policy.cross_source_boost_floor:
                relevance = min(1.0, relevance + self._policy.cross_source_boost)

        level = ExposureMatchLevel.NONE
        if self._exposure_terms:
            level, rare_in_title = assess_exposure_match(
                record, self._exposure_terms, self._meta.rare_concept_terms
            )
            if level is ExposureMatchLevel.STRONG and rare_in_title:
                relevance = min(1.0, relevance + self._policy.exposure_boost)

        return RelevanceResult(
            score=min(1.0, max(0.0, relevance)),
            exact_match=exact,
            exact_title=exact_title,
            exposure_match_level=level,
        )

    def score(self, record: PublicationRecord) -> ScoredRecord:
        result = self.evaluate(record)
        return ScoredRecord(
            record=record,
            relevance_score=result.score,
            exact_match=result.exact_match,
            exact_title=result.exact_title,
            exposure_match_level=result.exposure_match_level,
        )

    def _matches_identifier(self, record: PublicationRecord) -> bool:
        digits = self._meta.raw_query.strip().upper().removeprefix("PMC")
        return digits in {record.id.upper().removeprefix("PMC"), (record.pmid or "").strip()}
