"""
Profile affinity ("match") signal for the composite score.

A profile's conditions, keywords and interests are compared with each record;
the best term similarity is sharpened, blended 80/20 with a coarse recency
bucket and rewarded when the user's raw query appears verbatim in the title
or abstract. Records get ``match_score`` in [0.1, 0.99] plus a short
explanation. Without a profile nothing is scored and match stays 0.
"""

from __future__ import annotations

import re
from datetime import date

from publication_search.models.publication import PublicationRecord, ScoredRecord
from publication_search.models.query import UserProfile

from .concept_gate import term_regex
from .terminology import synonyms_for

_STEM_RE = re.compile(r"(ing|ed|ly|ness|ment|tion|s)$")

TOPIC_MATCH_THRESHOLD = 0.5
MIN_PHRASE_LENGTH = 3


def stem(word: str) -> str:
    """
    Crude suffix stripper.

    >>> stem("treatments")
    'treatment'
    """
    return _STEM_RE.sub("", word.lower().strip())


def term_similarity(term: str, text: str) -> float:
    """
    0.95 for a word-bounded hit of the term or a synonym, 0.75 when only a
    stemmed form occurs (e.g. "treatments" against "treatment"), else 0.
    """
    if not term or not text:
        return 0.0
    lowered = text.lower()
    candidates = [c.lower().strip() for c in [term, *synonyms_for(term)] if c and c.strip()]
    if any(term_regex(c).search(lowered) for c in candidates):
        return 0.95
    for candidate in candidates:
        stemmed = stem(candidate)
        if stemmed and stemmed in lowered:
            return 0.75
    return 0.0


def recency_bucket(year: int | None, current_year: int) -> float:
    if year is None:
        return 0.2
    if year >= current_year - 2:
        return 1.0
    if year >= current_year - 5:
        return 0.7
    if year >= current_year - 10:
        return 0.4
    return 0.2


class ProfileMatcher:
    """
    Usage:
        matcher = ProfileMatcher(profile, raw_query="pcos treatment")
        for item in scored:
            matcher.apply(item)
    """

    def __init__(self, profile: UserProfile, raw_query: str = "", today: date | None = None) -> None:
        self._profile = profile
        self._terms = profile.terms
        self._phrase = " ".join(raw_query.lower().split())
        self._current_year = (today or date.today()).year

    def match(self, record: PublicationRecord) -> tuple[float, str]:
        fields = [record.title, record.abstract, record.journal, " ".join(record.keywords)]

        topic = 0.0
        matched = 0
        for term in self._terms:
            best = max(term_similarity(term, f) for f in fields)
            if best > TOPIC_MATCH_THRESHOLD:
                matched += 1
            topic = max(topic, best)

        # Researchers list several interests; any hit counts
        if self._profile.is_researcher and matched:
            topic = min(1.0, topic + 0.3 + 0.2 * matched / max(len(self._terms), 1))

        phrase_in_title = phrase_in_abstract = False
        if len(self._phrase) >= MIN_PHRASE_LENGTH:
            phrase_in_title = self._phrase in record.title.lower()
            phrase_in_abstract = self._phrase in record.abstract.lower()

        emphasis = max(0.0, min(1.0, topic)) ** 1.25
        if len(self._phrase) >= MIN_PHRASE_LENGTH and not (phrase_in_title or phrase_in_abstract):
            emphasis *= 0.9

        score = emphasis * 0.8 + recency_bucket(record.year, self._current_year) * 0.2
        if topic > 0.2:
            score += 0.08
        if phrase_in_title:
            score += 0.2
        elif phrase_in_abstract:
            score += 0.12
        score = max(0.1, min(0.99, score))
        if phrase_in_title:
            score = max(score, 0.96)
        elif phrase_in_abstract:
            score = max(score, 0.9)

        reasons = []
        if topic > TOPIC_MATCH_THRESHOLD:
            reasons.append("topic match")
        if phrase_in_title:
            reasons.append("exact phrase in title")
        elif phrase_in_abstract:
            reasons.append("exact phrase in abstract")
        if record.year is not None and record.year >= self._current_year - 5:
            reasons.append("recent research")
        explanation = f"Based on {', '.join(reasons)}" if reasons else "General match"
        return score, explanation

    def apply(self, item: ScoredRecord) -> None:
        item.match_score, item.match_explanation = self.match(item.record)
