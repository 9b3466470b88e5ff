"""
Concept gate - decide whether a record is actually about the query.

Two notions of "match":

- strong field match: a term appears (word-bounded) in the title, the major
  subject headings or the author keywords
- strong abstract match: the abstract mentions the term at least twice, or
  once within its first quarter, or once within 200 characters of a
  "Background:" / "Objective:" marker

Single-concept queries require a strong field match on a core term;
multi-concept queries accept a strong match (field or abstract) on any
core, rare or modifier term.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from functools import lru_cache

from publication_search.models.publication import ExposureMatchLevel, PublicationRecord
from publication_search.models.query import QueryMeta

from .query_builder import GENERIC_TERMS

EARLY_ABSTRACT_FRACTION = 0.25
SECTION_MARKER_WINDOW = 200
_SECTION_MARKER_RE = re.compile(r"background\s*[:\-]|objective\s*[:\-]", re.IGNORECASE)


@lru_cache(maxsize=1024)
def term_regex(term: str) -> re.Pattern[str]:
    """Word-bounded, case-insensitive pattern for a literal term."""
    return re.compile(rf"\b{re.escape(term)}\b", re.IGNORECASE)


def _clean_terms(terms: Iterable[str]) -> list[str]:
    return [t.strip().lower() for t in terms if t and t.strip()]


def strong_field_text(record: PublicationRecord) -> str:
    """Title, major subject headings and keywords joined, lowercased."""
    return " ".join([record.title, " ".join(record.mesh_major_topics), " ".join(record.keywords)]).lower()


def title_keyword_text(record: PublicationRecord) -> str:
    return f"{record.title} {' '.join(record.keywords)}".lower()


def any_text(record: PublicationRecord) -> str:
    return f"{strong_field_text(record)} {record.abstract}".lower()


def contains_term(text: str, terms: Iterable[str]) -> bool:
    return any(term_regex(t).search(text) for t in _clean_terms(terms))


def strong_abstract_match(abstract: str, term: str) -> bool:
    """
    Substring occurrence test on the abstract.

    >>> strong_abstract_match("Mold and more mold.", "mold")
    True
    >>> strong_abstract_match("x" * 100 + " mold", "mold")
    False
    """
    if not abstract or not term:
        return False
    text = abstract.lower()
    t = term.lower()

    first = text.find(t)
    if first < 0:
        return False
    if text.find(t, first + len(t)) >= 0:
        return True
    if first / max(1, len(text)) <= EARLY_ABSTRACT_FRACTION:
        return True
    window = text[max(0, first - SECTION_MARKER_WINDOW) : first + SECTION_MARKER_WINDOW]
    return bool(_SECTION_MARKER_RE.search(window))


def strong_concept_match(record: PublicationRecord, terms: Sequence[str]) -> bool:
    """Any term strongly present in the fields or the abstract."""
    cleaned = _clean_terms(terms)
    if not cleaned:
        return False
    strong = strong_field_text(record)
    for t in cleaned:
        if term_regex(t).search(strong) or strong_abstract_match(record.abstract, t):
            return True
    return False


def passes_core_concept_gate(record: PublicationRecord, core_terms: Sequence[str]) -> bool:
    """At least one core term in title, major subjects or keywords; abstracts do not count."""
    if not _clean_terms(core_terms):
        return True
    return contains_term(strong_field_text(record), core_terms)


def assess_exposure_match(
    record: PublicationRecord,
    exposure_terms: Sequence[str],
    rare_terms: Sequence[str],
) -> tuple[ExposureMatchLevel, bool]:
    """
    Exposure match level plus whether a rare term sits in the title or keywords.

    STRONG: strong concept match on an exposure term
    WEAK: mentioned somewhere (typically the abstract) but not strongly
    """
    if not _clean_terms(exposure_terms):
        return ExposureMatchLevel.NONE, False

    rare_in_title = contains_term(title_keyword_text(record), rare_terms)
    if strong_concept_match(record, exposure_terms):
        return ExposureMatchLevel.STRONG, rare_in_title
    if contains_term(any_text(record), exposure_terms):
        return ExposureMatchLevel.WEAK, rare_in_title
    return ExposureMatchLevel.NONE, rare_in_title


def multi_concept_strength(record: PublicationRecord, groups: Sequence[Sequence[str]]) -> int:
    """2 when every concept group has a term in title/keywords, 1 otherwise, 0 without groups."""
    if not groups:
        return 0
    text = title_keyword_text(record)
    all_in_title = all(contains_term(text, g) if _clean_terms(g) else True for g in groups)
    return 2 if all_in_title else 1


def disease_only_terms(core_terms: Sequence[str]) -> list[str]:
    """Core terms minus generic intervention words; the full list if nothing is left."""
    specific = [t for t in core_terms if t and t.strip() and t.strip().lower() not in GENERIC_TERMS]
    return specific or list(core_terms)


class ConceptGate:
    """
    Applies the gate appropriate to a QueryMeta.

    Usage:
        gate = ConceptGate(meta)
        kept = [r for r in records if gate.passes(r)]
    """

    def __init__(self, meta: QueryMeta) -> None:
        self._meta = meta
        self._core = list(meta.core_concept_terms)
        self._exposure = meta.exposure_terms
        self._all_concepts = list(dict.fromkeys([*self._core, *meta.rare_concept_terms, *meta.modifier_concept_terms]))

    @property
    def is_active(self) -> bool:
        return not self._meta.is_exact_search and bool(self._core)

    @property
    def is_multi_concept(self) -> bool:
        return self._meta.is_multi_concept and bool(self._core) and bool(self._exposure)

    def passes(self, record: PublicationRecord) -> bool:
        if not self.is_active:
            return True
        if self.is_multi_concept:
            return strong_concept_match(record, self._all_concepts)
        return passes_core_concept_gate(record, self._core)

    def passes_fallback(self, record: PublicationRecord) -> bool:
        """Relaxed multi-concept rule: strong core match and any exposure mention."""
        if not self._core or not strong_concept_match(record, self._core):
            return False
        level, _ = assess_exposure_match(record, self._exposure, self._meta.rare_concept_terms)
        return level is not ExposureMatchLevel.NONE

    def strength(self, record: PublicationRecord) -> int:
        if not self.is_multi_concept:
            return 0
        exposure_group = list(dict.fromkeys([*self._meta.rare_concept_terms, *self._meta.modifier_concept_terms]))
        return multi_concept_strength(record, [self._core, exposure_group])

    def keeps_weak_candidate(self, record: PublicationRecord) -> bool:
        """Weak-exposure records stay in the side bucket only when the disease is strongly present."""
        return strong_concept_match(record, disease_only_terms(self._core))
