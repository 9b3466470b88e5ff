"""
Query-side models: search requests, date ranges, and the QueryMeta produced
by the query builder.

QueryMeta is the only object the ranking pipeline consults about the query;
the per-source strings it carries are already in each source's native
syntax, so nothing downstream branches on query shape.
"""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Literal

from ..core.exceptions import InvalidParameterError, InvalidQueryError

SortOrder = Literal["relevance", "date"]

MAX_PAGE_SIZE = 100

_DATE_PART_RE = re.compile(r"^\d{4}(?:[/-]\d{1,2}(?:[/-]\d{1,2})?)?$")


class QueryKind(Enum):
    """How the normalizer classified the raw query."""
    PMID = "pmid"                # 7-8 digit PubMed identifier
    PMCID = "pmcid"              # PMC accession code
    EXACT_TITLE = "exact_title"  # pasted title, ANDed as [ti] constraints
    TOPIC = "topic"              # free text or natural-language question


# =============================================================================
# Date range
# =============================================================================

@dataclass(frozen=True)
class DateRange:
    """
    Inclusive publication date window.

    Bounds accept ``YYYY``, ``YYYY/MM`` or ``YYYY/MM/DD`` (``-`` also works).
    Partial lower bounds expand to the first day, partial upper bounds to
    the last day of the month or year.
    """
    min_date: str | None = None
    max_date: str | None = None

    def __post_init__(self) -> None:
        for name in ("min_date", "max_date"):
            value = getattr(self, name)
            if value and not _DATE_PART_RE.match(value.strip()):
                raise InvalidParameterError(name, value, "YYYY, YYYY/MM or YYYY/MM/DD")

    @property
    def is_empty(self) -> bool:
        return not self.min_date and not self.max_date

    def bounds(self, today: date | None = None) -> tuple[date, date]:
        """Fully expanded (start, end) dates; open ends default to 1900-01-01 and today."""
        start = _expand(self.min_date, end=False) if self.min_date else date(1900, 1, 1)
        end = _expand(self.max_date, end=True) if self.max_date else (today or date.today())
        return start, end

    def pubmed_bounds(self, today: date | None = None) -> tuple[str, str]:
        start, end = self.bounds(today)
        return start.strftime("%Y/%m/%d"), end.strftime("%Y/%m/%d")

    def iso_bounds(self) -> tuple[str | None, str | None]:
        start = _expand(self.min_date, end=False).isoformat() if self.min_date else None
        end = _expand(self.max_date, end=True).isoformat() if self.max_date else None
        return start, end

    def contains_year(self, year: int | None) -> bool:
        """Year-granularity membership; unknown years are kept."""
        if year is None or self.is_empty:
            return True
        start, end = self.bounds()
        return start.year <= year <= end.year


def _expand(value: str, *, end: bool) -> date:
    parts = [int(p) for p in re.split(r"[/-]", value.strip())]
    year = parts[0]
    month = parts[1] if len(parts) > 1 else (12 if end else 1)
    if not 1 <= month <= 12:
        raise InvalidParameterError("date", value, "a month between 01 and 12")
    last_day = calendar.monthrange(year, month)[1]
    day = parts[2] if len(parts) > 2 else (last_day if end else 1)
    return date(year, month, min(max(day, 1), last_day))


# =============================================================================
# Query metadata
# =============================================================================

@dataclass(frozen=True)
class QueryIntent:
    """Lexical intent cues detected in the raw query."""
    wants_recent: bool = False
    wants_treatment: bool = False
    wants_trial: bool = False


@dataclass
class QueryMeta:
    """Everything the retrieval and ranking stages need to know about a query."""
    raw_query: str
    kind: QueryKind = QueryKind.TOPIC
    search_query: str = ""
    source_queries: dict[str, str] = field(default_factory=dict)
    query_terms: list[str] = field(default_factory=list)
    core_concepts: list[str] = field(default_factory=list)
    core_concept_terms: list[str] = field(default_factory=list)
    modifier_concept_terms: list[str] = field(default_factory=list)
    rare_concept_terms: list[str] = field(default_factory=list)
    is_multi_concept: bool = False
    intent: QueryIntent = field(default_factory=QueryIntent)
    has_field_tags: bool = False
    tier1_query: str | None = None
    tier2_query: str | None = None
    display_keywords: list[str] = field(default_factory=list)

    @property
    def is_exact_identifier_search(self) -> bool:
        return self.kind in (QueryKind.PMID, QueryKind.PMCID)

    @property
    def is_exact_search(self) -> bool:
        """Identifier or pasted-title lookups; these skip gating."""
        return self.kind is not QueryKind.TOPIC

    @property
    def exposure_terms(self) -> list[str]:
        """Modifier and rare terms, deduplicated in order."""
        return list(dict.fromkeys(self.modifier_concept_terms + self.rare_concept_terms))

    @property
    def phrase_candidates(self) -> list[str]:
        """Query strings whose verbatim presence forces full relevance."""
        phrases = [self.raw_query.strip().lower()]
        if self.search_query and self.search_query.strip().lower() not in phrases:
            phrases.append(self.search_query.strip().lower())
        return [p for p in phrases if p]

    def query_for(self, source: str) -> str:
        return self.source_queries.get(source) or self.search_query or self.raw_query

    def to_dict(self) -> dict[str, Any]:
        return {
            "raw_query": self.raw_query,
            "kind": self.kind.value,
            "source_queries": dict(self.source_queries),
            "core_concept_terms": list(self.core_concept_terms),
            "modifier_concept_terms": list(self.modifier_concept_terms),
            "rare_concept_terms": list(self.rare_concept_terms),
            "is_multi_concept": self.is_multi_concept,
            "wants_recent": self.intent.wants_recent,
            "has_field_tags": self.has_field_tags,
            "tier1_query": self.tier1_query,
            "tier2_query": self.tier2_query,
            "display_keywords": list(self.display_keywords),
        }


# =============================================================================
# Request
# =============================================================================

@dataclass
class UserProfile:
    """Optional personalization input supplied inline or by a ProfileStore."""
    conditions: list[str] = field(default_factory=list)
    keywords: list[str] = field(default_factory=list)
    interests: list[str] = field(default_factory=list)
    role: str = "patient"

    @property
    def terms(self) -> list[str]:
        seen: dict[str, None] = {}
        for term in [*self.conditions, *self.keywords, *self.interests]:
            t = term.strip()
            if t and t.lower() not in seen:
                seen[t.lower()] = None
        return list(seen)

    @property
    def is_researcher(self) -> bool:
        return self.role.lower() == "researcher"


@dataclass
class SearchRequest:
    """
    A single discovery request.

    ``sources`` optionally restricts the fan-out to a subset of source names;
    sources disabled in settings stay disabled.
    """
    query: str
    date_range: DateRange | None = None
    sort: SortOrder = "relevance"
    page: int = 1
    page_size: int = 10
    profile: UserProfile | None = None
    user_id: str | None = None
    sources: tuple[str, ...] | None = None

    def __post_init__(self) -> None:
        self.query = (self.query or "").strip()
        if not self.query:
            raise InvalidQueryError(self.query)
        if self.sort not in ("relevance", "date"):
            raise InvalidParameterError("sort", self.sort, "'relevance' or 'date'")
        if self.page < 1:
            raise InvalidParameterError("page", self.page, "an integer >= 1")
        if not 1 <= self.page_size <= MAX_PAGE_SIZE:
            raise InvalidParameterError("page_size", self.page_size, f"an integer between 1 and {MAX_PAGE_SIZE}")
