"""
Publication models shared by every source adapter and ranking stage.

Every adapter maps its native payload into ``PublicationRecord``; the
ranking pipeline wraps records in ``ScoredRecord`` and hands out pages as
``RankedPage``. Identity comparisons always go through the normalized DOI
and title helpers defined here.

Example:
    >>> record = PublicationRecord(
    ...     id="12345678",
    ...     title="Glioblastoma  IDH1 Mutations",
    ...     source="pubmed",
    ...     doi="https://doi.org/10.1000/ABC",
    ... )
    >>> record.doi
    '10.1000/abc'
    >>> record.normalized_title
    'glioblastoma idh1 mutations'
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum, StrEnum
from typing import TYPE_CHECKING, Any

from .query import DateRange, SortOrder

if TYPE_CHECKING:
    from ..core.exceptions import PublicationSearchError

_WHITESPACE_RE = re.compile(r"\s+")
_DOI_PREFIX_RE = re.compile(r"^(?:https?://(?:dx\.)?doi\.org/|doi:\s*)", re.IGNORECASE)


class SourceName(StrEnum):
    """Upstream sources, in order of metadata richness."""
    PUBMED = "pubmed"
    OPENALEX = "openalex"
    SEMANTIC_SCHOLAR = "semantic_scholar"
    ARXIV = "arxiv"


PRIMARY_SOURCE: str = SourceName.PUBMED.value
PREPRINT_SOURCES: frozenset[str] = frozenset({SourceName.ARXIV.value})
SOURCE_PRIORITY: dict[str, int] = {name.value: rank for rank, name in enumerate(SourceName)}


def normalize_doi(doi: str | None) -> str:
    """Lowercase a DOI and strip any resolver URL or ``doi:`` prefix."""
    if not doi:
        return ""
    return _DOI_PREFIX_RE.sub("", doi.strip()).strip().lower()


def normalize_title(title: str | None) -> str:
    """Case-fold a title and collapse runs of whitespace."""
    if not title:
        return ""
    return _WHITESPACE_RE.sub(" ", title).strip().lower()


class ExposureMatchLevel(Enum):
    """How strongly a record matched the modifier/exposure concept."""
    NONE = "none"
    WEAK = "weak"
    STRONG = "strong"


# =============================================================================
# Records
# =============================================================================

@dataclass
class PublicationRecord:
    """A publication normalized from any source."""
    id: str
    title: str
    source: str
    abstract: str = ""
    authors: list[str] = field(default_factory=list)
    journal: str = ""
    year: int | None = None
    month: str = ""
    day: str = ""
    doi: str = ""
    pmid: str | None = None
    url: str = ""
    citation_count: int | None = None
    influence_metric: float | None = None
    influential_citation_count: int | None = None
    keywords: list[str] = field(default_factory=list)
    mesh_major_topics: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.doi = normalize_doi(self.doi)
        self.title = _WHITESPACE_RE.sub(" ", self.title or "").strip()

    @property
    def normalized_title(self) -> str:
        return normalize_title(self.title)

    @property
    def is_primary(self) -> bool:
        return self.source == PRIMARY_SOURCE

    @property
    def is_preprint(self) -> bool:
        return self.source in PREPRINT_SOURCES

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "source": self.source,
            "title": self.title,
            "abstract": self.abstract,
            "authors": list(self.authors),
            "journal": self.journal,
            "year": self.year,
            "month": self.month,
            "day": self.day,
            "doi": self.doi or None,
            "pmid": self.pmid,
            "url": self.url,
            "citation_count": self.citation_count,
            "influence_metric": self.influence_metric,
            "influential_citation_count": self.influential_citation_count,
            "keywords": list(self.keywords),
            "mesh_major_topics": list(self.mesh_major_topics),
        }


@dataclass(frozen=True)
class SourceQuery:
    """Shared adapter input; ``q`` is already in the source's native syntax."""
    q: str
    date_range: DateRange | None = None
    page: int = 1
    page_size: int = 25
    sort: SortOrder = "relevance"


@dataclass
class SourceResult:
    """Adapter output. A failed result is empty and carries the error text."""
    source: str
    items: list[PublicationRecord] = field(default_factory=list)
    total_count: int = 0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failed(cls, source: str, error: str) -> SourceResult:
        return cls(source=source, items=[], total_count=0, error=error)


# =============================================================================
# Scored output
# =============================================================================

@dataclass
class ScoredRecord:
    """A record plus every score component that produced its rank."""
    record: PublicationRecord
    relevance_score: float = 0.0
    citation_score: float = 0.0
    influence_score: float = 0.0
    recency_score: float = 0.0
    match_score: float = 0.0
    final_score: float = 0.0
    exposure_match_level: ExposureMatchLevel = ExposureMatchLevel.NONE
    multi_concept_strength: int = 0
    exact_match: bool = False
    exact_title: bool = False
    match_explanation: str | None = None
    simplified_title: str | None = None
    is_read: bool = False

    @property
    def source(self) -> str:
        return self.record.source

    def to_dict(self) -> dict[str, Any]:
        data = self.record.to_dict()
        data.update({
            "scores": {
                "relevance": round(self.relevance_score, 3),
                "citation": round(self.citation_score, 3),
                "influence": round(self.influence_score, 3),
                "recency": round(self.recency_score, 3),
                "match": round(self.match_score, 3),
                "final": round(self.final_score, 3),
            },
            "exposure_match_level": self.exposure_match_level.value,
            "multi_concept_strength": self.multi_concept_strength,
            "exact_match": self.exact_match,
            "exact_title": self.exact_title,
            "match_explanation": self.match_explanation,
            "simplified_title": self.simplified_title or self.record.title,
            "is_read": self.is_read,
        })
        return data


@dataclass
class RankedPage:
    """One page of the ranked result set plus diagnostics."""
    items: list[ScoredRecord] = field(default_factory=list)
    total_count: int = 0
    has_more: bool = False
    page: int = 1
    page_size: int = 10
    source_counts: dict[str, int] = field(default_factory=dict)
    sources_used: list[str] = field(default_factory=list)
    related_weak_exposure: list[ScoredRecord] = field(default_factory=list)
    display_keywords: list[str] = field(default_factory=list)
    fallback_applied: bool = False
    error: dict[str, Any] | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    @classmethod
    def from_error(cls, error: PublicationSearchError, *, page: int = 1, page_size: int = 10) -> RankedPage:
        """Empty page that reports a failed search, never an empty match set."""
        return cls(page=page, page_size=page_size, error=error.to_dict())

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "items": [item.to_dict() for item in self.items],
            "total_count": self.total_count,
            "has_more": self.has_more,
            "page": self.page,
            "page_size": self.page_size,
            "source_counts": dict(self.source_counts),
            "sources_used": list(self.sources_used),
            "display_keywords": list(self.display_keywords),
            "fallback_applied": self.fallback_applied,
        }
        if self.related_weak_exposure:
            data["related_weak_exposure"] = [item.to_dict() for item in self.related_weak_exposure]
        if self.error is not None:
            data["error"] = self.error
        return data
