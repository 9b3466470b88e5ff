"""Data models for publication discovery."""

from .publication import (
    PREPRINT_SOURCES,
    PRIMARY_SOURCE,
    SOURCE_PRIORITY,
    ExposureMatchLevel,
    PublicationRecord,
    RankedPage,
    ScoredRecord,
    SourceName,
    SourceQuery,
    SourceResult,
    normalize_doi,
    normalize_title,
)
from .query import (
    DateRange,
    QueryIntent,
    QueryKind,
    QueryMeta,
    SearchRequest,
    SortOrder,
    UserProfile,
)

__all__ = [
    "PublicationRecord",
    "ScoredRecord",
    "RankedPage",
    "SourceName",
    "SourceQuery",
    "SourceResult",
    "ExposureMatchLevel",
    "PRIMARY_SOURCE",
    "PREPRINT_SOURCES",
    "SOURCE_PRIORITY",
    "normalize_doi",
    "normalize_title",
    "DateRange",
    "QueryIntent",
    "QueryKind",
    "QueryMeta",
    "SearchRequest",
    "SortOrder",
    "UserProfile",
]
