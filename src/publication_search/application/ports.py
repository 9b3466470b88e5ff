"""
Interfaces of the collaborators the discovery pipeline consumes.

Only ``SourceAdapter`` is implemented inside this package for every source;
the others are optional hooks supplied by the surrounding service (an iCite
implementation of ``CitationMetricsProvider`` ships in
``infrastructure.ncbi.icite``).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from publication_search.models.publication import SourceQuery, SourceResult
from publication_search.models.query import UserProfile


@dataclass(frozen=True)
class CitationMetrics:
    """Citation count plus an optional field-normalized influence metric (e.g. RCR)."""
    citation_count: int | None = None
    influence_metric: float | None = None


@runtime_checkable
class SourceAdapter(Protocol):
    source_name: str

    async def search(self, query: SourceQuery) -> SourceResult: ...


@runtime_checkable
class CitationMetricsProvider(Protocol):
    async def get_metrics(self, pmids: list[str]) -> dict[str, CitationMetrics]:
        """Batch lookup keyed by PMID; unknown identifiers are simply absent."""
        ...


@runtime_checkable
class TitleSimplifier(Protocol):
    async def simplify_titles(self, titles: list[str]) -> list[str]:
        """Return one plain-language title per input, in order."""
        ...


@runtime_checkable
class ProfileStore(Protocol):
    async def get_profile(self, user_id: str) -> UserProfile | None: ...


@runtime_checkable
class ReadStateLookup(Protocol):
    async def read_ids(self, user_id: str, record_ids: list[str]) -> set[str]:
        """Subset of ``record_ids`` the user has already read."""
        ...
