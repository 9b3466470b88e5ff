"""
Pytest configuration and shared fixtures.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import date

import pytest

from publication_search.models.publication import PublicationRecord, SourceQuery, SourceResult

TODAY = date(2026, 6, 15)


# ============================================================
# Record Fixtures
# ============================================================


@pytest.fixture
def today() -> date:
    """Fixed 'today' so recency scores are stable."""
    return TODAY


@pytest.fixture
def make_record():
    """Factory for PublicationRecord with sensible defaults."""
    counter = iter(range(1, 10_000))

    def _create(
        title: str = "Test Article",
        source: str = "pubmed",
        id: str | None = None,
        abstract: str = "",
        year: int | None = 2022,
        doi: str = "",
        pmid: str | None = None,
        citation_count: int | None = None,
        influence_metric: float | None = None,
        keywords: list[str] | None = None,
        mesh_major_topics: list[str] | None = None,
        journal: str = "Journal of Tests",
    ) -> PublicationRecord:
        record_id = id or f"{source}-{next(counter)}"
        if pmid is None and source == "pubmed":
            pmid = record_id
        return PublicationRecord(
            id=record_id,
            title=title,
            source=source,
            abstract=abstract,
            year=year,
            doi=doi,
            pmid=pmid,
            journal=journal,
            citation_count=citation_count,
            influence_metric=influence_metric,
            keywords=keywords or [],
            mesh_major_topics=mesh_major_topics or [],
        )

    return _create


# ============================================================
# Fake Source Adapters
# ============================================================


class FakeAdapter:
    """
    In-memory SourceAdapter.

    ``responder`` receives the SourceQuery and returns a SourceResult, a list
    of records, or raises. Every call is recorded in ``calls``.
    """

    def __init__(self, source_name: str, responder: Callable[[SourceQuery], object] | list | None = None):
        self.source_name = source_name
        self._responder = responder
        self.calls: list[SourceQuery] = []
        self.closed = False

    async def search(self, query: SourceQuery) -> SourceResult:
        self.calls.append(query)
        response = self._responder(query) if callable(self._responder) else self._responder
        if isinstance(response, SourceResult):
            return response
        items = list(response or [])
        return SourceResult(source=self.source_name, items=items, total_count=len(items))

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_adapter():
    """Factory: ``fake_adapter("pubmed", [records...])`` or with a callable responder."""

    def _create(source_name: str, responder=None) -> FakeAdapter:
        return FakeAdapter(source_name, responder)

    return _create


@pytest.fixture
def failing_adapter():
    """Factory for an adapter whose every call reports a failed SourceResult."""

    def _create(source_name: str, error: str = "HTTP 503") -> FakeAdapter:
        return FakeAdapter(source_name, lambda q: SourceResult.failed(source_name, error))

    return _create
