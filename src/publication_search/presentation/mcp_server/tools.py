"""
Search Tools - MCP surface for PublicationDiscoveryService.

Tools:
- search_publications: Multi-source search with concept-aware ranking

Responses are JSON strings. A search whose every source failed still
returns a page: empty, with an ``error`` object, so agents can tell a
failed search from one that found nothing.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any, Literal

from publication_search.core.exceptions import (
    CatastrophicFailureError,
    InvalidParameterError,
    ValidationError,
)
from publication_search.models.publication import RankedPage, SourceName
from publication_search.models.query import DateRange, SearchRequest, UserProfile

if TYPE_CHECKING:
    from mcp.server.fastmcp import FastMCP

    from publication_search.application.search import PublicationDiscoveryService

logger = logging.getLogger(__name__)

KNOWN_SOURCES = frozenset(s.value for s in SourceName)


def _to_json(data: dict[str, Any]) -> str:
    return json.dumps(data, ensure_ascii=False, indent=2)


def _parse_sources(sources: list[str] | str | None) -> tuple[str, ...] | None:
    """Accept a list or a comma-separated string; ``None`` means every enabled source."""
    if sources is None:
        return None
    if isinstance(sources, str):
        sources = sources.split(",")
    names = tuple(dict.fromkeys(s.strip().lower() for s in sources if s.strip()))
    unknown = [s for s in names if s not in KNOWN_SOURCES]
    if unknown:
        raise InvalidParameterError("sources", unknown, f"any of {', '.join(sorted(KNOWN_SOURCES))}")
    return names or None


def _parse_profile(
    conditions: list[str] | None,
    interests: list[str] | None,
    role: str | None,
) -> UserProfile | None:
    if not conditions and not interests:
        return None
    return UserProfile(conditions=list(conditions or []), interests=list(interests or []), role=role or "patient")


def register_search_tools(mcp: FastMCP, service: PublicationDiscoveryService) -> list[str]:
    """Register the search tools on *mcp*; returns the registered tool names."""

    @mcp.tool()
    async def search_publications(
        query: str,
        min_date: str | None = None,
        max_date: str | None = None,
        sort: Literal["relevance", "date"] = "relevance",
        page: int = 1,
        page_size: int = 10,
        sources: list[str] | None = None,
        conditions: list[str] | None = None,
        interests: list[str] | None = None,
        role: str | None = None,
        user_id: str | None = None,
    ) -> str:
        """
        Search biomedical literature across PubMed, OpenAlex, Semantic Scholar and arXiv.

        The query may be a topic ("migraine mold exposure"), a question
        ("what are the latest treatments for PCOS?"), a pasted article title,
        a PMID or PMCID, or a Scholar-style query (author:, intitle:, -word).
        Results are deduplicated across sources, filtered for topical
        relevance and ranked by relevance, citation influence, recency and
        (when a profile is given) personal match.

        Args:
            query: Topic, title, identifier or Scholar-style query.
            min_date: Earliest publication date, YYYY, YYYY/MM or YYYY/MM/DD.
            max_date: Latest publication date, same formats.
            sort: "relevance" (default) or "date".
            page: 1-based page number.
            page_size: Results per page (1-100).
            sources: Optional subset of "pubmed", "openalex", "semantic_scholar", "arxiv".
                     PubMed is always searched.
            conditions: Optional profile conditions used for personal match.
            interests: Optional profile research interests.
            role: "patient" (default) or "researcher".
            user_id: Optional user id for stored profile and read-state lookup.

        Returns:
            JSON page: items with score breakdown, total_count, has_more,
            source_counts, sources_used, display_keywords, fallback_applied
            and, for sparse multi-concept results, related_weak_exposure.
        """
        try:
            date_range = None
            if min_date or max_date:
                date_range = DateRange(min_date=min_date, max_date=max_date)
            request = SearchRequest(
                query=query,
                date_range=date_range,
                sort=sort,
                page=page,
                page_size=page_size,
                profile=_parse_profile(conditions, interests, role),
                user_id=user_id,
                sources=_parse_sources(sources),
            )
        except ValidationError as e:
            logger.info(f"Rejected search_publications call: {e}")
            return _to_json({"error": e.to_dict(), "message": e.to_agent_message()})

        try:
            result = await service.search(request)
        except CatastrophicFailureError as e:
            logger.error(f"search_publications failed for {query!r}: {e}")
            result = RankedPage.from_error(e, page=page, page_size=page_size)
        return _to_json(result.to_dict())

    return ["search_publications"]
