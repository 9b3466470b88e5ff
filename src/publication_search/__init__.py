"""
Publication Search - Multi-source Publication Discovery and Ranking

Searches PubMed, OpenAlex, Semantic Scholar and arXiv in one request,
removes cross-source duplicates, filters for topical relevance and ranks
by relevance, citation influence, recency and personal match.

Usage:
    from publication_search import ApplicationContainer, DiscoverySettings, SearchRequest

    container = ApplicationContainer.from_settings(DiscoverySettings.from_env())
    service = container.discovery_service()
    page = await service.search(SearchRequest(query="migraine mold exposure"))

    for item in page.items:
        print(f"{item.final_score:.2f} {item.record.title}")
"""

from .application.search import PublicationDiscoveryService, QueryBuilder, TieredRetrievalController
from .config import DiscoverySettings, RankingPolicy, ScoreWeights
from .container import ApplicationContainer
from .core.exceptions import CatastrophicFailureError, PublicationSearchError
from .models import (
    DateRange,
    PublicationRecord,
    QueryMeta,
    RankedPage,
    ScoredRecord,
    SearchRequest,
    UserProfile,
)

__version__ = "0.1.0"

__all__ = [
    # High-level API
    "ApplicationContainer",
    "PublicationDiscoveryService",
    "QueryBuilder",
    "TieredRetrievalController",
    # Configuration
    "DiscoverySettings",
    "RankingPolicy",
    "ScoreWeights",
    # Models
    "DateRange",
    "PublicationRecord",
    "QueryMeta",
    "RankedPage",
    "ScoredRecord",
    "SearchRequest",
    "UserProfile",
    # Errors
    "CatastrophicFailureError",
    "PublicationSearchError",
]
