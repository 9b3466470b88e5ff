"""
Application Layer - Use Cases and Business Logic Orchestration

Contains:
- ports: Interfaces of optional collaborators (citation metrics, profiles, ...)
- search: Query building, retrieval, gating and ranking
"""

from .ports import (
    CitationMetrics,
    CitationMetricsProvider,
    ProfileStore,
    ReadStateLookup,
    SourceAdapter,
    TitleSimplifier,
)
from .search import PublicationDiscoveryService, QueryBuilder, TieredRetrievalController

__all__ = [
    # Ports
    "CitationMetrics",
    "CitationMetricsProvider",
    "ProfileStore",
    "ReadStateLookup",
    "SourceAdapter",
    "TitleSimplifier",
    # Search
    "PublicationDiscoveryService",
    "QueryBuilder",
    "TieredRetrievalController",
]
