"""
Publication Search Pipeline

Key Components:
- QueryBuilder: Classifies the query and builds concept-aware source queries
- TieredRetrievalController: Fans out to sources, merges and deduplicates
- RelevanceScorer / ConceptGate: Decide what is on-topic
- CompositeRanker: Blends relevance, influence, recency and personalization

Architecture:
    User Query
        │
        ▼
    ┌──────────────────┐
    │   QueryBuilder   │  ← identifier / title / concepts + tiers
    └────────┬─────────┘
             │
    ┌────────┴────────┬──────────┬───────┐
    ▼                 ▼          ▼       ▼
  PubMed (tiers)  OpenAlex  Semantic   arXiv   ← Parallel queries
    │                 │      Scholar     │
    └────────┬────────┴──────────┴───────┘
             ▼
    ┌──────────────────┐
    │   Deduplicator   │  ← DOI, then title
    └────────┬─────────┘
             ▼
    ┌──────────────────┐
    │ Scorer + Gate    │  ← relevance, thresholds, fallback
    └────────┬─────────┘
             ▼
    ┌──────────────────┐
    │ CompositeRanker  │  ← sort + paginate
    └────────┬─────────┘
             ▼
        RankedPage
"""

from __future__ import annotations

from .composite_ranker import CompositeRanker
from .concept_gate import ConceptGate
from .deduplicator import DedupStats, Deduplicator
from .discovery_service import PublicationDiscoveryService
from .personalization import ProfileMatcher
from .query_builder import QueryBuilder
from .query_normalizer import NormalizedQuery, QueryNormalizer
from .relevance_scorer import RelevanceScorer
from .tiered_retrieval import RetrievalOutcome, TieredRetrievalController

__all__ = [
    "QueryNormalizer",
    "NormalizedQuery",
    "QueryBuilder",
    "TieredRetrievalController",
    "RetrievalOutcome",
    "Deduplicator",
    "DedupStats",
    "ConceptGate",
    "RelevanceScorer",
    "ProfileMatcher",
    "CompositeRanker",
    "PublicationDiscoveryService",
]
