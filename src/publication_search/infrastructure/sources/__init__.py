"""
Source adapters.

Each adapter implements ``search(SourceQuery) -> SourceResult`` and ships a
standalone normalizer for its native payload.
"""

from .arxiv import ArxivAdapter
from .base_adapter import BaseSourceAdapter
from .openalex import OpenAlexAdapter
from .pubmed import PubMedAdapter
from .semantic_scholar import SemanticScholarAdapter

__all__ = [
    "BaseSourceAdapter",
    "PubMedAdapter",
    "OpenAlexAdapter",
    "SemanticScholarAdapter",
    "ArxivAdapter",
]
