"""
Configuration for the discovery engine.

Two layers:

- ``DiscoverySettings``: deployment settings read from environment variables
  (credentials, source toggles, cache lifetimes, call budgets).
- ``RankingPolicy``: the empirically tuned constants used by retrieval,
  gating, scoring and ranking. They are policy values, not derived
  invariants, so every one of them is a named field that callers may
  override.

Example:
    >>> policy = RankingPolicy(primary_threshold=0.4)
    >>> policy.threshold_for("pubmed")
    0.4
    >>> RankingPolicy.lenient().threshold_for("arxiv")
    0.3
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from .core.exceptions import ConfigurationError
from .models.publication import PREPRINT_SOURCES, PRIMARY_SOURCE, SourceName


@dataclass(frozen=True)
class ScoreWeights:
    """Composite-score weights: match, relevance, influence, recency."""
    match: float
    relevance: float
    influence: float
    recency: float

    @property
    def total(self) -> float:
        return self.match + self.relevance + self.influence + self.recency


@dataclass(frozen=True)
class RankingPolicy:
    """
    Tuned thresholds and weights.

    Presets:
    - default(): values used in production
    - lenient(): lower relevance floors, for sparse topics
    """

    # Relevance floors per source class; 1.0 always passes
    primary_threshold: float = 0.35
    secondary_threshold: float = 0.25
    preprint_threshold: float = 0.40

    # Relevance boosts
    cross_source_boost: float = 0.06
    cross_source_boost_floor: float = 0.35
    exposure_boost: float = 0.08

    # Field weights for the field-weighted match
    title_weight: float = 0.45
    mesh_weight: float = 0.25
    keywords_weight: float = 0.15
    abstract_weight: float = 0.15

    # Tiered retrieval
    tier_trigger: int = 20
    batch_size: int = 300
    multi_concept_batch_size: int = 600
    max_batch_size: int = 1000
    secondary_page_size: int = 50
    min_secondary_page_size: int = 20

    # Weak exposure bucket
    weak_bucket_trigger: int = 20
    weak_bucket_limit: int = 20

    # Citation normalization percentile
    citation_percentile: float = 0.95
    influence_metric_cap: float = 3.0
    influence_blend: float = 0.7

    # Composite weights
    default_weights: ScoreWeights = field(
        default_factory=lambda: ScoreWeights(match=0.35, relevance=0.35, influence=0.25, recency=0.05)
    )
    recent_weights: ScoreWeights = field(
        default_factory=lambda: ScoreWeights(match=0.30, relevance=0.30, influence=0.20, recency=0.20)
    )
    score_tie_tolerance: float = 0.001

    # Exposure clause uses only the terms present in the query
    simplified_exposure: bool = True

    def __post_init__(self) -> None:
        for name in ("default_weights", "recent_weights"):
            weights: ScoreWeights = getattr(self, name)
            if abs(weights.total - 1.0) > 1e-6:
                raise ConfigurationError(f"{name} must sum to 1.0 (got {weights.total:.3f})")
        if not 0 < self.citation_percentile <= 1:
            raise ConfigurationError("citation_percentile must be in (0, 1]")

    @classmethod
    def default(cls) -> RankingPolicy:
        return cls()

    @classmethod
    def lenient(cls) -> RankingPolicy:
        return cls(primary_threshold=0.25, secondary_threshold=0.2, preprint_threshold=0.3)

    def threshold_for(self, source: str) -> float:
        if source == PRIMARY_SOURCE:
            return self.primary_threshold
        if source in PREPRINT_SOURCES:
            return self.preprint_threshold
        return self.secondary_threshold

    def weights_for(self, wants_recent: bool) -> ScoreWeights:
        return self.recent_weights if wants_recent else self.default_weights

    def batch_for(self, is_multi_concept: bool, page_size: int) -> int:
        if is_multi_concept:
            return min(self.max_batch_size, max(self.multi_concept_batch_size, self.batch_size))
        return max(page_size, self.batch_size)


def _env_flag(name: str, default: bool = True) -> bool:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() not in ("false", "0", "no", "off")


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name, "").strip()
    if not value:
        return default
    try:
        return float(value)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {value!r}") from e


@dataclass
class DiscoverySettings:
    """Deployment settings; see ``from_env`` for the variable names."""
    ncbi_email: str | None = None
    ncbi_api_key: str | None = None
    openalex_mailto: str | None = None
    semantic_scholar_api_key: str | None = None
    openalex_enabled: bool = True
    semantic_scholar_enabled: bool = True
    arxiv_enabled: bool = True
    cache_ttl: float = 300.0
    cache_maxsize: int = 512
    citation_cache_ttl: float = 600.0
    source_call_timeout: float = 45.0

    @classmethod
    def from_env(cls) -> DiscoverySettings:
        """
        Read settings from the environment.

        Variables:
            NCBI_EMAIL, NCBI_API_KEY, OPENALEX_MAILTO, SEMANTIC_SCHOLAR_API_KEY,
            OPENALEX_ENABLED, SEMANTIC_SCHOLAR_ENABLED, ARXIV_ENABLED,
            PUBLICATION_CACHE_TTL, CITATION_CACHE_TTL, SOURCE_CALL_TIMEOUT
        """
        return cls(
            ncbi_email=os.environ.get("NCBI_EMAIL", "").strip() or None,
            ncbi_api_key=os.environ.get("NCBI_API_KEY", "").strip() or None,
            openalex_mailto=os.environ.get("OPENALEX_MAILTO", "").strip() or None,
            semantic_scholar_api_key=os.environ.get("SEMANTIC_SCHOLAR_API_KEY", "").strip() or None,
            openalex_enabled=_env_flag("OPENALEX_ENABLED"),
            semantic_scholar_enabled=_env_flag("SEMANTIC_SCHOLAR_ENABLED"),
            arxiv_enabled=_env_flag("ARXIV_ENABLED"),
            cache_ttl=_env_float("PUBLICATION_CACHE_TTL", 300.0),
            citation_cache_ttl=_env_float("CITATION_CACHE_TTL", 600.0),
            source_call_timeout=_env_float("SOURCE_CALL_TIMEOUT", 45.0),
        )

    @property
    def enabled_sources(self) -> list[str]:
        """Enabled source names in richness order; the primary is always on."""
        flags = {
            SourceName.PUBMED: True,
            SourceName.OPENALEX: self.openalex_enabled,
            SourceName.SEMANTIC_SCHOLAR: self.semantic_scholar_enabled,
            SourceName.ARXIV: self.arxiv_enabled,
        }
        return [name.value for name, enabled in flags.items() if enabled]
