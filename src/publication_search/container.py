"""
Application DI Container (dependency-injector).

Centralizes adapter, cache and service creation.

Usage::

    from publication_search.container import ApplicationContainer
    from publication_search.config import DiscoverySettings

    container = ApplicationContainer.from_settings(DiscoverySettings.from_env())
    service = container.discovery_service()

    # In tests, override any provider:
    container.pubmed_adapter.override(providers.Object(fake_pubmed))
"""

from __future__ import annotations

import logging
from dataclasses import asdict

from dependency_injector import containers, providers

from publication_search.application.search import (
    PublicationDiscoveryService,
    QueryBuilder,
    TieredRetrievalController,
)
from publication_search.config import DiscoverySettings, RankingPolicy
from publication_search.infrastructure.cache import TTLQueryCache
from publication_search.infrastructure.ncbi import ICiteCitationMetrics
from publication_search.infrastructure.sources import (
    ArxivAdapter,
    OpenAlexAdapter,
    PubMedAdapter,
    SemanticScholarAdapter,
)
from publication_search.models.publication import SourceName

logger = logging.getLogger(__name__)


def _collect_adapters(
    pubmed: PubMedAdapter,
    openalex: providers.Provider,
    semantic_scholar: providers.Provider,
    arxiv: providers.Provider,
    openalex_enabled: bool,
    semantic_scholar_enabled: bool,
    arxiv_enabled: bool,
) -> dict[str, object]:
    """Instantiate only the enabled secondary adapters; PubMed is always on."""
    adapters: dict[str, object] = {SourceName.PUBMED.value: pubmed}
    if openalex_enabled:
        adapters[SourceName.OPENALEX.value] = openalex()
    if semantic_scholar_enabled:
        adapters[SourceName.SEMANTIC_SCHOLAR.value] = semantic_scholar()
    if arxiv_enabled:
        adapters[SourceName.ARXIV.value] = arxiv()
    logger.info(f"Enabled publication sources: {', '.join(adapters)}")
    return adapters


class ApplicationContainer(containers.DeclarativeContainer):
    """Central DI container for the publication discovery engine.

    Manages creation and lifecycle of:
    - ``query_cache`` / ``citation_cache``: TTL caches
    - ``*_adapter``: one adapter per source
    - ``retrieval``: tiered fan-out over the enabled adapters
    - ``discovery_service``: the search pipeline
    """

    config = providers.Configuration()

    policy = providers.Singleton(RankingPolicy)

    query_cache = providers.Singleton(
        TTLQueryCache,
        maxsize=config.cache_maxsize,
        ttl=config.cache_ttl,
    )

    citation_cache = providers.Singleton(
        TTLQueryCache,
        maxsize=config.cache_maxsize,
        ttl=config.citation_cache_ttl,
    )

    pubmed_adapter = providers.Singleton(
        PubMedAdapter,
        email=config.ncbi_email,
        api_key=config.ncbi_api_key,
        cache=query_cache,
        call_timeout=config.source_call_timeout,
    )

    openalex_adapter = providers.Singleton(
        OpenAlexAdapter,
        mailto=config.openalex_mailto,
        cache=query_cache,
        call_timeout=config.source_call_timeout,
    )

    semantic_scholar_adapter = providers.Singleton(
        SemanticScholarAdapter,
        api_key=config.semantic_scholar_api_key,
        cache=query_cache,
        call_timeout=config.source_call_timeout,
    )

    arxiv_adapter = providers.Singleton(
        ArxivAdapter,
        cache=query_cache,
        call_timeout=config.source_call_timeout,
    )

    adapters = providers.Singleton(
        _collect_adapters,
        pubmed=pubmed_adapter,
        openalex=openalex_adapter.provider,
        semantic_scholar=semantic_scholar_adapter.provider,
        arxiv=arxiv_adapter.provider,
        openalex_enabled=config.openalex_enabled,
        semantic_scholar_enabled=config.semantic_scholar_enabled,
        arxiv_enabled=config.arxiv_enabled,
    )

    citation_metrics = providers.Singleton(
        ICiteCitationMetrics,
        cache=citation_cache,
    )

    query_builder = providers.Singleton(
        QueryBuilder,
        simplified_exposure=policy.provided.simplified_exposure,
    )

    retrieval = providers.Singleton(
        TieredRetrievalController,
        adapters=adapters,
        policy=policy,
    )

    discovery_service = providers.Singleton(
        PublicationDiscoveryService,
        retrieval=retrieval,
        query_builder=query_builder,
        policy=policy,
        citation_metrics=citation_metrics,
    )

    @classmethod
    def from_settings(cls, settings: DiscoverySettings) -> ApplicationContainer:
        container = cls()
        container.config.from_dict(asdict(settings))
        return container


async def close_container(container: ApplicationContainer) -> None:
    """Close every HTTP client the container created."""
    for adapter in container.adapters().values():
        await adapter.close()  # type: ignore[attr-defined]
    await container.citation_metrics().close()


__all__ = ["ApplicationContainer", "close_container"]
