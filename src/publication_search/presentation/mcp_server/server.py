"""
Publication Search MCP Server

Exposes PublicationDiscoveryService over the Model Context Protocol.

Architecture:
- tools.py: search_publications tool
- container: DI container (dependency-injector) for adapter and service lifecycle
"""

from __future__ import annotations

import logging
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import TYPE_CHECKING, Any

from mcp.server.fastmcp import FastMCP
from mcp.server.transport_security import TransportSecuritySettings

from publication_search.config import DiscoverySettings
from publication_search.container import ApplicationContainer, close_container

from .tools import register_search_tools

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

logger = logging.getLogger(__name__)

SERVER_INSTRUCTIONS = """
Publication Search MCP Server - multi-source literature discovery.

Use search_publications for every literature lookup:
- Topics: search_publications(query="migraine mold exposure")
- Questions: search_publications(query="what are the latest treatments for PCOS?")
- Pasted titles, PMIDs ("12345678") and PMCIDs ("PMC1234567") are matched exactly.
- Scholar-style operators work: author:, intitle:, journal:, -exclude.

Each result carries a score breakdown (relevance, citation, influence,
recency, match). An "error" object in the response means every source
failed; an empty "items" list without it means nothing matched.
"""

# ── Module-level DI container ──────────────────────────────────────────────
_container: ApplicationContainer | None = None


def get_container() -> ApplicationContainer:
    """Get the application DI container.

    Raises:
        RuntimeError: If ``create_server()`` has not been called yet.
    """
    if _container is None:
        msg = "Container not initialized. Call create_server() first."
        raise RuntimeError(msg)
    return _container


def _make_lifespan(
    container: ApplicationContainer,
) -> Callable[[FastMCP[Any]], AbstractAsyncContextManager[ApplicationContainer]]:
    """Create a FastMCP lifespan handler bound to *container*."""

    @asynccontextmanager
    async def _lifespan(server: FastMCP[Any]) -> AsyncIterator[ApplicationContainer]:
        logger.info("Lifecycle: startup, resources ready")
        try:
            yield container
        finally:
            await close_container(container)
            logger.info("Lifecycle: shutdown, HTTP clients closed")

    return _lifespan


def create_server(
    settings: DiscoverySettings | None = None,
    name: str = "publication-search",
    disable_security: bool = False,
    json_response: bool = False,
    stateless_http: bool = False,
) -> FastMCP:
    """
    Create and configure the Publication Search MCP server.

    Args:
        settings: Deployment settings. Default: read from the environment.
        name: Server name.
        disable_security: Disable DNS rebinding protection (needed for remote access).
        json_response: Use JSON responses instead of SSE.
        stateless_http: Use stateless HTTP mode (no session management).

    Returns:
        Configured FastMCP server instance.
    """
    global _container
    settings = settings or DiscoverySettings.from_env()
    logger.info("Initializing Publication Search MCP Server...")

    # ── DI container ────────────────────────────────────────────────────
    _container = ApplicationContainer.from_settings(settings)
    service = _container.discovery_service()
    logger.info(f"Enabled sources: {', '.join(settings.enabled_sources)}")

    # ── Transport security ──────────────────────────────────────────────
    if disable_security:
        transport_security = TransportSecuritySettings(enable_dns_rebinding_protection=False)
        logger.info("DNS rebinding protection disabled for remote access")
    else:
        transport_security = None

    mcp = FastMCP(
        name,
        instructions=SERVER_INSTRUCTIONS,
        transport_security=transport_security,
        json_response=json_response,
        stateless_http=stateless_http,
        lifespan=_make_lifespan(_container),
    )

    tools = register_search_tools(mcp, service)
    logger.info(f"Registered tools: {', '.join(tools)}")
    return mcp


def main():
    """Run the MCP server."""

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    settings = DiscoverySettings.from_env()
    if not settings.ncbi_email:
        logger.info("NCBI_EMAIL not set; NCBI requests will be sent without a contact address")

    server = create_server(settings)

    # Run stdio MCP server (blocks)
    server.run()


if __name__ == "__main__":
    main()
