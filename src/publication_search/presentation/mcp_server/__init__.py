"""
Publication Search MCP Server

Usage as standalone server:
    python -m publication_search.presentation.mcp_server

Or in mcp.json:
    {
        "servers": {
            "publication-search": {
                "type": "stdio",
                "command": "python",
                "args": ["-m", "publication_search.presentation.mcp_server"]
            }
        }
    }

Usage for integration:
    from publication_search.presentation.mcp_server import register_search_tools

    register_search_tools(your_mcp_server, service)
"""

from .server import create_server, get_container, main
from .tools import register_search_tools

__all__ = ["create_server", "get_container", "main", "register_search_tools"]
