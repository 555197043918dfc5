"""
sap_calm.server - MCP stdio server
==================================

Usage
-----
>>> from sap_calm.server import create_server
>>> app = create_server(ToolDispatcher.from_settings(cfg))

Or run directly:
>>> python -m sap_calm.server --config config.json

"""

from sap_calm.server.server import ToolCallError, call_tool, create_server, list_tools, serve

__all__ = [
    "ToolCallError",
    "call_tool",
    "create_server",
    "list_tools",
    "serve",
]
