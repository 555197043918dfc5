"""
sap_calm.server.server - MCP stdio server
=========================================

Exposes every registered tool over the Model Context Protocol. Each call
runs the blocking HTTP pipeline in a worker thread so concurrent calls
never wait on each other.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

import anyio
from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from sap_calm.core.models import RequestContext
from sap_calm.tools.dispatcher import ToolDispatcher


SERVER_NAME = "sap-calm-mcp"

logger = logging.getLogger("sap_calm.server")


class ToolCallError(Exception):
    """
    Raised from the call handler so the SDK marks the result ``isError``.

    The message is the JSON error detail.
    """

    def __init__(self, detail: Dict[str, Any]) -> None:
        super().__init__(json.dumps(detail, indent=2, default=str))
        self.detail = detail


def list_tools(dispatcher: ToolDispatcher) -> List[Tool]:
    """MCP tool descriptors for every registered tool."""
    return [
        Tool(name=spec.name, description=spec.description, inputSchema=spec.input_schema())
        for spec in dispatcher.tools()
    ]


async def call_tool(
    dispatcher: ToolDispatcher,
    name: str,
    arguments: Optional[Dict[str, Any]],
    timeout: Optional[float] = None,
) -> List[TextContent]:
    """
    Run one tool call in a worker thread.

    Returns
    -------
    list of TextContent
        The pretty-printed JSON result

    Raises
    ------
    ToolCallError
        The tool failed; the message is the structured error detail
    """
    context = RequestContext(timeout=timeout, debug=dispatcher.trace.enabled)
    logger.info("Tool call: %s [%s]", name, context.correlation_id)

    # A cancelled call abandons its worker; the request itself is bounded by the timeout.
    result = await anyio.to_thread.run_sync(
        dispatcher.invoke, name, arguments or {}, context, abandon_on_cancel=True
    )
    if not result.ok:
        logger.info("Tool %s failed: %s", name, result.error_detail.get("kind"))
        raise ToolCallError(result.error_detail)

    return [TextContent(type="text", text=json.dumps(result.to_dict(), indent=2, default=str))]


def create_server(dispatcher: ToolDispatcher) -> Server:
    """Register the list/call handlers on a low-level MCP server."""
    app = Server(SERVER_NAME)

    @app.list_tools()
    async def _list_tools() -> List[Tool]:
        return list_tools(dispatcher)

    @app.call_tool()
    async def _call_tool(name: str, arguments: Dict[str, Any]) -> List[TextContent]:
        return await call_tool(dispatcher, name, arguments)

    return app


async def serve(dispatcher: ToolDispatcher) -> None:
    """Run the MCP server on stdin/stdout until the client disconnects."""
    app = create_server(dispatcher)
    logger.info("MCP server %s ready with %d tools", SERVER_NAME, len(dispatcher.tools()))
    async with stdio_server() as (read_stream, write_stream):
        await app.run(read_stream, write_stream, app.create_initialization_options())
