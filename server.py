"""
MCP Server for Network ACL Planning

This module runs the MCP (Model Context Protocol) server that gives clients
tools to plan an AWS Network ACL and its rules, and to check a live ACL
against the plan.

The server runs locally and communicates with clients via stdio (standard
input/output), so all logging goes to stderr.

Architecture:
    MCP Client (stdio) <-> MCP Server <-> planner (pure) / AWS API (read-only, HTTPS)

Usage:
    Run this module directly to start the MCP server:
        python server.py

    Or configure it in your MCP client (Claude Desktop, Cursor, etc.)
"""

import asyncio
import logging
import sys

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import Tool, TextContent

from nacl_planner.config import setup_logging
from nacl_planner.tools.nacl_tools import get_nacl_tools, handle_tool_call

logger = logging.getLogger("nacl_planner.server")


# This identifier is used by MCP clients to identify this server
server = Server("nacl-planner-mcp")


@server.list_tools()
async def handle_list_tools() -> list[Tool]:
    """
    Handle tool listing requests from MCP clients.

    Returns:
        list[Tool]: plan_network_acl, get_network_acl and check_drift
    """
    return get_nacl_tools()


@server.call_tool()
async def handle_call_tool(name: str, arguments: dict) -> list[TextContent]:
    """
    Handle tool execution requests from MCP clients.

    Args:
        name: Name of the tool to execute (e.g., "plan_network_acl")
        arguments: Dictionary of arguments for the tool call

    Returns:
        list[TextContent]: List of text content responses (typically one JSON response)
    """
    return await handle_tool_call(name, arguments)


async def main():
    """
    Main entry point for the MCP server.

    The server runs until the client disconnects or the process is terminated.
    """
    async with stdio_server() as (read_stream, write_stream):
        await server.run(
            read_stream,
            write_stream,
            server.create_initialization_options()
        )


def run():
    setup_logging()
    try:
        asyncio.run(main())
    except Exception:
        logger.exception("Error running MCP server")
        sys.exit(1)


if __name__ == "__main__":
    run()
