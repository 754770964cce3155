"""MCP (Model Context Protocol) connections and per-invocation tool sets."""

from switchboard.mcp.client import MCPConnection, connect_server
from switchboard.mcp.toolset import ToolConnector, ToolSet, list_all_tools, open_toolset

__all__ = [
    "MCPConnection",
    "ToolConnector",
    "ToolSet",
    "connect_server",
    "list_all_tools",
    "open_toolset",
]
