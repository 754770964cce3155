"""MCP connections over stdio, SSE and streamable HTTP, wrapping the official mcp SDK."""

from __future__ import annotations

import logging
import os
from contextlib import AsyncExitStack
from typing import Any

from switchboard.errors import ServerConnectionError, ToolExecutionError
from switchboard.types.config import ServerConfig
from switchboard.types.tools import ToolDescriptor
from switchboard.utils import render_content

logger = logging.getLogger(__name__)


def _resolve_env(env: dict[str, str]) -> dict[str, str] | None:
    """Merge the server env over ours, expanding ``${VAR}`` references."""
    if not env:
        return None
    resolved = dict(os.environ)
    for key, value in env.items():
        if value.startswith("${") and value.endswith("}"):
            resolved[key] = os.environ.get(value[2:-1], "")
        else:
            resolved[key] = value
    return resolved


class MCPConnection:
    """A connection to a single MCP server."""

    def __init__(self, name: str, config: ServerConfig):
        self.name = name
        self._config = config
        self._stack: AsyncExitStack | None = None
        self._session: Any = None
        self._closed = False

    async def connect(self) -> None:
        """Open the transport and initialize the MCP session."""
        try:
            from mcp import ClientSession
        except ImportError as exc:
            raise ImportError(
                "The 'mcp' package is required for MCP support. "
                "Install it with: pip install mcp"
            ) from exc

        stack = AsyncExitStack()
        try:
            read, write = await self._open_transport(stack)
            session = await stack.enter_async_context(ClientSession(read, write))
            await session.initialize()
        except BaseException:
            await stack.aclose()
            raise
        self._stack = stack
        self._session = session
        logger.info("MCP server '%s' connected (%s)", self.name, self._config.transport)

    async def _open_transport(self, stack: AsyncExitStack) -> tuple[Any, Any]:
        cfg = self._config
        if cfg.transport == "sse":
            from mcp.client.sse import sse_client

            return await stack.enter_async_context(
                sse_client(cfg.url, headers=dict(cfg.headers) or None),
            )
        if cfg.transport == "http":
            from mcp.client.streamable_http import streamablehttp_client

            read, write, _ = await stack.enter_async_context(
                streamablehttp_client(cfg.url, headers=dict(cfg.headers) or None),
            )
            return read, write
        if cfg.transport != "stdio":
            raise ServerConnectionError(self.name, f"unsupported transport '{cfg.transport}'")

        from mcp import StdioServerParameters
        from mcp.client.stdio import stdio_client

        params = StdioServerParameters(
            command=cfg.command,
            args=list(cfg.args),
            env=_resolve_env(dict(cfg.env)),
        )
        return await stack.enter_async_context(stdio_client(params))

    async def list_tools(self) -> list[ToolDescriptor]:
        """Fetch the tools the server currently advertises."""
        if self._session is None:
            raise ServerConnectionError(self.name, f"MCP server '{self.name}' not connected")
        result = await self._session.list_tools()
        return [
            ToolDescriptor(
                name=tool.name,
                description=tool.description or "",
                parameters=tool.inputSchema,
                server=self.name,
                connection=self,
            )
            for tool in result.tools
        ]

    async def call_tool(self, tool_name: str, arguments: Any) -> str:
        """Call a tool and return its rendered text.

        Raises ToolExecutionError when the server reports the call as failed.
        """
        if self._session is None:
            raise ToolExecutionError(tool_name, f"MCP server '{self.name}' not connected")
        result = await self._session.call_tool(tool_name, arguments)
        rendered = render_content(result.content)
        if getattr(result, "isError", False):
            raise ToolExecutionError(tool_name, rendered or "tool reported an error")
        return rendered

    async def close(self) -> None:
        """Close the session and transport. Errors are logged and swallowed."""
        if self._closed:
            return
        self._closed = True
        stack, self._stack = self._stack, None
        self._session = None
        if stack is None:
            return
        try:
            await stack.aclose()
        except Exception as exc:
            logger.debug("Error closing MCP server '%s': %s", self.name, exc)


async def connect_server(name: str, config: ServerConfig) -> MCPConnection:
    """Default tool connector: open and initialize a connection to *name*.

    Raises ServerConnectionError if the server cannot be reached.
    """
    if not config.is_connectable:
        raise ServerConnectionError(
            name,
            f'Invalid MCP server config for "{name}": provide either a url or a non-empty "command"',
        )
    conn = MCPConnection(name, config)
    try:
        await conn.connect()
    except ServerConnectionError:
        raise
    except Exception as exc:
        logger.debug("connect(%r) failed", name, exc_info=True)
        raise ServerConnectionError(name, f"connect(\"{name}\") failed: {exc}") from exc
    return conn
