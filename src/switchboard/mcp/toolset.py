"""Scoped acquisition of the tool connections for one invocation."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any

import anyio

from switchboard.core.policy import is_tool_visible, resolve_visible_tools, servers_in_scope
from switchboard.types.agents import AgentDefinition, ServerScopePolicy
from switchboard.types.config import AppConfig, ServerConfig
from switchboard.types.tools import ToolConnection, ToolDescriptor

logger = logging.getLogger(__name__)

ToolConnector = Callable[[str, ServerConfig], Awaitable[ToolConnection]]


def _default_connector() -> ToolConnector:
    from switchboard.mcp.client import connect_server

    return connect_server


class ToolSet:
    """Connections opened for one invocation and the tools they expose.

    Registry lookups are by bare tool name. When two servers expose the same
    name, the server registered last wins.
    """

    def __init__(self) -> None:
        self.connections: list[ToolConnection] = []
        self._registry: dict[str, ToolDescriptor] = {}
        self._closed = False

    def register(self, tools: list[ToolDescriptor]) -> None:
        for tool in tools:
            previous = self._registry.get(tool.name)
            if previous is not None and previous.server != tool.server:
                logger.debug(
                    "Tool '%s' from '%s' shadows the one from '%s'",
                    tool.name, tool.server, previous.server,
                )
            self._registry[tool.name] = tool

    def get(self, name: str) -> ToolDescriptor | None:
        return self._registry.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._registry

    def schemas(self) -> list[dict[str, Any]]:
        return [t.to_schema() for t in self._registry.values()]

    async def aclose(self) -> None:
        """Close every connection once. Failures are logged and swallowed."""
        if self._closed:
            return
        self._closed = True
        with anyio.CancelScope(shield=True):
            for conn in self.connections:
                try:
                    await conn.close()
                except Exception as exc:
                    logger.debug("Error closing connection '%s': %s", conn.name, exc)
        self._registry.clear()


@asynccontextmanager
async def open_toolset(
    app: AppConfig,
    agent: AgentDefinition | None,
    *,
    connector: ToolConnector | None = None,
    enabled: bool = True,
) -> AsyncIterator[ToolSet]:
    """Connect the servers in *agent*'s scope and yield the visible tools.

    A server that fails to connect or to list its tools is logged and
    skipped. Every connection that was opened is closed on exit, however the
    block exits.
    """
    connect = connector or _default_connector()
    toolset = ToolSet()
    try:
        if enabled:
            for name, server, policy in servers_in_scope(app, agent):
                try:
                    conn = await connect(name, server)
                except Exception as exc:
                    logger.warning("Skipping MCP server '%s': %s", name, exc)
                    logger.debug("connect(%r) failed", name, exc_info=True)
                    continue
                toolset.connections.append(conn)
                try:
                    advertised = await conn.list_tools()
                except Exception as exc:
                    logger.warning("Skipping MCP server '%s': listTools failed: %s", name, exc)
                    logger.debug("list_tools(%r) failed", name, exc_info=True)
                    continue
                toolset.register(resolve_visible_tools(name, advertised, server, policy))
        yield toolset
    finally:
        await toolset.aclose()


async def list_all_tools(
    app: AppConfig, *, connector: ToolConnector | None = None,
) -> dict[str, list[ToolDescriptor]]:
    """Connect every enabled server and list its tools under the global policy.

    Servers that fail are logged and left out of the result.
    """
    connect = connector or _default_connector()
    no_scope = ServerScopePolicy()
    listing: dict[str, list[ToolDescriptor]] = {}
    for name, server in app.mcp_servers.items():
        if not server.enabled:
            continue
        if not server.is_connectable:
            logger.warning(
                'Invalid MCP server config for "%s": provide either a url or a non-empty "command"',
                name,
            )
            continue
        conn: ToolConnection | None = None
        try:
            conn = await connect(name, server)
            advertised = await conn.list_tools()
        except Exception as exc:
            logger.warning("Failed to list tools for '%s': %s", name, exc)
            continue
        finally:
            if conn is not None:
                with anyio.CancelScope(shield=True):
                    try:
                        await conn.close()
                    except Exception as exc:
                        logger.debug("Error closing connection '%s': %s", name, exc)
        listing[name] = [t for t in advertised if is_tool_visible(t.name, server, no_scope)]
    return listing
