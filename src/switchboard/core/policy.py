"""Tool visibility policy.

A tool is visible to an agent on a server only if it passes all four filters:
global exclude, agent exclude, global include, agent include. Agents can
narrow what a server exposes, never widen it. Without an active agent nothing
is visible.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from switchboard.types.agents import AgentDefinition, ServerScopePolicy
from switchboard.types.config import AppConfig, ServerConfig
from switchboard.types.tools import ToolDescriptor

logger = logging.getLogger(__name__)


def is_tool_visible(
    tool_name: str,
    global_policy: ServerConfig,
    agent_policy: ServerScopePolicy,
) -> bool:
    if tool_name in global_policy.exclude_tools:
        return False
    if tool_name in agent_policy.exclude_tools:
        return False
    if global_policy.include_tools and tool_name not in global_policy.include_tools:
        return False
    if agent_policy.include_tools and tool_name not in agent_policy.include_tools:
        return False
    return True


def resolve_visible_tools(
    server_name: str,
    tools: Iterable[ToolDescriptor],
    global_policy: ServerConfig,
    agent_policy: ServerScopePolicy | None,
) -> list[ToolDescriptor]:
    """Filter a server's advertised tools down to what the agent may see.

    Args:
        server_name: Server the tools were listed from.
        tools: Tools currently advertised by the server.
        global_policy: The server's global config.
        agent_policy: The active agent's policy for this server, or None when
            no agent is active.

    Returns:
        The visible tools, in advertised order.
    """
    if agent_policy is None:
        return []
    advertised = list(tools)
    visible = [t for t in advertised if is_tool_visible(t.name, global_policy, agent_policy)]
    logger.debug("%s: %d of %d tools visible", server_name, len(visible), len(advertised))
    return visible


def servers_in_scope(
    app: AppConfig, agent: AgentDefinition | None,
) -> list[tuple[str, ServerConfig, ServerScopePolicy]]:
    """Servers an invocation should connect to for *agent*.

    Only enabled, connectable servers named in the agent's ``servers`` map are
    returned. The default scope (no agent) connects to nothing.
    """
    if agent is None:
        return []
    selected = []
    for name, server in app.mcp_servers.items():
        if not server.enabled or not server.is_connectable:
            continue
        policy = agent.policy_for(name)
        if policy is None:
            continue
        selected.append((name, server, policy))
    return selected
