"""Agent definition types."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any


def _name_set(value: Any) -> frozenset[str]:
    if not value:
        return frozenset()
    if isinstance(value, str):
        return frozenset({value})
    return frozenset(str(v) for v in value)


@dataclass(frozen=True, slots=True)
class ServerScopePolicy:
    """Per-agent tool policy for one server.

    An empty include set means every tool of the server is a candidate.
    Exclusion always wins over inclusion.
    """

    include_tools: frozenset[str] = frozenset()
    exclude_tools: frozenset[str] = frozenset()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> ServerScopePolicy:
        """Raises ValueError when *data* is neither empty nor a mapping."""
        data = data or {}
        if not isinstance(data, Mapping):
            raise ValueError(f"server policy must be a table, got {type(data).__name__}")
        return cls(
            include_tools=_name_set(data.get("include_tools", data.get("includeTools"))),
            exclude_tools=_name_set(data.get("exclude_tools", data.get("excludeTools"))),
        )


@dataclass(frozen=True, slots=True)
class AgentDefinition:
    """A named policy bundle: prompt override, server/tool scope and callees.

    ``allowed_agents`` is ``None`` when the agent declares no delegation
    restriction. In that case the CLI-level allowlist (if any) applies.
    """

    name: str
    description: str = ""
    system_prompt: str | None = None
    servers: Mapping[str, ServerScopePolicy] = field(default_factory=dict)
    allowed_agents: tuple[str, ...] | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "servers", MappingProxyType(dict(self.servers)))

    def policy_for(self, server: str) -> ServerScopePolicy | None:
        """Return the policy for *server*, or None if the agent has no access."""
        return self.servers.get(server)

    @classmethod
    def from_dict(cls, name: str, data: Mapping[str, Any]) -> AgentDefinition:
        """Build a definition from a parsed config mapping.

        Accepts both snake_case keys and the camelCase keys of older configs.
        A single agent name may be given as a bare string.

        Raises ValueError for a malformed ``servers`` or ``allowed_agents``.
        """
        servers_raw = data.get("servers") or {}
        if not isinstance(servers_raw, Mapping):
            raise ValueError(
                f"agent '{name}': servers must be a table, got {type(servers_raw).__name__}"
            )
        servers = {}
        for server, policy in servers_raw.items():
            try:
                servers[str(server)] = ServerScopePolicy.from_dict(policy)
            except ValueError as exc:
                raise ValueError(f"agent '{name}', server '{server}': {exc}") from exc

        allowed = data.get("allowed_agents", data.get("allowedAgents"))
        if isinstance(allowed, str):
            allowed = [allowed]
        elif allowed is not None and not isinstance(allowed, (list, tuple)):
            raise ValueError(
                f"agent '{name}': allowed_agents must be a list, got {type(allowed).__name__}"
            )
        prompt = data.get("system_prompt", data.get("systemPrompt"))
        return cls(
            name=name,
            description=str(data.get("description") or ""),
            system_prompt=prompt if isinstance(prompt, str) else None,
            servers=servers,
            allowed_agents=tuple(str(a) for a in allowed) if allowed is not None else None,
        )
