"""Configuration types for Switchboard."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from switchboard.types.agents import AgentDefinition, _name_set

DEFAULT_SYSTEM_PROMPT = "You are a helpful assistant."


@dataclass(frozen=True, slots=True)
class ServerConfig:
    """Configuration and global tool policy for one MCP server."""

    command: str | None = None
    args: tuple[str, ...] = ()
    env: Mapping[str, str] = field(default_factory=dict)
    transport: str = "stdio"  # "stdio", "sse" or "http"
    url: str | None = None  # For sse/http transports
    headers: Mapping[str, str] = field(default_factory=dict)
    enabled: bool = True
    exclude_tools: frozenset[str] = frozenset()
    include_tools: frozenset[str] = frozenset()
    requires_confirmation: frozenset[str] = frozenset()

    @property
    def is_connectable(self) -> bool:
        """True when the config names either a remote URL or a command to spawn."""
        if self.transport in ("sse", "http"):
            return bool(self.url)
        return bool(self.command)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ServerConfig:
        sse = data.get("sse") or {}
        url = data.get("url") or sse.get("url")
        transport = data.get("transport")
        if transport is None:
            transport = "sse" if url else "stdio"
        headers = dict(data.get("headers") or sse.get("headers") or {})
        command = data.get("command")
        return cls(
            command=command if isinstance(command, str) and command else None,
            args=tuple(str(a) for a in data.get("args") or ()),
            env={str(k): str(v) for k, v in (data.get("env") or {}).items()},
            transport=str(transport),
            url=url,
            headers=headers,
            enabled=data.get("enabled", True) is not False,
            exclude_tools=_name_set(data.get("exclude_tools")),
            include_tools=_name_set(data.get("include_tools")),
            requires_confirmation=_name_set(data.get("requires_confirmation")),
        )


@dataclass(frozen=True, slots=True)
class LLMConfig:
    """Model provider settings."""

    provider: str = "openai"
    model: str | None = None
    api_key: str | None = None
    base_url: str | None = None
    temperature: float = 0.0
    reasoning_effort: str | None = None
    max_tokens: int = 4096

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> LLMConfig:
        data = data or {}
        return cls(
            provider=str(data.get("provider") or "openai").lower(),
            model=data.get("model") or None,
            api_key=data.get("api_key") or None,
            base_url=data.get("base_url") or None,
            temperature=float(data.get("temperature", 0.0)),
            reasoning_effort=data.get("reasoning_effort") or None,
            max_tokens=int(data.get("max_tokens", 4096)),
        )


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Application config, read-only for the duration of a top-level run."""

    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    llm: LLMConfig = field(default_factory=LLMConfig)
    mcp_servers: Mapping[str, ServerConfig] = field(default_factory=dict)
    agents_dir: str | None = None
    agents: Mapping[str, AgentDefinition] = field(default_factory=dict)
    tool_timeout: float | None = None
    # Raw inline agent mappings, kept for system_prompt_file resolution.
    agent_sources: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)

    @property
    def requires_confirmation(self) -> frozenset[str]:
        """Tools that need confirmation, flattened across all servers."""
        names: set[str] = set()
        for server in self.mcp_servers.values():
            names.update(server.requires_confirmation)
        return frozenset(names)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> AppConfig:
        servers_raw = data.get("mcp_servers", data.get("mcpServers")) or {}
        agents_raw = data.get("agents") or {}
        timeout = data.get("tool_timeout")
        return cls(
            system_prompt=(
                data.get("system_prompt", data.get("systemPrompt")) or DEFAULT_SYSTEM_PROMPT
            ),
            llm=LLMConfig.from_dict(data.get("llm")),
            mcp_servers={
                str(name): ServerConfig.from_dict(conf or {})
                for name, conf in servers_raw.items()
            },
            agents_dir=data.get("agents_dir", data.get("agentsDir")) or None,
            agents={
                str(name): AgentDefinition.from_dict(str(name), conf or {})
                for name, conf in agents_raw.items()
            },
            tool_timeout=float(timeout) if timeout else None,
            agent_sources={str(name): dict(conf or {}) for name, conf in agents_raw.items()},
        )


@dataclass(slots=True)
class RunOptions:
    """Per-run options, usually coming from the command line."""

    agent: str | None = None
    agents: tuple[str, ...] | None = None  # CLI-level delegation allowlist
    model: str | None = None
    no_tools: bool = False
    no_confirmations: bool = False
    no_intermediates: bool = False
    text_only: bool = False

    @property
    def cli_allowlist(self) -> frozenset[str] | None:
        return frozenset(self.agents) if self.agents else None
