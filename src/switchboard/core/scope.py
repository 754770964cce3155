"""Per-frame scope threaded through one invocation."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from switchboard.agents.catalog import AgentCatalog
from switchboard.types.agents import AgentDefinition


def scope_label(agent_name: str | None) -> str:
    """Prefix used when printing output from an agent (or the orchestrator)."""
    return f"[agent:{agent_name}]" if agent_name else "[orchestrator]"


def visible_callees(
    catalog: AgentCatalog,
    agent: AgentDefinition | None,
    cli_allowlist: Iterable[str] | None = None,
) -> tuple[str, ...]:
    """Agent names offered to the model for delegation.

    A non-empty ``allowed_agents`` list on the active agent wins. Otherwise the
    CLI allowlist narrows the full catalog. Names missing from the catalog are
    dropped.
    """
    if agent is not None and agent.allowed_agents:
        return tuple(n for n in agent.allowed_agents if n in catalog)
    names = tuple(catalog)
    if cli_allowlist:
        allow = set(cli_allowlist)
        names = tuple(n for n in names if n in allow)
    return names


@dataclass(frozen=True, slots=True)
class ScopeContext:
    """Scope for one conversation frame.

    Children get a fresh ScopeContext. A parent's context is never mutated.
    """

    active_agent: AgentDefinition | None = None
    visible_callees: tuple[str, ...] = ()
    depth: int = 0
    cli_allowlist: frozenset[str] | None = None

    @classmethod
    def build(
        cls,
        catalog: AgentCatalog,
        agent: AgentDefinition | None = None,
        *,
        depth: int = 0,
        cli_allowlist: Iterable[str] | None = None,
    ) -> ScopeContext:
        allow = frozenset(cli_allowlist) if cli_allowlist else None
        return cls(
            active_agent=agent,
            visible_callees=visible_callees(catalog, agent, allow),
            depth=depth,
            cli_allowlist=allow,
        )

    def child(self, catalog: AgentCatalog, target: AgentDefinition | None) -> ScopeContext:
        """Scope for a delegated invocation of *target* one level deeper."""
        return ScopeContext.build(
            catalog, target, depth=self.depth + 1, cli_allowlist=self.cli_allowlist,
        )

    @property
    def agent_name(self) -> str | None:
        return self.active_agent.name if self.active_agent else None

    @property
    def is_top_level(self) -> bool:
        return self.depth == 0

    @property
    def label(self) -> str:
        return scope_label(self.agent_name)
