"""Read-only snapshot of all known agents for one top-level invocation."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from pathlib import Path
from types import MappingProxyType

from switchboard.types.agents import AgentDefinition
from switchboard.types.config import AppConfig


class AgentCatalog(Mapping[str, AgentDefinition]):
    """Immutable name -> AgentDefinition mapping.

    Built once per top-level invocation and shared, read-only, by every nested
    delegation. Changes to agent files during a run are not picked up.
    """

    def __init__(
        self, agents: Mapping[str, AgentDefinition] | Iterable[AgentDefinition] = (),
    ) -> None:
        if isinstance(agents, Mapping):
            items = dict(agents)
        else:
            items = {a.name: a for a in agents}
        self._agents: Mapping[str, AgentDefinition] = MappingProxyType(items)

    @classmethod
    def load(cls, app: AppConfig, cwd: str | Path | None = None) -> AgentCatalog:
        """Build the catalog from inline config agents and agent directories."""
        from switchboard.agents.loader import load_agents

        return cls(load_agents(app, cwd))

    def __getitem__(self, name: str) -> AgentDefinition:
        return self._agents[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._agents)

    def __len__(self) -> int:
        return len(self._agents)

    @property
    def names(self) -> list[str]:
        """Agent names, sorted."""
        return sorted(self._agents)

    def __repr__(self) -> str:
        return f"AgentCatalog({self.names!r})"
