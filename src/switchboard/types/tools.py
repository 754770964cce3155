"""Tool descriptor types and the connection protocol."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class ToolConnection(Protocol):
    """An open transport to a tool-providing server."""

    name: str

    async def list_tools(self) -> list[ToolDescriptor]:
        """Return the tools the server currently advertises."""
        ...

    async def call_tool(self, tool_name: str, arguments: Any) -> str:
        """Invoke a tool and return its rendered text output."""
        ...

    async def close(self) -> None:
        """Release the transport. Must be safe to call more than once."""
        ...


@dataclass(frozen=True, slots=True)
class ToolDescriptor:
    """A tool exposed to the model.

    ``parameters`` is the server's JSON schema, passed through untouched.
    ``connection`` is a back-reference to the owning connection, not ownership.
    """

    name: str
    description: str = ""
    parameters: dict[str, Any] | None = None
    server: str = ""
    connection: ToolConnection | None = field(default=None, compare=False, repr=False)

    def to_schema(self) -> dict[str, Any]:
        """Provider-agnostic function schema (name, description, parameters)."""
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters or {"type": "object", "properties": {}},
        }
