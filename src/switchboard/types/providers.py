"""Provider adapter protocol and chat message types."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True, slots=True)
class ToolCall:
    """A tool call requested by the model.

    ``arguments`` is the raw JSON text as produced by the model.
    """

    id: str
    name: str
    arguments: str = ""


@dataclass(slots=True)
class ChatMessage:
    """A message in the conversation (provider-agnostic format)."""

    role: str  # "system", "user", "assistant", "tool"
    content: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    tool_call_id: str | None = None
    name: str | None = None  # Tool name, for role="tool"


@dataclass(slots=True)
class ModelResponse:
    """One completed model turn."""

    text: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    finish_reason: str | None = None  # "stop", "tool_calls", "length", ...


@runtime_checkable
class ProviderAdapter(Protocol):
    """Protocol that all provider adapters must implement."""

    @property
    def model_id(self) -> str:
        """The model identifier being used."""
        ...

    async def complete(
        self,
        messages: list[ChatMessage],
        tools: list[dict[str, Any]],
    ) -> ModelResponse | None:
        """Run one completion. Returns None when the provider sent no message."""
        ...
