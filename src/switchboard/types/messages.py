"""Message events emitted by a conversation run."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class TextMessage:
    """Assistant text for one turn."""

    text: str
    agent: str | None = None
    is_final: bool = False


@dataclass(frozen=True, slots=True)
class ToolUse:
    """Model requests a tool call."""

    id: str
    name: str
    args: Any = None


@dataclass(frozen=True, slots=True)
class ToolResult:
    """Result of dispatching a tool call (including delegation)."""

    tool_use_id: str
    name: str
    content: str
    is_error: bool = False


@dataclass(frozen=True, slots=True)
class Result:
    """Final result when an invocation completes."""

    text: str
    agent: str | None = None
    depth: int = 0
    turns: int = 0
    tool_calls: int = 0
    stop_reason: str = "stop"  # "stop", "max_turns", "error", "no_message"


@dataclass(frozen=True, slots=True)
class SystemEvent:
    """Lifecycle event (invocation start, warnings)."""

    type: str
    data: dict[str, Any] = field(default_factory=dict)


Message = TextMessage | ToolUse | ToolResult | Result | SystemEvent
