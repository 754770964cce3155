"""Test fixtures: a scripted MockProvider and fake MCP connections."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

import pytest

from switchboard.errors import ServerConnectionError
from switchboard.types.config import AppConfig, ServerConfig
from switchboard.types.providers import ChatMessage, ModelResponse, ToolCall
from switchboard.types.tools import ToolDescriptor


@dataclass
class MockTurn:
    """A scripted model turn.

    ``tool_calls`` entries look like ``{"id": "c1", "name": "x", "args": {...}}``.
    ``args`` may also be a raw string, sent to the engine unchanged.
    """

    text: str = ""
    tool_calls: list[dict[str, Any]] = field(default_factory=list)
    finish_reason: str | None = None
    error: Exception | None = None
    no_message: bool = False


class MockProvider:
    """A deterministic provider that replays MockTurns in order.

    Every call is recorded in ``calls`` as ``{"messages": [...], "tools": [...]}``.
    One provider is shared by nested invocations, so turns are consumed in the
    order the model would be asked, across depths. Asking for more turns than
    were scripted raises AssertionError.

    Usage:
        provider = MockProvider(turns=[
            MockTurn(tool_calls=[{"id": "c1", "name": "x", "args": {"q": 1}}]),
            MockTurn(text="done"),
        ])
    """

    def __init__(self, turns: list[MockTurn], model: str = "mock-model"):
        self._turns = list(turns)
        self._turn_index = 0
        self._model = model
        self.calls: list[dict[str, Any]] = []

    @property
    def model_id(self) -> str:
        return self._model

    @property
    def remaining(self) -> int:
        return len(self._turns) - self._turn_index

    async def complete(
        self, messages: list[ChatMessage], tools: list[dict[str, Any]],
    ) -> ModelResponse | None:
        self.calls.append({"messages": list(messages), "tools": list(tools)})
        if self._turn_index >= len(self._turns):
            raise AssertionError(
                f"MockProvider script exhausted after {len(self._turns)} turns"
            )

        turn = self._turns[self._turn_index]
        self._turn_index += 1
        if turn.error is not None:
            raise turn.error
        if turn.no_message:
            return None

        calls = []
        for tc in turn.tool_calls:
            args = tc.get("args", {})
            raw = args if isinstance(args, str) else json.dumps(args)
            calls.append(ToolCall(id=tc.get("id", ""), name=tc.get("name", ""), arguments=raw))
        finish = turn.finish_reason or ("tool_calls" if calls else "stop")
        return ModelResponse(text=turn.text, tool_calls=calls, finish_reason=finish)


def call_agent(call_id: str, query: str = "do it", target: str | None = None) -> dict[str, Any]:
    """Shorthand for a scripted call_agent tool call."""
    args: dict[str, Any] = {"query": query}
    if target is not None:
        args["target_agent"] = target
    return {"id": call_id, "name": "call_agent", "args": args}


def tool_messages(call: dict[str, Any]) -> list[ChatMessage]:
    """The role="tool" messages a recorded provider call was sent."""
    return [m for m in call["messages"] if m.role == "tool"]


class FakeConnection:
    """In-memory ToolConnection that counts closes."""

    def __init__(
        self,
        name: str,
        tools: list[str] | None = None,
        *,
        results: dict[str, Any] | None = None,
        fail_list: bool = False,
        fail_close: bool = False,
    ) -> None:
        self.name = name
        self._tools = list(tools or [])
        self._results = results or {}
        self._fail_list = fail_list
        self._fail_close = fail_close
        self.calls: list[tuple[str, Any]] = []
        self.close_count = 0

    async def list_tools(self) -> list[ToolDescriptor]:
        if self._fail_list:
            raise RuntimeError("listTools exploded")
        return [
            ToolDescriptor(
                name=n,
                description=f"{n} tool",
                parameters={"type": "object", "properties": {}},
                server=self.name,
                connection=self,
            )
            for n in self._tools
        ]

    async def call_tool(self, tool_name: str, arguments: Any) -> str:
        self.calls.append((tool_name, arguments))
        result = self._results.get(tool_name, f"{tool_name} ok")
        if isinstance(result, Exception):
            raise result
        return result

    async def close(self) -> None:
        self.close_count += 1
        if self._fail_close:
            raise RuntimeError("close failed")


class FakeConnector:
    """Connector that builds a fresh FakeConnection per connect.

    ``servers`` maps server name to FakeConnection keyword arguments.
    Names in ``failing`` raise ServerConnectionError.
    """

    def __init__(
        self,
        servers: dict[str, dict[str, Any]] | None = None,
        failing: tuple[str, ...] = (),
    ) -> None:
        self._servers = servers or {}
        self._failing = set(failing)
        self.opened: list[FakeConnection] = []
        self.connect_calls: list[str] = []

    async def __call__(self, name: str, config: ServerConfig) -> FakeConnection:
        self.connect_calls.append(name)
        if name in self._failing:
            raise ServerConnectionError(name, f"cannot reach {name}")
        kwargs = dict(self._servers.get(name, {}))
        conn = FakeConnection(name, kwargs.pop("tools", []), **kwargs)
        self.opened.append(conn)
        return conn


def make_config(
    servers: dict[str, dict[str, Any]] | None = None,
    agents: dict[str, dict[str, Any]] | None = None,
    **extra: Any,
) -> AppConfig:
    """AppConfig with stdio servers (command "fake") plus the given policies."""
    return AppConfig.from_dict({
        "mcp_servers": {
            name: {"command": "fake", **policy} for name, policy in (servers or {}).items()
        },
        "agents": agents or {},
        **extra,
    })


@pytest.fixture
def isolated_home(tmp_path, monkeypatch):
    """Point HOME at an empty directory so no user agents or config leak in."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    return home
