"""Tests for the ConversationEngine loop, delegation re-entry and run()."""

from __future__ import annotations

import anyio
import pytest

from switchboard.agents.catalog import AgentCatalog
from switchboard.core.engine import NO_MESSAGE, ConversationEngine, run
from switchboard.core.scope import ScopeContext
from switchboard.errors import ModelCallError, ToolExecutionError
from switchboard.types.config import RunOptions
from switchboard.types.messages import Result, SystemEvent, TextMessage, ToolResult, ToolUse
from switchboard.types.tools import ToolDescriptor
from tests.conftest import (
    FakeConnector,
    MockProvider,
    MockTurn,
    call_agent,
    make_config,
    tool_messages,
)


async def _collect(stream) -> list:
    return [msg async for msg in stream]


def _result(events: list) -> Result:
    results = [e for e in events if isinstance(e, Result)]
    assert len(results) == 1
    return results[0]


def _scoped_app(**server_policy):
    return make_config(
        servers={"s1": server_policy},
        agents={"A": {"servers": {"s1": {}}}},
    )


def _engine(app, provider, connector=None, **kwargs) -> ConversationEngine:
    return ConversationEngine(
        app, AgentCatalog(dict(app.agents)), provider, connector=connector, **kwargs,
    )


def _top(app, agent: str | None = "A", allowlist=None) -> ScopeContext:
    catalog = AgentCatalog(dict(app.agents))
    return ScopeContext.build(
        catalog, catalog.get(agent) if agent else None, cli_allowlist=allowlist,
    )


class ApprovingCallback:
    def __init__(self, answer: bool = True):
        self.answer = answer
        self.requests: list[tuple[str, object, str]] = []

    async def request_approval(self, tool_name, args, description):
        self.requests.append((tool_name, args, description))
        return self.answer


class TestBasicLoop:
    @pytest.mark.asyncio
    async def test_text_only_answer(self):
        app = _scoped_app()
        provider = MockProvider([MockTurn(text="Hello!")])
        engine = _engine(app, provider, FakeConnector({"s1": {"tools": ["x"]}}))

        events = await _collect(engine.run("hi", _top(app)))

        assert isinstance(events[0], SystemEvent)
        assert events[0].data == {"agent": "A", "depth": 0, "model": "mock-model"}
        texts = [e for e in events if isinstance(e, TextMessage)]
        assert texts == [TextMessage(text="Hello!", agent="A", is_final=True)]
        result = _result(events)
        assert result.text == "Hello!"
        assert result.stop_reason == "stop"
        assert result.turns == 1

    @pytest.mark.asyncio
    async def test_tool_call_then_answer(self):
        app = _scoped_app()
        connector = FakeConnector({"s1": {"tools": ["x"], "results": {"x": "42"}}})
        provider = MockProvider([
            MockTurn(tool_calls=[{"id": "c1", "name": "x", "args": {"q": 1}}]),
            MockTurn(text="The answer is 42"),
        ])
        engine = _engine(app, provider, connector)

        events = await _collect(engine.run("compute", _top(app)))

        uses = [e for e in events if isinstance(e, ToolUse)]
        assert uses == [ToolUse(id="c1", name="x", args={"q": 1})]
        results = [e for e in events if isinstance(e, ToolResult)]
        assert results == [ToolResult(tool_use_id="c1", name="x", content="42")]
        assert connector.opened[0].calls == [("x", {"q": 1})]

        sent = tool_messages(provider.calls[1])
        assert [(m.tool_call_id, m.name, m.content) for m in sent] == [("c1", "x", "42")]
        result = _result(events)
        assert result.text == "The answer is 42"
        assert result.tool_calls == 1
        assert provider.remaining == 0

    @pytest.mark.asyncio
    async def test_tools_offered_include_call_agent(self):
        app = _scoped_app()
        provider = MockProvider([MockTurn(text="ok")])
        engine = _engine(app, provider, FakeConnector({"s1": {"tools": ["x", "y"]}}))
        await _collect(engine.run("hi", _top(app)))
        assert [t["name"] for t in provider.calls[0]["tools"]] == ["x", "y", "call_agent"]

    @pytest.mark.asyncio
    async def test_multiple_calls_run_in_order(self):
        app = _scoped_app()
        connector = FakeConnector({"s1": {"tools": ["x", "y"]}})
        provider = MockProvider([
            MockTurn(tool_calls=[
                {"id": "c1", "name": "y", "args": {}},
                {"id": "c2", "name": "x", "args": {}},
            ]),
            MockTurn(text="done"),
        ])
        engine = _engine(app, provider, connector)
        await _collect(engine.run("go", _top(app)))
        assert [name for name, _ in connector.opened[0].calls] == ["y", "x"]
        assert [m.tool_call_id for m in tool_messages(provider.calls[1])] == ["c1", "c2"]

    @pytest.mark.asyncio
    async def test_stop_finish_reason_with_calls_is_final(self):
        app = _scoped_app()
        connector = FakeConnector({"s1": {"tools": ["x"]}})
        provider = MockProvider([
            MockTurn(
                text="final anyway",
                tool_calls=[{"id": "c1", "name": "x", "args": {}}],
                finish_reason="stop",
            ),
        ])
        engine = _engine(app, provider, connector)
        events = await _collect(engine.run("go", _top(app)))
        assert _result(events).text == "final anyway"
        assert connector.opened[0].calls == []

    @pytest.mark.asyncio
    async def test_system_messages(self):
        app = make_config(
            system_prompt="Global prompt.",
            agents={"A": {"system_prompt": "You are A.", "allowed_agents": ["B"]}, "B": {}},
        )
        provider = MockProvider([MockTurn(text="ok"), MockTurn(text="ok")])
        engine = _engine(app, provider, FakeConnector())

        await _collect(engine.run("hi", _top(app, "A")))
        await _collect(engine.run("hi", _top(app, "B")))

        banner, prompt, user = provider.calls[0]["messages"]
        assert banner.role == "system"
        assert banner.content.startswith("Thread start date: ")
        assert prompt.content.startswith("You are A.\n\n")
        assert "This runs headless." in prompt.content
        assert "- Current agent scope: A" in prompt.content
        assert "- Available agents for delegation: B" in prompt.content
        assert user.role == "user"
        assert user.content == "hi"

        b_prompt = provider.calls[1]["messages"][1].content
        assert b_prompt.startswith("Global prompt.\n\n")
        assert "- Available agents for delegation: A, B" in b_prompt


class TestToolDispatch:
    @pytest.mark.asyncio
    async def test_invalid_json_args_passed_raw(self):
        app = _scoped_app()
        connector = FakeConnector({"s1": {"tools": ["x"]}})
        provider = MockProvider([
            MockTurn(tool_calls=[
                {"id": "c1", "name": "x", "args": "{not json"},
                {"id": "c2", "name": "x", "args": ""},
            ]),
            MockTurn(text="done"),
        ])
        engine = _engine(app, provider, connector)
        events = await _collect(engine.run("go", _top(app)))
        assert connector.opened[0].calls == [("x", "{not json"), ("x", {})]
        assert [e.args for e in events if isinstance(e, ToolUse)] == ["{not json", {}]

    @pytest.mark.asyncio
    async def test_tool_failure_becomes_message(self):
        app = _scoped_app()
        connector = FakeConnector({"s1": {
            "tools": ["x", "y"],
            "results": {
                "x": ToolExecutionError("x", "disk full"),
                "y": RuntimeError("socket closed"),
            },
        }})
        provider = MockProvider([
            MockTurn(tool_calls=[
                {"id": "c1", "name": "x", "args": {}},
                {"id": "c2", "name": "y", "args": {}},
            ]),
            MockTurn(text="recovered"),
        ])
        engine = _engine(app, provider, connector)
        events = await _collect(engine.run("go", _top(app)))

        results = [e for e in events if isinstance(e, ToolResult)]
        assert [r.content for r in results] == [
            "Tool x failed: disk full",
            "Tool y failed: socket closed",
        ]
        assert all(r.is_error for r in results)
        assert _result(events).text == "recovered"

    @pytest.mark.asyncio
    async def test_unknown_tool(self):
        app = _scoped_app()
        provider = MockProvider([
            MockTurn(tool_calls=[{"id": "c1", "name": "nope", "args": {}}]),
            MockTurn(text="ok"),
        ])
        engine = _engine(app, provider, FakeConnector({"s1": {"tools": ["x"]}}))
        await _collect(engine.run("go", _top(app)))
        assert tool_messages(provider.calls[1])[0].content == "Unknown tool: nope"

    @pytest.mark.asyncio
    async def test_missing_tool_name(self):
        app = _scoped_app()
        provider = MockProvider([
            MockTurn(tool_calls=[{"id": "c1", "name": "", "args": {}}]),
            MockTurn(text="ok"),
        ])
        engine = _engine(app, provider, FakeConnector({"s1": {"tools": ["x"]}}))
        await _collect(engine.run("go", _top(app)))
        assert tool_messages(provider.calls[1])[0].content == "Tool call missing function name"

    @pytest.mark.asyncio
    async def test_tool_timeout(self):
        app = make_config(
            servers={"s1": {}}, agents={"A": {"servers": {"s1": {}}}}, tool_timeout=0.05,
        )

        class SlowConnection:
            name = "s1"

            async def list_tools(self):
                return [ToolDescriptor(name="slow", server="s1", connection=self)]

            async def call_tool(self, tool_name, arguments):
                await anyio.sleep(5)
                return "too late"

            async def close(self):
                pass

        async def connector(name, config):
            return SlowConnection()

        provider = MockProvider([
            MockTurn(tool_calls=[{"id": "c1", "name": "slow", "args": {}}]),
            MockTurn(text="gave up"),
        ])
        engine = _engine(app, provider, connector)
        events = await _collect(engine.run("go", _top(app)))
        assert tool_messages(provider.calls[1])[0].content == "Tool slow failed: timed out after 0.05s"
        assert _result(events).text == "gave up"


class TestConfirmation:
    def _setup(self):
        app = _scoped_app(requires_confirmation=["x"])
        connector = FakeConnector({"s1": {"tools": ["x"]}})
        provider = MockProvider([
            MockTurn(tool_calls=[{"id": "c1", "name": "x", "args": {"path": "/tmp"}}]),
            MockTurn(text="done"),
        ])
        return app, connector, provider

    @pytest.mark.asyncio
    async def test_declined_without_callback(self):
        app, connector, provider = self._setup()
        engine = _engine(app, provider, connector)
        await _collect(engine.run("go", _top(app)))
        assert tool_messages(provider.calls[1])[0].content == "User declined to run tool x"
        assert connector.opened[0].calls == []

    @pytest.mark.asyncio
    async def test_approved_by_callback(self):
        app, connector, provider = self._setup()
        callback = ApprovingCallback(True)
        engine = _engine(app, provider, connector, confirm=callback)
        await _collect(engine.run("go", _top(app)))
        assert callback.requests == [("x", {"path": "/tmp"}, 'Run tool x({"path": "/tmp"})')]
        assert connector.opened[0].calls == [("x", {"path": "/tmp"})]

    @pytest.mark.asyncio
    async def test_rejected_by_callback(self):
        app, connector, provider = self._setup()
        engine = _engine(app, provider, connector, confirm=ApprovingCallback(False))
        await _collect(engine.run("go", _top(app)))
        assert tool_messages(provider.calls[1])[0].content == "User declined to run tool x"

    @pytest.mark.asyncio
    async def test_no_confirmations_skips_prompt(self):
        app, connector, provider = self._setup()
        callback = ApprovingCallback(False)
        engine = _engine(app, provider, connector, confirm=callback, no_confirmations=True)
        await _collect(engine.run("go", _top(app)))
        assert callback.requests == []
        assert connector.opened[0].calls == [("x", {"path": "/tmp"})]


class TestTermination:
    @pytest.mark.asyncio
    async def test_no_message(self):
        app = _scoped_app()
        connector = FakeConnector({"s1": {"tools": ["x"]}})
        engine = _engine(app, MockProvider([MockTurn(no_message=True)]), connector)
        events = await _collect(engine.run("go", _top(app)))
        result = _result(events)
        assert result.text == NO_MESSAGE
        assert result.stop_reason == "no_message"
        assert connector.opened[0].close_count == 1

    @pytest.mark.asyncio
    async def test_model_error_ends_invocation_and_closes(self):
        app = _scoped_app()
        connector = FakeConnector({"s1": {"tools": ["x"]}})
        provider = MockProvider([
            MockTurn(tool_calls=[{"id": "c1", "name": "x", "args": {}}]),
            MockTurn(error=RuntimeError("rate limited")),
        ])
        engine = _engine(app, provider, connector)
        events = await _collect(engine.run("go", _top(app)))
        result = _result(events)
        assert result.stop_reason == "error"
        assert result.text == "rate limited"
        assert connector.opened[0].close_count == 1

    @pytest.mark.asyncio
    async def test_model_call_error_passes_through(self):
        app = _scoped_app()
        provider = MockProvider([MockTurn(error=ModelCallError("bad key"))])
        engine = _engine(app, provider, FakeConnector({"s1": {"tools": ["x"]}}))
        events = await _collect(engine.run("go", _top(app)))
        assert _result(events).text == "bad key"

    @pytest.mark.asyncio
    async def test_unscripted_turn_is_an_error(self):
        app = _scoped_app()
        provider = MockProvider([
            MockTurn(tool_calls=[{"id": "c1", "name": "x", "args": {}}]),
        ])
        engine = _engine(app, provider, FakeConnector({"s1": {"tools": ["x"]}}))
        events = await _collect(engine.run("go", _top(app)))
        result = _result(events)
        assert result.stop_reason == "error"
        assert "script exhausted after 1 turns" in result.text
        assert len(provider.calls) == 2

    @pytest.mark.asyncio
    async def test_turn_budget(self):
        app = _scoped_app()
        connector = FakeConnector({"s1": {"tools": ["x"]}})
        turns = [
            MockTurn(text=f"step {i}", tool_calls=[{"id": f"c{i}", "name": "x", "args": {}}])
            for i in range(5)
        ]
        provider = MockProvider(turns)
        engine = _engine(app, provider, connector, max_turns=3)
        events = await _collect(engine.run("go", _top(app)))
        result = _result(events)
        assert result.stop_reason == "max_turns"
        assert result.turns == 3
        assert result.text == "step 2"
        assert len(provider.calls) == 3
        assert connector.opened[0].close_count == 1

    @pytest.mark.asyncio
    async def test_turn_budget_without_text(self):
        app = _scoped_app()
        turns = [
            MockTurn(tool_calls=[{"id": f"c{i}", "name": "x", "args": {}}]) for i in range(2)
        ]
        engine = _engine(
            app, MockProvider(turns), FakeConnector({"s1": {"tools": ["x"]}}), max_turns=2,
        )
        events = await _collect(engine.run("go", _top(app)))
        assert _result(events).text == "finished"

    @pytest.mark.asyncio
    async def test_no_tools_single_turn(self):
        app = _scoped_app()
        connector = FakeConnector({"s1": {"tools": ["x"]}})
        provider = MockProvider([MockTurn(text="plain answer")])
        engine = _engine(app, provider, connector, no_tools=True)
        events = await _collect(engine.run("go", _top(app)))
        assert provider.calls[0]["tools"] == []
        assert connector.connect_calls == []
        assert _result(events).text == "plain answer"


class TestNoActiveAgent:
    @pytest.mark.asyncio
    async def test_only_call_agent_is_offered(self):
        app = make_config(servers={"s1": {}})
        connector = FakeConnector({"s1": {"tools": ["x"]}})
        provider = MockProvider([
            MockTurn(tool_calls=[{"id": "c1", "name": "x", "args": {}}]),
            MockTurn(text="no tools here"),
        ])
        engine = _engine(app, provider, connector)
        events = await _collect(engine.run("go", _top(app, None)))

        assert [t["name"] for t in provider.calls[0]["tools"]] == ["call_agent"]
        assert tool_messages(provider.calls[1])[0].content == "Unknown tool: x"
        assert connector.connect_calls == []
        assert _result(events).agent is None

    @pytest.mark.asyncio
    async def test_unscoped_delegation(self):
        app = make_config(agents={"helper": {}})
        provider = MockProvider([
            MockTurn(tool_calls=[call_agent("c1", "sub task")]),
            MockTurn(text="child answer"),
            MockTurn(text="parent answer"),
        ])
        engine = _engine(app, provider, FakeConnector())
        events = await _collect(engine.run("go", _top(app, None)))

        child_messages = provider.calls[1]["messages"]
        assert child_messages[-1].content == "sub task"
        assert "- Current agent scope: none" in child_messages[1].content
        assert tool_messages(provider.calls[2])[0].content == (
            "call_agent completed (unscoped), result:\nchild answer"
        )
        assert _result(events).text == "parent answer"
        assert provider.remaining == 0


class TestDelegation:
    @pytest.mark.asyncio
    async def test_delegates_to_target_with_its_tools(self):
        app = make_config(
            servers={"s1": {}, "s2": {}},
            agents={
                "A": {"servers": {"s1": {}}, "allowed_agents": ["B"]},
                "B": {"servers": {"s2": {}}, "system_prompt": "You are B."},
            },
        )
        connector = FakeConnector({"s1": {"tools": ["a_tool"]}, "s2": {"tools": ["b_tool"]}})
        provider = MockProvider([
            MockTurn(tool_calls=[call_agent("c1", "ask B", target="B")]),
            MockTurn(text="B says hi"),
            MockTurn(text="A is done"),
        ])
        engine = _engine(app, provider, connector)
        events = await _collect(engine.run("go", _top(app, "A")))

        assert [t["name"] for t in provider.calls[1]["tools"]] == ["b_tool", "call_agent"]
        assert provider.calls[1]["messages"][1].content.startswith("You are B.")
        result = [e for e in events if isinstance(e, ToolResult)][0]
        assert result.content == "call_agent completed: B\nB says hi"
        assert not result.is_error
        assert _result(events).text == "A is done"
        assert connector.connect_calls == ["s1", "s2"]
        assert [c.close_count for c in connector.opened] == [1, 1]
        assert provider.remaining == 0

    @pytest.mark.asyncio
    async def test_nested_events_are_not_yielded(self):
        app = make_config(agents={"A": {}, "B": {}})
        provider = MockProvider([
            MockTurn(tool_calls=[call_agent("c1", target="B")]),
            MockTurn(text="inner"),
            MockTurn(text="outer"),
        ])
        engine = _engine(app, provider, FakeConnector())
        events = await _collect(engine.run("go", _top(app, "A")))
        assert [e.text for e in events if isinstance(e, TextMessage)] == ["outer"]
        assert len([e for e in events if isinstance(e, SystemEvent)]) == 1

    @pytest.mark.asyncio
    async def test_agent_allowlist_beats_cli_allowlist(self):
        app = make_config(agents={"a": {"allowed_agents": ["b"]}, "b": {}, "c": {}})
        provider = MockProvider([
            MockTurn(tool_calls=[call_agent("c1", target="c")]),
            MockTurn(tool_calls=[call_agent("c2", target="b")]),
            MockTurn(text="b result"),
            MockTurn(text="all done"),
        ])
        engine = _engine(app, provider, FakeConnector())
        events = await _collect(engine.run("go", _top(app, "a", allowlist=["c"])))

        schema = provider.calls[0]["tools"][-1]
        assert schema["parameters"]["properties"]["target_agent"]["enum"] == ["b"]
        assert tool_messages(provider.calls[1])[0].content == (
            "call_agent refused: agent 'a' is not allowed to call 'c'"
        )
        # b has no list of its own, so the CLI list decides what it may call.
        b_schema = provider.calls[2]["tools"][-1]
        assert b_schema["parameters"]["properties"]["target_agent"]["enum"] == ["c"]
        assert tool_messages(provider.calls[3])[1].content == "call_agent completed: b\nb result"
        assert _result(events).text == "all done"
        assert provider.remaining == 0

    @pytest.mark.asyncio
    async def test_recursion_depth_limit(self):
        app = make_config(agents={"a": {}})
        turns = [MockTurn(tool_calls=[call_agent(f"c{i}", target="a")]) for i in range(6)]
        turns += [MockTurn(text=f"depth {d} done") for d in range(5, -1, -1)]
        provider = MockProvider(turns)
        engine = _engine(app, provider, FakeConnector())

        events = await _collect(engine.run("go", _top(app, "a")))

        assert len(provider.calls) == 12
        assert provider.remaining == 0
        # The sixth request comes from depth 5 and is refused.
        assert tool_messages(provider.calls[6])[0].content == (
            "call_agent refused: maximum recursion depth reached"
        )
        assert tool_messages(provider.calls[7])[0].content == (
            "call_agent completed: a\ndepth 5 done"
        )
        assert _result(events).text == "depth 0 done"

    @pytest.mark.asyncio
    async def test_nested_model_error_reported_to_parent(self):
        app = make_config(agents={"A": {}, "B": {}})
        provider = MockProvider([
            MockTurn(tool_calls=[call_agent("c1", target="B")]),
            MockTurn(error=RuntimeError("upstream 500")),
            MockTurn(text="handled"),
        ])
        engine = _engine(app, provider, FakeConnector())
        events = await _collect(engine.run("go", _top(app, "A")))
        assert tool_messages(provider.calls[2])[0].content == "call_agent completed: B\nupstream 500"
        assert _result(events).text == "handled"
        assert provider.remaining == 0


class TestRun:
    @pytest.mark.asyncio
    async def test_unknown_agent_and_allowlist_warn(self, caplog):
        app = make_config(agents={"b": {}})
        provider = MockProvider([MockTurn(text="fine")])
        options = RunOptions(agent="ghost", agents=("b", "zz"))

        events = await _collect(run(
            "hi", config=app, options=options, provider=provider,
            connector=FakeConnector(), catalog=AgentCatalog(dict(app.agents)),
        ))

        assert "Agent 'ghost' not found. Proceeding without agent scoping." in caplog.text
        assert "Ignoring unknown agent names from --agents: zz" in caplog.text
        assert _result(events).agent is None
        schema = provider.calls[0]["tools"][-1]
        assert schema["parameters"]["properties"]["target_agent"]["enum"] == ["b"]

    @pytest.mark.asyncio
    async def test_loads_catalog_from_cwd(self, tmp_path, isolated_home):
        agents_dir = tmp_path / "agents"
        agents_dir.mkdir()
        (agents_dir / "writer.toml").write_text('system_prompt = "You write."\n')
        provider = MockProvider([MockTurn(text="written")])

        events = await _collect(run(
            "hi", config=make_config(), options=RunOptions(agent="writer"),
            provider=provider, connector=FakeConnector(), cwd=tmp_path,
        ))

        assert _result(events).agent == "writer"
        assert provider.calls[0]["messages"][1].content.startswith("You write.")
