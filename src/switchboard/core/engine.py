"""Conversation engine: the bounded model/tool loop and its public entry point."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any

import anyio

from switchboard.agents.catalog import AgentCatalog
from switchboard.core.delegation import CALL_AGENT, MAX_DEPTH, DelegationController
from switchboard.core.instructions import opening_messages
from switchboard.core.scope import ScopeContext
from switchboard.errors import ModelCallError, ToolExecutionError
from switchboard.mcp.toolset import ToolConnector, ToolSet, open_toolset
from switchboard.permissions.approval import ConfirmationCallback, describe_tool_call
from switchboard.types.config import AppConfig, RunOptions
from switchboard.types.messages import Message, Result, SystemEvent, TextMessage, ToolResult, ToolUse
from switchboard.types.providers import ChatMessage, ModelResponse, ProviderAdapter, ToolCall
from switchboard.utils import safe_parse_json

logger = logging.getLogger(__name__)

MAX_TURNS = 32
NO_MESSAGE = "No message from model"


class ConversationEngine:
    """Runs invocations for one top-level call.

    One engine is shared by the top-level invocation and every delegated one.
    It holds only read-only state (config, catalog, provider, confirmation
    set). Everything that changes during an invocation lives in ``run``.
    """

    def __init__(
        self,
        app: AppConfig,
        catalog: AgentCatalog,
        provider: ProviderAdapter,
        *,
        connector: ToolConnector | None = None,
        confirm: ConfirmationCallback | None = None,
        no_tools: bool = False,
        no_confirmations: bool = False,
        requires_confirmation: frozenset[str] | None = None,
        max_turns: int = MAX_TURNS,
        max_depth: int = MAX_DEPTH,
    ) -> None:
        self._app = app
        self._catalog = catalog
        self._provider = provider
        self._connector = connector
        self._confirm = confirm
        self._no_tools = no_tools
        self._no_confirmations = no_confirmations
        if requires_confirmation is None:
            requires_confirmation = app.requires_confirmation
        self._requires_confirmation = frozenset(requires_confirmation)
        self._max_turns = max_turns
        self._delegation = DelegationController(catalog, self.invoke, max_depth=max_depth)

    async def invoke(self, query: str, scope: ScopeContext) -> str:
        """Run an invocation to completion and return its result text."""
        text = ""
        async for msg in self.run(query, scope):
            if isinstance(msg, Result):
                text = msg.text
        return text

    async def run(self, query: str, scope: ScopeContext) -> AsyncIterator[Message]:
        """Run one invocation. Yields Message events, ending with a Result."""
        yield SystemEvent(
            type="invocation_start",
            data={
                "agent": scope.agent_name,
                "depth": scope.depth,
                "model": self._provider.model_id,
            },
        )
        messages = opening_messages(query, scope, self._app.system_prompt)

        async with open_toolset(
            self._app, scope.active_agent,
            connector=self._connector, enabled=not self._no_tools,
        ) as toolset:
            tools: list[dict[str, Any]] = []
            if not self._no_tools:
                tools = [*toolset.schemas(), self._delegation.tool_schema(scope)]

            if not tools:
                async for msg in self._single_turn(messages, scope):
                    yield msg
                return

            turn = 0
            tool_call_count = 0
            last_text = ""
            while turn < self._max_turns:
                turn += 1
                try:
                    response = await self._complete(messages, tools)
                except ModelCallError as exc:
                    logger.error("%s %s", scope.label, exc)
                    yield Result(
                        text=str(exc), agent=scope.agent_name, depth=scope.depth,
                        turns=turn, tool_calls=tool_call_count, stop_reason="error",
                    )
                    return

                if response is None:
                    if scope.is_top_level:
                        logger.warning(NO_MESSAGE)
                    yield Result(
                        text=NO_MESSAGE, agent=scope.agent_name, depth=scope.depth,
                        turns=turn, tool_calls=tool_call_count, stop_reason="no_message",
                    )
                    return

                text = response.text
                if text:
                    last_text = text
                messages.append(ChatMessage(
                    role="assistant", content=text, tool_calls=list(response.tool_calls),
                ))

                is_final = not response.tool_calls or response.finish_reason == "stop"
                if text:
                    yield TextMessage(text=text, agent=scope.agent_name, is_final=is_final)
                if is_final:
                    yield Result(
                        text=text or last_text, agent=scope.agent_name, depth=scope.depth,
                        turns=turn, tool_calls=tool_call_count, stop_reason="stop",
                    )
                    return

                # One at a time, in request order.
                for call in response.tool_calls:
                    tool_call_count += 1
                    yield ToolUse(id=call.id, name=call.name, args=safe_parse_json(call.arguments))
                    content, is_error = await self._dispatch(call, scope, toolset)
                    messages.append(ChatMessage(
                        role="tool", content=content, tool_call_id=call.id, name=call.name,
                    ))
                    yield ToolResult(
                        tool_use_id=call.id, name=call.name, content=content, is_error=is_error,
                    )

            logger.debug("%s turn budget of %d exhausted", scope.label, self._max_turns)
            yield Result(
                text=last_text or "finished", agent=scope.agent_name, depth=scope.depth,
                turns=turn, tool_calls=tool_call_count, stop_reason="max_turns",
            )

    async def _single_turn(
        self, messages: list[ChatMessage], scope: ScopeContext,
    ) -> AsyncIterator[Message]:
        """No tools at all: one completion, its text is the result."""
        try:
            response = await self._complete(messages, [])
        except ModelCallError as exc:
            logger.error("%s %s", scope.label, exc)
            yield Result(
                text=str(exc), agent=scope.agent_name, depth=scope.depth,
                turns=1, stop_reason="error",
            )
            return
        text = response.text if response is not None else ""
        if text:
            yield TextMessage(text=text, agent=scope.agent_name, is_final=True)
        yield Result(text=text, agent=scope.agent_name, depth=scope.depth, turns=1)

    async def _complete(
        self, messages: list[ChatMessage], tools: list[dict[str, Any]],
    ) -> ModelResponse | None:
        try:
            return await self._provider.complete(messages, tools)
        except ModelCallError:
            raise
        except Exception as exc:
            raise ModelCallError(str(exc) or type(exc).__name__) from exc

    async def _dispatch(
        self, call: ToolCall, scope: ScopeContext, toolset: ToolSet,
    ) -> tuple[str, bool]:
        """Route one tool call. Returns (content, is_error). Never raises."""
        if not call.name:
            return "Tool call missing function name", True

        if call.name == CALL_AGENT:
            content = await self._delegation.delegate(call.arguments, scope)
            return content, not content.startswith("call_agent completed")

        tool = toolset.get(call.name)
        if tool is None or tool.connection is None:
            return f"Unknown tool: {call.name}", True

        args = safe_parse_json(call.arguments)
        if call.name in self._requires_confirmation and not self._no_confirmations:
            if not await self._request_approval(call.name, args):
                return f"User declined to run tool {call.name}", True

        try:
            with anyio.fail_after(self._app.tool_timeout):
                return await tool.connection.call_tool(call.name, args), False
        except TimeoutError:
            message = f"timed out after {self._app.tool_timeout:g}s"
        except ToolExecutionError as exc:
            message = str(exc)
        except Exception as exc:
            logger.debug("Tool %s raised", call.name, exc_info=True)
            message = str(exc) or type(exc).__name__
        return f"Tool {call.name} failed: {message}", True

    async def _request_approval(self, tool_name: str, args: Any) -> bool:
        """Ask the confirmation callback. No callback, or a failing one, declines."""
        if self._confirm is None:
            return False
        description = describe_tool_call(tool_name, args)
        try:
            return bool(await self._confirm.request_approval(tool_name, args, description))
        except Exception:
            logger.debug("Confirmation prompt for %s failed", tool_name, exc_info=True)
            return False


async def run(
    query: str,
    *,
    config: AppConfig,
    options: RunOptions | None = None,
    provider: ProviderAdapter | None = None,
    connector: ToolConnector | None = None,
    confirm: ConfirmationCallback | None = None,
    catalog: AgentCatalog | None = None,
    cwd: str | Path | None = None,
) -> AsyncIterator[Message]:
    """Run a top-level invocation.

    This is the primary SDK entry point. The agent catalog is built once here
    and shared read-only by every delegated invocation.

    Args:
        query: The user's request.
        config: Loaded application config.
        options: Agent, allowlist and flag settings (usually from the CLI).
        provider: Provider adapter. Created from ``config.llm`` if omitted.
        connector: Opens tool server connections. Defaults to MCP.
        confirm: Approval callback for confirmation-gated tools.
        catalog: Pre-built agent catalog. Loaded from config and agent
            directories if omitted.
        cwd: Directory for resolving ``./agents`` and relative prompt files.
    """
    options = options or RunOptions()
    if catalog is None:
        catalog = AgentCatalog.load(config, cwd)
    if provider is None:
        from switchboard.providers.registry import create_provider

        provider = create_provider(config.llm, options.model)

    agent = None
    if options.agent:
        agent = catalog.get(options.agent)
        if agent is None:
            logger.warning(
                "Agent '%s' not found. Proceeding without agent scoping.", options.agent,
            )

    allowlist = options.cli_allowlist
    if allowlist:
        unknown = [n for n in options.agents or () if n not in catalog]
        if unknown:
            logger.warning("Ignoring unknown agent names from --agents: %s", ", ".join(unknown))

    engine = ConversationEngine(
        config, catalog, provider,
        connector=connector,
        confirm=confirm,
        no_tools=options.no_tools,
        no_confirmations=options.no_confirmations,
    )
    scope = ScopeContext.build(catalog, agent, cli_allowlist=allowlist)
    async for msg in engine.run(query, scope):
        yield msg
