"""The virtual ``call_agent`` tool: schema, request checks and re-entry."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from switchboard.agents.catalog import AgentCatalog
from switchboard.core.scope import ScopeContext
from switchboard.errors import (
    DelegationRefused,
    DepthExceeded,
    InvalidDelegation,
    PolicyViolation,
    UnknownAgent,
)
from switchboard.utils import safe_parse_json

logger = logging.getLogger(__name__)

CALL_AGENT = "call_agent"
MAX_DEPTH = 5

# Runs a nested invocation and returns its result text.
Invoker = Callable[[str, ScopeContext], Awaitable[str]]


@dataclass(frozen=True, slots=True)
class DelegationRequest:
    query: str
    target_agent: str | None = None

    @classmethod
    def parse(cls, arguments: Any) -> DelegationRequest:
        """Build a request from raw tool-call arguments (JSON text or a mapping)."""
        args = safe_parse_json(arguments)
        if not isinstance(args, dict):
            args = {}
        query = args.get("query")
        target = args.get("target_agent")
        return cls(
            query=query.strip() if isinstance(query, str) else "",
            target_agent=target.strip() if isinstance(target, str) and target.strip() else None,
        )


class DelegationController:
    """Validates ``call_agent`` requests and runs the delegated invocation.

    Checks run in a fixed order: query, target resolution, unknown agent,
    allowlist, depth. The first failing check decides the refusal message.
    Nothing here raises into the calling loop.
    """

    def __init__(
        self, catalog: AgentCatalog, invoke: Invoker, *, max_depth: int = MAX_DEPTH,
    ) -> None:
        self._catalog = catalog
        self._invoke = invoke
        self._max_depth = max_depth

    def tool_schema(self, scope: ScopeContext) -> dict[str, Any]:
        """Function schema for ``call_agent`` as seen from *scope*."""
        callees = list(scope.visible_callees)
        target: dict[str, Any] = {
            "type": "string",
            "description": (
                "Name of the target agent. If omitted, will reuse the current agent "
                "scope if any; otherwise runs unscoped. "
                f"Allowed: {', '.join(callees) or '(none)'}"
            ),
        }
        # Some providers reject an empty enum.
        if callees:
            target["enum"] = callees
        return {
            "name": CALL_AGENT,
            "description": (
                "Delegate by calling another agent with the provided query. "
                "Respects per-agent allowed_agents and tool include lists."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "query": {
                        "type": "string",
                        "description": "The query to pass to the delegated agent.",
                    },
                    "target_agent": target,
                },
                "required": ["query"],
            },
        }

    def authorize(self, request: DelegationRequest, scope: ScopeContext) -> ScopeContext:
        """Return the child scope for *request*, or raise a PolicyViolation."""
        if not request.query:
            raise InvalidDelegation()

        target_name = request.target_agent or scope.agent_name
        target = None
        if target_name is not None:
            target = self._catalog.get(target_name)
            if target is None:
                raise UnknownAgent(target_name)

            active = scope.active_agent
            if active is not None and active.allowed_agents is not None:
                if target_name not in active.allowed_agents:
                    raise DelegationRefused(target_name, caller=active.name)
            elif scope.cli_allowlist and target_name not in scope.cli_allowlist:
                raise DelegationRefused(target_name)

        if scope.depth >= self._max_depth:
            raise DepthExceeded()

        return scope.child(self._catalog, target)

    async def delegate(self, arguments: Any, scope: ScopeContext) -> str:
        """Handle one ``call_agent`` call and return the tool-result text."""
        request = DelegationRequest.parse(arguments)
        try:
            child = self.authorize(request, scope)
        except PolicyViolation as exc:
            logger.info("%s %s", scope.label, exc)
            return str(exc)

        target = child.agent_name
        logger.debug(
            "%s delegating to %s at depth %d", scope.label, target or "(unscoped)", child.depth,
        )
        try:
            result = await self._invoke(request.query, child)
        except Exception as exc:
            logger.debug("Delegated invocation failed", exc_info=True)
            if target is None:
                return f"call_agent failed (unscoped): {exc}"
            return f"call_agent failed ({target}): {exc}"

        if target is None:
            return f"call_agent completed (unscoped), result:\n{result}"
        return f"call_agent completed: {target}\n{result}"
