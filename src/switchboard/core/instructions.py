"""System messages that open every invocation."""

from __future__ import annotations

import os
from datetime import datetime, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from switchboard.core.scope import ScopeContext
from switchboard.types.config import DEFAULT_SYSTEM_PROMPT
from switchboard.types.providers import ChatMessage

HEADLESS_INSTRUCTION = (
    "Do not ask for permission, and don't ask child agents to ask for permission. "
    "This runs headless. You're supposed to make your own decisions."
)


def _timezone() -> tuple[tzinfo | None, str]:
    name = os.environ.get("TZ")
    if name:
        try:
            return ZoneInfo(name), name
        except (ZoneInfoNotFoundError, ValueError):
            pass
    local = datetime.now().astimezone().tzinfo
    label = local.tzname(None) if local is not None else None
    return local, label or "UTC"


def date_banner(now: datetime | None = None) -> str:
    """``Thread start date: YYYY-MM-DD (<tz>)``, fixed once per invocation."""
    tz, label = _timezone()
    now = now.astimezone(tz) if now is not None else datetime.now(tz)
    return f"Thread start date: {now:%Y-%m-%d} ({label})"


def agent_context(scope: ScopeContext) -> str:
    callees = ", ".join(scope.visible_callees) or "(none)"
    return "\n".join([
        "Agent context:",
        f"- Current agent scope: {scope.agent_name or 'none'}",
        f"- Available agents for delegation: {callees}",
        "Use the call_agent tool to delegate to one of the available agents when helpful.",
    ])


def system_prompt(scope: ScopeContext, default: str | None = None) -> str:
    """The agent's prompt if it has one, else *default*, plus the fixed trailer."""
    agent = scope.active_agent
    if agent is not None and agent.system_prompt and agent.system_prompt.strip():
        base = agent.system_prompt
    else:
        base = default or DEFAULT_SYSTEM_PROMPT
    return "\n\n".join([base, HEADLESS_INSTRUCTION, agent_context(scope)])


def opening_messages(
    query: str, scope: ScopeContext, default_prompt: str | None = None,
) -> list[ChatMessage]:
    return [
        ChatMessage(role="system", content=date_banner()),
        ChatMessage(role="system", content=system_prompt(scope, default_prompt)),
        ChatMessage(role="user", content=query),
    ]
