"""Confirmation callbacks for tools that require approval."""

from __future__ import annotations

import asyncio
import json
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class ConfirmationCallback(Protocol):
    """Protocol for asking the user whether a tool may run."""

    async def request_approval(self, tool_name: str, args: Any, description: str) -> bool:
        """Return True to run the tool. False behaves as if it was never called."""
        ...


def describe_tool_call(tool_name: str, args: Any) -> str:
    """One-line description of a tool call, used in the prompt."""
    if isinstance(args, str):
        args_str = args
    else:
        args_str = json.dumps(args, default=str)
    if len(args_str) > 80:
        args_str = args_str[:77] + "..."
    return f"Run tool {tool_name}({args_str})"


class StdinApprovalCallback:
    """Plain-text y/n prompt on stdin/stdout. Anything but y/yes declines."""

    async def request_approval(self, tool_name: str, args: Any, description: str) -> bool:
        loop = asyncio.get_running_loop()
        prompt = f"\nRun tool {tool_name}? {description}\n[y/N] > "
        try:
            answer = await loop.run_in_executor(None, lambda: input(prompt))
        except (EOFError, KeyboardInterrupt):
            return False
        return answer.strip().lower() in ("y", "yes")
