"""Rich-formatted confirmation prompt for gated tools."""

from __future__ import annotations

import asyncio
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.text import Text


class RichApprovalCallback:
    """Shows the pending call in a panel and waits for y/n on stdin."""

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console(stderr=True)

    async def request_approval(self, tool_name: str, args: Any, description: str) -> bool:
        self._console.print()
        self._console.print(Panel(
            Text(description, style="#94a3b8"),
            title=Text(f" ◆ {tool_name} ", style="bold #fbbf24"),
            subtitle="requires confirmation",
            border_style="#fbbf24",
            expand=False,
            padding=(0, 1),
        ))

        loop = asyncio.get_running_loop()
        try:
            self._console.print("[bold #fbbf24]Run tool?[/bold #fbbf24] [#7c7c8a](y/N)[/#7c7c8a] › ", end="")
            answer = await loop.run_in_executor(None, lambda: input(""))
        except (EOFError, KeyboardInterrupt):
            self._console.print()
            return False
        return answer.strip().lower() in ("y", "yes")
