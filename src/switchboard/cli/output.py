"""Plain text output for non-rich mode."""

from __future__ import annotations

import sys
from typing import TextIO

from switchboard.core.scope import scope_label
from switchboard.types.messages import Message, Result, SystemEvent, TextMessage, ToolResult, ToolUse


class TextPrinter:
    """Prints the events of a top-level run.

    With ``quiet`` only the final answer is printed. Otherwise assistant turns
    and tool results are echoed as they happen. The final answer is printed
    once either way.
    """

    def __init__(
        self, *, quiet: bool = False, text_only: bool = False, out: TextIO | None = None,
    ) -> None:
        self._quiet = quiet
        self._text_only = text_only
        self._out = out or sys.stdout
        self._last_printed: str | None = None

    def print_input(self, query: str) -> None:
        if not self._quiet:
            self._write(f"input: {query}")

    def print_message(self, msg: Message) -> None:
        match msg:
            case TextMessage(text=t, agent=agent, is_final=True):
                self._print_turn(agent, t)
            case TextMessage(text=t, agent=agent) if not self._quiet:
                self._print_turn(agent, t)
            case ToolResult(name=name, content=content) if not self._quiet:
                if self._text_only:
                    self._write(content)
                else:
                    body = f"\n{content}\n" if content else ""
                    self._write(f"\n[tool:{name}]{body}")
            case Result(text=t, agent=agent, stop_reason=reason):
                # Errors were already reported through logging.
                if reason not in ("error", "no_message") and t and t != self._last_printed:
                    self._print_turn(agent, t)
            case ToolUse() | SystemEvent():
                pass

    def _print_turn(self, agent: str | None, text: str) -> None:
        decorated = f"{scope_label(agent)} {text}"
        self._write(decorated if self._text_only else f"\n{decorated}\n")
        self._last_printed = text

    def _write(self, line: str) -> None:
        print(line, file=self._out, flush=True)
