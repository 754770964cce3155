"""Rich-powered terminal output."""

from __future__ import annotations

from typing import Any

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from switchboard.core.delegation import CALL_AGENT
from switchboard.core.scope import scope_label
from switchboard.types.messages import Message, Result, SystemEvent, TextMessage, ToolResult, ToolUse

# ── Palette ──────────────────────────────────────────────────────────────────

STYLE_LABEL = "bold #a78bfa"          # violet, scope labels
STYLE_TOOL_NAME = "bold #a78bfa"
STYLE_TOOL_DETAIL = "#7c7c8a"         # muted grey
STYLE_DELEGATE = "bold #38bdf8"       # sky, call_agent
STYLE_ERROR_LABEL = "bold #f87171"    # red
STYLE_ERROR_BODY = "#f87171"
STYLE_RESULT_DIM = "dim #7c7c8a"
STYLE_RESULT_LABEL = "bold #94a3b8"   # slate
STYLE_RESULT_VALUE = "#e2e8f0"

TOOL_ICON = "▸"       # ▸
DELEGATE_ICON = "◆"   # ◆

MAX_RESULT_PREVIEW = 300


class RichPrinter:
    """Rich-based printer for a top-level run.

    Follows the same policy as the plain printer: intermediate turns and tool
    activity only when not ``quiet``, the final answer exactly once.
    """

    def __init__(
        self,
        console: Console | None = None,
        *,
        quiet: bool = False,
        show_summary: bool = False,
    ) -> None:
        self._console = console or Console(stderr=True)
        self._stdout = Console()  # For assistant text output
        self._quiet = quiet
        self._show_summary = show_summary
        self._last_printed: str | None = None

    def print_input(self, query: str) -> None:
        if not self._quiet:
            line = Text("input: ", style=STYLE_RESULT_LABEL)
            line.append(query, style=STYLE_RESULT_VALUE)
            self._console.print(line)

    def print_message(self, msg: Message) -> None:
        match msg:
            case TextMessage(text=t, agent=agent, is_final=True):
                self._print_text(agent, t)
            case TextMessage(text=t, agent=agent) if not self._quiet:
                self._print_text(agent, t)
            case ToolUse(name=name, args=args) if not self._quiet:
                self._print_tool_use(name, args)
            case ToolResult(content=content, is_error=is_error) if not self._quiet:
                self._print_tool_result(content, is_error)
            case Result() as r:
                self._print_result(r)
            case ToolUse() | ToolResult() | TextMessage() | SystemEvent():
                pass

    def _print_text(self, agent: str | None, text: str) -> None:
        self._stdout.print()
        self._stdout.print(Text(scope_label(agent), style=STYLE_LABEL))
        self._stdout.print(Markdown(text))
        self._last_printed = text

    # ── Tool activity ────────────────────────────────────────────────────────

    def _print_tool_use(self, name: str, args: Any) -> None:
        line = Text()
        if name == CALL_AGENT:
            line.append(f"  {DELEGATE_ICON} ", style=STYLE_DELEGATE)
            target = args.get("target_agent") if isinstance(args, dict) else None
            line.append(f"delegate → {target or 'unscoped'}", style=STYLE_DELEGATE)
            query = args.get("query") if isinstance(args, dict) else None
            if isinstance(query, str) and query:
                snippet = query[:60] + ("…" if len(query) > 60 else "")
                line.append(f"  {snippet}", style=STYLE_TOOL_DETAIL)
        else:
            line.append(f"  {TOOL_ICON} {name}", style=STYLE_TOOL_NAME)
        self._console.print(line)

    def _print_tool_result(self, content: str, is_error: bool) -> None:
        """Errors are prominent, success is a dim preview."""
        if is_error:
            label = Text("    ✗ ", style=STYLE_ERROR_LABEL)
            label.append(content[:MAX_RESULT_PREVIEW], style=STYLE_ERROR_BODY)
            self._console.print(label)
            return
        preview = content[:MAX_RESULT_PREVIEW]
        if len(content) > MAX_RESULT_PREVIEW:
            preview += "…"
        if preview:
            self._console.print(Text(f"    {preview}", style=STYLE_RESULT_DIM))

    # ── Final result ─────────────────────────────────────────────────────────

    def _print_result(self, result: Result) -> None:
        if result.stop_reason not in ("error", "no_message"):
            if result.text and result.text != self._last_printed:
                self._print_text(result.agent, result.text)
        if not self._show_summary:
            return

        tbl = Table(show_header=False, show_edge=False, padding=(0, 1), expand=False)
        tbl.add_column(style=STYLE_RESULT_LABEL, justify="right", no_wrap=True)
        tbl.add_column(style=STYLE_RESULT_VALUE, no_wrap=True)
        tbl.add_row("Scope", scope_label(result.agent))
        tbl.add_row("Turns", str(result.turns))
        tbl.add_row("Tool calls", str(result.tool_calls))
        tbl.add_row("Stop", result.stop_reason)
        self._console.print()
        self._console.print(Panel(tbl, border_style="#3f3f50", expand=False, padding=(0, 1)))
