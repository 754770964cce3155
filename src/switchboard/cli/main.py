"""CLI entry point for Switchboard."""

from __future__ import annotations

import asyncio
import logging
import sys
import textwrap
from pathlib import Path
from typing import Any

import click
from rich.console import Console
from rich.logging import RichHandler

from switchboard.errors import ConfigurationError
from switchboard.prompts import PROMPT_TEMPLATES, prepare_query, template_args
from switchboard.types.config import AppConfig, RunOptions


def _configure_logging(verbose: bool) -> None:
    handler = RichHandler(
        console=Console(stderr=True),
        show_time=False,
        show_path=False,
        markup=False,
    )
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[handler],
        force=True,
    )
    if not verbose:
        # The SDK transports are chatty at INFO and below.
        for name in ("httpx", "mcp", "openai", "anthropic"):
            logging.getLogger(name).setLevel(logging.WARNING)


def _read_agent_names(values: tuple[str, ...], text_file: str | None) -> tuple[str, ...] | None:
    """Collect ``--agents`` values (comma separated, repeatable) and the text file."""
    names: list[str] = []
    for value in values:
        names.extend(n.strip() for n in value.split(",") if n.strip())
    if text_file:
        try:
            lines = Path(text_file).read_text(encoding="utf-8").splitlines()
        except OSError as exc:
            raise click.BadParameter(str(exc), param_hint="--agents-text-file") from exc
        for line in lines:
            line = line.strip()
            if line and not line.startswith("#"):
                names.append(line)
    # Keep order, drop duplicates.
    return tuple(dict.fromkeys(names)) or None


def _create_approval_callback(no_confirmations: bool, use_rich: bool, *, is_tty: bool) -> Any | None:
    """Pick a confirmation prompt. None means gated tools are declined."""
    if no_confirmations or not is_tty:
        return None
    if use_rich:
        from switchboard.ui.approval import RichApprovalCallback

        return RichApprovalCallback()
    from switchboard.permissions.approval import StdinApprovalCallback

    return StdinApprovalCallback()


def _list_prompts() -> None:
    click.echo(click.style("\nAvailable Prompt Templates\n", bold=True))
    for name, template in PROMPT_TEMPLATES.items():
        args = ", ".join(template_args(template)) or "-"
        click.echo(f"{click.style(name, fg='cyan')}  args: {args}")
        click.echo(textwrap.indent(textwrap.fill(template, 78), "  ") + "\n")


def _list_agents(app: AppConfig) -> None:
    from switchboard.agents.catalog import AgentCatalog

    catalog = AgentCatalog.load(app)
    if not catalog:
        click.echo(
            "No agents found. Add TOML/JSON files to ./agents or ~/.switchboard/agents, "
            "or define them under [agents] in the config."
        )
        return
    click.echo(click.style("\nAvailable Agents\n", bold=True))
    for name in catalog.names:
        description = catalog[name].description
        click.echo(f"- {name}" + (f": {description}" if description else ""))
    click.echo()


async def _list_tools(app: AppConfig) -> None:
    from switchboard.mcp.toolset import list_all_tools

    listing = await list_all_tools(app)
    if not listing:
        click.echo("No tools available.")
        return
    for server, tools in listing.items():
        click.echo(click.style(f"\n{server}", bold=True) + f" ({len(tools)} tools)")
        for tool in tools:
            summary = tool.description.strip().splitlines()[0] if tool.description.strip() else ""
            click.echo(f"  - {tool.name}" + (f": {summary}" if summary else ""))
    click.echo()


async def _run_query(
    query: str,
    app: AppConfig,
    options: RunOptions,
    *,
    use_rich: bool,
    approval_callback: Any | None,
    show_summary: bool = False,
) -> bool:
    """Run one top-level query and print it. Returns False if the model call failed."""
    from switchboard.core.engine import run
    from switchboard.types.messages import Result

    if use_rich:
        from switchboard.ui.terminal import RichPrinter

        printer: Any = RichPrinter(quiet=options.no_intermediates, show_summary=show_summary)
    else:
        from switchboard.cli.output import TextPrinter

        printer = TextPrinter(quiet=options.no_intermediates, text_only=options.text_only)

    printer.print_input(query)
    ok = True
    async for msg in run(query, config=app, options=options, confirm=approval_callback):
        printer.print_message(msg)
        if isinstance(msg, Result) and msg.stop_reason == "error":
            ok = False
    return ok


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.argument("query", nargs=-1)
@click.option("--list-tools", is_flag=True, help="List the tools of every enabled server")
@click.option("--list-prompts", is_flag=True, help="List prompt templates")
@click.option("--list-agents", is_flag=True, help="List agents from config and agent directories")
@click.option("--agent", default=None, help="Run scoped to this agent")
@click.option(
    "--agents", "agents", multiple=True,
    help="Agents the orchestrator may delegate to (comma separated, repeatable)",
)
@click.option(
    "--agents-text-file", type=click.Path(dir_okay=False), default=None,
    help="File with one allowed agent name per line",
)
@click.option("--no-confirmations", is_flag=True, help="Run gated tools without asking")
@click.option("--text-only", is_flag=True, help="Print output as raw text")
@click.option("--no-tools", is_flag=True, help="Do not offer any tools to the model")
@click.option("--no-intermediates", is_flag=True, help="Only print the final message")
@click.option("--model", "-m", default=None, help="Override the configured model")
@click.option(
    "--config", "config_path", type=click.Path(dir_okay=False), default=None,
    help="Config file (default: search ./switchboard.toml, ./mcp-server-config.json, ~/.switchboard)",
)
@click.option("--verbose", "-v", is_flag=True, help="Debug logging and a run summary")
@click.option("--rich/--no-rich", default=None, help="Rich terminal output (default: auto)")
def cli(
    query: tuple[str, ...],
    list_tools: bool,
    list_prompts: bool,
    list_agents: bool,
    agent: str | None,
    agents: tuple[str, ...],
    agents_text_file: str | None,
    no_confirmations: bool,
    text_only: bool,
    no_tools: bool,
    no_intermediates: bool,
    model: str | None,
    config_path: str | None,
    verbose: bool,
    rich: bool | None,
) -> None:
    """Switchboard -- run LLM queries with scoped MCP tools and agent delegation.

    \b
    Usage:
      switchboard "What is the capital of France?"
      switchboard p review                  (use a prompt template)
      cat notes.txt | switchboard           (query from stdin)
      switchboard --agent researcher "Find sources on topic X"
      switchboard --agents gmail,calendar "Organize my inbox"
      switchboard --list-tools
    """
    _configure_logging(verbose)

    if list_prompts:
        _list_prompts()
        return

    from switchboard.core.config import load_config

    try:
        app = load_config(config_path)
    except ConfigurationError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    if list_agents:
        _list_agents(app)
        return

    if list_tools:
        asyncio.run(_list_tools(app))
        return

    words = list(query)
    if not words and not sys.stdin.isatty():
        words = [sys.stdin.read()]
    try:
        query_text = prepare_query(words)
    except KeyError as exc:
        click.echo(
            f"Error: Prompt '{exc.args[0]}' not found. "
            "Use --list-prompts to see available templates.",
            err=True,
        )
        sys.exit(1)
    if not query_text:
        click.echo("Error: No query provided", err=True)
        sys.exit(1)

    options = RunOptions(
        agent=agent,
        agents=_read_agent_names(agents, agents_text_file),
        model=model,
        no_tools=no_tools,
        no_confirmations=no_confirmations,
        no_intermediates=no_intermediates,
        text_only=text_only,
    )
    use_rich = rich if rich is not None else (sys.stdout.isatty() and not text_only)
    approval_cb = _create_approval_callback(
        no_confirmations, use_rich, is_tty=sys.stdin.isatty(),
    )

    try:
        ok = asyncio.run(_run_query(
            query_text, app, options, use_rich=use_rich, approval_callback=approval_cb,
            show_summary=verbose,
        ))
    except ConfigurationError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
    if not ok:
        sys.exit(1)


def main() -> None:
    """Entry point."""
    cli()


if __name__ == "__main__":
    main()
