"""Load agent definitions from config and agent directories."""

from __future__ import annotations

import json
import logging
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from switchboard.types.agents import AgentDefinition
from switchboard.types.config import AppConfig

logger = logging.getLogger(__name__)

AGENT_FILE_SUFFIXES = (".toml", ".json")


def agent_dirs(explicit: str | None = None, cwd: str | Path | None = None) -> list[Path]:
    """Candidate agent directories in priority order, deduplicated.

    1. The configured ``agents_dir`` (relative paths resolve against *cwd*)
    2. ``./agents``
    3. ``~/.switchboard/agents``
    """
    base = Path(cwd) if cwd else Path.cwd()
    dirs: list[Path] = []
    if explicit:
        p = Path(explicit).expanduser()
        dirs.append(p if p.is_absolute() else base / p)
    dirs.append(base / "agents")
    dirs.append(Path.home() / ".switchboard" / "agents")

    seen: set[Path] = set()
    result = []
    for d in dirs:
        key = d.resolve()
        if key not in seen:
            seen.add(key)
            result.append(d)
    return result


def _read_mapping(path: Path) -> dict[str, Any]:
    if path.suffix.lower() == ".toml":
        with open(path, "rb") as f:
            return tomllib.load(f)
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError("agent file must contain an object")
    return data


def _apply_prompt_file(name: str, data: dict[str, Any], base: Path) -> dict[str, Any]:
    """Replace ``system_prompt`` with the contents of ``system_prompt_file`` if set."""
    prompt_file = data.get("system_prompt_file", data.get("systemPromptFile"))
    if not isinstance(prompt_file, str):
        return data
    path = Path(prompt_file).expanduser()
    if not path.is_absolute():
        path = base / path
    try:
        data = dict(data)
        data["system_prompt"] = path.read_text(encoding="utf-8")
    except OSError as exc:
        logger.warning(
            "Agent '%s': failed to read system_prompt_file '%s': %s", name, prompt_file, exc,
        )
    return data


def load_agents_from_dir(directory: Path) -> dict[str, AgentDefinition]:
    """Load every ``*.toml`` / ``*.json`` file in *directory*.

    The file stem is the agent name. Bad files are skipped with a warning.
    """
    agents: dict[str, AgentDefinition] = {}
    if not directory.is_dir():
        return agents

    try:
        entries = sorted(directory.iterdir())
    except OSError as exc:
        logger.warning("Cannot read agents directory %s: %s", directory, exc)
        return agents

    for path in entries:
        if not path.is_file() or path.suffix.lower() not in AGENT_FILE_SUFFIXES:
            continue
        name = path.stem
        try:
            data = _apply_prompt_file(name, _read_mapping(path), directory)
            agents[name] = AgentDefinition.from_dict(name, data)
        except (OSError, ValueError, tomllib.TOMLDecodeError) as exc:
            logger.warning("Skipping agent file %s: %s", path, exc)
    return agents


def load_agents(app: AppConfig, cwd: str | Path | None = None) -> dict[str, AgentDefinition]:
    """Merge inline agents with directory agents.

    Earlier directories win over later ones, and directory agents override
    inline agents with the same name.
    """
    base = Path(cwd) if cwd else Path.cwd()

    merged: dict[str, AgentDefinition] = {}
    for name, agent in app.agents.items():
        source: Mapping[str, Any] = app.agent_sources.get(name, {})
        if "system_prompt_file" in source or "systemPromptFile" in source:
            agent = AgentDefinition.from_dict(name, _apply_prompt_file(name, dict(source), base))
        merged[name] = agent

    from_dirs: dict[str, AgentDefinition] = {}
    for directory in agent_dirs(app.agents_dir, base):
        for name, agent in load_agents_from_dir(directory).items():
            from_dirs.setdefault(name, agent)

    merged.update(from_dirs)
    return merged
