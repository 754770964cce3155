"""Configuration loading (.env, TOML/JSON config files, API keys)."""

from __future__ import annotations

import json
import logging
import os
import tomllib
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from switchboard.errors import ConfigurationError
from switchboard.types.config import AppConfig

# Load .env from current directory (and parents), won't override existing env vars
load_dotenv()

logger = logging.getLogger(__name__)

CONFIG_FILENAMES = ("switchboard.toml", "mcp-server-config.json")

ENV_MAP = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "google": "GOOGLE_API_KEY",
}


def config_candidates(cwd: str | Path | None = None) -> list[Path]:
    """Config file locations, in search order."""
    base = Path(cwd) if cwd else Path.cwd()
    home = Path.home() / ".switchboard"
    return [
        *(base / name for name in CONFIG_FILENAMES),
        home / "config.toml",
        home / "config.json",
    ]


def read_config_file(path: Path) -> dict[str, Any]:
    """Parse one config file. TOML by suffix, JSON otherwise."""
    try:
        if path.suffix.lower() == ".toml":
            with open(path, "rb") as f:
                data = tomllib.load(f)
        else:
            data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise ConfigurationError(f"Cannot read config file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a table/object")
    return data


def load_config(path: str | Path | None = None, cwd: str | Path | None = None) -> AppConfig:
    """Load the application config.

    Args:
        path: Explicit config file. When given, no search is done.
        cwd: Directory searched for project-level config files.

    Raises:
        ConfigurationError: If no config file exists or it cannot be parsed.
    """
    if path is not None:
        chosen = Path(path).expanduser()
        if not chosen.is_file():
            raise ConfigurationError(f"Config file not found: {chosen}")
    else:
        tried = config_candidates(cwd)
        chosen = next((p for p in tried if p.is_file()), None)
        if chosen is None:
            raise ConfigurationError(
                "Config file not found. Tried: " + ", ".join(str(p) for p in tried)
            )

    logger.debug("Loading config from %s", chosen)
    try:
        return AppConfig.from_dict(read_config_file(chosen))
    except (TypeError, ValueError, AttributeError) as exc:
        raise ConfigurationError(f"Invalid config in {chosen}: {exc}") from exc


def resolve_api_key(provider: str, explicit_key: str | None = None) -> str | None:
    """Resolve the API key: explicit value, then LLM_API_KEY, then the provider variable."""
    if explicit_key:
        return explicit_key
    if key := os.environ.get("LLM_API_KEY"):
        return key
    env_var = ENV_MAP.get(provider)
    if env_var:
        return os.environ.get(env_var) or None
    return None


def resolve_base_url(provider: str, explicit_url: str | None = None) -> str | None:
    """Base URL override. The environment fallbacks only apply to OpenAI."""
    if explicit_url:
        return explicit_url
    if provider == "openai":
        return os.environ.get("OPENAI_BASE_URL") or os.environ.get("LLM_BASE_URL") or None
    return None
