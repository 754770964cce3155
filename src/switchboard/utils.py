"""Small helpers shared by the engine, providers and MCP layer."""

from __future__ import annotations

import json
from typing import Any


def safe_parse_json(raw: Any) -> Any:
    """Parse tool-call arguments, best effort.

    Empty input gives ``{}``. Invalid JSON is passed through as the raw string.
    Non-string input is returned unchanged.
    """
    if not isinstance(raw, str):
        return raw if raw is not None else {}
    if not raw.strip():
        return {}
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def render_content(content: Any) -> str:
    """Flatten tool output (MCP content blocks, dicts, strings) into text."""
    items = getattr(content, "content", content)
    if isinstance(items, str):
        return items
    if isinstance(items, (list, tuple)):
        parts = [_render_item(item) for item in items]
        return "\n".join(parts)
    return _to_json(items)


def _render_item(item: Any) -> str:
    if isinstance(item, str):
        return item
    text = item.get("text") if isinstance(item, dict) else getattr(item, "text", None)
    if isinstance(text, str):
        return text
    return _to_json(item)


def _to_json(value: Any) -> str:
    if hasattr(value, "model_dump"):
        value = value.model_dump(mode="json", exclude_none=True)
    try:
        return json.dumps(value)
    except (TypeError, ValueError):
        return str(value)


def normalize_text(content: Any) -> str:
    """Assistant content may be a string or a list of parts. Return the text."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        out = []
        for part in content:
            if isinstance(part, str):
                out.append(part)
            else:
                text = part.get("text") if isinstance(part, dict) else getattr(part, "text", None)
                if isinstance(text, str):
                    out.append(text)
        return "".join(out)
    return ""
