"""Anthropic provider adapter (messages API)."""

from __future__ import annotations

import json
import logging
from typing import Any

from switchboard.providers.base import BaseProvider, split_system
from switchboard.types.providers import ChatMessage, ModelResponse, ToolCall
from switchboard.utils import safe_parse_json

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-5"

_STOP_REASONS = {
    "end_turn": "stop",
    "stop_sequence": "stop",
    "tool_use": "tool_calls",
    "max_tokens": "length",
}


def to_anthropic_messages(messages: list[ChatMessage]) -> list[dict[str, Any]]:
    """Convert non-system chat messages to Anthropic content blocks.

    Tool results become ``tool_result`` blocks. Consecutive results are merged
    into one user turn, as the API requires.
    """
    out: list[dict[str, Any]] = []
    for msg in messages:
        if msg.role == "tool":
            block = {
                "type": "tool_result",
                "tool_use_id": msg.tool_call_id,
                "content": msg.content,
            }
            last = out[-1] if out else None
            if (
                last is not None
                and last["role"] == "user"
                and isinstance(last["content"], list)
                and all(b.get("type") == "tool_result" for b in last["content"])
            ):
                last["content"].append(block)
            else:
                out.append({"role": "user", "content": [block]})
        elif msg.role == "assistant":
            blocks: list[dict[str, Any]] = []
            if msg.content:
                blocks.append({"type": "text", "text": msg.content})
            for tc in msg.tool_calls:
                args = safe_parse_json(tc.arguments)
                blocks.append({
                    "type": "tool_use",
                    "id": tc.id,
                    "name": tc.name,
                    "input": args if isinstance(args, dict) else {},
                })
            if blocks:
                out.append({"role": "assistant", "content": blocks})
        else:
            out.append({"role": "user", "content": msg.content})
    return out


def to_anthropic_tools(tools: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return [
        {
            "name": schema["name"],
            "description": schema.get("description", ""),
            "input_schema": schema.get("parameters") or {"type": "object", "properties": {}},
        }
        for schema in tools
    ]


def from_anthropic_response(response: Any) -> ModelResponse | None:
    content = getattr(response, "content", None)
    if content is None:
        return None
    texts: list[str] = []
    calls: list[ToolCall] = []
    for block in content:
        if block.type == "text":
            texts.append(block.text)
        elif block.type == "tool_use":
            calls.append(ToolCall(id=block.id, name=block.name, arguments=json.dumps(block.input)))
    return ModelResponse(
        text="".join(texts),
        tool_calls=calls,
        finish_reason=_STOP_REASONS.get(response.stop_reason, response.stop_reason),
    )


class AnthropicProvider(BaseProvider):
    """Provider adapter for Claude models via the official ``anthropic`` SDK.

    Parameters
    ----------
    api_key:
        API key. When *None* the SDK falls back to ``ANTHROPIC_API_KEY``.
    model:
        Model ID to use.
    base_url:
        Optional proxy or gateway URL.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = DEFAULT_MODEL,
        base_url: str | None = None,
        *,
        temperature: float = 0.0,
        max_tokens: int = 4096,
    ) -> None:
        super().__init__(model, temperature=temperature, max_tokens=max_tokens)
        try:
            import anthropic
        except ImportError as exc:
            raise ImportError(
                "The 'anthropic' package is required for AnthropicProvider. "
                "Install it with: pip install anthropic"
            ) from exc

        kwargs: dict[str, Any] = {}
        if api_key is not None:
            kwargs["api_key"] = api_key
        if base_url is not None:
            kwargs["base_url"] = base_url
        self._client = anthropic.AsyncAnthropic(**kwargs)

    def build_payload(
        self, messages: list[ChatMessage], tools: list[dict[str, Any]],
    ) -> dict[str, Any]:
        system, rest = split_system(messages)
        payload: dict[str, Any] = {
            "model": self._model,
            "messages": to_anthropic_messages(rest),
            "max_tokens": self._max_tokens,
            "temperature": self._temperature,
        }
        if system:
            payload["system"] = system
        if tools:
            payload["tools"] = to_anthropic_tools(tools)
        return payload

    async def _complete(
        self, messages: list[ChatMessage], tools: list[dict[str, Any]],
    ) -> ModelResponse | None:
        response = await self._client.messages.create(**self.build_payload(messages, tools))
        return from_anthropic_response(response)
