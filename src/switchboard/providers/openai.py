"""OpenAI provider adapter.

Works with OpenAI models and any OpenAI-compatible chat completions endpoint
(Ollama, Groq, OpenRouter, ...) through ``base_url``.
"""

from __future__ import annotations

import logging
from typing import Any

from switchboard.providers.base import BaseProvider
from switchboard.types.providers import ChatMessage, ModelResponse, ToolCall
from switchboard.utils import normalize_text

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o-mini"

# Reasoning models take max_completion_tokens instead of max_tokens.
_REASONING_PREFIXES = ("gpt-5", "o1", "o3", "o4")


def to_openai_messages(messages: list[ChatMessage]) -> list[dict[str, Any]]:
    """Convert chat messages to the chat completions wire format."""
    out: list[dict[str, Any]] = []
    for msg in messages:
        if msg.role == "tool":
            out.append({
                "role": "tool",
                "tool_call_id": msg.tool_call_id,
                "content": msg.content,
            })
        elif msg.role == "assistant":
            entry: dict[str, Any] = {"role": "assistant", "content": msg.content or None}
            if msg.tool_calls:
                entry["tool_calls"] = [
                    {
                        "id": tc.id,
                        "type": "function",
                        "function": {"name": tc.name, "arguments": tc.arguments},
                    }
                    for tc in msg.tool_calls
                ]
            out.append(entry)
        else:
            out.append({"role": msg.role, "content": msg.content})
    return out


def to_openai_tools(tools: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return [{"type": "function", "function": schema} for schema in tools]


def from_openai_response(response: Any) -> ModelResponse | None:
    """Parse the first choice of a chat completion. None if there is no message."""
    choices = getattr(response, "choices", None) or []
    if not choices:
        return None
    choice = choices[0]
    message = choice.message
    if message is None:
        return None
    calls = []
    for tc in message.tool_calls or []:
        fn = getattr(tc, "function", None)
        calls.append(ToolCall(
            id=tc.id or "",
            name=(fn.name if fn else "") or "",
            arguments=(fn.arguments if fn else "") or "",
        ))
    return ModelResponse(
        text=normalize_text(message.content),
        tool_calls=calls,
        finish_reason=choice.finish_reason,
    )


class OpenAIProvider(BaseProvider):
    """Provider adapter for OpenAI-compatible chat completion APIs.

    Parameters
    ----------
    api_key:
        API key. When *None* the SDK falls back to ``OPENAI_API_KEY``.
    model:
        Model ID to use for completions.
    base_url:
        Optional custom base URL for OpenAI-compatible endpoints.
    reasoning_effort:
        Sent as ``reasoning_effort`` when set (``"low"``, ``"medium"``, ...).
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = DEFAULT_MODEL,
        base_url: str | None = None,
        *,
        temperature: float = 0.0,
        max_tokens: int = 4096,
        reasoning_effort: str | None = None,
    ) -> None:
        super().__init__(model, temperature=temperature, max_tokens=max_tokens)
        try:
            from openai import AsyncOpenAI
        except ImportError as exc:
            raise ImportError(
                "The 'openai' package is required for OpenAIProvider. "
                "Install it with: pip install openai"
            ) from exc

        kwargs: dict[str, Any] = {}
        if api_key is not None:
            kwargs["api_key"] = api_key
        if base_url is not None:
            kwargs["base_url"] = base_url
        self._client = AsyncOpenAI(**kwargs)
        self._reasoning_effort = reasoning_effort

    def build_payload(
        self, messages: list[ChatMessage], tools: list[dict[str, Any]],
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self._model,
            "messages": to_openai_messages(messages),
            "temperature": self._temperature,
        }
        if self._model.lower().startswith(_REASONING_PREFIXES):
            payload["max_completion_tokens"] = self._max_tokens
        else:
            payload["max_tokens"] = self._max_tokens
        if self._reasoning_effort:
            payload["reasoning_effort"] = self._reasoning_effort
        # tool_choice is only valid when tools are present.
        if tools:
            payload["tools"] = to_openai_tools(tools)
            payload["tool_choice"] = "auto"
        return payload

    async def _complete(
        self, messages: list[ChatMessage], tools: list[dict[str, Any]],
    ) -> ModelResponse | None:
        response = await self._client.chat.completions.create(
            **self.build_payload(messages, tools),
        )
        return from_openai_response(response)
