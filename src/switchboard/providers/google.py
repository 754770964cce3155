"""Google Gemini provider adapter (``google-genai`` SDK)."""

from __future__ import annotations

import json
import logging
from typing import Any

from switchboard.providers.base import BaseProvider, split_system
from switchboard.types.providers import ChatMessage, ModelResponse, ToolCall
from switchboard.utils import safe_parse_json

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.0-flash"


def to_gemini_contents(messages: list[ChatMessage]) -> list[Any]:
    """Convert non-system chat messages to ``types.Content`` values.

    Gemini matches function responses by name, so consecutive tool results
    are grouped into a single user turn.
    """
    from google.genai import types

    contents: list[types.Content] = []
    pending: list[types.Part] = []

    def flush() -> None:
        if pending:
            contents.append(types.Content(role="user", parts=list(pending)))
            pending.clear()

    for msg in messages:
        if msg.role == "tool":
            pending.append(types.Part.from_function_response(
                name=msg.name or "", response={"result": msg.content},
            ))
            continue
        flush()
        if msg.role == "assistant":
            parts: list[types.Part] = []
            if msg.content:
                parts.append(types.Part.from_text(text=msg.content))
            for tc in msg.tool_calls:
                args = safe_parse_json(tc.arguments)
                parts.append(types.Part.from_function_call(
                    name=tc.name, args=args if isinstance(args, dict) else {},
                ))
            if parts:
                contents.append(types.Content(role="model", parts=parts))
        else:
            contents.append(types.Content(
                role="user", parts=[types.Part.from_text(text=msg.content)],
            ))
    flush()
    return contents


def to_gemini_tools(tools: list[dict[str, Any]]) -> list[Any]:
    """Wrap function schemas in one ``types.Tool``. Schemas pass through as JSON schema."""
    if not tools:
        return []
    from google.genai import types

    declarations = [
        types.FunctionDeclaration(
            name=schema["name"],
            description=schema.get("description", ""),
            parameters_json_schema=schema.get("parameters"),
        )
        for schema in tools
    ]
    return [types.Tool(function_declarations=declarations)]


def from_gemini_response(response: Any) -> ModelResponse | None:
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return None
    candidate = candidates[0]
    parts = candidate.content.parts if candidate.content and candidate.content.parts else []

    texts: list[str] = []
    calls: list[ToolCall] = []
    for i, part in enumerate(parts):
        if part.function_call:
            fc = part.function_call
            # Older API versions do not return a call id.
            call_id = getattr(fc, "id", None) or f"gemini_{i}_{fc.name}"
            calls.append(ToolCall(
                id=call_id, name=fc.name or "", arguments=json.dumps(dict(fc.args or {})),
            ))
        elif part.text:
            texts.append(part.text)

    reason = str(getattr(candidate.finish_reason, "name", candidate.finish_reason) or "")
    if calls:
        finish = "tool_calls"
    elif reason == "MAX_TOKENS":
        finish = "length"
    else:
        finish = "stop"
    return ModelResponse(text="".join(texts), tool_calls=calls, finish_reason=finish)


class GoogleProvider(BaseProvider):
    """Provider adapter for Gemini models.

    Parameters
    ----------
    api_key:
        API key. When *None* the SDK reads ``GOOGLE_API_KEY``.
    model:
        Model ID to use.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = DEFAULT_MODEL,
        *,
        temperature: float = 0.0,
        max_tokens: int = 4096,
    ) -> None:
        super().__init__(model, temperature=temperature, max_tokens=max_tokens)
        try:
            from google import genai
        except ImportError as exc:
            raise ImportError(
                "The 'google-genai' package is required for GoogleProvider. "
                "Install it with: pip install google-genai"
            ) from exc
        self._client = genai.Client(api_key=api_key)

    async def _complete(
        self, messages: list[ChatMessage], tools: list[dict[str, Any]],
    ) -> ModelResponse | None:
        from google.genai import types

        system, rest = split_system(messages)
        config = types.GenerateContentConfig(
            system_instruction=system or None,
            tools=to_gemini_tools(tools) or None,
            temperature=self._temperature,
            max_output_tokens=self._max_tokens,
        )
        response = await self._client.aio.models.generate_content(
            model=self._model,
            contents=to_gemini_contents(rest),
            config=config,
        )
        return from_gemini_response(response)
