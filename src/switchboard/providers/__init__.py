"""Provider adapters for Switchboard.

Public surface
--------------
- :class:`BaseProvider`: abstract base with shared error handling
- :class:`AnthropicProvider`: Claude adapter (Anthropic SDK)
- :class:`GoogleProvider`: Gemini adapter (google-genai SDK)
- :class:`OpenAIProvider`: OpenAI / compatible adapter (openai SDK)
- :func:`create_provider`: factory that returns the right adapter
- :data:`DEFAULT_MODELS`: default model per provider
"""

from __future__ import annotations

from switchboard.providers.anthropic import AnthropicProvider
from switchboard.providers.base import BaseProvider
from switchboard.providers.google import GoogleProvider
from switchboard.providers.openai import OpenAIProvider
from switchboard.providers.registry import DEFAULT_MODELS, create_provider

__all__ = [
    "AnthropicProvider",
    "BaseProvider",
    "DEFAULT_MODELS",
    "GoogleProvider",
    "OpenAIProvider",
    "create_provider",
]
