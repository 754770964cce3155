"""Provider factory."""

from __future__ import annotations

from switchboard.core.config import resolve_api_key, resolve_base_url
from switchboard.errors import ConfigurationError
from switchboard.types.config import LLMConfig
from switchboard.types.providers import ProviderAdapter

DEFAULT_MODELS: dict[str, str] = {
    "openai": "gpt-4o-mini",
    "anthropic": "claude-sonnet-4-5",
    "google": "gemini-2.0-flash",
}

PROVIDER_ALIASES: dict[str, str] = {
    "gemini": "google",
    "claude": "anthropic",
}


def create_provider(llm: LLMConfig, model_override: str | None = None) -> ProviderAdapter:
    """Instantiate the adapter named by ``llm.provider``.

    The model is ``model_override``, then ``llm.model``, then the provider
    default.

    Raises
    ------
    ConfigurationError
        When the provider is unknown or no API key can be found.
    """
    provider = PROVIDER_ALIASES.get(llm.provider, llm.provider)
    if provider not in DEFAULT_MODELS:
        raise ConfigurationError(
            f"Unknown provider '{llm.provider}'. Choose one of: {', '.join(DEFAULT_MODELS)}"
        )

    api_key = resolve_api_key(provider, llm.api_key)
    if not api_key:
        raise ConfigurationError(
            f"Missing API key for provider '{provider}'. Set llm.api_key in config, "
            f"LLM_API_KEY, or the provider's key variable."
        )
    model = model_override or llm.model or DEFAULT_MODELS[provider]
    base_url = resolve_base_url(provider, llm.base_url)

    if provider == "anthropic":
        from switchboard.providers.anthropic import AnthropicProvider

        return AnthropicProvider(
            api_key=api_key, model=model, base_url=base_url,
            temperature=llm.temperature, max_tokens=llm.max_tokens,
        )

    if provider == "google":
        from switchboard.providers.google import GoogleProvider

        return GoogleProvider(
            api_key=api_key, model=model,
            temperature=llm.temperature, max_tokens=llm.max_tokens,
        )

    from switchboard.providers.openai import OpenAIProvider

    return OpenAIProvider(
        api_key=api_key, model=model, base_url=base_url,
        temperature=llm.temperature, max_tokens=llm.max_tokens,
        reasoning_effort=llm.reasoning_effort,
    )
