from typing import Any

from .base import LLMProvider
from .providers import GeminiProvider, OpenAIProvider
from .providers.openai import (
    DEEPSEEK_BASE_URL,
    DEEPSEEK_DEFAULT_MODEL,
    OPENROUTER_BASE_URL,
    OPENROUTER_DEFAULT_MODEL,
)

# name -> (default model, default base_url)
SUPPORTED_PROVIDERS: dict[str, tuple[str, str | None]] = {
    "openrouter": (OPENROUTER_DEFAULT_MODEL, OPENROUTER_BASE_URL),
    "openai": ("gpt-4o-mini", None),
    "deepseek": (DEEPSEEK_DEFAULT_MODEL, DEEPSEEK_BASE_URL),
    "gemini": ("gemini-2.5-flash", None),
}


def create_llm_provider(provider: str, **config: Any) -> LLMProvider:
    """Create an LLM provider instance.

    This factory function hides the instantiation logic for different providers.

    Args:
        provider: Provider type ('openrouter', 'openai', 'deepseek', 'gemini')
        **config: Provider-specific configuration
            For OpenRouter / OpenAI / DeepSeek:
                - api_key: str (required)
                - model: str (provider default when omitted or None)
                - base_url: str | None (provider default when omitted or None)
            For Gemini:
                - api_key: str (required)
                - model: str (default: 'gemini-2.5-flash')

    Returns:
        Initialized LLM provider instance

    Raises:
        ValueError: If provider type is not supported
        TypeError: If required configuration is missing

    Examples:
        >>> provider = create_llm_provider("openrouter", api_key="sk-or-...")

        >>> provider = create_llm_provider(
        ...     "gemini",
        ...     api_key="...",
        ...     model="gemini-2.5-flash"
        ... )
    """
    provider_lower = provider.lower()

    if provider_lower not in SUPPORTED_PROVIDERS:
        raise ValueError(
            f"Unsupported provider: {provider}. "
            f"Supported providers: {', '.join(repr(p) for p in SUPPORTED_PROVIDERS)}"
        )

    if not config.get("api_key"):
        raise TypeError(f"{provider_lower} provider requires 'api_key' in config")

    default_model, default_base_url = SUPPORTED_PROVIDERS[provider_lower]
    if not config.get("model"):
        config["model"] = default_model

    if provider_lower == "gemini":
        config.pop("base_url", None)
        return GeminiProvider(**config)

    if not config.get("base_url"):
        config["base_url"] = default_base_url
    return OpenAIProvider(**config)
