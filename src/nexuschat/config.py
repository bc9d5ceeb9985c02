"""Runtime configuration.

Settings come from the environment (a ``.env`` file is loaded first) and can
be overridden per call, which is how CLI options take precedence.

Environment variables:
    NEXUSCHAT_PROVIDER: openrouter (default), openai, deepseek, gemini
    OPENROUTER_API_KEY / OPENAI_API_KEY / DEEPSEEK_API_KEY / GEMINI_API_KEY
    NEXUSCHAT_API_KEY: overrides the provider-specific key
    NEXUSCHAT_MODEL: model name (provider default when unset)
    NEXUSCHAT_BASE_URL: custom endpoint for OpenAI-compatible providers
    NEXUSCHAT_MAX_ATTEMPTS: attempts per exchange (default: 3)
    NEXUSCHAT_RETRY_DELAY: seconds between attempts (default: 1.0)
    NEXUSCHAT_BACKOFF: fixed (default) or exponential
    NEXUSCHAT_MAX_HISTORY: most recent turns sent as context (unset = all)
    NEXUSCHAT_SYSTEM_PROMPT: optional system instruction
    NEXUSCHAT_TEMPERATURE: sampling temperature (default: 0.7)
    NEXUSCHAT_MAX_TOKENS: reply token limit (unset = provider default)
    NEXUSCHAT_LOG_LEVEL: DEBUG, INFO, WARNING (default), ERROR
"""

import os
from typing import Any, Literal

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

from .engine.controller import DEFAULT_FALLBACK_TEXT
from .engine.session import DEFAULT_CLEARED_GREETING, DEFAULT_GREETING
from .errors import ConfigError
from .llm import SUPPORTED_PROVIDERS

API_KEY_VARIABLES = {
    "openrouter": "OPENROUTER_API_KEY",
    "openai": "OPENAI_API_KEY",
    "deepseek": "DEEPSEEK_API_KEY",
    "gemini": "GEMINI_API_KEY",
}

_ENV_FIELDS = {
    "provider": "NEXUSCHAT_PROVIDER",
    "model": "NEXUSCHAT_MODEL",
    "base_url": "NEXUSCHAT_BASE_URL",
    "max_attempts": "NEXUSCHAT_MAX_ATTEMPTS",
    "retry_delay": "NEXUSCHAT_RETRY_DELAY",
    "backoff": "NEXUSCHAT_BACKOFF",
    "max_history": "NEXUSCHAT_MAX_HISTORY",
    "system_prompt": "NEXUSCHAT_SYSTEM_PROMPT",
    "temperature": "NEXUSCHAT_TEMPERATURE",
    "max_tokens": "NEXUSCHAT_MAX_TOKENS",
    "log_level": "NEXUSCHAT_LOG_LEVEL",
}


class Settings(BaseModel):
    """Validated configuration for one chat client."""

    provider: str = Field(default="openrouter", description="LLM provider name")
    api_key: str | None = Field(default=None, repr=False)
    model: str | None = None
    base_url: str | None = None
    max_attempts: int = Field(default=3, ge=1)
    retry_delay: float = Field(default=1.0, ge=0)
    backoff: Literal["fixed", "exponential"] = "fixed"
    max_history: int | None = Field(default=None, ge=0)
    system_prompt: str | None = None
    temperature: float = Field(default=0.7, ge=0, le=2)
    max_tokens: int | None = Field(default=None, ge=1)
    log_level: str = "WARNING"
    greeting: str = Field(default=DEFAULT_GREETING, min_length=1)
    cleared_greeting: str = Field(default=DEFAULT_CLEARED_GREETING, min_length=1)
    fallback_text: str = Field(default=DEFAULT_FALLBACK_TEXT, min_length=1)

    @field_validator("provider")
    @classmethod
    def _known_provider(cls, value: str) -> str:
        value = value.lower()
        if value in SUPPORTED_PROVIDERS:
            return value
        raise ValueError(
            f"unknown provider {value!r}; expected one of {', '.join(SUPPORTED_PROVIDERS)}"
        )

    @field_validator("backoff", mode="before")
    @classmethod
    def _lower_backoff(cls, value: Any) -> Any:
        return value.lower() if isinstance(value, str) else value

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_log_level(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value

    @property
    def resolved_model(self) -> str:
        return self.model or SUPPORTED_PROVIDERS[self.provider][0]

    def provider_config(self) -> dict[str, Any]:
        """Keyword arguments for create_llm_provider.

        Raises:
            ConfigError: No API key is configured for the provider
        """
        if not self.api_key:
            raise ConfigError(
                f"{API_KEY_VARIABLES[self.provider]} not set; "
                f"the {self.provider} provider needs an API key"
            )
        config: dict[str, Any] = {"api_key": self.api_key, "model": self.model}
        if self.base_url:
            config["base_url"] = self.base_url
        return config


def _read_environment(provider_override: str | None) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for field, variable in _ENV_FIELDS.items():
        raw = os.getenv(variable)
        if raw is not None and raw.strip() != "":
            values[field] = raw.strip()

    provider = (provider_override or values.get("provider") or "openrouter").lower()
    api_key = os.getenv("NEXUSCHAT_API_KEY") or os.getenv(API_KEY_VARIABLES.get(provider, ""), "")
    if api_key:
        values["api_key"] = api_key
    return values


def load_settings(load_env_file: bool = True, **overrides: Any) -> Settings:
    """Build Settings from the environment, then apply explicit overrides.

    Overrides whose value is None are ignored, so unset CLI options fall
    through to the environment.

    Raises:
        ConfigError: A value failed validation
    """
    if load_env_file:
        load_dotenv()

    explicit = {key: value for key, value in overrides.items() if value is not None}
    values = _read_environment(explicit.get("provider"))
    values.update(explicit)

    try:
        return Settings(**values)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ConfigError(f"Invalid configuration: {problems}") from e
