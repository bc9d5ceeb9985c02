from typing import Any

import openai
from openai import AsyncOpenAI

from ...errors import EmptyReply, MalformedResponse, TransportFailure
from ..base import LLMProvider
from ..models import ChatMessage, LLMResponse

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
OPENROUTER_DEFAULT_MODEL = "meta-llama/llama-3.3-70b-instruct"
DEEPSEEK_BASE_URL = "https://api.deepseek.com"
DEEPSEEK_DEFAULT_MODEL = "deepseek-chat"


def _translate_error(error: openai.OpenAIError) -> TransportFailure:
    """Map an OpenAI SDK error onto the transport taxonomy.

    Connection problems, timeouts, rate limits and 5xx answers are worth
    another attempt; any other status (auth, bad request) is not.
    """
    if isinstance(error, openai.APIConnectionError):
        return TransportFailure(str(error) or "connection error", retryable=True)
    if isinstance(error, openai.APIStatusError):
        status = error.status_code
        retryable = status == 429 or status >= 500
        return TransportFailure(
            f"HTTP {status}: {error.message}",
            retryable=retryable,
            status_code=status,
        )
    return TransportFailure(str(error), retryable=False)


def _extract_reply(completion: Any) -> str:
    """Pull choices[0].message.content out of a completion.

    OpenAI-compatible gateways (OpenRouter in particular) may answer 200 with
    an ``error`` object instead of choices; that is a malformed reply, not an
    empty string.
    """
    error = getattr(completion, "error", None)
    if error:
        message = error.get("message") if isinstance(error, dict) else str(error)
        raise MalformedResponse(message or "API error")

    choices = getattr(completion, "choices", None)
    if not choices:
        raise EmptyReply("response has no choices")

    message = getattr(choices[0], "message", None)
    content = getattr(message, "content", None) if message is not None else None
    if not content:
        raise EmptyReply("choices[0].message.content is missing")
    return content


class OpenAIProvider(LLMProvider):
    """OpenAI-compatible LLM provider implementation.

    Also serves OpenRouter and DeepSeek, which speak the same Chat
    Completions protocol behind a different base_url.

    Hidden design decisions:
    - OpenAI API client initialization
    - Message format conversion
    - Error translation (SDK exceptions -> TransportFailure / EmptyReply)
    - Authentication mechanism
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        base_url: str | None = None,
        organization: str | None = None,
        **client_kwargs: Any
    ):
        """Initialize OpenAI provider.

        Args:
            api_key: API key for the endpoint
            model: Default model to use
            base_url: Optional custom API base URL (OpenRouter, DeepSeek, ...)
            organization: Optional organization ID
            **client_kwargs: Additional kwargs for AsyncOpenAI client
        """
        self._model = model
        self._base_url = base_url
        # Retries are owned by RetryPolicy; the SDK must not retry on its own.
        client_kwargs.setdefault("max_retries", 0)
        self._client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            organization=organization,
            **client_kwargs
        )

    @property
    def model(self) -> str:
        """Get the default model name."""
        return self._model

    @property
    def base_url(self) -> str | None:
        return self._base_url

    async def chat_completion(
        self,
        messages: list[ChatMessage],
        model: str | None = None,
        temperature: float = 0.7,
        max_tokens: int | None = None,
        **kwargs: Any
    ) -> LLMResponse:
        """Generate a chat completion.

        Args:
            messages: Conversation turns
            model: Model to use (overrides default)
            temperature: Sampling temperature
            max_tokens: Maximum tokens to generate
            **kwargs: Additional OpenAI-specific parameters

        Returns:
            LLMResponse with generated content

        Raises:
            TransportFailure: SDK raised a connection or status error
            MalformedResponse: The body carried an error object
            EmptyReply: The body had no reply text
        """
        model_to_use = model or self._model

        openai_messages = [
            {"role": msg.role, "content": msg.content}
            for msg in messages
        ]

        # Build request params, only including max_tokens if set
        request_params: dict[str, Any] = {
            "model": model_to_use,
            "messages": openai_messages,
            "temperature": temperature,
            **kwargs
        }
        if max_tokens is not None:
            request_params["max_tokens"] = max_tokens

        try:
            completion = await self._client.chat.completions.create(**request_params)
        except openai.OpenAIError as e:
            raise _translate_error(e) from e

        content = _extract_reply(completion)

        usage = None
        if getattr(completion, "usage", None):
            usage = {
                "prompt_tokens": completion.usage.prompt_tokens,
                "completion_tokens": completion.usage.completion_tokens,
                "total_tokens": completion.usage.total_tokens
            }

        return LLMResponse(
            content=content,
            model=getattr(completion, "model", None) or model_to_use,
            usage=usage
        )

    async def close(self) -> None:
        """Close the OpenAI client.

        Note: Uses the OpenAI SDK's async context manager for proper cleanup.
        See: https://github.com/openai/openai-python#async-usage
        """
        await self._client.close()
