"""Google Gemini LLM provider implementation.

Uses the official Google GenAI SDK for async chat completions.
Reference: https://github.com/googleapis/python-genai

Note: Gemini can return responses without candidates (safety filtering or
service issues). Those surface as EmptyReply; whether to ask again is the
caller's RetryPolicy decision, not this provider's.
"""

from typing import Any

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from ...errors import EmptyReply, TransportFailure
from ..base import LLMProvider
from ..models import ChatMessage, LLMResponse

# Default safety settings - relaxed so ordinary chat is not blocked
DEFAULT_SAFETY_SETTINGS = [
    types.SafetySetting(category="HARM_CATEGORY_HARASSMENT", threshold="BLOCK_ONLY_HIGH"),
    types.SafetySetting(category="HARM_CATEGORY_HATE_SPEECH", threshold="BLOCK_ONLY_HIGH"),
    types.SafetySetting(category="HARM_CATEGORY_SEXUALLY_EXPLICIT", threshold="BLOCK_ONLY_HIGH"),
    types.SafetySetting(category="HARM_CATEGORY_DANGEROUS_CONTENT", threshold="BLOCK_ONLY_HIGH"),
]


def _translate_error(error: Exception) -> TransportFailure:
    """Map GenAI SDK and httpx errors onto the transport taxonomy."""
    if isinstance(error, genai_errors.APIError):
        code = getattr(error, "code", None)
        retryable = isinstance(error, genai_errors.ServerError) or code == 429
        return TransportFailure(
            f"HTTP {code}: {getattr(error, 'message', None) or error}",
            retryable=retryable,
            status_code=code,
        )
    return TransportFailure(str(error) or type(error).__name__, retryable=True)


class GeminiProvider(LLMProvider):
    """Google Gemini LLM provider implementation.

    Hidden design decisions:
    - Google GenAI client initialization
    - Message format conversion (assistant turns become 'model' turns)
    - Relaxed safety settings
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.5-flash",
        **client_kwargs: Any
    ):
        """Initialize Gemini provider.

        Args:
            api_key: Google AI API key
            model: Default model (gemini-2.5-flash, gemini-2.5-pro, ...)
            **client_kwargs: Additional kwargs for Client
        """
        self._model = model
        self._client = genai.Client(api_key=api_key, **client_kwargs)

    @property
    def model(self) -> str:
        """Get the default model name."""
        return self._model

    def _convert_messages(self, messages: list[ChatMessage]) -> tuple[str | None, list[types.Content]]:
        """Convert ChatMessage list to Gemini format.

        Args:
            messages: List of turns

        Returns:
            Tuple of (system_instruction, contents)
        """
        system_instruction = None
        contents = []

        for msg in messages:
            if msg.role == "system":
                system_instruction = msg.content
            elif msg.role == "assistant":
                contents.append(types.Content(
                    role="model",
                    parts=[types.Part(text=msg.content)]
                ))
            else:
                contents.append(types.Content(
                    role="user",
                    parts=[types.Part(text=msg.content)]
                ))

        return system_instruction, contents

    def _extract_content(self, response: Any) -> str:
        """Extract text from candidates[0].content.parts.

        Raises:
            EmptyReply: No candidate carried any text
        """
        candidates = getattr(response, "candidates", None)
        if candidates:
            content = candidates[0].content
            if content and content.parts:
                texts = [part.text for part in content.parts if getattr(part, "text", None)]
                if texts:
                    return "".join(texts)
        raise EmptyReply("candidates[0].content.parts has no text")

    async def chat_completion(
        self,
        messages: list[ChatMessage],
        model: str | None = None,
        temperature: float = 0.7,
        max_tokens: int | None = None,
        **kwargs: Any
    ) -> LLMResponse:
        """Generate a chat completion using Google Gemini.

        Args:
            messages: Conversation turns
            model: Model to use (overrides default)
            temperature: Sampling temperature
            max_tokens: Maximum tokens to generate
            **kwargs: Additional Gemini-specific parameters

        Returns:
            LLMResponse with generated content
        """
        model_to_use = model or self._model
        system_instruction, contents = self._convert_messages(messages)

        config = types.GenerateContentConfig(
            temperature=temperature,
            system_instruction=system_instruction,
            safety_settings=DEFAULT_SAFETY_SETTINGS,
            **kwargs
        )
        if max_tokens is not None:
            config.max_output_tokens = max_tokens

        try:
            response = await self._client.aio.models.generate_content(
                model=model_to_use,
                contents=contents,
                config=config
            )
        except (genai_errors.APIError, httpx.TransportError) as e:
            raise _translate_error(e) from e

        content = self._extract_content(response)

        usage = None
        if response.usage_metadata:
            usage = {
                "prompt_tokens": response.usage_metadata.prompt_token_count or 0,
                "completion_tokens": response.usage_metadata.candidates_token_count or 0,
                "total_tokens": response.usage_metadata.total_token_count or 0
            }

        return LLMResponse(
            content=content,
            model=model_to_use,
            usage=usage
        )

    async def close(self) -> None:
        """Close the Gemini client's async transport."""
        aclose = getattr(self._client.aio, "aclose", None)
        if aclose is not None:
            await aclose()
