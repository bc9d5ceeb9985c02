"""Transport boundary between the conversation engine and an LLM service.

The engine only ever needs one capability: given the prior turns and a new
user turn, produce reply text or fail. This module hides which provider
answers and how turns are framed for it.
"""

from abc import ABC, abstractmethod
from typing import Any

from .errors import EmptyReply
from .llm import ChatMessage, LLMProvider
from .log import get_logger

logger = get_logger(__name__)


class ChatTransport(ABC):
    """Abstract reply source for the ExchangeController."""

    @abstractmethod
    async def send_chat_request(self, history: list[ChatMessage], new_turn: str) -> str:
        """Send prior turns plus a new user turn and return the reply text.

        Args:
            history: Prior committed turns, oldest first
            new_turn: The user's new message

        Returns:
            Non-empty reply text

        Raises:
            TransportFailure: The attempt failed at the network/service level
            MalformedResponse: The service answered without a usable reply
        """

    async def close(self) -> None:
        """Release underlying resources."""

    async def __aenter__(self) -> "ChatTransport":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()


class LLMTransport(ChatTransport):
    """ChatTransport backed by an LLMProvider."""

    def __init__(
        self,
        provider: LLMProvider,
        system_prompt: str | None = None,
        temperature: float = 0.7,
        max_tokens: int | None = None,
        model: str | None = None,
    ) -> None:
        self._provider = provider
        self._system_prompt = system_prompt
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._model = model

    @property
    def provider(self) -> LLMProvider:
        return self._provider

    @property
    def model(self) -> str:
        return self._model or self._provider.model

    def build_messages(self, history: list[ChatMessage], new_turn: str) -> list[ChatMessage]:
        """Frame the turns for the provider: system prompt, history, new turn."""
        messages: list[ChatMessage] = []
        if self._system_prompt:
            messages.append(ChatMessage(role="system", content=self._system_prompt))
        messages.extend(history)
        messages.append(ChatMessage(role="user", content=new_turn))
        return messages

    async def send_chat_request(self, history: list[ChatMessage], new_turn: str) -> str:
        messages = self.build_messages(history, new_turn)
        logger.debug("Requesting reply from %s with %d turn(s)", self.model, len(messages))

        response = await self._provider.chat_completion(
            messages,
            model=self._model,
            temperature=self._temperature,
            max_tokens=self._max_tokens,
        )
        if not response.content:
            raise EmptyReply()

        if response.usage:
            logger.debug(
                "Reply received: %d prompt / %d completion tokens",
                response.usage.get("prompt_tokens", 0),
                response.usage.get("completion_tokens", 0),
            )
        return response.content

    async def close(self) -> None:
        await self._provider.close()
