from .base import LLMProvider
from .factory import SUPPORTED_PROVIDERS, create_llm_provider
from .models import ChatMessage, LLMResponse
from .providers import GeminiProvider, OpenAIProvider

__all__ = [
    "LLMProvider",
    "SUPPORTED_PROVIDERS",
    "create_llm_provider",
    "ChatMessage",
    "LLMResponse",
    "GeminiProvider",
    "OpenAIProvider",
]
