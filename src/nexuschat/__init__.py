"""
nexuschat: an interactive conversational client for LLM chat services.

The package is organized around the conversation session engine
(``nexuschat.engine``): a transcript store, a single-flight exchange
controller and a generic retry policy. Providers, configuration and the
terminal front ends sit around it.
"""

__version__ = "0.1.0"

from .engine import (
    ExchangeController,
    ExchangeRequest,
    Message,
    MessageStatus,
    RetryPolicy,
    Sender,
    Session,
    TranscriptStore,
)
from .errors import (
    ChatError,
    EmptyReply,
    InvalidInput,
    MalformedResponse,
    RetryExhausted,
    TransportFailure,
)
from .transport import ChatTransport, LLMTransport

__all__ = [
    "ChatError",
    "ChatTransport",
    "EmptyReply",
    "ExchangeController",
    "ExchangeRequest",
    "InvalidInput",
    "LLMTransport",
    "MalformedResponse",
    "Message",
    "MessageStatus",
    "RetryExhausted",
    "RetryPolicy",
    "Sender",
    "Session",
    "TranscriptStore",
    "TransportFailure",
]
