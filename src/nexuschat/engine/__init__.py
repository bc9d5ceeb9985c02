"""Conversation session engine.

Module structure (each module hides a design decision):
- models.py: Message, Sender, MessageStatus, ExchangeRequest
- transcript.py: ordered message store and change notification
- retry.py: bounded retry with delay, independent of chat semantics
- session.py: transcript + busy flag + reset generation
- controller.py: one send/receive cycle and failure absorption
"""

from .controller import DEFAULT_FALLBACK_TEXT, ExchangeController
from .models import ExchangeRequest, Message, MessageStatus, Sender
from .retry import Backoff, RetryPolicy, is_retryable
from .session import DEFAULT_CLEARED_GREETING, DEFAULT_GREETING, Session
from .transcript import (
    TranscriptChange,
    TranscriptEvent,
    TranscriptObserver,
    TranscriptStore,
)

__all__ = [
    "DEFAULT_CLEARED_GREETING",
    "DEFAULT_FALLBACK_TEXT",
    "DEFAULT_GREETING",
    "Backoff",
    "ExchangeController",
    "ExchangeRequest",
    "Message",
    "MessageStatus",
    "RetryPolicy",
    "Sender",
    "Session",
    "TranscriptChange",
    "TranscriptEvent",
    "TranscriptObserver",
    "TranscriptStore",
    "is_retryable",
]
