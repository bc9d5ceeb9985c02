"""Data models for the conversation engine.

Hides the internal representation of transcript messages and of the request
derived from them. Messages are frozen; the single allowed transition
(Pending -> Committed/Failed) replaces the stored copy in place.
"""

from collections.abc import Iterable
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..llm.models import ChatMessage


class Sender(str, Enum):
    """Who authored a message."""

    USER = "user"
    ASSISTANT = "assistant"


class MessageStatus(str, Enum):
    """Lifecycle state of a message."""

    COMMITTED = "committed"
    PENDING = "pending"
    FAILED = "failed"


class Message(BaseModel):
    """A single transcript entry.

    Attributes:
        id: Opaque, creation-ordered identifier; assigned by the store when None
        sender: User or Assistant
        text: Content; empty only while pending
        timestamp: Creation time, fixed at insertion
        status: Committed, Pending (the placeholder) or Failed
    """

    model_config = ConfigDict(frozen=True)

    id: str | None = Field(default=None, description="Unique, creation-ordered identifier")
    sender: Sender
    text: str = ""
    timestamp: datetime = Field(default_factory=datetime.now)
    status: MessageStatus = MessageStatus.COMMITTED

    @model_validator(mode="after")
    def _text_required_unless_pending(self) -> "Message":
        if self.status is not MessageStatus.PENDING and not self.text:
            raise ValueError("text may only be empty while the message is pending")
        return self

    @classmethod
    def user(cls, text: str) -> "Message":
        return cls(sender=Sender.USER, text=text)

    @classmethod
    def assistant(cls, text: str) -> "Message":
        return cls(sender=Sender.ASSISTANT, text=text)

    @classmethod
    def placeholder(cls) -> "Message":
        """Pending assistant message shown while a reply is awaited."""
        return cls(sender=Sender.ASSISTANT, status=MessageStatus.PENDING)

    @property
    def is_pending(self) -> bool:
        return self.status is MessageStatus.PENDING

    @property
    def is_failed(self) -> bool:
        return self.status is MessageStatus.FAILED

    def to_turn(self) -> ChatMessage:
        """Role-tagged turn for the transport."""
        return ChatMessage(role=self.sender.value, content=self.text)


class ExchangeRequest(BaseModel):
    """What is sent to the transport for one exchange.

    history holds prior committed turns only: failed and pending messages
    never reach the service.
    """

    model_config = ConfigDict(frozen=True)

    history: list[ChatMessage] = Field(default_factory=list)
    new_turn: str

    @classmethod
    def build(
        cls,
        snapshot: Iterable[Message],
        new_turn: str,
        max_history: int | None = None
    ) -> "ExchangeRequest":
        """Derive a request from a transcript snapshot.

        Args:
            snapshot: Transcript as it stood before the new user message
            new_turn: The user's text, sent as the final turn
            max_history: Keep only the most recent N history turns (None = all)

        Returns:
            ExchangeRequest with committed history and the new turn
        """
        history = [
            msg.to_turn()
            for msg in snapshot
            if msg.status is MessageStatus.COMMITTED
        ]
        if max_history is not None:
            history = history[-max_history:] if max_history > 0 else []
        return cls(history=history, new_turn=new_turn)

    def turns(self) -> list[ChatMessage]:
        """History followed by the new user turn."""
        return [*self.history, ChatMessage(role=Sender.USER.value, content=self.new_turn)]
