"""Ordered message store with change notification.

Hides how the transcript is held and how readers learn about changes.
All mutations are synchronous: under the single event loop no other code
can observe a half-applied append, update or reset.
"""

from collections.abc import Callable, Iterator
from dataclasses import dataclass
from enum import Enum
from typing import Any

from uuid_extensions import uuid7

from ..log import get_logger
from .models import Message, MessageStatus

logger = get_logger(__name__)

_PATCHABLE_FIELDS = frozenset({"text", "status"})


class TranscriptChange(str, Enum):
    APPENDED = "appended"
    UPDATED = "updated"
    RESET = "reset"


@dataclass(frozen=True)
class TranscriptEvent:
    """Notification delivered to transcript observers."""

    kind: TranscriptChange
    message: Message


TranscriptObserver = Callable[[TranscriptEvent], None]


def new_message_id() -> str:
    """Time-ordered id; never reused, so stale ids cannot hit new messages."""
    return str(uuid7())


class TranscriptStore:
    """Owns the ordered list of messages.

    Insertion order is display order. The only in-place change allowed is an
    update_by_id on an existing message, which keeps its position, id and
    timestamp.
    """

    def __init__(self, seed: Message | None = None) -> None:
        self._messages: list[Message] = []
        self._index: dict[str, int] = {}
        self._observers: list[TranscriptObserver] = []
        if seed is not None:
            self._insert(seed)

    def subscribe(self, observer: TranscriptObserver) -> Callable[[], None]:
        """Register an observer; returns a callable that unregisters it."""
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def _notify(self, kind: TranscriptChange, message: Message) -> None:
        event = TranscriptEvent(kind=kind, message=message)
        for observer in list(self._observers):
            try:
                observer(event)
            except Exception:
                logger.exception("Transcript observer %r failed on %s", observer, kind.value)

    def _insert(self, message: Message) -> Message:
        if message.id is None:
            message = message.model_copy(update={"id": new_message_id()})
        elif message.id in self._index:
            raise ValueError(f"Duplicate message id: {message.id}")
        self._index[message.id] = len(self._messages)
        self._messages.append(message)
        return message

    def append(self, message: Message) -> str:
        """Append a message, assigning an id when it has none.

        Returns:
            The id of the stored message
        """
        stored = self._insert(message)
        self._notify(TranscriptChange.APPENDED, stored)
        return stored.id

    def update_by_id(self, message_id: str, **patch: Any) -> bool:
        """Apply a partial update (text, status) to one message.

        Returns:
            True if a message with that id existed and was updated,
            False otherwise (e.g. it was discarded by a reset)
        """
        unknown = set(patch) - _PATCHABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot patch field(s): {', '.join(sorted(unknown))}")

        position = self._index.get(message_id)
        if position is None:
            return False

        current = self._messages[position]
        returning = "status" in patch and MessageStatus(patch["status"]) is MessageStatus.PENDING
        if returning and not current.is_pending:
            raise ValueError(f"Message {message_id} cannot return to pending")
        # Rebuild through validation so a patch cannot break message invariants.
        updated = Message.model_validate({**current.model_dump(), **patch})
        self._messages[position] = updated
        self._notify(TranscriptChange.UPDATED, updated)
        return True

    def reset(self, seed: Message) -> str:
        """Discard all messages and keep exactly ``seed``.

        Returns:
            The id of the seed message
        """
        self._messages = []
        self._index = {}
        stored = self._insert(seed)
        self._notify(TranscriptChange.RESET, stored)
        return stored.id

    def snapshot(self) -> tuple[Message, ...]:
        """Read-only ordered view of every message, unfiltered."""
        return tuple(self._messages)

    def get(self, message_id: str) -> Message | None:
        position = self._index.get(message_id)
        return None if position is None else self._messages[position]

    @property
    def pending(self) -> Message | None:
        """The placeholder awaiting a reply, if any."""
        for message in reversed(self._messages):
            if message.is_pending:
                return message
        return None

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(self.snapshot())

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._index
