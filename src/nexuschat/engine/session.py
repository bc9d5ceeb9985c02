"""Process-lifetime conversation state.

A Session bundles the transcript with the busy flag that enforces
single-flight, plus a generation counter that lets late network results
recognize that the conversation they belonged to has been reset.
"""

from collections.abc import Callable

from ..log import get_logger
from .models import Message
from .transcript import TranscriptStore

logger = get_logger(__name__)

DEFAULT_GREETING = "Hello! I am your AI assistant. How can I help you today?"
DEFAULT_CLEARED_GREETING = "Chat cleared. What's on your mind?"

BusyObserver = Callable[[bool], None]


class Session:
    """One conversation: transcript, busy flag and reset generation."""

    def __init__(
        self,
        greeting: str = DEFAULT_GREETING,
        cleared_greeting: str = DEFAULT_CLEARED_GREETING,
    ) -> None:
        self._cleared_greeting = cleared_greeting
        self._busy = False
        self._generation = 0
        self._busy_observers: list[BusyObserver] = []
        self.transcript = TranscriptStore(seed=Message.assistant(greeting))

    @property
    def busy(self) -> bool:
        """True while an exchange is in flight."""
        return self._busy

    @property
    def generation(self) -> int:
        """Incremented on every reset."""
        return self._generation

    def set_busy(self, busy: bool) -> None:
        if busy == self._busy:
            return
        self._busy = busy
        for observer in list(self._busy_observers):
            try:
                observer(busy)
            except Exception:
                logger.exception("Busy observer %r failed", observer)

    def subscribe_busy(self, observer: BusyObserver) -> Callable[[], None]:
        """Register a busy-change observer; returns an unsubscribe callable."""
        self._busy_observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._busy_observers:
                self._busy_observers.remove(observer)

        return unsubscribe

    def reset(self) -> str:
        """Start over with a single assistant message.

        Safe while an exchange is in flight: the in-flight result will find
        its placeholder gone and be discarded.

        Returns:
            Id of the new seed message
        """
        self._generation += 1
        seed_id = self.transcript.reset(Message.assistant(self._cleared_greeting))
        self.set_busy(False)
        logger.info("Session reset (generation %d)", self._generation)
        return seed_id
