"""Engine integration for the TUI.

Hides the details of how the TUI receives updates from the engine:
transcript events and busy changes arrive as plain callbacks, log records
through a logging handler. Updates coming from a thread other than the
app's are marshalled with call_from_thread.
"""

import logging
import threading
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from ..engine import Session, TranscriptEvent
from ..log import ROOT_LOGGER

if TYPE_CHECKING:
    from textual.app import App

    from .widgets import ChatHistoryWidget, ChatInputBar, DebugPanel


def _call_thread_safe(app: "App | None", func: Any, *args: Any, **kwargs: Any) -> None:
    """Call a function in a thread-safe manner for UI updates."""
    if app is not None and app._thread_id != threading.get_ident():
        app.call_from_thread(func, *args, **kwargs)
    else:
        func(*args, **kwargs)


class SessionBridge:
    """Forwards Session changes to the chat widgets.

    Call attach() once the widgets are mounted and detach() on unmount.
    """

    def __init__(
        self,
        session: Session,
        history: "ChatHistoryWidget",
        input_bar: "ChatInputBar",
        app: "App | None" = None,
    ) -> None:
        self._session = session
        self.history = history
        self.input_bar = input_bar
        self.app = app
        self._unsubscribers: list[Callable[[], None]] = []

    def attach(self) -> None:
        """Render the current snapshot and start following changes."""
        self.history.load(self._session.transcript.snapshot())
        self.input_bar.set_busy(self._session.busy)
        self._unsubscribers = [
            self._session.transcript.subscribe(self.on_transcript_event),
            self._session.subscribe_busy(self.on_busy_changed),
        ]

    def detach(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    def on_transcript_event(self, event: TranscriptEvent) -> None:
        _call_thread_safe(self.app, self.history.apply, event)

    def on_busy_changed(self, busy: bool) -> None:
        _call_thread_safe(self.app, self.input_bar.set_busy, busy)


class PanelLogHandler(logging.Handler):
    """logging.Handler writing nexuschat records into the DebugPanel."""

    def __init__(self, panel: "DebugPanel", app: "App | None" = None) -> None:
        super().__init__(level=logging.DEBUG)
        self.panel = panel
        self.app = app

    def emit(self, record: logging.LogRecord) -> None:
        try:
            component = record.name
            if component.startswith(f"{ROOT_LOGGER}."):
                component = component[len(ROOT_LOGGER) + 1:]
            _call_thread_safe(
                self.app, self.panel.add_entry, component, record.getMessage(), record.levelno
            )
        except Exception:
            self.handleError(record)
