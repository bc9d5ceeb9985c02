"""Main Textual TUI application.

Orchestrates the UI components and hands user submissions to the
ExchangeController. Rendering follows the transcript: the app never edits
chat widgets directly, it only reacts to engine notifications.
"""

import asyncio
import logging

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.widgets import Footer, Header

from ..engine import ExchangeController
from ..log import ROOT_LOGGER
from .callbacks import PanelLogHandler, SessionBridge
from .config import LogLevel
from .styles import APP_CSS
from .widgets import ChatHistoryWidget, ChatInputBar, DebugPanel


class NexusChatApp(App):
    """Textual TUI for a single conversation."""

    CSS = APP_CSS
    TITLE = "Nexus AI"

    BINDINGS = [
        Binding("ctrl+c", "quit", "Quit"),
        Binding("ctrl+k", "new_chat", "New Chat", priority=True),
        Binding("ctrl+b", "toggle_maximize_chat", "Max Chat"),
        Binding("ctrl+d", "toggle_debug", "Log", priority=True),
    ]

    def __init__(
        self,
        controller: ExchangeController,
        model_name: str = "unknown",
        log_level: str | None = None,
        show_log: bool = False,
    ) -> None:
        super().__init__()
        self._controller = controller
        self._model_name = model_name
        self._log_level = log_level
        self._show_log = show_log
        self._bridge: SessionBridge | None = None
        self._log_handler: PanelLogHandler | None = None

    @property
    def controller(self) -> ExchangeController:
        return self._controller

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)
        yield ChatHistoryWidget(id="chat-history")
        yield DebugPanel(id="debug-panel")
        yield ChatInputBar(id="chat-input-bar")
        yield Footer()

    def on_mount(self) -> None:
        """Called when app is mounted."""
        self.sub_title = self._model_name

        log_panel = self.query_one("#debug-panel", DebugPanel)
        self._log_handler = PanelLogHandler(log_panel, app=self)
        package_logger = logging.getLogger(ROOT_LOGGER)
        package_logger.addHandler(self._log_handler)

        if self._log_level is not None:
            level = LogLevel.from_string(self._log_level)
            log_panel.log_level = level
            package_logger.setLevel(level)
        if self._show_log:
            log_panel.show()
            log_panel.add_entry(
                "tui", f"Log panel enabled with level: {LogLevel.name(log_panel.log_level)}", LogLevel.INFO
            )

        self._bridge = SessionBridge(
            self._controller.session,
            self.query_one("#chat-history", ChatHistoryWidget),
            self.query_one("#chat-input-bar", ChatInputBar),
            app=self,
        )
        self._bridge.attach()
        self.query_one("#chat-input-bar", ChatInputBar).focus_input()

    def on_unmount(self) -> None:
        """Stop following the session and release the log handler."""
        if self._bridge is not None:
            self._bridge.detach()
            self._bridge = None
        if self._log_handler is not None:
            logging.getLogger(ROOT_LOGGER).removeHandler(self._log_handler)
            self._log_handler = None

    def on_chat_input_bar_submitted(self, event: ChatInputBar.Submitted) -> None:
        """Handle user input submission."""
        if self._controller.send(event.value) is None:
            self.notify("Wait for the current reply to finish", severity="warning", timeout=2)

    def action_new_chat(self) -> None:
        """Start over with a fresh conversation."""
        self._controller.reset()
        self.notify("Chat cleared", timeout=2)

    def action_toggle_debug(self) -> None:
        """Toggle the log panel visibility."""
        log_panel = self.query_one("#debug-panel", DebugPanel)
        is_visible = log_panel.toggle()
        self.notify(f"Log panel {'shown' if is_visible else 'hidden'}", timeout=2)

    def action_toggle_maximize_chat(self) -> None:
        """Toggle maximize for chat panel."""
        chat = self.query_one("#chat-history", ChatHistoryWidget)
        if self.screen.maximized is chat:
            self.screen.minimize()
        else:
            self.screen.maximize(chat)


async def run_textual_tui(
    controller: ExchangeController,
    model_name: str = "unknown",
    log_level: str | None = None,
    show_log: bool = False,
) -> None:
    """Run the Textual TUI.

    Args:
        controller: Controller driving the conversation
        model_name: Shown as the app subtitle
        log_level: Level for the package logger and log panel (debug/info/warning/error)
        show_log: Open the log panel at startup (Ctrl+D toggles it)
    """
    app = NexusChatApp(controller, model_name=model_name, log_level=log_level, show_log=show_log)
    try:
        await app.run_async()
    except (KeyboardInterrupt, asyncio.CancelledError):
        pass
