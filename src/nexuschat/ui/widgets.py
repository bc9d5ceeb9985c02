"""Custom Textual widgets for the TUI.

Hides widget implementation details:
- Input history management and submit shortcuts
- Transcript rendering (placeholder, committed and failed messages)
- Log rendering and level filtering
"""

from datetime import datetime

from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.message import Message as TextualMessage
from textual.widgets import Button, Markdown, RichLog, Static, TextArea

from ..engine import Message, Sender, TranscriptChange, TranscriptEvent
from .config import (
    FAILED_MARKER,
    INPUT_HISTORY_MAX_SIZE,
    LOG_MAX_MESSAGE_LENGTH,
    LOG_TIMESTAMP_FORMAT,
    MESSAGE_TIMESTAMP_FORMAT,
    PLACEHOLDER_TEXT,
    LogLevel,
)


class MessageView(Vertical):
    """One transcript message: header line plus markdown body."""

    def __init__(self, message: Message, *args, **kwargs) -> None:
        role_class = "user-message" if message.sender is Sender.USER else "assistant-message"
        super().__init__(*args, classes=f"chat-message {role_class}", **kwargs)
        self._message = message
        self._header = Static(self._header_text(), classes="message-header")
        self._body = Markdown(self._body_text(), classes="message-content")

    @property
    def message(self) -> Message:
        return self._message

    def compose(self):
        yield self._header
        yield self._body

    def on_mount(self) -> None:
        self._apply_status_classes()

    def _header_text(self) -> str:
        msg = self._message
        prefix = "> You" if msg.sender is Sender.USER else "< Assistant"
        text = f"{prefix} [{msg.timestamp.strftime(MESSAGE_TIMESTAMP_FORMAT)}]"
        if msg.is_failed:
            text += f"  {FAILED_MARKER}"
        return text

    def _body_text(self) -> str:
        return f"*{PLACEHOLDER_TEXT}*" if self._message.is_pending else self._message.text

    def _apply_status_classes(self) -> None:
        self.set_class(self._message.is_pending, "pending")
        self.set_class(self._message.is_failed, "failed")

    def refresh_message(self, message: Message) -> None:
        """Show the resolved state of the same message."""
        self._message = message
        self._header.update(self._header_text())
        self._body.update(self._body_text())
        self._apply_status_classes()


class ChatHistoryWidget(VerticalScroll):
    """Scrollable view of the transcript, driven by transcript events."""

    BORDER_TITLE = "Chat"
    BORDER_SUBTITLE = "Conversation history"
    ALLOW_MAXIMIZE = True
    ALLOW_SELECT = True

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._views: dict[str, MessageView] = {}

    @property
    def message_count(self) -> int:
        return len(self._views)

    def load(self, messages: tuple[Message, ...]) -> None:
        """Replace the display with a full snapshot."""
        self._views.clear()
        self.remove_children()
        for message in messages:
            self._mount_message(message)
        self._update_subtitle()

    def apply(self, event: TranscriptEvent) -> None:
        """Reflect one transcript change."""
        if event.kind is TranscriptChange.RESET:
            self.load((event.message,))
            return

        if event.kind is TranscriptChange.UPDATED:
            view = self._views.get(event.message.id)
            if view is not None:
                view.refresh_message(event.message)
        else:
            self._mount_message(event.message)

        self._update_subtitle()
        self.scroll_end(animate=False)

    def _mount_message(self, message: Message) -> None:
        view = MessageView(message)
        self._views[message.id] = view
        self.mount(view)

    def _update_subtitle(self) -> None:
        self.border_subtitle = f"{len(self._views)} messages"


class ChatInputBar(Horizontal):
    """Chat input bar with TextArea and Send button."""

    class Submitted(TextualMessage):
        """Message sent when user submits input."""

        def __init__(self, value: str) -> None:
            super().__init__()
            self.value = value

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._history: list[str] = []
        self._history_index: int = -1

    def compose(self):
        text_area = TextArea(id="chat-input", show_line_numbers=False)
        text_area.cursor_blink = False
        yield text_area
        yield Button("Send", id="send-btn", variant="success").with_tooltip(
            "Submit message (Ctrl+J)"
        )

    def on_mount(self) -> None:
        text_area = self.query_one("#chat-input", TextArea)
        text_area.focus()
        text_area.highlight_cursor_line = False

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "send-btn":
            self._submit()

    def on_key(self, event) -> None:
        """Handle keyboard shortcuts.

        Note: ctrl+enter cannot work in terminals (terminal doesn't pass
        ctrl/shift modifiers with Enter). Use ctrl+j as the submit shortcut.
        """
        if event.key == "ctrl+j":
            self._submit()
            event.prevent_default()
            event.stop()
        elif event.key == "up" and self._is_cursor_at_start():
            self._navigate_history(-1)
            event.prevent_default()
            event.stop()
        elif event.key == "down" and self._is_cursor_at_end():
            self._navigate_history(1)
            event.prevent_default()
            event.stop()

    def _is_cursor_at_start(self) -> bool:
        text_area = self.query_one("#chat-input", TextArea)
        return text_area.cursor_location == (0, 0)

    def _is_cursor_at_end(self) -> bool:
        text_area = self.query_one("#chat-input", TextArea)
        lines = text_area.text.split("\n")
        last_row = len(lines) - 1
        last_col = len(lines[-1]) if lines else 0
        return text_area.cursor_location == (last_row, last_col)

    def _navigate_history(self, direction: int) -> None:
        if not self._history:
            return
        text_area = self.query_one("#chat-input", TextArea)
        if direction < 0:  # Up
            if self._history_index == -1:
                self._history_index = len(self._history) - 1
            elif self._history_index > 0:
                self._history_index -= 1
        else:  # Down
            if self._history_index < len(self._history) - 1:
                self._history_index += 1
            else:
                self._history_index = -1
                text_area.text = ""
                return
        text_area.text = self._history[self._history_index]

    def _submit(self) -> None:
        if self.disabled:
            return
        text_area = self.query_one("#chat-input", TextArea)
        value = text_area.text.strip()
        if value:
            if not self._history or self._history[-1] != value:
                self._history.append(value)
                del self._history[:-INPUT_HISTORY_MAX_SIZE]
            self._history_index = -1
            text_area.text = ""
            self.post_message(self.Submitted(value))

    def set_busy(self, busy: bool) -> None:
        """Disable input while an exchange is in flight."""
        self.disabled = busy
        self.set_class(busy, "busy")
        if not busy:
            self.focus_input()

    def focus_input(self) -> None:
        """Focus the text input."""
        self.query_one("#chat-input", TextArea).focus()


class DebugPanel(RichLog):
    """Log panel for real-time tracing with level filtering.

    Shows timestamped records from the nexuschat loggers.
    Hidden by default, shown with --log-level flag or toggled with Ctrl+D.
    """

    BORDER_TITLE = "Log"
    BORDER_SUBTITLE = "Trace log"

    def __init__(self, *args, log_level: int = LogLevel.INFO, **kwargs) -> None:
        super().__init__(
            *args,
            markup=True,
            highlight=False,
            auto_scroll=True,
            wrap=False,
            **kwargs
        )
        self._log_level = log_level

    @property
    def log_level(self) -> int:
        """Current log level threshold."""
        return self._log_level

    @log_level.setter
    def log_level(self, level: int) -> None:
        """Set log level threshold."""
        self._log_level = level
        self._update_subtitle()

    def _update_subtitle(self) -> None:
        """Update subtitle to show current log level."""
        if self.display:
            self.border_subtitle = f"Level: {LogLevel.name(self._log_level)}"
        else:
            self.border_subtitle = "Hidden"

    def on_mount(self) -> None:
        """Hide by default."""
        self.display = False

    def add_entry(self, component: str, message: str, level: int = LogLevel.DEBUG) -> None:
        """Add a log entry if it meets the current level threshold.

        Args:
            component: Logger name relative to the package (engine.retry, ...)
            message: Log message
            level: Log level (LogLevel.DEBUG, INFO, WARNING, ERROR)
        """
        if level < self._log_level:
            return

        from rich.markup import escape

        timestamp = datetime.now().strftime(LOG_TIMESTAMP_FORMAT)
        level_colors = {
            LogLevel.DEBUG: "dim white",
            LogLevel.INFO: "cyan",
            LogLevel.WARNING: "yellow",
            LogLevel.ERROR: "red",
        }
        level_name = LogLevel.name(level)
        level_color = level_colors.get(getattr(LogLevel, level_name, level), "white")

        if len(message) > LOG_MAX_MESSAGE_LENGTH:
            message = message[:LOG_MAX_MESSAGE_LENGTH] + "..."

        self.write(
            f"[dim]{timestamp}[/] "
            f"[{level_color}]{level_name:<5}[/] "
            f"[magenta]\\[{escape(component)}][/] {escape(message)}"
        )

    def show(self) -> None:
        """Show the log panel."""
        self.display = True
        self._update_subtitle()

    def hide(self) -> None:
        """Hide the log panel."""
        self.display = False
        self.border_subtitle = "Hidden"

    def toggle(self) -> bool:
        """Toggle visibility. Returns new state."""
        if self.display:
            self.hide()
            return False
        self.show()
        return True
