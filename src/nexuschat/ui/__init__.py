"""Terminal UI module for nexuschat.

Provides a Textual-based TUI over the conversation engine.

Module structure (each module hides a design decision):
- config.py: Constants (log levels, display strings)
- widgets.py: Custom widgets (transcript view, input history, log rendering)
- styles.py: CSS styling (layout decisions)
- callbacks.py: Engine integration (how TUI receives updates)
- app.py: Application orchestration (user interaction flow)
"""

from .app import NexusChatApp, run_textual_tui
from .callbacks import PanelLogHandler, SessionBridge
from .config import LogLevel
from .widgets import ChatHistoryWidget, ChatInputBar, DebugPanel, MessageView

__all__ = [
    "ChatHistoryWidget",
    "ChatInputBar",
    "DebugPanel",
    "LogLevel",
    "MessageView",
    "NexusChatApp",
    "PanelLogHandler",
    "SessionBridge",
    "run_textual_tui",
]
