"""Status bar widget for bridge, mode, model and chat telemetry."""

from __future__ import annotations

from textual import events
from textual.app import ComposeResult
from textual.message import Message
from textual.widgets import Label, Static

from ..context import ShellContext
from ..state import AnswerMode, BridgeStatus


class StatusBar(Static):
    """Render compact runtime status information.

    Segments (left to right):
        🟢 bridge  |  online  |  Model: openrouter:...  |  Page: ready  |  Ready
    """

    DEFAULT_CSS = """
    StatusBar {
        layout: horizontal;
        height: auto;
    }
    StatusBar Label {
        margin-right: 1;
    }
    StatusBar .status-error {
        color: $error;
    }
    StatusBar .status-processing {
        color: $warning;
    }
    """

    class ModeToggleRequested(Message):
        """Posted when the mode segment is clicked."""

    def compose(self) -> ComposeResult:
        yield Label("🟡 bridge", id="status_bridge")
        yield Label("|")
        yield Label("online", id="status_mode")
        yield Label("|")
        yield Label("Model: —", id="status_model")
        yield Label("|")
        yield Label("Page: ready", id="status_page")
        yield Label("|")
        yield Label("Ready", id="status_chat")

    def set_status(self, context: ShellContext) -> None:
        icon = {
            BridgeStatus.READY: "🟢",
            BridgeStatus.DEGRADED: "🔴",
        }.get(context.bridge_status, "🟡")
        self.query_one("#status_bridge", Label).update(f"{icon} bridge")
        self.query_one("#status_mode", Label).update("local" if context.mode == AnswerMode.LOCAL else "online")
        self.query_one("#status_model", Label).update(f"Model: {context.current_model or '—'}")
        self.query_one("#status_page", Label).update(f"Page: {context.page_status}")
        chat = self.query_one("#status_chat", Label)
        chat.update(context.chat_status)
        chat.set_class(context.chat_status_kind == "error", "status-error")
        chat.set_class(context.chat_status_kind == "processing", "status-processing")

    def on_click(self, event: events.Click) -> None:
        event.stop()
        self.post_message(self.ModeToggleRequested())
