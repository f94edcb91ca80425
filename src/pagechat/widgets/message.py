"""Message bubble widget for transcript rendering."""

from __future__ import annotations

from typing import Any

from textual.widgets import Static

from ..transcript import ChatTurn, Transcript


class MessageBubble(Static):
    """Render a single chat turn with role and optional timestamp."""

    DEFAULT_CSS = """
    MessageBubble {
        height: auto;
    }
    """

    def __init__(
        self,
        turn: ChatTurn,
        transcript: Transcript,
        show_timestamp: bool = True,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.turn = turn
        self._transcript = transcript
        self.show_timestamp = show_timestamp
        self.add_class(f"message-{turn.role}")

    @property
    def role_prefix(self) -> str:
        return {"user": "You", "assistant": "Assistant"}.get(self.turn.role, "")

    @property
    def border_title_text(self) -> str:
        if not self.role_prefix:
            return ""
        if self.show_timestamp:
            return f"{self.role_prefix}  {self.turn.timestamp.strftime('%H:%M')}"
        return self.role_prefix

    def on_mount(self) -> None:
        self.refresh_turn()

    def refresh_turn(self) -> None:
        """Re-render the turn text through the transcript formatter."""
        self.border_title = self.border_title_text
        self.update(self._transcript.render(self.turn))
