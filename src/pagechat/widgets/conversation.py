"""Scrollable transcript view widget."""

from __future__ import annotations

from textual.containers import VerticalScroll

from ..transcript import ChatTurn, Transcript
from .message import MessageBubble


class ConversationView(VerticalScroll):
    """A scrollable container that hosts one bubble per chat turn."""

    def __init__(self, transcript: Transcript, show_timestamps: bool = True, **kwargs) -> None:
        super().__init__(**kwargs)
        self._transcript = transcript
        self._show_timestamps = show_timestamps
        self._bubbles: dict[int, MessageBubble] = {}

    async def show_turn(self, turn: ChatTurn) -> None:
        """Mount a bubble for a new turn or re-render an existing one."""
        bubble = self._bubbles.get(id(turn))
        if bubble is None:
            bubble = MessageBubble(turn, self._transcript, show_timestamp=self._show_timestamps)
            self._bubbles[id(turn)] = bubble
            await self.mount(bubble)
        else:
            bubble.refresh_turn()
        self.scroll_end(animate=False)

    async def clear(self) -> None:
        self._bubbles.clear()
        await self.remove_children()
