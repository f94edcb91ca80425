"""Chat turns and the visible transcript."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
import logging
from typing import Any, Literal

from rich.markdown import Markdown
from rich.text import Text

LOGGER = logging.getLogger(__name__)

Role = Literal["user", "assistant", "system"]
Formatter = Callable[[str], Any]
TurnListener = Callable[["ChatTurn"], None]


def markdown_formatter(text: str) -> Any:
    """Render message text as rich Markdown."""
    return Markdown(text)


def plain_formatter(text: str) -> Any:
    return Text(text)


@dataclass
class ChatTurn:
    """One entry of the transcript.

    Assistant turns grow while streaming and are frozen once ``complete``.
    """

    role: Role
    text: str = ""
    timestamp: datetime = field(default_factory=datetime.now)
    complete: bool = True

    def append(self, fragment: str) -> None:
        if self.complete:
            raise RuntimeError("Cannot append to a completed chat turn.")
        self.text += fragment

    def finish(self, placeholder: str = "") -> None:
        if not self.text and placeholder:
            self.text = placeholder
        self.complete = True


class Transcript:
    """Ordered chat turns plus change notification for the front-end."""

    def __init__(self, formatter: Formatter | None = markdown_formatter) -> None:
        self._turns: list[ChatTurn] = []
        self._formatter = formatter
        self._listeners: list[TurnListener] = []
        self._clear_listeners: list[Callable[[], None]] = []

    @property
    def turns(self) -> list[ChatTurn]:
        return list(self._turns)

    def __len__(self) -> int:
        return len(self._turns)

    def on_turn_changed(self, callback: TurnListener) -> None:
        """Register callback invoked for added and updated turns."""
        self._listeners.append(callback)

    def on_cleared(self, callback: Callable[[], None]) -> None:
        self._clear_listeners.append(callback)

    def render(self, turn: ChatTurn) -> Any:
        """Return the renderable for ``turn``; plain text when no formatter is set."""
        if self._formatter is None:
            return plain_formatter(turn.text)
        try:
            return self._formatter(turn.text)
        except Exception as exc:  # noqa: BLE001 - a formatter must never break streaming.
            LOGGER.warning(
                "transcript.format_failed",
                extra={"event": "transcript.format_failed", "reason": str(exc)},
            )
            return plain_formatter(turn.text)

    def add(self, role: Role, text: str, *, streaming: bool = False) -> ChatTurn:
        turn = ChatTurn(role=role, text=text, complete=not streaming)
        self._turns.append(turn)
        self._notify(turn)
        return turn

    def add_system(self, text: str) -> ChatTurn:
        return self.add("system", text)

    def touch(self, turn: ChatTurn) -> None:
        """Signal that ``turn`` changed and must be re-rendered."""
        self._notify(turn)

    def clear(self) -> None:
        self._turns.clear()
        for callback in list(self._clear_listeners):
            callback()

    def _notify(self, turn: ChatTurn) -> None:
        for callback in list(self._listeners):
            try:
                callback(turn)
            except Exception as exc:  # noqa: BLE001 - listeners are UI code.
                LOGGER.error(f"Transcript listener failed: {exc}")
