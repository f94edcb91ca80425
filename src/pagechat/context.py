"""Explicit application context shared by every manager of the shell."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
import logging

from .state import AnswerMode, BridgeStatus, GenerationCounter
from .transcript import Transcript

LOGGER = logging.getLogger(__name__)

ChangeListener = Callable[[str], None]


@dataclass
class ShellContext:
    """Mutable view state owned by the shell and passed to each manager.

    ``notify`` tells the front-end which aspect changed (``"address"``,
    ``"home"``, ``"page_status"``, ``"chat_status"``, ``"input"``, ``"mode"``,
    ``"model"``, ``"bridge"``) so it can re-render just that part.
    """

    mode: AnswerMode = AnswerMode.REMOTE
    current_model: str = ""
    address: str = ""
    home_visible: bool = True
    page_status: str = "ready"
    chat_status: str = "Ready"
    chat_status_kind: str = ""
    chat_busy: bool = False
    input_enabled: bool = True
    bridge_status: BridgeStatus = BridgeStatus.PENDING
    generation: GenerationCounter = field(default_factory=GenerationCounter)
    transcript: Transcript = field(default_factory=Transcript)
    _listeners: list[ChangeListener] = field(default_factory=list, repr=False)

    def on_change(self, callback: ChangeListener) -> None:
        self._listeners.append(callback)

    def notify(self, aspect: str) -> None:
        for callback in list(self._listeners):
            try:
                callback(aspect)
            except Exception as exc:  # noqa: BLE001 - listeners are UI code.
                LOGGER.error(f"Context listener failed for {aspect}: {exc}")

    @property
    def bridge_ready(self) -> bool:
        return self.bridge_status == BridgeStatus.READY

    def set_address(self, url: str) -> None:
        self.address = url
        self.notify("address")

    def set_home_visible(self, visible: bool) -> None:
        self.home_visible = visible
        self.notify("home")

    def set_page_status(self, status: str) -> None:
        self.page_status = status
        self.notify("page_status")

    def set_chat_status(self, message: str, kind: str = "") -> None:
        self.chat_status = message
        self.chat_status_kind = kind
        self.notify("chat_status")

    def set_chat_busy(self, busy: bool, label: str = "") -> None:
        """Toggle the spinner state; going idle resets the status to ``Ready``."""
        self.chat_busy = busy
        self.input_enabled = not busy
        self.chat_status = label if busy else "Ready"
        self.chat_status_kind = "processing" if busy else ""
        self.notify("input")
        self.notify("chat_status")
