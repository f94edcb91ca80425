"""Settings dialog state: local endpoint and answer mode."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
import logging
from typing import TYPE_CHECKING

from ..events import EventBus, OpenSettingsEvent, Subscription
from ..state import AnswerMode

if TYPE_CHECKING:
    from ..bridge.base import Bridge
    from ..context import ShellContext

LOGGER = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:11434"


@dataclass
class SettingsSnapshot:
    base_url: str
    local_enabled: bool


class SettingsManager:
    def __init__(
        self,
        context: ShellContext,
        bridge: Bridge,
        apply_mode: Callable[[AnswerMode], Awaitable[None]],
    ) -> None:
        self.context = context
        self.bridge = bridge
        self._apply_mode = apply_mode
        self.open_requested = False

    async def load(self) -> SettingsSnapshot:
        try:
            base_url = await self.bridge.get_base_url()
        except Exception as exc:  # noqa: BLE001 - the default endpoint is shown instead.
            LOGGER.warning(
                "settings.load_failed",
                extra={"event": "settings.load_failed", "error": str(exc)},
            )
            base_url = ""
        return SettingsSnapshot(
            base_url=base_url or DEFAULT_BASE_URL,
            local_enabled=self.context.mode == AnswerMode.LOCAL,
        )

    async def save(self, base_url: str, local_enabled: bool) -> bool:
        """Store the endpoint (local mode only) and apply the mode."""
        try:
            value = base_url.strip()
            if local_enabled and value:
                await self.bridge.set_base_url(value)
            await self._apply_mode(AnswerMode.LOCAL if local_enabled else AnswerMode.REMOTE)
        except Exception as exc:  # noqa: BLE001 - reported through the status line.
            LOGGER.error(
                "settings.save_failed",
                extra={"event": "settings.save_failed", "error": str(exc)},
            )
            self.context.set_chat_status("Settings could not be saved", "error")
            return False
        self.open_requested = False
        self.context.set_chat_status("Settings saved")
        return True

    def request_open(self, event: OpenSettingsEvent | None = None) -> None:
        self.open_requested = True
        self.context.notify("settings")

    def subscribe(self, bus: EventBus) -> list[Subscription]:
        return [bus.open_settings.subscribe(self.request_open)]
