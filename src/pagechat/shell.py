"""The shell: owns the application context and wires every manager."""

from __future__ import annotations

import logging
from typing import Any

from .bridge.base import Bridge
from .bridge.startup import wait_for_bridge
from .context import ShellContext
from .events import EventBus, Subscription
from .managers.models import ModelSelector
from .managers.sessions import GeometryProvider, SessionRegistry, resolve_address_input
from .managers.settings import SettingsManager
from .managers.shortcuts import ShortcutManager
from .managers.stream import StreamCoordinator
from .managers.suggestions import SuggestionState
from .persistence import PreferenceStore
from .state import AnswerMode, BridgeStatus, StateManager
from .task_manager import TaskManager
from .transcript import Transcript

LOGGER = logging.getLogger(__name__)


class Shell:
    """Coordinator passed to the front-end.

    Holds the explicit :class:`ShellContext` and the managers operating on it;
    nothing is kept in module globals.
    """

    def __init__(
        self,
        config: dict[str, Any],
        bridge: Bridge,
        bus: EventBus,
        preferences: PreferenceStore,
        *,
        geometry_provider: GeometryProvider | None = None,
        transcript: Transcript | None = None,
    ) -> None:
        self.config = config
        self.bridge = bridge
        self.bus = bus
        self.preferences = preferences
        self.context = ShellContext(transcript=transcript or Transcript())
        self.tasks = TaskManager()
        self.state_manager = StateManager()
        self._subscriptions: list[Subscription] = []

        ui = config["ui"]
        default_remote_model = config["openrouter"]["default_model"]
        self.sessions = SessionRegistry(
            self.context,
            bridge,
            self.tasks,
            geometry_provider=geometry_provider,
            layout_debounce_seconds=ui["layout_debounce_seconds"],
            metadata_retry_delay_seconds=ui["metadata_retry_delay_seconds"],
            navigation_refresh_delay_seconds=ui["navigation_refresh_delay_seconds"],
        )
        self.stream = StreamCoordinator(
            self.context,
            bridge,
            self.state_manager,
            self.sessions,
            default_remote_model=default_remote_model,
        )
        self.models = ModelSelector(
            self.context,
            bridge,
            preferences,
            default_remote_model=default_remote_model,
        )
        self.suggestions = SuggestionState()
        self.shortcuts = ShortcutManager(
            bridge,
            self.sessions,
            self.tasks,
            autosave_delay_seconds=ui["shortcut_autosave_delay_seconds"],
            long_press_seconds=ui["long_press_seconds"],
        )
        self.settings = SettingsManager(self.context, bridge, self.set_mode)

    async def start(self) -> BridgeStatus:
        """Ping the bridge, restore the mode and open the first session."""
        bridge_cfg = self.config["bridge"]
        status = await wait_for_bridge(
            self.bridge,
            attempts=bridge_cfg["startup_ping_attempts"],
            delay_seconds=bridge_cfg["startup_ping_delay_seconds"],
        )
        self.context.bridge_status = status
        self.context.notify("bridge")

        self._subscriptions.extend(self.sessions.subscribe(self.bus))
        self._subscriptions.extend(self.stream.subscribe(self.bus))
        self._subscriptions.extend(self.settings.subscribe(self.bus))

        if status != BridgeStatus.READY:
            self.context.mode = self.models.read_mode()
            self.context.notify("mode")
            self.models.show_unavailable()
            self.context.set_chat_status("Bridge unavailable", "error")
            return status

        await self.models.set_mode(self.models.read_mode())
        await self.sessions.create()
        await self.shortcuts.load()
        start_url = self.config["app"]["start_url"]
        if start_url:
            await self.sessions.navigate(start_url)
        LOGGER.info("shell.started", extra={"event": "shell.started", "mode": self.context.mode.value})
        return status

    async def set_mode(self, mode: AnswerMode) -> None:
        """Switch backends; an unanswered question is abandoned first."""
        await self.stream.supersede()
        await self.models.set_mode(mode)

    async def submit(self, text: str) -> bool:
        self.suggestions.hide()
        return await self.stream.submit(text)

    async def open_address(self, text: str) -> bool:
        url = resolve_address_input(text)
        if not url:
            return False
        return await self.sessions.navigate(url)

    async def shutdown(self) -> None:
        for subscription in self._subscriptions:
            subscription.close()
        self._subscriptions.clear()
        await self.tasks.cancel_all()
        try:
            await self.bridge.aclose()
        except Exception as exc:  # noqa: BLE001 - shutdown must complete.
            LOGGER.warning("shell.close_failed", extra={"event": "shell.close_failed", "error": str(exc)})
        LOGGER.info("shell.stopped", extra={"event": "shell.stopped"})
