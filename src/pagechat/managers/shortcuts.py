"""Pinned shortcut tiles on the home view."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..bridge.base import Shortcut, ShortcutDraft
from ..geometry import Point
from .reorder import DragStrategy, GridLayout, Layout, ReorderProtocol, select_strategy

if TYPE_CHECKING:
    from ..bridge.base import Bridge
    from ..task_manager import TaskManager
    from .sessions import SessionRegistry

LOGGER = logging.getLogger(__name__)

AUTOSAVE_TASK = "shortcut_autosave"

FALLBACK_SHORTCUTS: tuple[Shortcut, ...] = (
    Shortcut(id=1, title="Google", url="https://google.com", color="#4285f4", icon="google"),
    Shortcut(id=2, title="YouTube", url="https://youtube.com", color="#ff0000", icon="youtube"),
    Shortcut(id=3, title="GitHub", url="https://github.com", color="#333333", icon="github"),
)


class ShortcutManager:
    """Loads, edits, opens and reorders pinned shortcuts.

    Persistence failures are logged only; the home view keeps whatever it
    shows locally.
    """

    def __init__(
        self,
        bridge: Bridge,
        sessions: SessionRegistry,
        task_manager: TaskManager,
        *,
        autosave_delay_seconds: float = 0.4,
        long_press_seconds: float = 0.2,
        layout: Layout | None = None,
    ) -> None:
        self.bridge = bridge
        self.sessions = sessions
        self.tasks = task_manager
        self.autosave_delay_seconds = autosave_delay_seconds
        self.long_press_seconds = long_press_seconds
        self.using_fallback = False
        self.protocol: ReorderProtocol[Shortcut] = ReorderProtocol(
            [],
            layout or GridLayout(columns=4, cell_width=20, cell_height=3),
            self.bridge.reorder_shortcuts,
        )

    @property
    def shortcuts(self) -> list[Shortcut]:
        return self.protocol.items

    def get(self, shortcut_id: int) -> Shortcut | None:
        for shortcut in self.protocol.items:
            if shortcut.id == shortcut_id:
                return shortcut
        return None

    async def load(self) -> list[Shortcut]:
        try:
            rows = await self.bridge.get_shortcuts()
        except Exception as exc:  # noqa: BLE001 - the fallback set is shown instead.
            LOGGER.warning(
                "shortcuts.load_failed",
                extra={"event": "shortcuts.load_failed", "error": str(exc)},
            )
            rows = []
        self.using_fallback = not rows
        shown = rows or [shortcut.model_copy() for shortcut in FALLBACK_SHORTCUTS]
        self.protocol.replace(shown)
        return self.shortcuts

    async def save(self, draft: ShortcutDraft) -> int | None:
        """Persist ``draft`` and reload; returns the id, or None on failure."""
        if not draft.is_complete:
            raise ValueError("A shortcut needs both a title and a url.")
        try:
            shortcut_id = await self.bridge.save_shortcut(draft)
        except Exception as exc:  # noqa: BLE001 - persistence failures are logged only.
            LOGGER.error(
                "shortcuts.save_failed",
                extra={"event": "shortcuts.save_failed", "error": str(exc)},
            )
            return None
        await self.load()
        return shortcut_id

    def schedule_autosave(self, draft: ShortcutDraft) -> None:
        """Save ``draft`` once editing pauses for the autosave delay."""

        async def _autosave() -> None:
            if not draft.is_complete:
                return
            shortcut_id = await self.save(draft)
            if draft.id is None and shortcut_id is not None:
                draft.id = shortcut_id

        self.tasks.debounce(AUTOSAVE_TASK, self.autosave_delay_seconds, _autosave)

    async def delete(self, shortcut_id: int) -> None:
        try:
            await self.bridge.delete_shortcut(shortcut_id)
        except Exception as exc:  # noqa: BLE001 - persistence failures are logged only.
            LOGGER.error(
                "shortcuts.delete_failed",
                extra={"event": "shortcuts.delete_failed", "id": shortcut_id, "error": str(exc)},
            )
            return
        await self.load()

    async def open(self, shortcut_id: int) -> bool:
        shortcut = self.get(shortcut_id)
        if shortcut is None:
            return False
        return await self.sessions.navigate(shortcut.url)

    async def open_external(self, url: str) -> None:
        try:
            await self.bridge.open_external(url)
        except Exception as exc:  # noqa: BLE001 - nothing to recover.
            LOGGER.error(
                "shortcuts.open_external_failed",
                extra={"event": "shortcuts.open_external_failed", "url": url, "error": str(exc)},
            )

    def drag_strategy(self, pointer_drag_supported: bool) -> DragStrategy:
        return select_strategy(self.protocol, pointer_drag_supported, self.long_press_seconds)

    def shortcut_at(self, pointer: Point) -> Shortcut | None:
        shortcut_id = self.protocol.item_at(pointer)
        return self.get(shortcut_id) if shortcut_id is not None else None
