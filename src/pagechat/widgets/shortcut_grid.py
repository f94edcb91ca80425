"""Home view grid of pinned shortcuts with drag reordering."""

from __future__ import annotations

from rich.text import Text
from textual import events
from textual.message import Message
from textual.widget import Widget

from ..geometry import Point
from ..managers.reorder import DragOutcome, DragStrategy, GridLayout
from ..managers.shortcuts import ShortcutManager


class ShortcutGrid(Widget):
    """Draws shortcut tiles at the cells of the manager's grid layout.

    Pointer input goes through the drag strategy chosen at mount; a press
    that does not turn into a drag opens the tile.
    """

    DEFAULT_CSS = """
    ShortcutGrid {
        height: auto;
        min-height: 4;
        margin: 1 2;
    }
    """

    class ShortcutOpened(Message):
        def __init__(self, shortcut_id: int) -> None:
            super().__init__()
            self.shortcut_id = shortcut_id

    class ShortcutEditRequested(Message):
        def __init__(self, shortcut_id: int | None) -> None:
            super().__init__()
            self.shortcut_id = shortcut_id

    def __init__(
        self,
        manager: ShortcutManager,
        pointer_drag_supported: bool = False,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.manager = manager
        self.strategy: DragStrategy = manager.drag_strategy(pointer_drag_supported)
        self._pressed: int | None = None

    @property
    def layout_grid(self) -> GridLayout:
        layout = self.manager.protocol.layout
        if not isinstance(layout, GridLayout):
            raise TypeError("ShortcutGrid needs shortcuts laid out on a GridLayout.")
        return layout

    def get_content_height(self, container, viewport, width: int) -> int:  # noqa: ANN001
        grid = self.layout_grid
        rows = max(1, -(-len(self.manager.shortcuts) // max(1, grid.columns)))
        return int(rows * (grid.cell_height + grid.gap))

    def render(self) -> Text:
        grid = self.layout_grid
        width = int(grid.cell_width)
        height = int(grid.cell_height)
        gap = " " * int(grid.gap)
        columns = max(1, grid.columns)
        shortcuts = self.manager.shortcuts
        dragging = self.manager.protocol.dragging
        text = Text()
        for start in range(0, len(shortcuts), columns):
            row = shortcuts[start : start + columns]
            for line in range(height):
                for shortcut in row:
                    if line == 0:
                        cell = "┌" + "─" * (width - 2) + "┐"
                    elif line == height - 1:
                        cell = "└" + "─" * (width - 2) + "┘"
                    else:
                        title = shortcut.title[: width - 4]
                        cell = "│ " + title.ljust(width - 4) + " │"
                    style = "reverse" if shortcut.id == dragging else (shortcut.color or "")
                    text.append(cell, style=style)
                    text.append(gap)
                text.append("\n")
            for _ in range(int(grid.gap)):
                text.append("\n")
        if not shortcuts:
            text.append("No shortcuts yet.", style="dim")
        return text

    def on_mouse_down(self, event: events.MouseDown) -> None:
        pointer = Point(event.x, event.y)
        shortcut = self.manager.shortcut_at(pointer)
        if shortcut is None:
            return
        self._pressed = shortcut.id
        self.capture_mouse()
        self.strategy.press(shortcut.id, pointer)

    def on_mouse_move(self, event: events.MouseMove) -> None:
        if self._pressed is None:
            return
        self.strategy.move(Point(event.x, event.y))
        self.refresh()

    async def on_mouse_up(self, event: events.MouseUp) -> None:
        if self._pressed is None:
            return
        pressed, self._pressed = self._pressed, None
        self.release_mouse()
        outcome = await self.strategy.release(Point(event.x, event.y))
        if outcome == DragOutcome.CLICK:
            if event.button == 3:
                self.post_message(self.ShortcutEditRequested(pressed))
            else:
                self.post_message(self.ShortcutOpened(pressed))
        self.refresh(layout=True)
