"""Ordered-collection reordering with persisted backend copy.

A :class:`ReorderProtocol` keeps the local (advisory) order of entities with
an integer ``id`` and sends the final order to the backend on drop. Pointer
input reaches it through a :class:`DragStrategy`; both strategies feed the
same resolution algorithm of the chosen :class:`Layout`, so they agree on the
resulting order for the same pointer positions.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from enum import Enum
import logging
import time
from typing import Generic, Protocol, TypeVar

from ..geometry import Point, Rect

LOGGER = logging.getLogger(__name__)


class HasId(Protocol):
    id: int


T = TypeVar("T", bound=HasId)

Persist = Callable[[list[int]], Awaitable[None]]


class Layout(ABC):
    """Maps a position in the ordered list to screen geometry."""

    @abstractmethod
    def rect_for(self, index: int) -> Rect: ...

    @abstractmethod
    def resolve(self, order: list[int], dragged: int, pointer: Point) -> list[int]:
        """Return ``order`` with ``dragged`` moved according to ``pointer``."""


@dataclass(frozen=True)
class GridLayout(Layout):
    """Row-major grid of equally sized cells."""

    columns: int
    cell_width: float
    cell_height: float
    gap: float = 0.0
    origin: Point = Point(0, 0)

    def rect_for(self, index: int) -> Rect:
        row, column = divmod(index, max(1, self.columns))
        return Rect(
            self.origin.x + column * (self.cell_width + self.gap),
            self.origin.y + row * (self.cell_height + self.gap),
            self.cell_width,
            self.cell_height,
        )

    def resolve(self, order: list[int], dragged: int, pointer: Point) -> list[int]:
        # Nearest other element by distance to its centre.
        nearest: tuple[float, int] | None = None
        for index, item_id in enumerate(order):
            if item_id == dragged:
                continue
            distance = self.rect_for(index).distance_to(pointer)
            if nearest is None or distance < nearest[0]:
                nearest = (distance, index)
        if nearest is None:
            return list(order)

        target_id = order[nearest[1]]
        center = self.rect_for(nearest[1]).center
        before = pointer.y < center.y or pointer.x < center.x
        result = [item_id for item_id in order if item_id != dragged]
        position = result.index(target_id)
        result.insert(position if before else position + 1, dragged)
        return result


@dataclass(frozen=True)
class ListLayout(Layout):
    """Single row or column of equally sized entries."""

    item_size: float
    breadth: float = 1.0
    axis: str = "vertical"
    origin: Point = Point(0, 0)

    def rect_for(self, index: int) -> Rect:
        offset = index * self.item_size
        if self.axis == "horizontal":
            return Rect(self.origin.x + offset, self.origin.y, self.item_size, self.breadth)
        return Rect(self.origin.x, self.origin.y + offset, self.breadth, self.item_size)

    def _coordinate(self, point: Point) -> float:
        return point.x if self.axis == "horizontal" else point.y

    def resolve(self, order: list[int], dragged: int, pointer: Point) -> list[int]:
        result = [item_id for item_id in order if item_id != dragged]
        position = self._coordinate(pointer)
        for index, item_id in enumerate(order):
            if item_id == dragged:
                continue
            if position < self._coordinate(self.rect_for(index).center):
                result.insert(result.index(item_id), dragged)
                return result
        result.append(dragged)
        return result


class ReorderProtocol(Generic[T]):
    """Local ordering of ``items`` plus the persistence call on drop.

    The local order is updated live while dragging. A failed persistence call
    is logged and the local order is kept as-is.
    """

    def __init__(self, items: Sequence[T], layout: Layout, persist: Persist) -> None:
        self._items: dict[int, T] = {item.id: item for item in items}
        self._order: list[int] = [item.id for item in items]
        self.layout = layout
        self._persist = persist
        self._dragged: int | None = None
        self._initial: list[int] = []

    @property
    def ids(self) -> list[int]:
        return list(self._order)

    @property
    def items(self) -> list[T]:
        return [self._items[item_id] for item_id in self._order]

    @property
    def dragging(self) -> int | None:
        return self._dragged

    def replace(self, items: Sequence[T]) -> None:
        """Load a fresh authoritative order (e.g. after a backend reload)."""
        self._items = {item.id: item for item in items}
        self._order = [item.id for item in items]
        self._dragged = None

    def item_at(self, pointer: Point) -> int | None:
        for index, item_id in enumerate(self._order):
            if self.layout.rect_for(index).contains(pointer):
                return item_id
        return None

    def begin(self, item_id: int) -> bool:
        if item_id not in self._items:
            return False
        self._dragged = item_id
        self._initial = list(self._order)
        return True

    def drag_over(self, pointer: Point) -> None:
        if self._dragged is None:
            return
        self._order = self.layout.resolve(self._order, self._dragged, pointer)

    def cancel(self) -> None:
        if self._dragged is not None:
            self._order = self._initial
        self._dragged = None

    async def drop(self) -> bool:
        """Finish the drag; persist when the order changed. Returns True on change."""
        if self._dragged is None:
            return False
        self._dragged = None
        if self._order == self._initial:
            return False
        ids = list(self._order)
        try:
            await self._persist(ids)
        except Exception as exc:  # noqa: BLE001 - the local order stays advisory.
            LOGGER.error(
                "reorder.persist_failed",
                extra={"event": "reorder.persist_failed", "ids": ids, "error": str(exc)},
            )
        return True


class DragOutcome(str, Enum):
    IGNORED = "ignored"
    CLICK = "click"
    DROPPED = "dropped"


class DragStrategy(ABC):
    """Turns raw pointer input into reorder protocol calls."""

    def __init__(self, protocol: ReorderProtocol[T]) -> None:
        self.protocol = protocol
        self._pressed: int | None = None

    @abstractmethod
    def press(self, item_id: int, pointer: Point, at: float | None = None) -> None: ...

    @abstractmethod
    def move(self, pointer: Point, at: float | None = None) -> None: ...

    @abstractmethod
    async def release(self, pointer: Point, at: float | None = None) -> DragOutcome: ...


class ImmediateDragStrategy(DragStrategy):
    """Drag starts on press; a release without movement is a click."""

    def __init__(self, protocol: ReorderProtocol[T]) -> None:
        super().__init__(protocol)
        self._moved = False

    def press(self, item_id: int, pointer: Point, at: float | None = None) -> None:
        self._pressed = item_id if self.protocol.begin(item_id) else None
        self._moved = False

    def move(self, pointer: Point, at: float | None = None) -> None:
        if self._pressed is None:
            return
        self._moved = True
        self.protocol.drag_over(pointer)

    async def release(self, pointer: Point, at: float | None = None) -> DragOutcome:
        if self._pressed is None:
            return DragOutcome.IGNORED
        self._pressed = None
        if not self._moved:
            self.protocol.cancel()
            return DragOutcome.CLICK
        self.protocol.drag_over(pointer)
        await self.protocol.drop()
        return DragOutcome.DROPPED


class LongPressDragStrategy(DragStrategy):
    """Drag starts only after the press is held for ``threshold_seconds``."""

    def __init__(self, protocol: ReorderProtocol[T], threshold_seconds: float = 0.2) -> None:
        super().__init__(protocol)
        self.threshold_seconds = threshold_seconds
        self._pressed_at = 0.0
        self._active = False

    def _held_long_enough(self, at: float | None) -> bool:
        now = time.monotonic() if at is None else at
        return now - self._pressed_at >= self.threshold_seconds

    def _activate(self) -> None:
        if not self._active and self._pressed is not None:
            self._active = self.protocol.begin(self._pressed)

    def press(self, item_id: int, pointer: Point, at: float | None = None) -> None:
        self._pressed = item_id
        self._pressed_at = time.monotonic() if at is None else at
        self._active = False

    def move(self, pointer: Point, at: float | None = None) -> None:
        if self._pressed is None:
            return
        if not self._active and self._held_long_enough(at):
            self._activate()
        if self._active:
            self.protocol.drag_over(pointer)

    async def release(self, pointer: Point, at: float | None = None) -> DragOutcome:
        if self._pressed is None:
            return DragOutcome.IGNORED
        if not self._active and self._held_long_enough(at):
            self._activate()
        active = self._active
        self._pressed = None
        self._active = False
        if not active:
            return DragOutcome.CLICK
        self.protocol.drag_over(pointer)
        await self.protocol.drop()
        return DragOutcome.DROPPED


def select_strategy(
    protocol: ReorderProtocol[T],
    pointer_drag_supported: bool,
    long_press_seconds: float = 0.2,
) -> DragStrategy:
    """Pick the strategy once, at initialization."""
    if pointer_drag_supported:
        return ImmediateDragStrategy(protocol)
    return LongPressDragStrategy(protocol, threshold_seconds=long_press_seconds)
