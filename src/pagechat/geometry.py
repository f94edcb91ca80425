"""Screen geometry shared by layout refresh and reorder hit-testing."""

from __future__ import annotations

from dataclasses import dataclass
import math


@dataclass(frozen=True)
class Point:
    x: float
    y: float


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle in pixels (or terminal cells)."""

    x: float
    y: float
    width: float
    height: float

    @property
    def center(self) -> Point:
        return Point(self.x + self.width / 2, self.y + self.height / 2)

    def contains(self, point: Point) -> bool:
        return (
            self.x <= point.x < self.x + self.width
            and self.y <= point.y < self.y + self.height
        )

    def distance_to(self, point: Point) -> float:
        """Euclidean distance between ``point`` and the rectangle centre."""
        center = self.center
        return math.hypot(point.x - center.x, point.y - center.y)

    def rounded(self) -> Rect:
        return Rect(round(self.x), round(self.y), round(self.width), round(self.height))
