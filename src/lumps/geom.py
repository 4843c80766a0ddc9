from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class Point:
    x: int = 0
    y: int = 0

    def offset(self, *, dx: int = 0, dy: int = 0) -> Point:
        return Point(self.x + dx, self.y + dy)


@dataclass(slots=True, frozen=True)
class Rect:
    """Integer pixel rectangle; ``right``/``bottom`` are exclusive."""

    x: int = 0
    y: int = 0
    w: int = 0
    h: int = 0

    @classmethod
    def from_size(cls, width: int, height: int) -> Rect:
        return cls(x=0, y=0, w=width, h=height)

    @property
    def width(self) -> int:
        return self.w

    @property
    def height(self) -> int:
        return self.h

    @property
    def right(self) -> int:
        return self.x + self.w

    @property
    def bottom(self) -> int:
        return self.y + self.h

    @property
    def top_left(self) -> Point:
        return Point(self.x, self.y)

    @property
    def area(self) -> int:
        return self.w * self.h

    def offset(self, *, dx: int = 0, dy: int = 0) -> Rect:
        return Rect(x=self.x + dx, y=self.y + dy, w=self.w, h=self.h)

    def inset(self, amount: int) -> Rect:
        return Rect(
            x=self.x + amount,
            y=self.y + amount,
            w=max(0, self.w - 2 * amount),
            h=max(0, self.h - 2 * amount),
        )

    def outset(self, amount: int) -> Rect:
        return Rect(x=self.x - amount, y=self.y - amount, w=self.w + 2 * amount, h=self.h + 2 * amount)

    def contains_point(self, point: Point) -> bool:
        return self.x <= point.x <= self.right and self.y <= point.y <= self.bottom

    def contains_rect(self, other: Rect) -> bool:
        return self.x <= other.x and self.y <= other.y and other.right <= self.right and other.bottom <= self.bottom

    def strictly_contains(self, other: Rect) -> bool:
        return self.x < other.x and self.y < other.y and other.right < self.right and other.bottom < self.bottom

    def intersects(self, other: Rect) -> bool:
        return self.x < other.right and other.x < self.right and self.y < other.bottom and other.y < self.bottom

    def box(self) -> tuple[int, int, int, int]:
        """``(left, top, right, bottom)`` as Pillow's ``crop``/``paste`` expect."""
        return self.x, self.y, self.right, self.bottom

    def describe(self) -> str:
        return f"({self.x}, {self.y}) {self.w}x{self.h}"

    def to_dict(self) -> dict[str, int]:
        return {"x": self.x, "y": self.y, "width": self.w, "height": self.h}
