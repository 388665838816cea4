"""Integer pixel geometry: points, sizes, rectangles and clamping helpers.

Rectangles use a top-left origin and half-open extents, so ``right`` and
``bottom`` are exclusive.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from roicrop.errors import EmptyInputError

if TYPE_CHECKING:
    from collections.abc import Iterable


@dataclass(frozen=True)
class Point:
    x: int
    y: int


@dataclass(frozen=True)
class Size:
    width: int
    height: int

    @property
    def aspect(self) -> float:
        return self.width / self.height


@dataclass(frozen=True)
class Rectangle:
    """Axis-aligned pixel rectangle."""

    x: int
    y: int
    width: int
    height: int

    @classmethod
    def from_size(cls, size: Size, x: int = 0, y: int = 0) -> Rectangle:
        return cls(x, y, size.width, size.height)

    @property
    def left(self) -> int:
        return self.x

    @property
    def top(self) -> int:
        return self.y

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    @property
    def size(self) -> Size:
        return Size(self.width, self.height)

    @property
    def area(self) -> int:
        return self.width * self.height

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    @property
    def center(self) -> Point:
        return Point(self.x + self.width // 2, self.y + self.height // 2)

    def contains(self, other: Rectangle) -> bool:
        return (
            other.left >= self.left
            and other.top >= self.top
            and other.right <= self.right
            and other.bottom <= self.bottom
        )

    def intersect(self, other: Rectangle) -> Rectangle:
        """Return the overlap of two rectangles, or an empty rectangle at the origin."""
        left = max(self.left, other.left)
        top = max(self.top, other.top)
        right = min(self.right, other.right)
        bottom = min(self.bottom, other.bottom)
        if right <= left or bottom <= top:
            return Rectangle(0, 0, 0, 0)
        return Rectangle(left, top, right - left, bottom - top)

    def union(self, other: Rectangle) -> Rectangle:
        """Return the smallest rectangle enclosing both rectangles."""
        left = min(self.left, other.left)
        top = min(self.top, other.top)
        right = max(self.right, other.right)
        bottom = max(self.bottom, other.bottom)
        return Rectangle(left, top, right - left, bottom - top)


def clamp_to_border(rect: Rectangle, border: Rectangle) -> Rectangle:
    """Fit ``rect`` inside ``border``.

    A dimension larger than the border's is shrunk to the border's and snapped
    to the border origin on that axis. The rectangle is then shifted, never
    resized, until it lies fully inside the border.
    """
    x, y, w, h = rect.x, rect.y, rect.width, rect.height

    if w > border.width:
        w = border.width
        x = border.x
    if h > border.height:
        h = border.height
        y = border.y

    if x < border.left:
        x = border.left
    if y < border.top:
        y = border.top
    if x + w > border.right:
        x = border.right - w
    if y + h > border.bottom:
        y = border.bottom - h

    return Rectangle(x, y, w, h)


def clamp_point_to_border(point: Point, border: Rectangle) -> Point:
    """Clamp a point into ``border``; right and bottom edges are exclusive."""
    x = min(max(point.x, border.left), border.right - 1)
    y = min(max(point.y, border.top), border.bottom - 1)
    return Point(x, y)


def max_aspect_size(original: Size, target: Size) -> Size:
    """Return the largest size with ``target``'s aspect ratio that fits in ``original``.

    Raises:
        ValueError: If any dimension is not positive.
    """
    if min(original.width, original.height, target.width, target.height) <= 0:
        raise ValueError(f"Sizes must be positive, got {original} and {target}")

    target_aspect = target.aspect
    if original.aspect >= target_aspect:
        height = original.height
        width = round(height * target_aspect)
    else:
        width = original.width
        height = round(width / target_aspect)

    return Size(min(width, original.width), min(height, original.height))


def union_all(rects: Iterable[Rectangle]) -> Rectangle:
    """Return the smallest rectangle enclosing every rectangle in ``rects``.

    Raises:
        EmptyInputError: If ``rects`` is empty.
    """
    iterator = iter(rects)
    try:
        result = next(iterator)
    except StopIteration:
        raise EmptyInputError("Cannot compute the union of zero rectangles") from None
    for rect in iterator:
        result = result.union(rect)
    return result
