"""Per-side fractional padding of rectangles."""

from __future__ import annotations

from dataclasses import dataclass

from roicrop.imaging.geometry import Rectangle, clamp_to_border


def _clamp_unit(value: float) -> float:
    return min(max(float(value), 0.0), 1.0)


@dataclass(frozen=True)
class PaddingRatio:
    """Fractions of a rectangle's size to add on each side.

    Every component is clamped into ``[0, 1]`` when the value is built.
    """

    top: float = 0.0
    bottom: float = 0.0
    left: float = 0.0
    right: float = 0.0

    def __post_init__(self) -> None:
        for name in ("top", "bottom", "left", "right"):
            object.__setattr__(self, name, _clamp_unit(getattr(self, name)))

    @classmethod
    def uniform(cls, ratio: float) -> PaddingRatio:
        """Apply the same ratio to all four sides."""
        return cls(ratio, ratio, ratio, ratio)

    @classmethod
    def symmetric(cls, vertical: float, horizontal: float) -> PaddingRatio:
        """Apply ``vertical`` to top/bottom and ``horizontal`` to left/right."""
        return cls(vertical, vertical, horizontal, horizontal)

    @property
    def is_zero(self) -> bool:
        return not (self.top or self.bottom or self.left or self.right)

    def expand(self, rect: Rectangle, border: Rectangle | None = None) -> Rectangle:
        """Return ``rect`` grown by the padding ratios.

        Without a border the result may extend past the image. With one, an
        oversized dimension is shrunk to the border's and snapped to its
        origin, then the rectangle is shifted inside the border.
        """
        expanded = Rectangle(
            rect.x - int(rect.width * self.left),
            rect.y - int(rect.height * self.top),
            rect.width + int(rect.width * (self.left + self.right)),
            rect.height + int(rect.height * (self.top + self.bottom)),
        )
        if border is None:
            return expanded
        return clamp_to_border(expanded, border)
