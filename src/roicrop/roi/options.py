"""Tuning knobs shared by the ROI strategies."""

from __future__ import annotations

from dataclasses import dataclass, field

from roicrop.imaging.padding import PaddingRatio


def _clamp_unit(value: float) -> float:
    return min(max(float(value), 0.0), 1.0)


@dataclass(frozen=True)
class RoiOptions:
    """Immutable configuration captured by ROI selectors.

    Attributes:
        face_confidence: Minimum face score (0-1) to accept a detection.
        faces_union_all: Union every detected face instead of using the best one.
        face_padding: Padding applied to the face anchor, relative to the face size.
        saliency_padding: Padding applied to the saliency anchor, relative to the crop window.
        eye_center_ratio_x: Horizontal anchor ratio used when no face is found.
        eye_center_ratio_y: Vertical anchor ratio used when no face is found.
    """

    face_confidence: float = 0.6
    faces_union_all: bool = True
    face_padding: PaddingRatio = field(default_factory=PaddingRatio)
    saliency_padding: PaddingRatio = field(default_factory=PaddingRatio)
    eye_center_ratio_x: float = 0.5
    eye_center_ratio_y: float = 0.35

    def __post_init__(self) -> None:
        for name in ("face_confidence", "eye_center_ratio_x", "eye_center_ratio_y"):
            object.__setattr__(self, name, _clamp_unit(getattr(self, name)))
