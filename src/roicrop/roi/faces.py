"""Reductions over detected faces: best pick, union, and eye anchors."""

from __future__ import annotations

from typing import TYPE_CHECKING

from roicrop.errors import EmptyInputError
from roicrop.imaging.geometry import Point, Rectangle, union_all

if TYPE_CHECKING:
    from collections.abc import Sequence

    from roicrop.ml.face_detector import FaceCandidate

FACE_EYE_LINE_RATIO: float = 0.35
SCORE_EPSILON: float = 1e-6


def pick_best_face(faces: Sequence[FaceCandidate]) -> FaceCandidate:
    """Return the highest-scoring face; near-equal scores go to the larger face."""
    if not faces:
        raise EmptyInputError("Cannot pick the best of zero faces")

    best = faces[0]
    for face in faces[1:]:
        if face.score > best.score or (abs(face.score - best.score) < SCORE_EPSILON and face.area > best.area):
            best = face
    return best


def union_faces(faces: Sequence[FaceCandidate]) -> Rectangle:
    return union_all(face.rect for face in faces)


def face_anchor_rect(faces: Sequence[FaceCandidate], use_all_faces: bool) -> Rectangle:
    """Union of all face rectangles, or the best face's rectangle."""
    return union_faces(faces) if use_all_faces else pick_best_face(faces).rect


def eye_line_anchor(rect: Rectangle, eye_line_ratio: float = FACE_EYE_LINE_RATIO) -> Point:
    """Point horizontally centred in ``rect`` at ``eye_line_ratio`` of its height."""
    return Point(rect.x + rect.width // 2, rect.y + round(rect.height * eye_line_ratio))


def _eye_point(face: FaceCandidate, eye_line_ratio: float) -> tuple[float, float]:
    center = face.eye_center
    if center is not None:
        return center
    anchor = eye_line_anchor(face.rect, eye_line_ratio)
    return float(anchor.x), float(anchor.y)


def eye_centroid(
    faces: Sequence[FaceCandidate],
    use_all_faces: bool,
    eye_line_ratio: float = FACE_EYE_LINE_RATIO,
) -> Point:
    """Reference point between the eyes.

    With ``use_all_faces`` every face contributes its eye midpoint (or its
    eye-line anchor when landmarks are missing) to an average. Otherwise only
    the best face is used.
    """
    if not faces:
        raise EmptyInputError("Cannot compute an eye centroid of zero faces")

    if not use_all_faces:
        x, y = _eye_point(pick_best_face(faces), eye_line_ratio)
        return Point(round(x), round(y))

    points = [_eye_point(face, eye_line_ratio) for face in faces]
    mean_x = sum(p[0] for p in points) / len(points)
    mean_y = sum(p[1] for p in points) / len(points)
    return Point(round(mean_x), round(mean_y))
