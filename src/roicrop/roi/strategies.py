"""ROI strategies: map an image and a target size to a crop rectangle.

Every strategy returns a rectangle of at most the image's size. Face-aware
strategies fall back to saliency or fixed-ratio anchors when the detector is
missing, not ready, or finds nothing.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

import cv2
import numpy as np

from roicrop.imaging import saliency
from roicrop.imaging.geometry import Point, Rectangle, Size, clamp_point_to_border, clamp_to_border
from roicrop.roi.faces import eye_centroid, face_anchor_rect

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from roicrop.imaging.image import Image
    from roicrop.imaging.padding import PaddingRatio
    from roicrop.ml.face_detector import FaceCandidate, FaceDetectorModel
    from roicrop.roi.options import RoiOptions

logger = logging.getLogger(__name__)

RULE_OF_THIRDS_EYE_LINE_RATIO: float = 1.0 / 3.0
MIN_KERNEL_SIZE: int = 3
MAX_KERNEL_SIZE: int = 255
KERNEL_CROP_DIVISOR: int = 4


def crop_window(image_size: Size, target: Size) -> Size:
    return Size(min(image_size.width, target.width), min(image_size.height, target.height))


def center_window_on(anchor: Rectangle, crop: Size, border: Rectangle) -> Rectangle:
    """Centre a ``crop``-sized window on ``anchor`` and shift it inside ``border``."""
    cx = anchor.x + anchor.width // 2
    cy = anchor.y + anchor.height // 2
    x = min(max(cx - crop.width // 2, border.left), border.right - crop.width)
    y = min(max(cy - crop.height // 2, border.top), border.bottom - crop.height)
    return Rectangle(x, y, crop.width, crop.height)


async def _detect_faces(
    image: Image,
    face_detector: FaceDetectorModel | None,
    min_score: float,
) -> list[FaceCandidate]:
    if face_detector is None:
        return []
    return await face_detector.detect(image, min_score)


# ---------------------------------------------------------------------------
# Center
# ---------------------------------------------------------------------------


def center_roi(image: Image, size: Size) -> Rectangle:
    x = max(0, (image.width - size.width) // 2)
    y = max(0, (image.height - size.height) // 2)
    return Rectangle(x, y, size.width, size.height)


# ---------------------------------------------------------------------------
# Prominent
# ---------------------------------------------------------------------------


def saliency_kernel_size(crop: Size, image_size: Size) -> int:
    """Gaussian kernel a quarter of the crop window, capped by the image and 255, odd, >= 3."""
    kernel = max(crop.width, crop.height) // KERNEL_CROP_DIVISOR
    kernel = min(kernel, MAX_KERNEL_SIZE, image_size.width, image_size.height)
    kernel = max(kernel, MIN_KERNEL_SIZE)
    if kernel % 2 == 0:
        kernel += 1
    return kernel


def prominent_roi_from_map(saliency_map: NDArray[np.float32], size: Size, padding: PaddingRatio) -> Rectangle:
    """Place a window over the strongest region of a normalised saliency map."""
    height, width = saliency_map.shape[:2]
    image_size = Size(width, height)
    crop = crop_window(image_size, size)

    kernel = saliency_kernel_size(crop, image_size)
    smoothed = cv2.GaussianBlur(saliency_map, (kernel, kernel), 0)

    _, _, _, (max_x, max_y) = cv2.minMaxLoc(smoothed)

    x = min(max(max_x - crop.width // 2, 0), width - crop.width)
    y = min(max(max_y - crop.height // 2, 0), height - crop.height)
    roi = Rectangle(x, y, crop.width, crop.height)
    return padding.expand(roi, Rectangle(0, 0, width, height))


async def prominent_roi(image: Image, size: Size, options: RoiOptions) -> Rectangle:
    """Window centred on the most salient region.

    Raises:
        SaliencyComputationError: If the saliency map cannot be computed.
    """
    saliency_map = await asyncio.to_thread(saliency.compute_saliency, image)
    return prominent_roi_from_map(saliency_map, size, options.saliency_padding)


# ---------------------------------------------------------------------------
# Rule of thirds
# ---------------------------------------------------------------------------


def follow_rule_of_thirds(border: Rectangle, eye_center: Point, crop: Size) -> Rectangle:
    """Window with ``eye_center`` centred horizontally and one third down."""
    x = round(eye_center.x - crop.width / 2)
    y = round(eye_center.y - crop.height * RULE_OF_THIRDS_EYE_LINE_RATIO)
    return clamp_to_border(Rectangle(x, y, crop.width, crop.height), border)


async def rule_of_thirds_roi(
    image: Image,
    size: Size,
    options: RoiOptions,
    face_detector: FaceDetectorModel | None,
) -> Rectangle:
    border = image.bounds
    crop = crop_window(image.size, size)

    faces = await _detect_faces(image, face_detector, options.face_confidence)
    if faces:
        anchor = clamp_point_to_border(eye_centroid(faces, options.faces_union_all), border)
    else:
        anchor = Point(
            round(image.width * options.eye_center_ratio_x),
            round(image.height * options.eye_center_ratio_y),
        )
    logger.debug("Rule-of-thirds anchor for %s: %s (%d faces)", image.source_name, anchor, len(faces))
    return follow_rule_of_thirds(border, anchor, crop)


# ---------------------------------------------------------------------------
# Attention
# ---------------------------------------------------------------------------


async def attention_roi(
    image: Image,
    size: Size,
    options: RoiOptions,
    face_detector: FaceDetectorModel | None,
) -> Rectangle:
    """Fixed window biased to faces and widened by saliency context.

    Raises:
        SaliencyComputationError: If the saliency map cannot be computed.
    """
    border = image.bounds
    crop = crop_window(image.size, size)

    saliency_anchor = await prominent_roi(image, crop, options)

    anchor = saliency_anchor
    faces = await _detect_faces(image, face_detector, options.face_confidence)
    if faces:
        face_rect = face_anchor_rect(faces, options.faces_union_all)
        face_anchor = options.face_padding.expand(face_rect, border)
        anchor = face_anchor.union(saliency_anchor)

    logger.debug(
        "Attention anchor for %s: %s (saliency=%s, %d faces)",
        image.source_name,
        anchor,
        saliency_anchor,
        len(faces),
    )
    return center_window_on(anchor, crop, border)
