"""Spectral-residual saliency maps (OpenCV contrib ``saliency`` module)."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import cv2
import numpy as np

from roicrop.errors import SaliencyComputationError

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from roicrop.imaging.image import Image

logger = logging.getLogger(__name__)

MIN_SALIENCY_SIDE: int = 2


def compute_saliency(image: Image) -> NDArray[np.float32]:
    """Compute a min-max normalised saliency map for ``image``.

    Returns:
        float32 array of shape ``(height, width)`` with values in ``[0, 1]``.

    Raises:
        SaliencyComputationError: If the backend cannot produce a map.
    """
    if min(image.width, image.height) < MIN_SALIENCY_SIDE:
        raise SaliencyComputationError(image.source_name)

    detector = cv2.saliency.StaticSaliencySpectralResidual_create()
    try:
        ok, saliency_map = detector.computeSaliency(image.pixels)
    except cv2.error as exc:
        raise SaliencyComputationError(image.source_name) from exc

    if not ok or saliency_map is None or saliency_map.size == 0:
        raise SaliencyComputationError(image.source_name)

    result = saliency_map.astype(np.float32)
    if result.shape[:2] != (image.height, image.width):
        result = cv2.resize(result, (image.width, image.height), interpolation=cv2.INTER_LINEAR)
    # Flat regions give log(0) in the spectrum; treat them as non-salient.
    np.nan_to_num(result, copy=False, nan=0.0, posinf=0.0, neginf=0.0)
    cv2.normalize(result, result, 0.0, 1.0, cv2.NORM_MINMAX)
    logger.debug("Computed saliency map for %s (%dx%d)", image.source_name, image.width, image.height)
    return result
