"""Crop engine: pick a strategy once, then select and apply ROIs."""

from __future__ import annotations

import functools
import logging
from enum import StrEnum
from typing import TYPE_CHECKING

from roicrop.imaging.geometry import Rectangle, Size, clamp_to_border, max_aspect_size
from roicrop.roi import strategies
from roicrop.roi.options import RoiOptions

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from roicrop.imaging.image import Image
    from roicrop.ml.face_detector import FaceDetectorModel

    RoiSelector = Callable[[Image, Size], Awaitable[Rectangle]]

logger = logging.getLogger(__name__)


class RoiType(StrEnum):
    CENTER = "center"
    PROMINENT = "prominent"
    RULE_OF_THIRDS = "rule_of_thirds"
    ATTENTION = "attention"


class CropMode(StrEnum):
    CROP = "crop"
    """Cut the target-sized window straight out of the image."""

    FIT = "fit"
    """Cut the largest window with the target's aspect ratio, then scale it to the target."""


async def _center(image: Image, size: Size) -> Rectangle:
    return strategies.center_roi(image, size)


class CropEngine:
    """Binds ROI strategies to shared options and an optional face detector."""

    def __init__(self, options: RoiOptions | None = None, face_detector: FaceDetectorModel | None = None) -> None:
        self._options = options if options is not None else RoiOptions()
        self._face_detector = face_detector
        self._selectors: dict[RoiType, RoiSelector] = {
            RoiType.CENTER: _center,
            RoiType.PROMINENT: functools.partial(strategies.prominent_roi, options=self._options),
            RoiType.RULE_OF_THIRDS: functools.partial(
                strategies.rule_of_thirds_roi,
                options=self._options,
                face_detector=face_detector,
            ),
            RoiType.ATTENTION: functools.partial(
                strategies.attention_roi,
                options=self._options,
                face_detector=face_detector,
            ),
        }

    @property
    def options(self) -> RoiOptions:
        return self._options

    @property
    def face_detector(self) -> FaceDetectorModel | None:
        return self._face_detector

    def get_selector(self, roi_type: RoiType | str) -> RoiSelector:
        """Return the selector for ``roi_type``.

        Raises:
            ValueError: If ``roi_type`` is not a known strategy.
        """
        return self._selectors[RoiType(roi_type)]

    @staticmethod
    async def crop_to_roi(image: Image, target_size: Size, selector: RoiSelector, mode: CropMode | str) -> Rectangle:
        """Crop ``image`` in place and return the region that was kept.

        In ``FIT`` mode the kept region is then resized to exactly ``target_size``.

        Raises:
            ValueError: If the target size is not positive or the mode is unknown.
        """
        if target_size.width <= 0 or target_size.height <= 0:
            raise ValueError(f"Target size must be positive, got {target_size}")

        mode = CropMode(mode)
        if mode is CropMode.CROP:
            roi = clamp_to_border(await selector(image, target_size), image.bounds)
            image.crop_in_place(roi)
        else:
            max_size = max_aspect_size(image.size, target_size)
            roi = clamp_to_border(await selector(image, max_size), image.bounds)
            image.crop_in_place(roi)
            image.resize_in_place(target_size)

        logger.debug("Cropped %s to %s (mode=%s, target=%s)", image.source_name, roi, mode, target_size)
        return roi

    async def crop(
        self,
        image: Image,
        target_size: Size,
        roi_type: RoiType | str = RoiType.ATTENTION,
        mode: CropMode | str = CropMode.FIT,
    ) -> Rectangle:
        """Convenience wrapper: ``get_selector`` followed by ``crop_to_roi``."""
        return await self.crop_to_roi(image, target_size, self.get_selector(roi_type), mode)

    async def select_roi(
        self,
        image: Image,
        target_size: Size,
        roi_type: RoiType | str = RoiType.ATTENTION,
        mode: CropMode | str = CropMode.FIT,
    ) -> Rectangle:
        """Return the region ``crop`` would keep, without modifying ``image``."""
        if target_size.width <= 0 or target_size.height <= 0:
            raise ValueError(f"Target size must be positive, got {target_size}")

        selector = self.get_selector(roi_type)
        if CropMode(mode) is CropMode.FIT:
            roi = await selector(image, max_aspect_size(image.size, target_size))
        else:
            roi = await selector(image, target_size)
        return clamp_to_border(roi, image.bounds)
