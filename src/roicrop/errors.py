"""Exception types raised by the cropping engine."""

from __future__ import annotations


class RoiCropError(Exception):
    """Base class for all RoiCrop errors."""


class ImageReadError(RoiCropError):
    """The image could not be decoded from its file or byte source."""

    def __init__(self, source_name: str) -> None:
        super().__init__(f"Failed to read image from: {source_name}")
        self.source_name = source_name


class SaliencyComputationError(RoiCropError):
    """The saliency backend could not produce a map for an image."""

    def __init__(self, source_name: str) -> None:
        super().__init__(f"Failed to compute saliency map for: {source_name}")
        self.source_name = source_name


class EmptyInputError(RoiCropError, ValueError):
    """An operation that needs at least one item was given none."""
