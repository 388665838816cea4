"""Decoded image container used by every cropping strategy.

Pixels are held as an ``HxWx3`` BGR ``uint8`` numpy array so they can be
handed to OpenCV without conversion. Decoding goes through Pillow (which
also applies EXIF orientation); encoding goes through OpenCV's PNG writer.
"""

from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import TYPE_CHECKING

import cv2
import numpy as np
from PIL import Image as PILImage
from PIL import ImageOps, UnidentifiedImageError

from roicrop.errors import ImageReadError
from roicrop.imaging.geometry import Point, Rectangle, Size

if TYPE_CHECKING:
    from numpy.typing import NDArray

logger = logging.getLogger(__name__)


def _decode(data: bytes | Path, source_name: str) -> NDArray[np.uint8]:
    try:
        with PILImage.open(io.BytesIO(data) if isinstance(data, bytes) else data) as pil_image:
            oriented = ImageOps.exif_transpose(pil_image)
            rgb = np.asarray(oriented.convert("RGB"))
    except (UnidentifiedImageError, OSError, ValueError, PILImage.DecompressionBombError) as exc:
        raise ImageReadError(source_name) from exc

    if rgb.size == 0:
        raise ImageReadError(source_name)
    return cv2.cvtColor(rgb, cv2.COLOR_RGB2BGR)


class Image:
    """A decoded 3-channel 8-bit BGR image."""

    def __init__(self, pixels: NDArray[np.uint8], source_name: str = "memory") -> None:
        if pixels.ndim != 3 or pixels.shape[2] != 3 or pixels.dtype != np.uint8:
            raise ValueError(f"Expected an HxWx3 uint8 array, got shape={pixels.shape} dtype={pixels.dtype}")
        if pixels.size == 0:
            raise ValueError("Image buffer is empty")
        self._pixels = np.ascontiguousarray(pixels)
        self.source_name = source_name

    # -- Construction -------------------------------------------------------

    @classmethod
    def from_file(cls, path: str | Path) -> Image:
        """Decode an image file.

        Raises:
            FileNotFoundError: If ``path`` does not exist.
            ImageReadError: If the file cannot be decoded.
        """
        file_path = Path(path)
        if not file_path.is_file():
            raise FileNotFoundError(f"Image file not found: {file_path}")
        return cls(_decode(file_path, str(file_path)), str(file_path))

    @classmethod
    def from_bytes(cls, data: bytes, source_name: str = "memory") -> Image:
        """Decode an in-memory image.

        Raises:
            ImageReadError: If the bytes cannot be decoded.
        """
        if not data:
            raise ImageReadError(source_name)
        return cls(_decode(data, source_name), source_name)

    # -- Properties ---------------------------------------------------------

    @property
    def pixels(self) -> NDArray[np.uint8]:
        return self._pixels

    @property
    def width(self) -> int:
        return int(self._pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self._pixels.shape[0])

    @property
    def size(self) -> Size:
        return Size(self.width, self.height)

    @property
    def bounds(self) -> Rectangle:
        return Rectangle(0, 0, self.width, self.height)

    # -- Mutation -----------------------------------------------------------

    def crop_in_place(self, rect: Rectangle) -> None:
        """Replace the pixel buffer with a copy of the ``rect`` region.

        Raises:
            ValueError: If ``rect`` is empty or not fully inside the image.
        """
        if rect.is_empty or not self.bounds.contains(rect):
            raise ValueError(f"Crop {rect} is outside {self.source_name} ({self.width}x{self.height})")
        cropped = self._pixels[rect.top : rect.bottom, rect.left : rect.right].copy()
        self._pixels = cropped

    def resize_in_place(self, size: Size) -> None:
        """Resize to exactly ``size`` using area interpolation."""
        resized = cv2.resize(self._pixels, (size.width, size.height), interpolation=cv2.INTER_AREA)
        self._pixels = resized

    # -- Output -------------------------------------------------------------

    def to_png_bytes(self) -> bytes:
        ok, buffer = cv2.imencode(".png", self._pixels)
        if not ok:
            raise RuntimeError(f"PNG encoding failed for {self.source_name}")
        return buffer.tobytes()

    def clone(self) -> Image:
        return Image(self._pixels.copy(), self.source_name)

    def __repr__(self) -> str:
        return f"Image(source_name={self.source_name!r}, size={self.width}x{self.height})"


def visual_center(image: Image) -> Point:
    """Return the foreground pixel farthest from any background pixel.

    The image is treated as a mask: it is converted to grayscale and
    thresholded at 127, and the maximum of the L2 distance transform is
    returned. Unlike a centroid, the result always lies inside the shape.

    Raises:
        ValueError: If the mask has no foreground pixels.
    """
    gray = cv2.cvtColor(image.pixels, cv2.COLOR_BGR2GRAY)
    _, binary = cv2.threshold(gray, 127, 255, cv2.THRESH_BINARY)
    if cv2.countNonZero(binary) == 0:
        raise ValueError(f"Image {image.source_name} has no foreground pixels")

    distance = cv2.distanceTransform(binary, cv2.DIST_L2, 3)
    _, _, _, max_loc = cv2.minMaxLoc(distance)
    logger.debug("Visual center of %s at %s", image.source_name, max_loc)
    return Point(int(max_loc[0]), int(max_loc[1]))
