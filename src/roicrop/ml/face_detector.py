"""Face detection model lifecycle and raw-output parsing.

A ``FaceDetectorModel`` owns exactly one native detector. Initialisation is
single-flight: concurrent callers share one load and its outcome. The native
detector keeps scratch state between calls, so detection is serialised behind
a lock; parsing of each call's own output happens outside it.

Face detection is a best-effort enhancement. Load and detection failures are
logged and surface to callers as an empty face list, never as exceptions.
"""

from __future__ import annotations

import asyncio
import logging
import math
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any

import numpy as np

from roicrop.imaging.geometry import Point, Rectangle

if TYPE_CHECKING:
    from concurrent.futures import Executor

    from numpy.typing import NDArray

    from roicrop.imaging.image import Image

logger = logging.getLogger(__name__)

# Raw row layouts: [x, y, w, h, score] or
# [x, y, w, h, re.x, re.y, le.x, le.y, n.x, n.y, rm.x, rm.y, lm.x, lm.y, score]
MIN_COLUMNS: int = 5
LANDMARK_COLUMNS: int = 15

MAX_POOLED_ELEMENTS: int = 1_000_000


@dataclass(frozen=True)
class FaceCandidate:
    """A detected face with optional five-point landmarks."""

    rect: Rectangle
    score: float
    right_eye: Point | None = None
    left_eye: Point | None = None
    nose: Point | None = None
    right_mouth: Point | None = None
    left_mouth: Point | None = None

    @property
    def area(self) -> int:
        return self.rect.area

    @property
    def eye_center(self) -> tuple[float, float] | None:
        """Midpoint between both eyes, or ``None`` unless both are known."""
        if self.right_eye is None or self.left_eye is None:
            return None
        return (
            (self.right_eye.x + self.left_eye.x) / 2.0,
            (self.right_eye.y + self.left_eye.y) / 2.0,
        )


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


class ScratchBufferPool:
    """Reusable float32 buffers for copying native detector output.

    Requests above ``max_elements`` get a fresh array that is never kept, so
    one abnormal output cannot grow the pool without bound.
    """

    def __init__(self, max_elements: int = MAX_POOLED_ELEMENTS, max_buffers: int = 4) -> None:
        self._max_elements = max_elements
        self._max_buffers = max_buffers
        self._free: list[NDArray[np.float32]] = []
        self._lock = threading.Lock()

    def rent(self, length: int) -> NDArray[np.float32]:
        if length <= self._max_elements:
            with self._lock:
                for index, buffer in enumerate(self._free):
                    if buffer.size >= length:
                        return self._free.pop(index)
        return np.empty(length, dtype=np.float32)

    def give_back(self, buffer: NDArray[np.float32]) -> None:
        if buffer.size > self._max_elements:
            return
        with self._lock:
            if len(self._free) < self._max_buffers:
                self._free.append(buffer)

    @property
    def pooled_count(self) -> int:
        with self._lock:
            return len(self._free)


_default_pool = ScratchBufferPool()


def _to_int(value: float) -> int:
    # round() is half-to-even, matching the detector's own rounding
    return int(round(float(value)))


def parse_detections(
    raw: NDArray[Any] | None,
    width: int,
    height: int,
    min_score: float,
    pool: ScratchBufferPool | None = None,
) -> list[FaceCandidate]:
    """Convert a raw detector matrix into face candidates.

    The input is copied into a float32 scratch buffer first, so strided or
    non-float outputs are accepted and the caller's array is never modified.

    Args:
        raw: ``N x C`` detector output with ``C >= 5``; ``C >= 15`` carries landmarks.
        width: Image width used to clip face rectangles.
        height: Image height used to clip face rectangles.
        min_score: Rows scoring below this are discarded.
        pool: Scratch buffer pool; a module-wide pool is used when omitted.

    Returns:
        Candidates in detector order, clipped to the image, zero-area rows dropped.
    """
    if raw is None:
        return []
    matrix = np.asarray(raw)
    if matrix.ndim == 1:
        matrix = matrix.reshape(1, -1)
    if matrix.ndim != 2:
        return []

    rows, cols = matrix.shape
    if rows <= 0 or cols < MIN_COLUMNS:
        return []

    pool = pool if pool is not None else _default_pool
    length = rows * cols
    buffer = pool.rent(length)
    try:
        values = buffer[:length].reshape(rows, cols)
        np.copyto(values, matrix, casting="unsafe")

        has_landmarks = cols >= LANDMARK_COLUMNS
        score_col = LANDMARK_COLUMNS - 1 if has_landmarks else MIN_COLUMNS - 1
        border = Rectangle(0, 0, width, height)

        faces: list[FaceCandidate] = []
        for row in values:
            score = float(row[score_col])
            if not math.isfinite(score) or score < min_score:
                continue

            rect = Rectangle(_to_int(row[0]), _to_int(row[1]), _to_int(row[2]), _to_int(row[3])).intersect(border)
            if rect.is_empty:
                continue

            if has_landmarks:
                landmarks = [Point(_to_int(row[i]), _to_int(row[i + 1])) for i in range(4, 14, 2)]
                faces.append(FaceCandidate(rect, score, *landmarks))
            else:
                faces.append(FaceCandidate(rect, score))
        return faces
    finally:
        pool.give_back(buffer)


# ---------------------------------------------------------------------------
# Model lifecycle
# ---------------------------------------------------------------------------


class ModelState(StrEnum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"


class FaceDetectorModel(ABC):
    """Serialised, lazily loaded wrapper around one native face detector.

    Subclasses implement ``_load``, ``_run_detection`` and optionally
    ``_release``. All three run in worker threads (``_release`` may also run
    on the caller's thread from ``close``).
    """

    def __init__(self, executor: Executor | None = None, buffer_pool: ScratchBufferPool | None = None) -> None:
        self._executor = executor
        self._buffer_pool = buffer_pool if buffer_pool is not None else _default_pool
        self._init_lock = asyncio.Lock()
        self._detect_lock = asyncio.Lock()
        self._state = ModelState.UNINITIALIZED
        self._native: Any = None

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Return the model identifier string."""

    @property
    def state(self) -> ModelState:
        return self._state

    @property
    def is_ready(self) -> bool:
        """Whether the native detector is loaded. Never blocks."""
        return self._state is ModelState.READY

    # -- Public API ---------------------------------------------------------

    async def init(self) -> bool:
        """Load the native detector once.

        Returns:
            ``True`` if the detector is ready. A failed load is remembered and
            reported as ``False`` to every caller until ``deinit`` resets it.
        """
        if self._state is ModelState.READY:
            return True
        if self._state is ModelState.FAILED:
            return False

        async with self._init_lock:
            # Double-check: another task may have finished loading while we waited.
            if self._state is ModelState.READY:
                return True
            if self._state is ModelState.FAILED:
                return False

            self._state = ModelState.INITIALIZING
            loop = asyncio.get_running_loop()
            try:
                native = await loop.run_in_executor(self._executor, self._load)
            except asyncio.CancelledError:
                self._state = ModelState.UNINITIALIZED
                raise
            except Exception:
                logger.warning(
                    "Face detector %s failed to load; face-aware cropping disabled",
                    self.model_name,
                    exc_info=True,
                )
                self._state = ModelState.FAILED
                return False

            self._native = native
            self._state = ModelState.READY
            logger.info("Face detector %s ready", self.model_name)
            return True

    async def detect(self, image: Image, min_score: float) -> list[FaceCandidate]:
        """Detect faces scoring at least ``min_score``.

        Returns an empty list if the model is unavailable or anything fails.
        """
        if not await self.init():
            return []

        try:
            raw = await self._detect_exclusive(image)
            return parse_detections(raw, image.width, image.height, min_score, self._buffer_pool)
        except Exception:
            logger.exception("Face detection failed for %s", image.source_name)
            return []

    async def deinit(self) -> bool:
        """Release the native detector and return to the uninitialized state."""
        async with self._init_lock, self._detect_lock:
            native, self._native = self._native, None
            self._state = ModelState.UNINITIALIZED

        if native is None:
            return True
        try:
            self._release(native)
        except Exception:
            logger.warning("Failed to release face detector %s", self.model_name, exc_info=True)
            return False
        logger.info("Face detector %s released", self.model_name)
        return True

    def close(self) -> None:
        """Synchronously release the native detector (shutdown path).

        Does not wait for or interrupt a detection already running.
        """
        native, self._native = self._native, None
        self._state = ModelState.UNINITIALIZED
        if native is not None:
            self._release(native)

    # -- Internal -----------------------------------------------------------

    async def _detect_exclusive(self, image: Image) -> NDArray[Any] | None:
        # Cancelling before the lock is acquired is clean. Once native detection
        # is submitted it runs to completion and only then releases the lock.
        await self._detect_lock.acquire()
        native = self._native
        if native is None:
            self._detect_lock.release()
            return None

        loop = asyncio.get_running_loop()
        try:
            future = loop.run_in_executor(self._executor, self._run_detection, native, image.pixels)
        except BaseException:
            self._detect_lock.release()
            raise
        future.add_done_callback(lambda _: self._detect_lock.release())
        return await asyncio.shield(future)

    @abstractmethod
    def _load(self) -> Any:
        """Create the native detector. Raise on failure."""

    @abstractmethod
    def _run_detection(self, native: Any, pixels: NDArray[np.uint8]) -> NDArray[Any] | None:
        """Run one native detection pass on a BGR image."""

    def _release(self, native: Any) -> None:  # noqa: B027
        """Dispose of a native detector created by ``_load``."""
