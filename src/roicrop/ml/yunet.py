"""YuNet face detector backed by OpenCV's ``FaceDetectorYN``."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import cv2

from roicrop.ml.face_detector import FaceDetectorModel

if TYPE_CHECKING:
    from concurrent.futures import Executor

    import numpy as np
    from numpy.typing import NDArray

    from roicrop.ml.face_detector import ScratchBufferPool
    from roicrop.ml.model_manager import ModelManager

logger = logging.getLogger(__name__)

# Input size is reset per image; this only seeds network construction.
_INITIAL_INPUT_SIZE: tuple[int, int] = (320, 320)


class YuNetModel(FaceDetectorModel):
    """YuNet detector producing ``N x 15`` rows (box, five landmarks, score).

    ``score_threshold`` is the native pre-filter; callers apply their own
    ``min_score`` on top of it in ``detect``.
    """

    def __init__(
        self,
        model_manager: ModelManager,
        model_name: str = "yunet_2023mar",
        *,
        score_threshold: float = 0.3,
        nms_threshold: float = 0.3,
        top_k: int = 5000,
        executor: Executor | None = None,
        buffer_pool: ScratchBufferPool | None = None,
    ) -> None:
        super().__init__(executor=executor, buffer_pool=buffer_pool)
        self._model_manager = model_manager
        self._model_name = model_name
        self._score_threshold = score_threshold
        self._nms_threshold = nms_threshold
        self._top_k = top_k

    @property
    def model_name(self) -> str:
        return self._model_name

    def _load(self) -> Any:
        model_path = self._model_manager.ensure_downloaded(self._model_name)
        detector = cv2.FaceDetectorYN.create(
            str(model_path),
            "",
            _INITIAL_INPUT_SIZE,
            self._score_threshold,
            self._nms_threshold,
            self._top_k,
        )
        logger.info("Loaded YuNet weights from %s", model_path)
        return detector

    def _run_detection(self, native: Any, pixels: NDArray[np.uint8]) -> NDArray[Any] | None:
        height, width = pixels.shape[:2]
        native.setInputSize((width, height))
        _, faces = native.detect(pixels)
        return faces
