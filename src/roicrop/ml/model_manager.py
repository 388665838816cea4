"""Model manager: download and cache detector weights from the Hugging Face Hub."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from huggingface_hub import hf_hub_download

if TYPE_CHECKING:
    from roicrop.config import Settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocol (kept for test mocking)
# ---------------------------------------------------------------------------


class ModelManager(Protocol):
    """Protocol for model file management."""

    def ensure_downloaded(self, model_name: str) -> Path:
        """Ensure a model is downloaded and return its file path."""
        ...

    def get_downloaded_models(self) -> list[str]:
        """Return names of models with a local file."""
        ...


# ---------------------------------------------------------------------------
# Model registry
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ModelSpec:
    """Static metadata for a single model file."""

    name: str
    repo_id: str
    filename: str
    subfolder: str | None


MODEL_REGISTRY: dict[str, ModelSpec] = {
    "yunet_2023mar": ModelSpec(
        name="yunet_2023mar",
        repo_id="opencv/face_detection_yunet",
        filename="face_detection_yunet_2023mar.onnx",
        subfolder=None,
    ),
    "yunet_2023mar_int8": ModelSpec(
        name="yunet_2023mar_int8",
        repo_id="opencv/face_detection_yunet",
        filename="face_detection_yunet_2023mar_int8.onnx",
        subfolder=None,
    ),
}


# ---------------------------------------------------------------------------
# Concrete implementation
# ---------------------------------------------------------------------------


class HubModelManager:
    """Downloads model files into ``models_dir`` and remembers their paths."""

    def __init__(self, settings: Settings) -> None:
        self._models_dir = Path(settings.models_dir)
        self._models_dir.mkdir(parents=True, exist_ok=True)

        self._lock = threading.Lock()
        self._model_paths: dict[str, Path] = {}

    def ensure_downloaded(self, model_name: str) -> Path:
        """Download a model from the Hub if not already present locally."""
        spec = self._get_spec(model_name)

        with self._lock:
            path = self._model_paths.get(model_name)
            if path is not None and path.exists():
                return path

            downloaded = Path(
                hf_hub_download(
                    repo_id=spec.repo_id,
                    filename=spec.filename,
                    subfolder=spec.subfolder,
                    local_dir=str(self._models_dir),
                )
            )
            self._model_paths[model_name] = downloaded
        logger.info("Downloaded %s to %s", model_name, downloaded)
        return downloaded

    def get_downloaded_models(self) -> list[str]:
        """Return names of models with a known local file."""
        with self._lock:
            return [name for name, path in self._model_paths.items() if path.exists()]

    @staticmethod
    def _get_spec(model_name: str) -> ModelSpec:
        try:
            return MODEL_REGISTRY[model_name]
        except KeyError:
            raise KeyError(f"Unknown model: {model_name}") from None
