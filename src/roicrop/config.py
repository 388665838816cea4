"""Environment-based configuration for RoiCrop."""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from roicrop.imaging.padding import PaddingRatio
from roicrop.roi.options import RoiOptions


class Settings(BaseSettings):
    """Application settings loaded from ROICROP_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="ROICROP_",
        case_sensitive=False,
    )

    # Server
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8083
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Authentication (None = disabled)
    api_key: str | None = None

    # ROI selection
    face_confidence: float = Field(default=0.6, ge=0.0, le=1.0)
    faces_union_all: bool = True
    face_padding: float = Field(default=0.0, ge=0.0, le=1.0)
    saliency_padding: float = Field(default=0.0, ge=0.0, le=1.0)
    eye_center_ratio_x: float = Field(default=0.5, ge=0.0, le=1.0)
    eye_center_ratio_y: float = Field(default=0.35, ge=0.0, le=1.0)

    # Face detection model
    face_detection_model: str = "yunet_2023mar"
    models_dir: str = "./models"
    warm_face_model: bool = True

    # Concurrency
    max_concurrent: int = Field(default=2, ge=1)

    # Input limits
    max_image_pixels: int = Field(default=40_000_000, ge=1)
    max_file_size: int = Field(default=52_428_800, ge=1)
    max_target_side: int = Field(default=8192, ge=1)

    def roi_options(self) -> RoiOptions:
        """Build the immutable strategy options from these settings."""
        return RoiOptions(
            face_confidence=self.face_confidence,
            faces_union_all=self.faces_union_all,
            face_padding=PaddingRatio.uniform(self.face_padding),
            saliency_padding=PaddingRatio.uniform(self.saliency_padding),
            eye_center_ratio_x=self.eye_center_ratio_x,
            eye_center_ratio_y=self.eye_center_ratio_y,
        )


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()
