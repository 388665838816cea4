"""Pydantic request/response schemas for the RoiCrop API."""

from __future__ import annotations

from pydantic import BaseModel, Field


class RoiRect(BaseModel):
    """A rectangle in source-image pixel coordinates."""

    x: int
    y: int
    width: int = Field(ge=0)
    height: int = Field(ge=0)


class RoiResponse(BaseModel):
    """Region an image would be cropped to."""

    roi: RoiRect
    image_width: int
    image_height: int
    strategy: str
    mode: str


class StrategiesResponse(BaseModel):
    """Available ROI strategies and crop modes."""

    strategies: list[str]
    modes: list[str]
    face_aware: list[str] = Field(description="Strategies that use the face detector when it is ready")


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    face_model: str
    face_model_state: str
    concurrent_requests: int
    queue_depth: int


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
