"""API route definitions."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Annotated

from fastapi import APIRouter, Depends, Form, HTTPException, Request, UploadFile, status
from fastapi.responses import Response

from roicrop.api.middleware import app_settings, verify_api_key
from roicrop.api.schemas import (
    ErrorResponse,
    HealthResponse,
    RoiRect,
    RoiResponse,
    StrategiesResponse,
)
from roicrop.errors import ImageReadError, SaliencyComputationError
from roicrop.imaging.geometry import Size
from roicrop.imaging.image import Image
from roicrop.roi.engine import CropEngine, CropMode, RoiType

if TYPE_CHECKING:
    from roicrop.config import Settings
    from roicrop.ml.inference import InferencePool

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", dependencies=[Depends(verify_api_key)])

_FACE_AWARE = [RoiType.RULE_OF_THIRDS, RoiType.ATTENTION]

_ERROR_RESPONSES: dict[int | str, dict[str, object]] = {
    status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
    status.HTTP_413_REQUEST_ENTITY_TOO_LARGE: {"model": ErrorResponse},
    status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
    status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse},
}


def _get_inference_pool(request: Request) -> InferencePool:
    pool: InferencePool = request.app.state.inference_pool
    return pool


def _get_engine(request: Request) -> CropEngine:
    engine: CropEngine = request.app.state.crop_engine
    return engine


def _check_target(width: int, height: int, settings: Settings) -> Size:
    if max(width, height) > settings.max_target_side:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Target size {width}x{height} exceeds the {settings.max_target_side}px limit",
        )
    return Size(width, height)


async def _decode_upload(file: UploadFile, settings: Settings, pool: InferencePool) -> Image:
    # One byte past the limit is enough to tell an oversized upload apart.
    data = await file.read(settings.max_file_size + 1)
    if len(data) > settings.max_file_size:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File exceeds the {settings.max_file_size} byte limit",
        )

    source_name = file.filename or "upload"
    try:
        image = await pool.run(Image.from_bytes, data, source_name)
    except ImageReadError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    if image.width * image.height > settings.max_image_pixels:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Image {image.width}x{image.height} exceeds the {settings.max_image_pixels} pixel limit",
        )
    return image


def _saliency_failed(exc: SaliencyComputationError) -> HTTPException:
    logger.warning("Saliency computation failed: %s", exc)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


def _pool_busy() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Server busy, try again later",
    )


@router.post(
    "/crop",
    response_class=Response,
    responses={
        status.HTTP_200_OK: {"content": {"image/png": {}}},
        **_ERROR_RESPONSES,
    },
    summary="Crop an image to a target size",
)
async def crop_image(
    request: Request,
    file: UploadFile,
    width: Annotated[int, Form(gt=0)],
    height: Annotated[int, Form(gt=0)],
    strategy: Annotated[RoiType, Form()] = RoiType.ATTENTION,
    mode: Annotated[CropMode, Form()] = CropMode.FIT,
) -> Response:
    """Crop the uploaded image around its region of interest and return a PNG."""
    settings = app_settings(request)
    pool = _get_inference_pool(request)
    engine = _get_engine(request)
    target = _check_target(width, height, settings)

    try:
        async with pool.slot():
            image = await _decode_upload(file, settings, pool)
            roi = await engine.crop(image, target, strategy, mode)
            png = await pool.run(image.to_png_bytes)
    except TimeoutError:
        raise _pool_busy() from None
    except SaliencyComputationError as exc:
        raise _saliency_failed(exc) from exc

    logger.info("Cropped %s with %s/%s to %s", file.filename, strategy, mode, roi)
    return Response(
        content=png,
        media_type="image/png",
        headers={"X-Roi": f"{roi.x},{roi.y},{roi.width},{roi.height}"},
    )


@router.post(
    "/roi",
    response_model=RoiResponse,
    responses=_ERROR_RESPONSES,
    summary="Select the region of interest without cropping",
)
async def select_roi(
    request: Request,
    file: UploadFile,
    width: Annotated[int, Form(gt=0)],
    height: Annotated[int, Form(gt=0)],
    strategy: Annotated[RoiType, Form()] = RoiType.ATTENTION,
    mode: Annotated[CropMode, Form()] = CropMode.FIT,
) -> RoiResponse:
    """Return the rectangle the crop endpoint would keep for this image."""
    settings = app_settings(request)
    pool = _get_inference_pool(request)
    engine = _get_engine(request)
    target = _check_target(width, height, settings)

    try:
        async with pool.slot():
            image = await _decode_upload(file, settings, pool)
            roi = await engine.select_roi(image, target, strategy, mode)
    except TimeoutError:
        raise _pool_busy() from None
    except SaliencyComputationError as exc:
        raise _saliency_failed(exc) from exc

    return RoiResponse(
        roi=RoiRect(x=roi.x, y=roi.y, width=roi.width, height=roi.height),
        image_width=image.width,
        image_height=image.height,
        strategy=strategy.value,
        mode=mode.value,
    )


@router.get(
    "/strategies",
    response_model=StrategiesResponse,
    summary="List ROI strategies and crop modes",
)
async def list_strategies() -> StrategiesResponse:
    """Return the closed set of strategies and crop modes."""
    return StrategiesResponse(
        strategies=[roi_type.value for roi_type in RoiType],
        modes=[mode.value for mode in CropMode],
        face_aware=[roi_type.value for roi_type in _FACE_AWARE],
    )


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
)
async def health(request: Request) -> HealthResponse:
    """Return service health status."""
    settings = app_settings(request)
    pool = _get_inference_pool(request)
    engine = _get_engine(request)
    detector = engine.face_detector
    return HealthResponse(
        status="ok",
        face_model=settings.face_detection_model,
        face_model_state=detector.state if detector is not None else "disabled",
        concurrent_requests=pool.active_count,
        queue_depth=pool.queue_depth,
    )
