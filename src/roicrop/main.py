"""FastAPI application entry point."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from roicrop.api.routes import router
from roicrop.config import Settings, get_settings
from roicrop.ml.inference import InferencePool
from roicrop.ml.model_manager import HubModelManager
from roicrop.ml.yunet import YuNetModel
from roicrop.roi.engine import CropEngine

logger = logging.getLogger(__name__)


def build_engine(settings: Settings, pool: InferencePool) -> CropEngine:
    """Wire the YuNet detector and strategy options into a crop engine."""
    face_detector = YuNetModel(
        HubModelManager(settings),
        settings.face_detection_model,
        executor=pool.executor,
    )
    return CropEngine(settings.roi_options(), face_detector)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: initialize on startup, clean up on shutdown."""
    settings = get_settings()
    app.state.settings = settings

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    logger.info(
        "Starting RoiCrop (max_concurrent=%s, face_model=%s, face_confidence=%s)",
        settings.max_concurrent,
        settings.face_detection_model,
        settings.face_confidence,
    )

    inference_pool = InferencePool(settings)
    app.state.inference_pool = inference_pool
    engine = build_engine(settings, inference_pool)
    app.state.crop_engine = engine

    warmup: asyncio.Task[bool] | None = None
    if settings.warm_face_model and engine.face_detector is not None:
        # Load in the background; requests arriving first join the same load.
        warmup = asyncio.create_task(engine.face_detector.init())

    logger.info("RoiCrop ready")
    yield

    logger.info("Shutting down RoiCrop")
    if warmup is not None and not warmup.done():
        warmup.cancel()
    if engine.face_detector is not None:
        await engine.face_detector.deinit()
    inference_pool.shutdown()
    logger.info("RoiCrop shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title="RoiCrop",
        description="Region-of-interest image cropping with saliency and face guidance",
        version="0.1.0",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.include_router(router)
    return application


app = create_app()


def run() -> None:
    """Serve the application with uvicorn using ROICROP_HOST / ROICROP_PORT."""
    import uvicorn

    settings = get_settings()
    uvicorn.run("roicrop.main:app", host=settings.host, port=settings.port)
