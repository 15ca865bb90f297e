"""
FastAPI Application

Main application entry point with router registration and startup events.
"""

import logging
import time
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from api.config import (
    API_HOST,
    API_PORT,
    ASSETS_BASE_URL,
    ASSETS_DIR,
    LOG_LEVEL,
    VISION_API_URL,
    VISION_TIMEOUT,
)
from api.routes import health_router, jobs_router
from assetgen.config import Config
from assetgen.dispatcher import Dispatcher, MetricsReporter
from assetgen.gpu import GPUPoolManager
from assetgen.jobs import JobStore
from assetgen.stages import build_handlers
from assetgen.storage import ArtifactStore, LocalArtifactStore
from assetgen.vision import HttpVisionClient, VisionClient

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(
    artifacts: Optional[ArtifactStore] = None,
    vision: Optional[VisionClient] = None,
    gpu_pool: Optional[GPUPoolManager] = None,
    mount_assets: bool = True,
) -> FastAPI:
    """
    Build the API app.

    Job store, dispatcher and worker pools are created on startup and torn
    down on shutdown; all of them live on app.state.
    """
    app = FastAPI(
        title="Furniture Asset Pipeline API",
        description="Segmentation, stain recolor, mesh generation, turntable render and export jobs",
        version="1.0.0",
    )

    if mount_assets:
        app.mount(ASSETS_BASE_URL, StaticFiles(directory=ASSETS_DIR), name="assets")

    app.include_router(health_router, tags=["Health"])
    app.include_router(jobs_router, tags=["Jobs"])

    @app.on_event("startup")
    async def startup_event():
        start_time = time.time()
        logger.info("=" * 60)
        logger.info("Starting asset pipeline")

        gpu_ids = Config.get_available_gpus()
        logger.info(f"Available GPUs: {gpu_ids}")

        store = JobStore()
        reporter = MetricsReporter()
        pool = gpu_pool if gpu_pool is not None else GPUPoolManager(gpu_ids=gpu_ids)
        handlers = build_handlers(
            artifacts or LocalArtifactStore(ASSETS_DIR, base_url=ASSETS_BASE_URL),
            vision or HttpVisionClient(VISION_API_URL, timeout=VISION_TIMEOUT),
        )
        dispatcher = Dispatcher(store, handlers, reporter=reporter, gpu_pool=pool)
        await dispatcher.start()

        app.state.store = store
        app.state.gpu_pool = pool
        app.state.dispatcher = dispatcher

        logger.info(f"Initialization complete in {time.time() - start_time:.2f}s")
        logger.info("=" * 60)

    @app.on_event("shutdown")
    async def shutdown_event():
        dispatcher = getattr(app.state, "dispatcher", None)
        if dispatcher is not None:
            await dispatcher.shutdown()
        logger.info("Asset pipeline shutdown complete")

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(app, host=API_HOST, port=API_PORT, log_level=LOG_LEVEL.lower())
