from __future__ import annotations
"""ShortDrama Studio — FastAPI application entry point.

Mounts the task/asset/model routes and the WebSocket relay, configures CORS,
serves media static files and, when enabled, runs the reconciliation sweep
inside the API process instead of Celery beat.
"""

import asyncio
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from app.api.router import api_router
from app.api.ws import router as ws_router
from app.config import get_settings
from app.database import close_db

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


async def run_sweep_loop(sweeper, interval: float) -> None:
    """Call the sweeper every `interval` seconds until cancelled."""
    while True:
        try:
            await sweeper.run()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("Sweep loop iteration failed: %s", e, exc_info=True)
        await asyncio.sleep(interval)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: optional sweep loop on startup, close DB on shutdown."""
    logger.info("%s starting up...", settings.APP_NAME)
    logger.info("Database: %s@%s/%s", settings.DB_USER, settings.DB_HOST, settings.DB_NAME)

    os.makedirs(settings.MEDIA_VOLUME, exist_ok=True)

    sweep_task = None
    if settings.ENABLE_INPROCESS_SWEEP:
        from app.services.task_sweeper import get_task_sweeper

        sweep_task = asyncio.create_task(
            run_sweep_loop(get_task_sweeper(), settings.SWEEP_INTERVAL_SECONDS)
        )
        logger.info("In-process sweep every %.1fs", settings.SWEEP_INTERVAL_SECONDS)

    yield

    if sweep_task is not None:
        sweep_task.cancel()
        try:
            await sweep_task
        except asyncio.CancelledError:
            pass
    await close_db()
    logger.info("%s shut down", settings.APP_NAME)


app = FastAPI(
    title=f"{settings.APP_NAME} API",
    description="短剧生成任务编排 — 图片/视频生成任务的提交、轮询、超时清理与结果入库",
    version="0.1.0",
    lifespan=lifespan,
    redirect_slashes=False,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Mount API routes
app.include_router(api_router)
app.include_router(ws_router)

# Mount media static files
os.makedirs(settings.MEDIA_VOLUME, exist_ok=True)
app.mount("/media", StaticFiles(directory=settings.MEDIA_VOLUME), name="media")


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"service": settings.APP_NAME, "status": "running"}


@app.get("/health")
async def health():
    """Detailed health check."""
    return {
        "status": "healthy",
        "database": settings.DB_HOST,
        "inprocess_sweep": settings.ENABLE_INPROCESS_SWEEP,
    }
