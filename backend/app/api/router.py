from __future__ import annotations
"""Master API router — mounts all sub-routers."""

from fastapi import APIRouter

from app.api.assets import router as assets_router
from app.api.models import router as models_router
from app.api.tasks import router as tasks_router

api_router = APIRouter(prefix="/api", redirect_slashes=False)

api_router.include_router(tasks_router, prefix="/tasks", tags=["Tasks"])
api_router.include_router(assets_router, prefix="/assets", tags=["Assets"])
api_router.include_router(models_router, prefix="/models", tags=["Models"])
