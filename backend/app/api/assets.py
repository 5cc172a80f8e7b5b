from __future__ import annotations
"""Asset API — record uploads and list per-entity history."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user_id, get_owned_project
from app.database import get_db
from app.models.asset import AssetSource
from app.models.task import TaskCategory, asset_usage_for, task_type_for
from app.schemas.asset import AssetRead, AssetUpload
from app.services.asset_service import AssetCreate, create_asset, get_history

router = APIRouter()


@router.post("", response_model=AssetRead, status_code=201)
async def record_upload(
    data: AssetUpload,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Record an uploaded file; an identical record is returned instead of duplicated."""
    if data.project_id:
        await get_owned_project(data.project_id, db, user_id)
    return await create_asset(
        db,
        AssetCreate(
            user_id=user_id,
            url=data.url,
            type=data.type.value,
            project_id=data.project_id,
            usage=data.usage.value if data.usage else None,
            related_id=data.related_id,
            source=AssetSource.UPLOAD.value,
        ),
    )


@router.get("/history", response_model=list[AssetRead])
async def asset_history(
    category: TaskCategory,
    related_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Earlier results for the entity a category targets, newest first."""
    return await get_history(
        db,
        user_id,
        asset_usage_for(category.value),
        related_id,
        asset_type=task_type_for(category).value,
    )
