from __future__ import annotations
"""Pydantic v2 schemas for assets."""

from datetime import datetime

from pydantic import BaseModel

from app.models.asset import AssetType, AssetUsage


class AssetUpload(BaseModel):
    """Schema for recording an uploaded file as an asset."""

    url: str
    type: AssetType = AssetType.IMAGE
    project_id: str | None = None
    usage: AssetUsage | None = None
    related_id: str | None = None


class AssetRead(BaseModel):
    """Schema for reading an asset."""

    id: str
    user_id: str
    project_id: str | None = None
    task_id: str | None = None
    type: str
    usage: str | None = None
    related_id: str | None = None
    source: str
    url: str
    created_at: datetime | None = None

    model_config = {"from_attributes": True}
