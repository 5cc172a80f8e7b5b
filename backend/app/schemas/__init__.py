"""Pydantic v2 schemas package."""

from app.schemas.asset import AssetRead, AssetUpload
from app.schemas.task import TaskDetail, TaskList, TaskRead, TaskStats, TaskSubmit

__all__ = [
    "AssetRead",
    "AssetUpload",
    "TaskDetail",
    "TaskList",
    "TaskRead",
    "TaskStats",
    "TaskSubmit",
]
