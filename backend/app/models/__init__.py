"""ORM model package — registers all models with Base.metadata."""

from app.models.project import Project
from app.models.character import ProjectCharacter, ImageStatus, VideoStatus
from app.models.scene import ProjectScene, SceneStatus
from app.models.prop import ProjectProp
from app.models.storyboard import ProjectStoryboard, StoryboardStatus, HighResStatus
from app.models.task import (
    Task,
    TaskCategory,
    TaskStatus,
    TaskType,
    TERMINAL_STATUSES,
    VALID_TRANSITIONS,
)
from app.models.asset import Asset, AssetSource, AssetType, AssetUsage

__all__ = [
    "Project",
    "ProjectCharacter",
    "ImageStatus",
    "VideoStatus",
    "ProjectScene",
    "SceneStatus",
    "ProjectProp",
    "ProjectStoryboard",
    "StoryboardStatus",
    "HighResStatus",
    "Task",
    "TaskCategory",
    "TaskStatus",
    "TaskType",
    "TERMINAL_STATUSES",
    "VALID_TRANSITIONS",
    "Asset",
    "AssetSource",
    "AssetType",
    "AssetUsage",
]
