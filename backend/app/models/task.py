from __future__ import annotations
"""Task ORM model — one image/video generation job against an external AI provider."""

import enum
import json
import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base, utcnow


class TaskStatus(str, enum.Enum):
    """Task lifecycle statuses — completed and failed are terminal."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class TaskType(str, enum.Enum):
    IMAGE = "image"
    VIDEO = "video"


class TaskCategory(str, enum.Enum):
    """Which entity (and which of its fields) a task fills."""

    CHARACTER_IMAGE = "character_image"
    CHARACTER_VIDEO = "character_video"
    STORYBOARD_IMAGE = "storyboard_image"
    STORYBOARD_VIDEO = "storyboard_video"
    UPSCALE = "upscale"
    SCENE_IMAGE = "scene_image"
    PROP_IMAGE = "prop_image"


# Explicit valid transitions: status -> set of reachable statuses
VALID_TRANSITIONS: dict[TaskStatus, set[TaskStatus]] = {
    TaskStatus.PENDING: {TaskStatus.PROCESSING, TaskStatus.COMPLETED, TaskStatus.FAILED},
    TaskStatus.PROCESSING: {TaskStatus.COMPLETED, TaskStatus.FAILED},
    TaskStatus.COMPLETED: set(),  # terminal state
    TaskStatus.FAILED: set(),  # terminal state
}

TERMINAL_STATUSES: frozenset[str] = frozenset(
    s.value for s, targets in VALID_TRANSITIONS.items() if not targets
)

_VIDEO_CATEGORIES = {
    TaskCategory.CHARACTER_VIDEO,
    TaskCategory.STORYBOARD_VIDEO,
    TaskCategory.UPSCALE,
}

# Category -> asset usage, everything unlisted is "general"
_ASSET_USAGE: dict[str, str] = {
    TaskCategory.CHARACTER_IMAGE.value: "character",
    TaskCategory.CHARACTER_VIDEO.value: "character",
    TaskCategory.SCENE_IMAGE.value: "scene",
    TaskCategory.PROP_IMAGE.value: "prop",
    TaskCategory.STORYBOARD_IMAGE.value: "storyboard",
    TaskCategory.STORYBOARD_VIDEO.value: "storyboard",
    TaskCategory.UPSCALE.value: "storyboard",
}


def task_type_for(category: TaskCategory | str) -> TaskType:
    """Video for *_video and upscale, image otherwise."""
    return TaskType.VIDEO if TaskCategory(category) in _VIDEO_CATEGORIES else TaskType.IMAGE


def asset_usage_for(category: str) -> str:
    return _ASSET_USAGE.get(category, "general")


def sources_for(target: TaskStatus) -> list[str]:
    """Statuses from which `target` may be entered."""
    return [s.value for s, targets in VALID_TRANSITIONS.items() if target in targets]


class Task(Base):
    """A generation job. `related_id` points into the table selected by `category`."""

    __tablename__ = "tasks"
    __table_args__ = {
        "mysql_charset": "utf8mb4",
        "mysql_collate": "utf8mb4_unicode_ci",
    }

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: uuid.uuid4().hex[:36],
    )
    project_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    type: Mapped[str] = mapped_column(String(10), nullable=False, default=TaskType.IMAGE.value)
    model: Mapped[str] = mapped_column(String(100), nullable=False)
    provider_id: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    category: Mapped[str] = mapped_column(String(30), nullable=False, index=True)
    related_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=TaskStatus.PENDING.value, index=True
    )
    input_params: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    external_task_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, index=True
    )

    # Relationships
    project = relationship("Project", back_populates="tasks")
    assets = relationship("Asset", back_populates="task")

    @property
    def params(self) -> dict[str, Any]:
        """Decoded input_params (empty dict when unset)."""
        if not self.input_params:
            return {}
        return json.loads(self.input_params)

    @property
    def asset_usage(self) -> str:
        return asset_usage_for(self.category)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
