from __future__ import annotations
"""ProjectStoryboard ORM model — one shot: a keyframe, its video and an optional upscaled cut."""

import enum
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base, utcnow
from app.models.character import ImageStatus


class StoryboardStatus(str, enum.Enum):
    """Storyboard video lifecycle statuses."""

    DRAFT = "draft"
    GENERATING_VIDEO = "generating_video"
    VIDEO_GENERATED = "video_generated"
    FAILED = "failed"


class HighResStatus(str, enum.Enum):
    """Upscale (super-resolution) statuses."""

    IDLE = "idle"
    GENERATING = "generating"
    SUCCESS = "success"
    FAILED = "failed"


class ProjectStoryboard(Base):
    """A storyboard shot split from the script."""

    __tablename__ = "project_storyboards"
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
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    text: Mapped[str] = mapped_column(Text, nullable=False, default="")
    prompt: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    duration: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Keyframe image
    image_url: Mapped[Optional[str]] = mapped_column(String(2048), nullable=True)
    image_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ImageStatus.IDLE.value
    )

    # Shot video
    video_url: Mapped[Optional[str]] = mapped_column(String(2048), nullable=True)
    status: Mapped[str] = mapped_column(
        String(30), nullable=False, default=StoryboardStatus.DRAFT.value
    )
    error_msg: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Upscaled video
    high_res_video_url: Mapped[Optional[str]] = mapped_column(String(2048), nullable=True)
    high_res_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=HighResStatus.IDLE.value
    )
    high_res_error_msg: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    project = relationship("Project", back_populates="storyboards")
