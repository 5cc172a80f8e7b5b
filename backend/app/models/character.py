from __future__ import annotations
"""ProjectCharacter ORM model — a cast member with a portrait and a showcase video."""

import enum
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base, utcnow


class ImageStatus(str, enum.Enum):
    """Portrait / storyboard-frame generation statuses."""

    IDLE = "idle"
    GENERATING = "generating"
    GENERATED = "generated"
    FAILED = "failed"


class VideoStatus(str, enum.Enum):
    """Character showcase video statuses."""

    DRAFT = "draft"
    GENERATING = "generating"
    GENERATED = "generated"
    FAILED = "failed"


class ProjectCharacter(Base):
    """A character extracted from the script."""

    __tablename__ = "project_characters"
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
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    image_url: Mapped[Optional[str]] = mapped_column(String(2048), nullable=True)
    image_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ImageStatus.IDLE.value
    )
    video_url: Mapped[Optional[str]] = mapped_column(String(2048), nullable=True)
    video_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=VideoStatus.DRAFT.value
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    project = relationship("Project", back_populates="characters")
