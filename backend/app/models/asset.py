from __future__ import annotations
"""Asset ORM model — one generated or uploaded media file."""

import enum
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base, utcnow


class AssetType(str, enum.Enum):
    """Types of media assets."""
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"


class AssetUsage(str, enum.Enum):
    """What the asset illustrates."""
    CHARACTER = "character"
    SCENE = "scene"
    PROP = "prop"
    STORYBOARD = "storyboard"
    GENERAL = "general"


class AssetSource(str, enum.Enum):
    UPLOAD = "upload"
    GENERATED = "generated"


class Asset(Base):
    """A media record; (user, project, task, type, usage, related, source, url) is unique in practice."""

    __tablename__ = "assets"
    __table_args__ = {
        "mysql_charset": "utf8mb4",
        "mysql_collate": "utf8mb4_unicode_ci",
    }

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: uuid.uuid4().hex[:36],
    )
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    project_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    task_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("tasks.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    type: Mapped[str] = mapped_column(String(10), nullable=False, default=AssetType.IMAGE.value)
    usage: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    related_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)
    source: Mapped[str] = mapped_column(
        String(20), nullable=False, default=AssetSource.GENERATED.value
    )
    url: Mapped[str] = mapped_column(String(2048), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    # Relationships
    task = relationship("Task", back_populates="assets")
