from __future__ import annotations
"""Project ORM model — the owner scope of entities, tasks and assets."""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base, utcnow


class Project(Base):
    """A short-drama project owned by one user."""

    __tablename__ = "projects"
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
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    aspect_ratio: Mapped[str] = mapped_column(String(10), nullable=False, default="16:9")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    characters = relationship(
        "ProjectCharacter", back_populates="project", cascade="all, delete-orphan"
    )
    scenes = relationship(
        "ProjectScene", back_populates="project", cascade="all, delete-orphan"
    )
    props = relationship(
        "ProjectProp", back_populates="project", cascade="all, delete-orphan"
    )
    storyboards = relationship(
        "ProjectStoryboard",
        back_populates="project",
        cascade="all, delete-orphan",
        order_by="ProjectStoryboard.sort_order",
    )
    tasks = relationship("Task", back_populates="project", cascade="all, delete-orphan")
