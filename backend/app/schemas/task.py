from __future__ import annotations
"""Pydantic v2 schemas for generation tasks."""

import json
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator

from app.models.task import TaskCategory
from app.schemas.asset import AssetRead


class TaskSubmit(BaseModel):
    """Schema for submitting a generation task."""

    project_id: str
    category: TaskCategory
    related_id: str
    model: str
    provider_id: str | None = None
    input_params: dict[str, Any] = Field(default_factory=dict)


class TaskRead(BaseModel):
    """Schema for reading a task."""

    id: str
    project_id: str
    type: str
    model: str
    provider_id: str | None = None
    category: str
    related_id: str
    status: str
    input_params: dict[str, Any] = Field(default_factory=dict)
    external_task_id: str | None = None
    progress: int
    error: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}

    @field_validator("input_params", mode="before")
    @classmethod
    def _decode_params(cls, value: Any) -> Any:
        if value is None or value == "":
            return {}
        if isinstance(value, str):
            return json.loads(value)
        return value


class TaskDetail(TaskRead):
    """Task with the assets it produced."""

    assets: list[AssetRead] = Field(default_factory=list)


class TaskList(BaseModel):
    items: list[TaskRead]
    total: int
    page: int
    page_size: int


class TaskStats(BaseModel):
    total: int = 0
    pending: int = 0
    processing: int = 0
    completed: int = 0
    failed: int = 0
