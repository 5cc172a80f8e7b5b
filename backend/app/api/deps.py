from __future__ import annotations
"""Shared FastAPI dependencies."""

from fastapi import Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.project import Project
from app.services.provider_registry import ProviderRegistry
from app.services.task_service import TaskService, get_task_service


async def get_current_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """User identity forwarded by the gateway in `X-User-Id`."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return x_user_id


def get_service() -> TaskService:
    return get_task_service()


def get_registry(service: TaskService = Depends(get_service)) -> ProviderRegistry:
    return service.registry


async def get_owned_project(
    project_id: str,
    db: AsyncSession,
    user_id: str,
) -> Project:
    project = await db.get(Project, project_id)
    if project is None:
        raise HTTPException(status_code=404, detail="Project not found")
    if project.user_id != user_id:
        raise HTTPException(status_code=403, detail="Project belongs to another user")
    return project
