from __future__ import annotations
"""Generation task API — submit, query, cancel and delete tasks."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.api.deps import get_current_user_id, get_owned_project, get_service
from app.database import get_db
from app.models.project import Project
from app.models.task import Task, TaskStatus
from app.schemas.task import TaskDetail, TaskList, TaskRead, TaskStats, TaskSubmit
from app.services.task_service import (
    TaskAccessDeniedError,
    TaskAlreadyFinishedError,
    TaskNotFoundError,
    TaskService,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _split(value: str | None) -> list[str]:
    return [v.strip() for v in value.split(",") if v.strip()] if value else []


@router.get("", response_model=TaskList)
async def list_tasks(
    project_id: str | None = None,
    type: str | None = None,
    category: str | None = Query(default=None, description="Comma-separated categories"),
    status: str | None = Query(default=None, description="Comma-separated statuses"),
    related_id: str | None = None,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """List the user's tasks, newest first."""
    query = select(Task).join(Project, Task.project_id == Project.id).where(Project.user_id == user_id)
    if project_id:
        query = query.where(Task.project_id == project_id)
    if type:
        query = query.where(Task.type == type)
    if categories := _split(category):
        query = query.where(Task.category.in_(categories))
    if statuses := _split(status):
        query = query.where(Task.status.in_(statuses))
    if related_id:
        query = query.where(Task.related_id == related_id)

    total = await db.scalar(select(func.count()).select_from(query.subquery()))
    result = await db.execute(
        query.order_by(Task.created_at.desc(), Task.id.desc())
        .limit(page_size)
        .offset((page - 1) * page_size)
    )
    return TaskList(
        items=[TaskRead.model_validate(t) for t in result.scalars().all()],
        total=total or 0,
        page=page,
        page_size=page_size,
    )


@router.get("/stats", response_model=TaskStats)
async def task_stats(
    project_id: str | None = None,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Count the user's tasks per status."""
    query = (
        select(Task.status, func.count())
        .join(Project, Task.project_id == Project.id)
        .where(Project.user_id == user_id)
        .group_by(Task.status)
    )
    if project_id:
        query = query.where(Task.project_id == project_id)
    counts = {status: count for status, count in (await db.execute(query)).all()}
    return TaskStats(
        total=sum(counts.values()),
        **{s.value: counts.get(s.value, 0) for s in TaskStatus},
    )


@router.get("/{task_id}", response_model=TaskDetail)
async def get_task(
    task_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    task = await db.get(Task, task_id, options=[selectinload(Task.project), selectinload(Task.assets)])
    if task is None:
        raise HTTPException(status_code=404, detail="Task not found")
    if task.project.user_id != user_id:
        raise HTTPException(status_code=403, detail="Task belongs to another user")
    return task


@router.post("", response_model=TaskRead, status_code=201)
async def submit_task(
    data: TaskSubmit,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    service: TaskService = Depends(get_service),
):
    """Create a generation task; the provider call runs in the background."""
    await get_owned_project(data.project_id, db, user_id)
    return await service.submit_task(
        project_id=data.project_id,
        user_id=user_id,
        category=data.category.value,
        related_id=data.related_id,
        model=data.model,
        provider_id=data.provider_id,
        input_params=data.input_params,
    )


@router.post("/{task_id}/cancel", response_model=TaskRead)
async def cancel_task(
    task_id: str,
    user_id: str = Depends(get_current_user_id),
    service: TaskService = Depends(get_service),
):
    try:
        return await service.cancel_task(task_id, user_id)
    except TaskNotFoundError:
        raise HTTPException(status_code=404, detail="Task not found")
    except TaskAccessDeniedError:
        raise HTTPException(status_code=403, detail="Task belongs to another user")
    except TaskAlreadyFinishedError:
        raise HTTPException(status_code=400, detail="Task already finished")


@router.delete("/{task_id}", status_code=204)
async def delete_task(
    task_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Delete a task; its assets stay with task_id cleared."""
    task = await db.get(Task, task_id, options=[selectinload(Task.project), selectinload(Task.assets)])
    if task is None:
        raise HTTPException(status_code=404, detail="Task not found")
    if task.project.user_id != user_id:
        raise HTTPException(status_code=403, detail="Task belongs to another user")
    await db.delete(task)
    logger.info("Task %s deleted by user %s", task_id, user_id)
