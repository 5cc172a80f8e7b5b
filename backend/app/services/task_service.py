"""Task service — submission, launch, cancellation and transactional transitions.

Every transition is one transaction that holds:
  1. a compare-and-set UPDATE of the task row (only from an allowed source status)
  2. the related entity write (task_entity_service)
  3. on completion, find-or-create of the result assets

If the guard in (1) matches no row, the task already moved on (cancelled,
finished by another writer) and the whole transition is skipped. Callers that
acted on an earlier read (the sweeper) narrow the guard to the status they saw
and, for timeouts, to the staleness they measured.
Notifications are published after commit and are best-effort.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from app.config import Settings
from app.database import utcnow
from app.models.asset import AssetType
from app.models.task import Task, TaskStatus, TaskType, sources_for, task_type_for
from app.services.asset_service import AssetCreate, create_assets
from app.services.provider_registry import ProviderRegistry
from app.services.providers.base import ProviderError
from app.services.task_entity_service import EntityState, update_related_entity_status

logger = logging.getLogger(__name__)

DIRECT_RESPONSE = "direct-response"
CANCELLED_MESSAGE = "User cancelled manually"
LAUNCH_PROGRESS = 10

Notifier = Callable[[str, dict[str, Any]], Awaitable[None]]
Dispatcher = Callable[[Task, str], None]


class TaskNotFoundError(LookupError):
    pass


class TaskAccessDeniedError(PermissionError):
    pass


class TaskAlreadyFinishedError(RuntimeError):
    pass


@dataclass(frozen=True)
class OrchestratorConfig:
    """Timeouts and batch size shared by the launcher and the sweeper."""
    pending_timeout_seconds: float = 300
    processing_timeout_seconds: float = 1200
    batch_size: int = 5

    @classmethod
    def from_settings(cls, settings: Settings) -> OrchestratorConfig:
        return cls(
            pending_timeout_seconds=settings.PENDING_TIMEOUT_SECONDS,
            processing_timeout_seconds=settings.PROCESSING_TIMEOUT_SECONDS,
            batch_size=settings.SWEEP_BATCH_SIZE,
        )


def task_update_message(task: Task) -> dict[str, Any]:
    return {
        "type": "task_update",
        "task_id": task.id,
        "category": task.category,
        "related_id": task.related_id,
        "status": task.status,
        "progress": task.progress,
        "error": task.error,
    }


class TaskService:
    """Launches generation tasks and applies their state transitions."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        registry: ProviderRegistry,
        config: OrchestratorConfig | None = None,
        notifier: Notifier | None = None,
        dispatcher: Dispatcher | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.registry = registry
        self.config = config or OrchestratorConfig()
        self._notifier = notifier
        self._dispatcher = dispatcher or self._spawn_launch
        self._background: set[asyncio.Task] = set()

    # ──────── Submission ────────

    async def submit_task(
        self,
        *,
        project_id: str,
        user_id: str,
        category: str,
        related_id: str,
        model: str,
        provider_id: str | None = None,
        input_params: dict[str, Any] | None = None,
    ) -> Task:
        """Create a pending task, mark its entity generating, then hand off the launch.

        Returns without waiting for the provider call.
        """
        task = Task(
            project_id=project_id,
            type=task_type_for(category).value,
            model=model,
            provider_id=provider_id,
            category=category,
            related_id=related_id,
            status=TaskStatus.PENDING.value,
            input_params=json.dumps(input_params or {}, ensure_ascii=False),
            progress=0,
        )
        async with self.session_factory() as session:
            async with session.begin():
                session.add(task)
                await session.flush()
                await update_related_entity_status(session, task, EntityState.GENERATING)

        logger.info("Task %s submitted (%s, model=%s)", task.id, category, model)
        await self._notify(task)
        self._dispatcher(task, user_id)
        return task

    def _spawn_launch(self, task: Task, user_id: str) -> None:
        """Default dispatcher: run the launch as a background asyncio task."""
        bg = asyncio.get_running_loop().create_task(self.start_task(task, user_id))
        self._background.add(bg)
        bg.add_done_callback(self._launch_done)

    def _launch_done(self, bg: asyncio.Task) -> None:
        self._background.discard(bg)
        if not bg.cancelled() and bg.exception() is not None:
            logger.error("Background launch crashed", exc_info=bg.exception())

    async def launch_by_id(self, task_id: str, user_id: str) -> Task | None:
        """Load a task and launch it if it is still pending."""
        async with self.session_factory() as session:
            task = await session.get(Task, task_id)
        if task is None:
            logger.warning("Launch requested for missing task %s", task_id)
            return None
        if task.status != TaskStatus.PENDING.value:
            logger.info("Task %s is %s, launch skipped", task_id, task.status)
            return task
        await self.start_task(task, user_id)
        return task

    # ──────── Launch ────────

    async def start_task(self, task: Task, user_id: str) -> None:
        """Submit a pending task to its provider and record the outcome.

        Any exception is persisted as a task failure; nothing is raised to the caller
        unless the failure itself cannot be written.
        """
        try:
            params = task.params
            if task.type == TaskType.VIDEO.value:
                resolved = await self.registry.video(user_id, task.model, task.provider_id)
                video_params = {
                    **params,
                    "duration": params.get("duration") or "10",
                    "aspect_ratio": params.get("aspect_ratio") or "16:9",
                    "images": params.get("images") or [],
                    "model": resolved.model_value or task.model,
                }
                result = await resolved.provider.generate_video(video_params, resolved.api_key)
                external_task_id = (result or {}).get("task_id")
                if not external_task_id:
                    raise ProviderError("Video provider returned no task id")
            else:
                resolved = await self.registry.image(user_id, task.model, task.provider_id)
                image_params = {
                    **params,
                    "n": params.get("n") or 1,
                    "model": resolved.model_value or task.model,
                }
                result = await resolved.provider.generate_image(image_params, resolved.api_key) or {}
                if result.get("url"):
                    urls = result.get("urls") or [result["url"]]
                    await self.complete_task(task, result["url"], user_id, urls=urls, external_task_id=DIRECT_RESPONSE)
                    logger.info("Task %s completed synchronously with %d url(s)", task.id, len(urls))
                    return
                external_task_id = result.get("task_id")
                if not external_task_id:
                    raise ProviderError("Unknown response from image provider")

            await self.mark_processing(task, str(external_task_id))
            logger.info("Task %s launched, external task %s", task.id, external_task_id)
        except Exception as e:
            logger.error("Failed to start task %s: %s", task.id, e, exc_info=True)
            await self.fail_task(task, str(e) or type(e).__name__)

    # ──────── Cancellation ────────

    async def cancel_task(self, task_id: str, user_id: str | None = None) -> Task:
        """Fail a pending/processing task locally; the provider is not contacted."""
        async with self.session_factory() as session:
            task = await session.get(Task, task_id, options=[selectinload(Task.project)])
        if task is None:
            raise TaskNotFoundError(f"Task {task_id} not found")
        if user_id is not None and task.project.user_id != user_id:
            raise TaskAccessDeniedError(f"Task {task_id} does not belong to user {user_id}")
        if task.is_terminal:
            raise TaskAlreadyFinishedError(f"Task {task_id} already {task.status}")

        if not await self.fail_task(task, CANCELLED_MESSAGE):
            raise TaskAlreadyFinishedError(f"Task {task_id} finished before it could be cancelled")
        logger.info("Task %s cancelled by user %s", task_id, user_id)
        return task

    # ──────── Transitions ────────

    async def mark_processing(self, task: Task, external_task_id: str) -> bool:
        return await self._transition(
            task,
            TaskStatus.PROCESSING,
            {"external_task_id": external_task_id, "progress": LAUNCH_PROGRESS},
            EntityState.GENERATING,
        )

    async def complete_task(
        self,
        task: Task,
        result_url: str,
        user_id: str,
        *,
        urls: list[str] | None = None,
        external_task_id: str | None = None,
        expected: Iterable[TaskStatus] | None = None,
    ) -> bool:
        """Mark completed, record one asset per url and fill the entity with `result_url`."""
        values: dict[str, Any] = {"progress": 100, "error": None}
        if external_task_id is not None:
            values["external_task_id"] = external_task_id
        asset_type = AssetType.VIDEO.value if task.type == TaskType.VIDEO.value else AssetType.IMAGE.value
        assets = [
            AssetCreate(
                user_id=user_id,
                url=url,
                type=asset_type,
                project_id=task.project_id,
                task_id=task.id,
                usage=task.asset_usage,
                related_id=task.related_id,
            )
            for url in (urls or [result_url])
        ]

        async def write(session: AsyncSession) -> None:
            await create_assets(session, assets)

        return await self._transition(
            task, TaskStatus.COMPLETED, values, EntityState.COMPLETED,
            result_url=result_url, extra=write, expected=expected,
        )

    async def fail_task(
        self,
        task: Task,
        error: str,
        *,
        expected: Iterable[TaskStatus] | None = None,
        updated_before: datetime | None = None,
    ) -> bool:
        return await self._transition(
            task, TaskStatus.FAILED, {"error": error}, EntityState.FAILED, error_msg=error,
            expected=expected, updated_before=updated_before,
        )

    async def _transition(
        self,
        task: Task,
        target: TaskStatus,
        values: dict[str, Any],
        entity_state: EntityState,
        *,
        result_url: str | None = None,
        error_msg: str | None = None,
        extra: Callable[[AsyncSession], Awaitable[None]] | None = None,
        expected: Iterable[TaskStatus] | None = None,
        updated_before: datetime | None = None,
    ) -> bool:
        """Apply one guarded transition. Returns False when the task was no longer eligible.

        `expected` narrows the allowed source statuses (it is intersected with the
        statuses `target` may be entered from); `updated_before` additionally
        requires the row to be untouched since that instant.
        """
        sources = sources_for(target)
        if expected is not None:
            narrowed = {TaskStatus(s).value for s in expected}
            sources = [s for s in sources if s in narrowed]
        conditions = [Task.id == task.id, Task.status.in_(sources)]
        if updated_before is not None:
            conditions.append(Task.updated_at < updated_before)

        now = utcnow()
        async with self.session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    update(Task)
                    .where(*conditions)
                    .values(status=target.value, updated_at=now, **values)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 0:
                    logger.info("Task %s no longer eligible for %s, skipped", task.id, target.value)
                    return False

                await update_related_entity_status(
                    session, task, entity_state, result_url=result_url, error_msg=error_msg,
                )
                if extra is not None:
                    await extra(session)

        task.status = target.value
        task.updated_at = now
        for key, value in values.items():
            setattr(task, key, value)
        await self._notify(task)
        return True

    async def _notify(self, task: Task) -> None:
        if self._notifier is None:
            return
        try:
            await self._notifier(task.project_id, task_update_message(task))
        except Exception as e:
            logger.warning("Failed to publish update for task %s: %s", task.id, e)


_service: TaskService | None = None


def get_task_service() -> TaskService:
    """Process-wide service built from settings (Celery and FastAPI entry points)."""
    global _service
    if _service is None:
        from app.config import get_settings
        from app.database import async_session_factory
        from app.services.provider_registry import build_provider_registry
        from app.services.pubsub import publish_task_update
        from app.tasks.generation_tasks import dispatch_launch

        settings = get_settings()
        _service = TaskService(
            async_session_factory,
            build_provider_registry(settings),
            OrchestratorConfig.from_settings(settings),
            notifier=publish_task_update,
            dispatcher=dispatch_launch,
        )
    return _service
