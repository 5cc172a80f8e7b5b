"""Reconciliation sweep — reaps stuck tasks and polls in-flight ones.

One sweep runs two phases:
  A. pending tasks not touched within the pending timeout are failed
     (the launch never reached its first write)
  B. processing tasks are polled in batches; batches run sequentially,
     tasks within a batch concurrently

A poll that raises leaves the task untouched until the next sweep; the
processing timeout is the only bound on those retries.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from app.database import utcnow
from app.models.task import Task, TaskStatus, TaskType
from app.services.task_service import TaskService

logger = logging.getLogger(__name__)

PENDING_TIMEOUT_MESSAGE = "task failed to start (timeout)"
PROCESSING_TIMEOUT_MESSAGE = "task timed out"
MISSING_RESULT_MESSAGE = "success but no result URL"
UNKNOWN_ERROR_MESSAGE = "Unknown error"

_SUCCESS_STATUSES = {"success", "succeeded", "succeed", "completed"}
_FAILED_STATUSES = {"failed", "failure", "error", "cancelled"}

_IN_FLIGHT = frozenset({TaskStatus.PROCESSING})


class PollStatus(str, enum.Enum):
    SUCCESS = "success"
    FAILED = "failed"
    RUNNING = "running"


def normalize_status(raw: Any) -> PollStatus:
    """Map a provider's status vocabulary onto success/failed/running."""
    value = str(raw or "").strip().lower()
    if value in _SUCCESS_STATUSES:
        return PollStatus.SUCCESS
    if value in _FAILED_STATUSES:
        return PollStatus.FAILED
    return PollStatus.RUNNING


def result_url(result: dict[str, Any]) -> str | None:
    return result.get("url") or result.get("video_url") or result.get("image_url") or None


@dataclass
class SweepReport:
    reaped: int = 0
    polled: int = 0
    outcomes: dict[str, int] = field(default_factory=dict)

    def count(self, outcome: str) -> None:
        self.outcomes[outcome] = self.outcomes.get(outcome, 0) + 1


class TaskSweeper:
    """Runs sweeps against the task service's session factory and registry."""

    def __init__(self, service: TaskService) -> None:
        self.service = service
        self.config = service.config
        self._lock = asyncio.Lock()

    async def run(self, now: datetime | None = None) -> SweepReport:
        """One full sweep. Overlapping calls in the same process are skipped."""
        report = SweepReport()
        if self._lock.locked():
            logger.debug("Sweep already running, skipped")
            return report
        async with self._lock:
            now = now or utcnow()
            report.reaped = await self.reap_pending(now)
            for outcome in await self.poll_processing(now):
                report.polled += 1
                report.count(outcome)

        if report.reaped or report.polled:
            logger.info("Sweep done: reaped=%d polled=%d %s", report.reaped, report.polled, report.outcomes)
        return report

    # ──────── Phase A ────────

    async def reap_pending(self, now: datetime) -> int:
        cutoff = now - timedelta(seconds=self.config.pending_timeout_seconds)
        async with self.service.session_factory() as session:
            result = await session.execute(
                select(Task).where(
                    Task.status == TaskStatus.PENDING.value,
                    Task.updated_at < cutoff,
                )
            )
            stuck = list(result.scalars().all())

        reaped = 0
        for task in stuck:
            try:
                if await self.service.fail_task(
                    task, PENDING_TIMEOUT_MESSAGE,
                    expected={TaskStatus.PENDING}, updated_before=cutoff,
                ):
                    reaped += 1
                    logger.warning("Task %s never started, marked failed", task.id)
            except Exception as e:
                logger.error("Failed to reap task %s: %s", task.id, e, exc_info=True)
        return reaped

    # ──────── Phase B ────────

    async def poll_processing(self, now: datetime) -> list[str]:
        async with self.service.session_factory() as session:
            result = await session.execute(
                select(Task)
                .options(selectinload(Task.project))
                .where(Task.status == TaskStatus.PROCESSING.value)
                .order_by(Task.updated_at)
            )
            tasks = list(result.scalars().all())

        outcomes: list[str] = []
        size = max(1, self.config.batch_size)
        for start in range(0, len(tasks), size):
            batch = tasks[start:start + size]
            outcomes.extend(await asyncio.gather(*(self._check_isolated(t, now) for t in batch)))
        return outcomes

    async def _check_isolated(self, task: Task, now: datetime) -> str:
        try:
            return await self.check_task(task, now)
        except Exception as e:
            logger.error("Sweep failed for task %s: %s", task.id, e, exc_info=True)
            return "error"

    async def check_task(self, task: Task, now: datetime) -> str:
        """Reconcile one processing task; returns the outcome name."""
        age = (now - task.updated_at).total_seconds()
        if age > self.config.processing_timeout_seconds:
            cutoff = now - timedelta(seconds=self.config.processing_timeout_seconds)
            if not await self.service.fail_task(
                task, PROCESSING_TIMEOUT_MESSAGE, expected=_IN_FLIGHT, updated_before=cutoff,
            ):
                return "skipped"
            logger.warning("Task %s timed out after %.0fs", task.id, age)
            return "timed_out"

        if not task.external_task_id:
            logger.warning("Processing task %s has no external task id", task.id)
            return "skipped"

        user_id = task.project.user_id if task.project is not None else None
        try:
            if task.type == TaskType.VIDEO.value:
                resolved = await self.service.registry.video(user_id, task.model, task.provider_id)
            else:
                resolved = await self.service.registry.image(user_id, task.model, task.provider_id)

            query = getattr(resolved.provider, "query_task", None)
            if query is None:
                logger.warning("Provider %s cannot query task %s", resolved.provider_id, task.id)
                return "skipped"
            result = await query(task.external_task_id, resolved.api_key) or {}
        except Exception as e:
            logger.warning("Poll failed for task %s, retrying next sweep: %s", task.id, e)
            return "retry"

        status = normalize_status(result.get("status"))
        if status is PollStatus.SUCCESS:
            url = result_url(result)
            if not url:
                logger.warning("Task %s reported success without a result URL", task.id)
                if not await self.service.fail_task(task, MISSING_RESULT_MESSAGE, expected=_IN_FLIGHT):
                    return "skipped"
                return "failed"
            if not await self.service.complete_task(task, url, user_id, expected=_IN_FLIGHT):
                return "skipped"
            logger.info("Task %s completed: %s", task.id, url)
            return "completed"

        if status is PollStatus.FAILED:
            reason = result.get("fail_reason") or result.get("error") or UNKNOWN_ERROR_MESSAGE
            if not await self.service.fail_task(task, str(reason), expected=_IN_FLIGHT):
                return "skipped"
            logger.info("Task %s failed at provider: %s", task.id, reason)
            return "failed"

        return "running"


_sweeper: TaskSweeper | None = None


def get_task_sweeper() -> TaskSweeper:
    global _sweeper
    if _sweeper is None:
        from app.services.task_service import get_task_service

        _sweeper = TaskSweeper(get_task_service())
    return _sweeper
