from __future__ import annotations
"""Celery tasks for generation jobs.

- launch_generation_task: fire-and-forget handoff from the API after submit
- sweep_generation_tasks: beat-driven reconciliation sweep

Launch failures are persisted on the task by the service itself; anything that
escapes is logged here and the pending reaper fails the task later.
"""

import logging

from celery import shared_task

from app.config import get_settings
from app.models.task import Task
from app.tasks import run_async

logger = logging.getLogger(__name__)
settings = get_settings()

SWEEP_LOCK_KEY = "shortdrama:sweep_lock"


@shared_task
def launch_generation_task(task_id: str, user_id: str):
    """Launch one pending task against its provider."""
    from app.services.task_service import get_task_service

    try:
        task = run_async(get_task_service().launch_by_id(task_id, user_id))
    except Exception as exc:
        logger.error("Launch of task %s crashed: %s", task_id, exc, exc_info=True)
        return {"task_id": task_id, "status": "error"}
    return {"task_id": task_id, "status": task.status if task else None}


def dispatch_launch(task: Task, user_id: str) -> None:
    """Queue the launch; a broker outage leaves the task for the pending reaper."""
    try:
        launch_generation_task.delay(task.id, user_id)
    except Exception as exc:
        logger.error("Could not queue launch of task %s: %s", task.id, exc)


@shared_task
def sweep_generation_tasks():
    """Run one sweep. A Redis lock keeps sweeps from overlapping across workers.

    The lock carries a per-run token, so a sweep that outlives the TTL cannot
    release a lock another worker has taken since.
    """
    import redis
    from redis.exceptions import LockError
    from app.services.pubsub import _get_sync_pool
    from app.services.task_sweeper import get_task_sweeper

    redis_client = redis.Redis(connection_pool=_get_sync_pool())
    lock_ttl = max(60, int(settings.SWEEP_INTERVAL_SECONDS * 6))
    lock = redis_client.lock(SWEEP_LOCK_KEY, timeout=lock_ttl, blocking=False)
    if not lock.acquire():
        logger.debug("Sweep already running elsewhere, skipped")
        return {"status": "skipped"}

    try:
        report = run_async(get_task_sweeper().run())
    finally:
        try:
            lock.release()
        except LockError:
            logger.warning("Sweep lock expired before release (ttl=%ds)", lock_ttl)
    return {"status": "done", "reaped": report.reaped, "polled": report.polled, **report.outcomes}
