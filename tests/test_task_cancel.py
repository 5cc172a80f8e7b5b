import pytest

from app.models import ProjectStoryboard, Task
from app.services.task_service import (
    CANCELLED_MESSAGE,
    TaskAccessDeniedError,
    TaskAlreadyFinishedError,
    TaskNotFoundError,
)
from app.tasks import run_async

from fakes import USER_ID, create_task, load


def _task(session_factory, seeded, status):
    return run_async(create_task(
        session_factory,
        project_id=seeded["project_id"],
        category="storyboard_video",
        related_id=seeded["storyboard_id"],
        status=status,
        external_task_id="ext-1" if status != "pending" else None,
    ))


@pytest.mark.parametrize("status", ["pending", "processing"])
def test_cancel_active_task(service, session_factory, seeded, notifications, status):
    task = _task(session_factory, seeded, status)

    cancelled = run_async(service.cancel_task(task.id, USER_ID))

    assert cancelled.status == "failed"
    stored = run_async(load(session_factory, Task, task.id))
    assert stored.status == "failed"
    assert stored.error == CANCELLED_MESSAGE
    storyboard = run_async(load(session_factory, ProjectStoryboard, seeded["storyboard_id"]))
    assert storyboard.status == "failed"
    assert storyboard.error_msg == CANCELLED_MESSAGE
    assert notifications[-1][1]["error"] == CANCELLED_MESSAGE


@pytest.mark.parametrize("status", ["completed", "failed"])
def test_cancel_finished_task_is_rejected(service, session_factory, seeded, status):
    task = _task(session_factory, seeded, status)

    with pytest.raises(TaskAlreadyFinishedError):
        run_async(service.cancel_task(task.id, USER_ID))

    stored = run_async(load(session_factory, Task, task.id))
    assert stored.status == status
    assert stored.error is None


def test_cancel_missing_task(service):
    with pytest.raises(TaskNotFoundError):
        run_async(service.cancel_task("nope", USER_ID))


def test_cancel_someone_elses_task(service, session_factory, seeded):
    task = _task(session_factory, seeded, "processing")

    with pytest.raises(TaskAccessDeniedError):
        run_async(service.cancel_task(task.id, "intruder"))

    assert run_async(load(session_factory, Task, task.id)).status == "processing"
