from datetime import timedelta

import pytest
from sqlalchemy import update

from app.database import utcnow
from app.models import Asset, ProjectCharacter, ProjectScene, ProjectStoryboard, Task
from app.services.model_catalog import build_catalog
from app.services.provider_registry import ProviderRegistry
from app.services.task_service import CANCELLED_MESSAGE, OrchestratorConfig, TaskService
from app.services.task_sweeper import PollStatus, TaskSweeper, normalize_status
from app.tasks import run_async

from fakes import (
    USER_ID,
    DirectImageProvider,
    count_rows,
    create_task,
    list_assets,
    load,
    load_task_with_project,
)


@pytest.fixture()
def sweeper(service):
    return TaskSweeper(service)


def _task(session_factory, seeded, category="character_video", key="character_id", **kwargs):
    return run_async(create_task(
        session_factory,
        project_id=seeded["project_id"],
        category=category,
        related_id=seeded[key],
        **kwargs,
    ))


def _processing(session_factory, seeded, external_task_id="ext-1", **kwargs):
    return _task(session_factory, seeded, status="processing", external_task_id=external_task_id, **kwargs)


async def _touch(session_factory, task_id):
    async with session_factory() as session:
        async with session.begin():
            await session.execute(update(Task).where(Task.id == task_id).values(updated_at=utcnow()))


@pytest.mark.parametrize("raw, expected", [
    ("success", PollStatus.SUCCESS),
    ("SUCCESS", PollStatus.SUCCESS),
    ("completed", PollStatus.SUCCESS),
    ("succeeded", PollStatus.SUCCESS),
    ("failed", PollStatus.FAILED),
    ("FAILURE", PollStatus.FAILED),
    ("error", PollStatus.FAILED),
    ("queued", PollStatus.RUNNING),
    ("in_progress", PollStatus.RUNNING),
    (None, PollStatus.RUNNING),
])
def test_normalize_status(raw, expected):
    assert normalize_status(raw) is expected


def test_stuck_pending_task_is_reaped(sweeper, session_factory, seeded):
    stuck = _task(session_factory, seeded, category="scene_image", key="scene_id",
                  updated_at=utcnow() - timedelta(minutes=6))
    fresh = _task(session_factory, seeded, updated_at=utcnow() - timedelta(minutes=1))

    report = run_async(sweeper.run())

    assert report.reaped == 1
    stored = run_async(load(session_factory, Task, stuck.id))
    assert stored.status == "failed"
    assert "timeout" in stored.error
    assert run_async(load(session_factory, ProjectScene, seeded["scene_id"])).status == "failed"
    assert run_async(load(session_factory, Task, fresh.id)).status == "pending"


def test_processing_timeout_wins_over_provider_success(sweeper, session_factory, seeded, provider):
    task = _processing(session_factory, seeded, updated_at=utcnow() - timedelta(minutes=21))
    provider.query_results["ext-1"] = {"status": "success", "url": "https://x/v.mp4"}

    run_async(sweeper.run())

    stored = run_async(load(session_factory, Task, task.id))
    assert stored.status == "failed"
    assert "timed out" in stored.error
    assert provider.query_calls == []
    assert run_async(count_rows(session_factory, Asset)) == 0


def test_video_job_end_to_end(service, sweeper, session_factory, seeded, provider):
    task = _task(session_factory, seeded)
    run_async(service.start_task(task, USER_ID))
    assert run_async(load(session_factory, Task, task.id)).status == "processing"

    provider.query_results["ext-1"] = {"status": "success", "url": "https://x/v.mp4"}
    run_async(sweeper.run())

    stored = run_async(load(session_factory, Task, task.id))
    assert stored.status == "completed"
    assert stored.progress == 100
    assets = run_async(list_assets(session_factory, task_id=task.id))
    assert [(a.url, a.type, a.usage, a.user_id) for a in assets] == [
        ("https://x/v.mp4", "video", "character", USER_ID),
    ]
    character = run_async(load(session_factory, ProjectCharacter, seeded["character_id"]))
    assert character.video_status == "generated"
    assert character.video_url == "https://x/v.mp4"


def test_video_url_is_used_when_url_is_missing(sweeper, session_factory, seeded, provider):
    task = _processing(session_factory, seeded, category="upscale", key="storyboard_id", model="flash_vsr")
    provider.query_results["ext-1"] = {"status": "completed", "video_url": "https://x/hd.mp4"}

    run_async(sweeper.run())

    assert run_async(load(session_factory, Task, task.id)).status == "completed"
    storyboard = run_async(load(session_factory, ProjectStoryboard, seeded["storyboard_id"]))
    assert storyboard.high_res_status == "success"
    assert storyboard.high_res_video_url == "https://x/hd.mp4"


def test_success_without_url_is_failure(sweeper, session_factory, seeded, provider):
    task = _processing(session_factory, seeded)
    provider.query_results["ext-1"] = {"status": "success"}

    run_async(sweeper.run())

    stored = run_async(load(session_factory, Task, task.id))
    assert stored.status == "failed"
    assert stored.error == "success but no result URL"
    assert run_async(count_rows(session_factory, Asset)) == 0


def test_provider_failure_reason_is_recorded(sweeper, session_factory, seeded, provider):
    task = _processing(session_factory, seeded, category="storyboard_video", key="storyboard_id")
    provider.query_results["ext-1"] = {"status": "failed", "fail_reason": "content policy"}

    run_async(sweeper.run())

    assert run_async(load(session_factory, Task, task.id)).error == "content policy"
    storyboard = run_async(load(session_factory, ProjectStoryboard, seeded["storyboard_id"]))
    assert storyboard.status == "failed"
    assert storyboard.error_msg == "content policy"


def test_provider_failure_without_reason(sweeper, session_factory, seeded, provider):
    task = _processing(session_factory, seeded)
    provider.query_results["ext-1"] = {"status": "FAILURE"}

    run_async(sweeper.run())

    assert run_async(load(session_factory, Task, task.id)).error == "Unknown error"


def test_running_task_is_left_alone(sweeper, session_factory, seeded, provider):
    task = _processing(session_factory, seeded)
    provider.query_results["ext-1"] = {"status": "processing"}

    report = run_async(sweeper.run())

    stored = run_async(load(session_factory, Task, task.id))
    assert stored.status == "processing"
    assert stored.updated_at == task.updated_at
    assert report.outcomes == {"running": 1}


def test_poll_error_is_isolated_and_retried(sweeper, session_factory, seeded, provider):
    flaky = _processing(session_factory, seeded, external_task_id="ext-flaky")
    ok = _processing(session_factory, seeded, category="scene_image", key="scene_id", external_task_id="ext-ok")
    provider.query_results["ext-flaky"] = ConnectionError("reset by peer")
    provider.query_results["ext-ok"] = {"status": "success", "url": "https://x/s.png"}

    report = run_async(sweeper.run())

    assert run_async(load(session_factory, Task, flaky.id)).status == "processing"
    assert run_async(load(session_factory, Task, ok.id)).status == "completed"
    assert report.outcomes == {"retry": 1, "completed": 1}

    provider.query_results["ext-flaky"] = {"status": "success", "url": "https://x/v.mp4"}
    run_async(sweeper.run())
    assert run_async(load(session_factory, Task, flaky.id)).status == "completed"


def test_batches_cap_concurrent_polls(session_factory, seeded, registry, provider):
    provider.query_delay = 0.02
    ids = [
        _processing(session_factory, seeded, external_task_id=f"ext-{i}").id
        for i in range(12)
    ]
    sweeper = TaskSweeper(TaskService(session_factory, registry, OrchestratorConfig(batch_size=5)))

    report = run_async(sweeper.run())

    assert report.polled == 12
    assert sorted(provider.query_calls) == sorted(f"ext-{i}" for i in range(12))
    assert provider.max_in_flight == 5
    assert all(run_async(load(session_factory, Task, i)).status == "processing" for i in ids)


def test_processing_task_without_handle_is_skipped(sweeper, session_factory, seeded, provider):
    task = _processing(session_factory, seeded, external_task_id=None)

    report = run_async(sweeper.run())

    assert report.outcomes == {"skipped": 1}
    assert provider.query_calls == []
    assert run_async(load(session_factory, Task, task.id)).status == "processing"


def test_image_provider_without_status_endpoint(session_factory, seeded):
    registry = ProviderRegistry(
        build_catalog(),
        {"zeroapi": DirectImageProvider({"url": "https://x/a.png"})},
        api_keys={"zeroapi": "k"},
    )
    sweeper = TaskSweeper(TaskService(session_factory, registry))
    task = _processing(session_factory, seeded, category="prop_image", key="prop_id")

    report = run_async(sweeper.run())

    assert report.outcomes == {"skipped": 1}
    assert run_async(load(session_factory, Task, task.id)).status == "processing"


def test_cancelled_task_is_not_completed_by_late_poll(service, sweeper, session_factory, seeded, provider):
    task = _processing(session_factory, seeded)
    stale = run_async(load_task_with_project(session_factory, task.id))
    run_async(service.cancel_task(task.id, USER_ID))
    provider.query_results["ext-1"] = {"status": "success", "url": "https://x/v.mp4"}

    assert run_async(sweeper.check_task(stale, utcnow())) == "skipped"

    stored = run_async(load(session_factory, Task, task.id))
    assert stored.status == "failed"
    assert stored.error == CANCELLED_MESSAGE
    assert run_async(count_rows(session_factory, Asset)) == 0
    character = run_async(load(session_factory, ProjectCharacter, seeded["character_id"]))
    assert character.video_status == "failed"
    assert character.video_url is None


def test_terminal_tasks_are_never_touched(sweeper, session_factory, seeded, provider):
    old = utcnow() - timedelta(hours=2)
    done = _task(session_factory, seeded, status="completed", external_task_id="ext-1", updated_at=old)
    failed = _task(session_factory, seeded, status="failed", updated_at=old)

    report = run_async(sweeper.run())

    assert report.reaped == 0 and report.polled == 0
    assert run_async(load(session_factory, Task, done.id)).status == "completed"
    assert run_async(load(session_factory, Task, failed.id)).status == "failed"


def test_reaper_leaves_task_that_started_meanwhile(monkeypatch, service, sweeper, session_factory, seeded):
    task = _task(session_factory, seeded, updated_at=utcnow() - timedelta(minutes=6))
    original_fail = service.fail_task

    async def launched_first(target, error, **kwargs):
        await service.mark_processing(target, "ext-late")
        return await original_fail(target, error, **kwargs)

    monkeypatch.setattr(service, "fail_task", launched_first)

    report = run_async(sweeper.run())

    assert report.reaped == 0
    stored = run_async(load(session_factory, Task, task.id))
    assert stored.status == "processing"
    assert stored.external_task_id == "ext-late"
    assert stored.error is None
    character = run_async(load(session_factory, ProjectCharacter, seeded["character_id"]))
    assert character.video_status == "generating"


def test_processing_timeout_does_not_fail_cancelled_task(service, sweeper, session_factory, seeded, provider):
    task = _processing(session_factory, seeded, updated_at=utcnow() - timedelta(minutes=30))
    stale = run_async(load_task_with_project(session_factory, task.id))
    run_async(service.cancel_task(task.id, USER_ID))

    assert run_async(sweeper.check_task(stale, utcnow())) == "skipped"

    stored = run_async(load(session_factory, Task, task.id))
    assert stored.error == CANCELLED_MESSAGE
    assert provider.query_calls == []


def test_processing_timeout_does_not_fail_refreshed_task(service, sweeper, session_factory, seeded):
    task = _processing(session_factory, seeded, updated_at=utcnow() - timedelta(minutes=30))
    stale = run_async(load_task_with_project(session_factory, task.id))
    run_async(_touch(session_factory, task.id))

    assert run_async(sweeper.check_task(stale, utcnow())) == "skipped"
    assert run_async(load(session_factory, Task, task.id)).status == "processing"


def test_timeout_is_checked_before_missing_handle(sweeper, session_factory, seeded, provider):
    task = _processing(
        session_factory, seeded, external_task_id=None, updated_at=utcnow() - timedelta(minutes=21),
    )

    report = run_async(sweeper.run())

    assert report.outcomes == {"timed_out": 1}
    stored = run_async(load(session_factory, Task, task.id))
    assert stored.status == "failed"
    assert stored.error == "task timed out"
    assert provider.query_calls == []
