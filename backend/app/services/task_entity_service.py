"""Entity status synchronizer — mirrors a task's outcome onto its related entity.

`Task.related_id` is polymorphic: the task category decides which table it
points into and which status/url/error columns mirror the task. The mapping is
a fixed dispatch table, one row per category.

Must be called with the session of the transaction that updates the task row,
so both writes commit or roll back together. Database errors propagate for the
same reason.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import Base, utcnow
from app.models.character import ImageStatus, ProjectCharacter, VideoStatus
from app.models.prop import ProjectProp
from app.models.scene import ProjectScene, SceneStatus
from app.models.storyboard import HighResStatus, ProjectStoryboard, StoryboardStatus
from app.models.task import Task, TaskCategory

logger = logging.getLogger(__name__)


class EntityState(str, enum.Enum):
    GENERATING = "generating"
    FAILED = "failed"
    COMPLETED = "completed"


@dataclass(frozen=True)
class EntityStatusMapping:
    """Columns written on the related entity for each task state."""
    model: type[Base]
    generating: dict[str, Any]
    failed: dict[str, Any]
    completed: dict[str, Any]
    url_field: str
    error_field: str | None = None  # cleared on generating/completed, set on failed

    def values_for(
        self,
        state: EntityState,
        result_url: str | None = None,
        error_msg: str | None = None,
    ) -> dict[str, Any]:
        if state is EntityState.GENERATING:
            values = dict(self.generating)
        elif state is EntityState.FAILED:
            values = dict(self.failed)
        else:
            values = {**self.completed, self.url_field: result_url}

        if self.error_field:
            values[self.error_field] = error_msg if state is EntityState.FAILED else None
        return values


ENTITY_STATUS_MAP: dict[str, EntityStatusMapping] = {
    TaskCategory.CHARACTER_IMAGE.value: EntityStatusMapping(
        model=ProjectCharacter,
        generating={"image_status": ImageStatus.GENERATING.value},
        failed={"image_status": ImageStatus.FAILED.value},
        completed={"image_status": ImageStatus.GENERATED.value},
        url_field="image_url",
    ),
    TaskCategory.CHARACTER_VIDEO.value: EntityStatusMapping(
        model=ProjectCharacter,
        generating={"video_status": VideoStatus.GENERATING.value},
        failed={"video_status": VideoStatus.FAILED.value},
        completed={"video_status": VideoStatus.GENERATED.value},
        url_field="video_url",
    ),
    TaskCategory.STORYBOARD_IMAGE.value: EntityStatusMapping(
        model=ProjectStoryboard,
        generating={"image_status": ImageStatus.GENERATING.value},
        failed={"image_status": ImageStatus.FAILED.value},
        completed={"image_status": ImageStatus.GENERATED.value},
        url_field="image_url",
    ),
    TaskCategory.STORYBOARD_VIDEO.value: EntityStatusMapping(
        model=ProjectStoryboard,
        generating={"status": StoryboardStatus.GENERATING_VIDEO.value},
        failed={"status": StoryboardStatus.FAILED.value},
        completed={"status": StoryboardStatus.VIDEO_GENERATED.value},
        url_field="video_url",
        error_field="error_msg",
    ),
    TaskCategory.UPSCALE.value: EntityStatusMapping(
        model=ProjectStoryboard,
        generating={"high_res_status": HighResStatus.GENERATING.value},
        failed={"high_res_status": HighResStatus.FAILED.value},
        completed={"high_res_status": HighResStatus.SUCCESS.value},
        url_field="high_res_video_url",
        error_field="high_res_error_msg",
    ),
    TaskCategory.SCENE_IMAGE.value: EntityStatusMapping(
        model=ProjectScene,
        generating={"status": SceneStatus.GENERATING.value},
        failed={"status": SceneStatus.FAILED.value},
        completed={"status": SceneStatus.GENERATED.value},
        url_field="image_url",
    ),
    TaskCategory.PROP_IMAGE.value: EntityStatusMapping(
        model=ProjectProp,
        generating={"status": SceneStatus.GENERATING.value},
        failed={"status": SceneStatus.FAILED.value},
        completed={"status": SceneStatus.GENERATED.value},
        url_field="image_url",
    ),
}


async def update_related_entity_status(
    session: AsyncSession,
    task: Task,
    state: EntityState | str,
    result_url: str | None = None,
    error_msg: str | None = None,
) -> bool:
    """Write the entity columns for `state`. Returns True when a row was updated.

    Unknown categories, `completed` without a URL and missing entity rows are
    logged and skipped rather than raised, so one bad task cannot block a sweep.
    """
    state = EntityState(state)
    category, related_id = task.category, task.related_id

    if state is EntityState.COMPLETED and not result_url:
        logger.warning(
            "Completed without result URL for %s (related_id=%s), entity update skipped",
            category, related_id,
        )
        return False

    mapping = ENTITY_STATUS_MAP.get(category)
    if mapping is None:
        logger.warning("Unknown task category %s for task %s, entity update skipped", category, task.id)
        return False

    values = mapping.values_for(state, result_url=result_url, error_msg=error_msg)
    values["updated_at"] = utcnow()
    result = await session.execute(
        update(mapping.model)
        .where(mapping.model.id == related_id)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        logger.warning(
            "%s %s not found for task %s, entity update skipped",
            mapping.model.__name__, related_id, task.id,
        )
        return False
    return True
