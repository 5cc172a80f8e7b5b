"""Initial schema — projects, entities, generation tasks and assets

Revision ID: 0001
Revises: None
Create Date: 2026-10-19 10:00:00
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_MYSQL = {"mysql_charset": "utf8mb4", "mysql_collate": "utf8mb4_unicode_ci"}


def _project_fk() -> sa.Column:
    return sa.Column("project_id", sa.String(36), sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime, nullable=True),
        sa.Column("updated_at", sa.DateTime, nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        "projects",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("aspect_ratio", sa.String(10), nullable=False, server_default="16:9"),
        *_timestamps(),
        **_MYSQL,
    )
    op.create_index("ix_projects_user_id", "projects", ["user_id"])

    # --- domain entities written by the status synchronizer ---
    op.create_table(
        "project_characters",
        sa.Column("id", sa.String(36), primary_key=True),
        _project_fk(),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("image_url", sa.String(2048), nullable=True),
        sa.Column("image_status", sa.String(20), nullable=False, server_default="idle"),
        sa.Column("video_url", sa.String(2048), nullable=True),
        sa.Column("video_status", sa.String(20), nullable=False, server_default="draft"),
        *_timestamps(),
        **_MYSQL,
    )
    op.create_index("ix_project_characters_project_id", "project_characters", ["project_id"])

    for table in ("project_scenes", "project_props"):
        op.create_table(
            table,
            sa.Column("id", sa.String(36), primary_key=True),
            _project_fk(),
            sa.Column("name", sa.String(255), nullable=False),
            sa.Column("description", sa.Text, nullable=True),
            sa.Column("image_url", sa.String(2048), nullable=True),
            sa.Column("status", sa.String(20), nullable=False, server_default="idle"),
            *_timestamps(),
            **_MYSQL,
        )
        op.create_index(f"ix_{table}_project_id", table, ["project_id"])

    op.create_table(
        "project_storyboards",
        sa.Column("id", sa.String(36), primary_key=True),
        _project_fk(),
        sa.Column("sort_order", sa.Integer, nullable=False, server_default="0"),
        sa.Column("text", sa.Text, nullable=False),
        sa.Column("prompt", sa.Text, nullable=True),
        sa.Column("duration", sa.Integer, nullable=False, server_default="0"),
        sa.Column("image_url", sa.String(2048), nullable=True),
        sa.Column("image_status", sa.String(20), nullable=False, server_default="idle"),
        sa.Column("video_url", sa.String(2048), nullable=True),
        sa.Column("status", sa.String(30), nullable=False, server_default="draft"),
        sa.Column("error_msg", sa.Text, nullable=True),
        sa.Column("high_res_video_url", sa.String(2048), nullable=True),
        sa.Column("high_res_status", sa.String(20), nullable=False, server_default="idle"),
        sa.Column("high_res_error_msg", sa.Text, nullable=True),
        *_timestamps(),
        **_MYSQL,
    )
    op.create_index("ix_project_storyboards_project_id", "project_storyboards", ["project_id"])

    # --- generation tasks ---
    op.create_table(
        "tasks",
        sa.Column("id", sa.String(36), primary_key=True),
        _project_fk(),
        sa.Column("type", sa.String(10), nullable=False, server_default="image"),
        sa.Column("model", sa.String(100), nullable=False),
        sa.Column("provider_id", sa.String(50), nullable=True),
        sa.Column("category", sa.String(30), nullable=False),
        sa.Column("related_id", sa.String(36), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("input_params", sa.Text, nullable=True),
        sa.Column("external_task_id", sa.String(255), nullable=True),
        sa.Column("progress", sa.Integer, nullable=False, server_default="0"),
        sa.Column("error", sa.Text, nullable=True),
        *_timestamps(),
        **_MYSQL,
    )
    op.create_index("ix_tasks_project_id", "tasks", ["project_id"])
    op.create_index("ix_tasks_category", "tasks", ["category"])
    op.create_index("ix_tasks_related_id", "tasks", ["related_id"])
    op.create_index("ix_tasks_status", "tasks", ["status"])
    op.create_index("ix_tasks_updated_at", "tasks", ["updated_at"])

    # --- assets ---
    op.create_table(
        "assets",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("project_id", sa.String(36), sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=True),
        sa.Column("task_id", sa.String(36), sa.ForeignKey("tasks.id", ondelete="SET NULL"), nullable=True),
        sa.Column("type", sa.String(10), nullable=False, server_default="image"),
        sa.Column("usage", sa.String(20), nullable=True),
        sa.Column("related_id", sa.String(36), nullable=True),
        sa.Column("source", sa.String(20), nullable=False, server_default="generated"),
        sa.Column("url", sa.String(2048), nullable=False),
        sa.Column("created_at", sa.DateTime, nullable=True),
        **_MYSQL,
    )
    op.create_index("ix_assets_user_id", "assets", ["user_id"])
    op.create_index("ix_assets_project_id", "assets", ["project_id"])
    op.create_index("ix_assets_task_id", "assets", ["task_id"])
    op.create_index("ix_assets_related_id", "assets", ["related_id"])


def downgrade() -> None:
    op.drop_table("assets")
    op.drop_table("tasks")
    op.drop_table("project_storyboards")
    op.drop_table("project_props")
    op.drop_table("project_scenes")
    op.drop_table("project_characters")
    op.drop_table("projects")
