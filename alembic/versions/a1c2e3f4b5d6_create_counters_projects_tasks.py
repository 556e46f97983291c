"""Create counters, projects and project tasks.

Revision ID: a1c2e3f4b5d6
Revises:
Create Date: 2026-10-19
"""
import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "a1c2e3f4b5d6"
down_revision = None
branch_labels = None
depends_on = None

project_status = sa.Enum("planning", "active", "on_hold", "completed", "cancelled", name="projectstatus")
project_priority = sa.Enum("low", "medium", "high", "critical", name="projectpriority")
task_priority = sa.Enum("low", "medium", "high", "critical", name="taskpriority")
task_status = sa.Enum("todo", "in_progress", "in_review", "done", "blocked", name="project_taskstatus")
task_type = sa.Enum("BUG", "TASK", "SPIKE", "STORY", name="project_tasktype")


def upgrade():
    op.create_table(
        "counters",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(length=50), nullable=False),
        sa.Column("current_value", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("description", sa.String(length=200), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("current_value >= 0", name="ck_counters_current_value_non_negative"),
    )
    op.create_index("ix_counters_name", "counters", ["name"], unique=True)

    op.create_table(
        "projects",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("code", sa.String(length=10), nullable=True, unique=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("client_name", sa.String(length=100), nullable=True),
        sa.Column("budget", sa.Numeric(14, 2), nullable=True),
        sa.Column("status", project_status, nullable=True),
        sa.Column("priority", project_priority, nullable=True),
        sa.Column("start_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        "project_tasks",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("project_id", sa.Uuid(), sa.ForeignKey("projects.id"), nullable=False),
        sa.Column("parent_task_id", sa.Uuid(), sa.ForeignKey("project_tasks.id"), nullable=True),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("task_type", task_type, nullable=True),
        sa.Column("number", sa.String(length=40), nullable=False),
        sa.Column("status", task_status, nullable=True),
        sa.Column("priority", task_priority, nullable=True),
        sa.Column("assigned_to_user_id", sa.Uuid(), nullable=True),
        sa.Column("due_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("estimated_hours", sa.Integer(), nullable=True),
        sa.Column("actual_hours", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_project_tasks_number", "project_tasks", ["number"], unique=True)
    op.create_index("ix_project_tasks_project_id", "project_tasks", ["project_id"])


def downgrade():
    op.drop_index("ix_project_tasks_project_id", table_name="project_tasks")
    op.drop_index("ix_project_tasks_number", table_name="project_tasks")
    op.drop_table("project_tasks")
    op.drop_table("projects")
    op.drop_index("ix_counters_name", table_name="counters")
    op.drop_table("counters")

    bind = op.get_bind()
    for enum_type in (task_type, task_status, task_priority, project_priority, project_status):
        enum_type.drop(bind, checkfirst=True)
