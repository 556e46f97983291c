"""Query builders for project-related models."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import or_

from app.models.projects import (
    Project,
    ProjectPriority,
    ProjectStatus,
    ProjectTask,
    TaskPriority,
    TaskStatus,
    TaskType,
)
from app.queries.base import BaseQuery
from app.services.common import coerce_uuid, validate_enum

if TYPE_CHECKING:
    from uuid import UUID


class ProjectQuery(BaseQuery[Project]):
    """Query builder for Project model.

    Usage:
        projects = (
            ProjectQuery(db)
            .by_status(ProjectStatus.active)
            .search("apollo")
            .active_only()
            .order_by("created_at", "desc")
            .paginate(50, 0)
            .all()
        )
    """

    model_class = Project
    ordering_fields = {
        "created_at": Project.created_at,
        "updated_at": Project.updated_at,
        "name": Project.name,
        "code": Project.code,
        "status": Project.status,
        "priority": Project.priority,
        "start_at": Project.start_at,
        "end_at": Project.end_at,
    }

    def by_status(self, status: ProjectStatus | str | None) -> ProjectQuery:
        """Filter by project status."""
        if not status:
            return self
        clone = self._clone()
        if isinstance(status, str):
            status = validate_enum(status, ProjectStatus, "status")
        clone._query = clone._query.filter(Project.status == status)
        return clone

    def by_priority(self, priority: ProjectPriority | str | None) -> ProjectQuery:
        """Filter by project priority."""
        if not priority:
            return self
        clone = self._clone()
        if isinstance(priority, str):
            priority = validate_enum(priority, ProjectPriority, "priority")
        clone._query = clone._query.filter(Project.priority == priority)
        return clone

    def search(self, term: str | None) -> ProjectQuery:
        """Search by name, code or client."""
        if not term or not term.strip():
            return self
        clone = self._clone()
        like_term = f"%{term.strip()}%"
        clone._query = clone._query.filter(
            or_(
                Project.name.ilike(like_term),
                Project.code.ilike(like_term),
                Project.client_name.ilike(like_term),
            )
        )
        return clone


class ProjectTaskQuery(BaseQuery[ProjectTask]):
    """Query builder for ProjectTask model."""

    model_class = ProjectTask
    ordering_fields = {
        "created_at": ProjectTask.created_at,
        "updated_at": ProjectTask.updated_at,
        "title": ProjectTask.title,
        "number": ProjectTask.number,
        "status": ProjectTask.status,
        "priority": ProjectTask.priority,
        "due_at": ProjectTask.due_at,
    }

    def by_project(self, project_id: UUID | str | None) -> ProjectTaskQuery:
        """Filter by project ID."""
        if not project_id:
            return self
        clone = self._clone()
        clone._query = clone._query.filter(ProjectTask.project_id == coerce_uuid(project_id))
        return clone

    def by_parent(self, parent_task_id: UUID | str | None) -> ProjectTaskQuery:
        if not parent_task_id:
            return self
        clone = self._clone()
        clone._query = clone._query.filter(ProjectTask.parent_task_id == coerce_uuid(parent_task_id))
        return clone

    def by_status(self, status: TaskStatus | str | None) -> ProjectTaskQuery:
        """Filter by task status."""
        if not status:
            return self
        clone = self._clone()
        if isinstance(status, str):
            status = validate_enum(status, TaskStatus, "status")
        clone._query = clone._query.filter(ProjectTask.status == status)
        return clone

    def by_priority(self, priority: TaskPriority | str | None) -> ProjectTaskQuery:
        """Filter by task priority."""
        if not priority:
            return self
        clone = self._clone()
        if isinstance(priority, str):
            priority = validate_enum(priority, TaskPriority, "priority")
        clone._query = clone._query.filter(ProjectTask.priority == priority)
        return clone

    def by_type(self, task_type: TaskType | str | None) -> ProjectTaskQuery:
        if not task_type:
            return self
        clone = self._clone()
        if isinstance(task_type, str):
            task_type = validate_enum(task_type.upper(), TaskType, "task_type")
        clone._query = clone._query.filter(ProjectTask.task_type == task_type)
        return clone

    def by_assignee(self, user_id: UUID | str | None) -> ProjectTaskQuery:
        """Filter by assigned user ID."""
        if not user_id:
            return self
        clone = self._clone()
        clone._query = clone._query.filter(ProjectTask.assigned_to_user_id == coerce_uuid(user_id))
        return clone

    def search(self, term: str | None) -> ProjectTaskQuery:
        if not term or not term.strip():
            return self
        clone = self._clone()
        like_term = f"%{term.strip()}%"
        clone._query = clone._query.filter(
            or_(ProjectTask.title.ilike(like_term), ProjectTask.number.ilike(like_term))
        )
        return clone
