from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from app.models.projects import ProjectPriority, ProjectStatus, TaskPriority, TaskStatus, TaskType

PROJECT_CODE_PATTERN = r"^[A-Z0-9]{2,10}$"


def _normalize_code(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip().upper()
    return value or None


class ProjectBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    name: str = Field(min_length=1, max_length=200)
    code: str | None = Field(default=None, pattern=PROJECT_CODE_PATTERN)
    description: str | None = Field(default=None, max_length=1000)
    client_name: str | None = Field(default=None, max_length=100)
    budget: Decimal | None = Field(default=None, ge=0)
    status: ProjectStatus = ProjectStatus.planning
    priority: ProjectPriority = ProjectPriority.medium
    start_at: datetime | None = None
    end_at: datetime | None = None
    is_active: bool = True


class ProjectCreate(ProjectBase):
    @field_validator("code", mode="before")
    @classmethod
    def _upper_code(cls, value):
        return _normalize_code(value) if isinstance(value, str) else value

    @model_validator(mode="after")
    def _validate_dates(self) -> ProjectCreate:
        if self.start_at and self.end_at and self.start_at >= self.end_at:
            raise ValueError("start_at must be before end_at")
        return self


class ProjectUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    code: str | None = Field(default=None, pattern=PROJECT_CODE_PATTERN)
    description: str | None = Field(default=None, max_length=1000)
    client_name: str | None = Field(default=None, max_length=100)
    budget: Decimal | None = Field(default=None, ge=0)
    status: ProjectStatus | None = None
    priority: ProjectPriority | None = None
    start_at: datetime | None = None
    end_at: datetime | None = None
    is_active: bool | None = None

    @field_validator("name", "status", "priority", "is_active", mode="before")
    @classmethod
    def _reject_null(cls, value, info):
        if value is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return value

    @field_validator("code", mode="before")
    @classmethod
    def _upper_code(cls, value):
        return _normalize_code(value) if isinstance(value, str) else value

    @model_validator(mode="after")
    def _validate_dates(self) -> ProjectUpdate:
        if self.start_at and self.end_at:
            if self.start_at >= self.end_at:
                raise ValueError("start_at must be before end_at")
        return self


class ProjectRead(ProjectBase):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: UUID
    created_at: datetime
    updated_at: datetime


class ProjectTaskBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    project_id: UUID
    parent_task_id: UUID | None = None
    title: str = Field(min_length=1, max_length=200)
    description: str | None = None
    task_type: TaskType = TaskType.TASK
    status: TaskStatus = TaskStatus.todo
    priority: TaskPriority = TaskPriority.medium
    assigned_to_user_id: UUID | None = None
    due_at: datetime | None = None
    estimated_hours: int | None = Field(default=None, ge=0)
    is_active: bool = True


class ProjectTaskCreate(ProjectTaskBase):
    pass


class ProjectTaskUpdate(BaseModel):
    parent_task_id: UUID | None = None
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    assigned_to_user_id: UUID | None = None
    due_at: datetime | None = None
    estimated_hours: int | None = Field(default=None, ge=0)
    actual_hours: int | None = Field(default=None, ge=0)
    is_active: bool | None = None
    # Optimistic-lock guard: rejected when the stored version differs
    version: int | None = Field(default=None, ge=1)

    @field_validator("title", "status", "priority", "is_active", mode="before")
    @classmethod
    def _reject_null(cls, value, info):
        if value is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return value


class ProjectTaskRead(ProjectTaskBase):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: UUID
    number: str
    version: int
    actual_hours: int | None = None
    completed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
