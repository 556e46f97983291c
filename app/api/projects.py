from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_db, get_project_tasks_service, get_projects_service
from app.schemas.common import ListResponse
from app.schemas.projects import (
    ProjectCreate,
    ProjectRead,
    ProjectTaskCreate,
    ProjectTaskRead,
    ProjectTaskUpdate,
    ProjectUpdate,
)

router = APIRouter()


@router.post(
    "/projects",
    response_model=ProjectRead,
    status_code=status.HTTP_201_CREATED,
    tags=["projects"],
)
def create_project(payload: ProjectCreate, db: Session = Depends(get_db), service=Depends(get_projects_service)):
    return service.create(db, payload)


@router.get("/projects", response_model=ListResponse[ProjectRead], tags=["projects"])
def list_projects(
    status: str | None = None,
    priority: str | None = None,
    search: str | None = None,
    is_active: bool | None = None,
    order_by: str = Query(default="created_at"),
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    service=Depends(get_projects_service),
):
    return service.list_response(db, status, priority, search, is_active, order_by, order_dir, limit, offset)


@router.get("/projects/{project_id}", response_model=ProjectRead, tags=["projects"])
def get_project(project_id: str, db: Session = Depends(get_db), service=Depends(get_projects_service)):
    return service.get(db, project_id)


@router.patch("/projects/{project_id}", response_model=ProjectRead, tags=["projects"])
def update_project(
    project_id: str,
    payload: ProjectUpdate,
    db: Session = Depends(get_db),
    service=Depends(get_projects_service),
):
    return service.update(db, project_id, payload)


@router.delete("/projects/{project_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["projects"])
def delete_project(project_id: str, db: Session = Depends(get_db), service=Depends(get_projects_service)):
    service.delete(db, project_id)


@router.post(
    "/project-tasks",
    response_model=ProjectTaskRead,
    status_code=status.HTTP_201_CREATED,
    tags=["project-tasks"],
)
def create_project_task(
    payload: ProjectTaskCreate,
    db: Session = Depends(get_db),
    service=Depends(get_project_tasks_service),
):
    return service.create(db, payload)


@router.get("/project-tasks", response_model=ListResponse[ProjectTaskRead], tags=["project-tasks"])
def list_project_tasks(
    project_id: str | None = None,
    status: str | None = None,
    priority: str | None = None,
    task_type: str | None = None,
    assigned_to_user_id: str | None = None,
    parent_task_id: str | None = None,
    search: str | None = None,
    is_active: bool | None = None,
    order_by: str = Query(default="created_at"),
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    service=Depends(get_project_tasks_service),
):
    return service.list_response(
        db,
        project_id,
        status,
        priority,
        task_type,
        assigned_to_user_id,
        parent_task_id,
        search,
        is_active,
        order_by,
        order_dir,
        limit,
        offset,
    )


@router.get("/project-tasks/by-number/{number}", response_model=ProjectTaskRead, tags=["project-tasks"])
def get_project_task_by_number(
    number: str,
    db: Session = Depends(get_db),
    service=Depends(get_project_tasks_service),
):
    return service.get_by_number(db, number)


@router.get("/project-tasks/{task_id}", response_model=ProjectTaskRead, tags=["project-tasks"])
def get_project_task(task_id: str, db: Session = Depends(get_db), service=Depends(get_project_tasks_service)):
    return service.get(db, task_id)


@router.patch("/project-tasks/{task_id}", response_model=ProjectTaskRead, tags=["project-tasks"])
def update_project_task(
    task_id: str,
    payload: ProjectTaskUpdate,
    db: Session = Depends(get_db),
    service=Depends(get_project_tasks_service),
):
    return service.update(db, task_id, payload)


@router.delete("/project-tasks/{task_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["project-tasks"])
def delete_project_task(task_id: str, db: Session = Depends(get_db), service=Depends(get_project_tasks_service)):
    service.delete(db, task_id)
