import logging
from datetime import UTC, datetime

from fastapi import HTTPException
from sqlalchemy.orm import Session

from app.errors import ConcurrentModificationError, IntegrityConflictError
from app.models.projects import Project, ProjectTask, TaskStatus
from app.queries.projects import ProjectQuery, ProjectTaskQuery
from app.schemas.projects import ProjectCreate, ProjectTaskCreate, ProjectTaskUpdate, ProjectUpdate
from app.services.common import coerce_uuid
from app.services.numbering import generate_number, task_counter_name, task_prefix
from app.services.response import ListResponseMixin
from app.services.unit_of_work import UnitOfWork, run_in_transaction

logger = logging.getLogger(__name__)


def _get_project(db: Session, project_id) -> Project:
    project = db.get(Project, coerce_uuid(project_id))
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


def _get_task(db: Session, task_id) -> ProjectTask:
    task = db.get(ProjectTask, coerce_uuid(task_id))
    if not task:
        raise HTTPException(status_code=404, detail="Project task not found")
    return task


def _ensure_code_available(db: Session, code: str | None, project_id=None) -> None:
    if not code:
        return
    query = db.query(Project.id).filter(Project.code == code)
    if project_id:
        query = query.filter(Project.id != project_id)
    if query.first():
        raise IntegrityConflictError(f"Project code {code!r} is already in use")


def _ensure_parent(db: Session, project_id, parent_task_id, task_id=None) -> None:
    if not parent_task_id:
        return
    parent = db.get(ProjectTask, coerce_uuid(parent_task_id))
    if not parent:
        raise HTTPException(status_code=404, detail="Parent task not found")
    if parent.project_id != project_id:
        raise HTTPException(status_code=400, detail="Parent task belongs to another project")
    if task_id and parent.id == task_id:
        raise HTTPException(status_code=400, detail="Task cannot be its own parent")
    if not task_id:
        return
    seen = {parent.id}
    ancestor_id = parent.parent_task_id
    while ancestor_id and ancestor_id not in seen:
        if ancestor_id == task_id:
            raise HTTPException(status_code=400, detail="Task cannot be its own ancestor")
        seen.add(ancestor_id)
        ancestor = db.get(ProjectTask, ancestor_id)
        ancestor_id = ancestor.parent_task_id if ancestor else None


def _stamp_completion(task: ProjectTask) -> None:
    if task.status == TaskStatus.done and not task.completed_at:
        task.completed_at = datetime.now(UTC)
    elif task.status != TaskStatus.done:
        task.completed_at = None


class Projects(ListResponseMixin):
    @staticmethod
    def create(db: Session, payload: ProjectCreate):
        with UnitOfWork(db):
            _ensure_code_available(db, payload.code)
            project = Project(**payload.model_dump())
            db.add(project)
        db.refresh(project)
        logger.info("project_created project_id=%s code=%s", project.id, project.code)
        return project

    @staticmethod
    def get(db: Session, project_id: str):
        return _get_project(db, project_id)

    @staticmethod
    def list(
        db: Session,
        status: str | None,
        priority: str | None,
        search: str | None,
        is_active: bool | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ):
        query = ProjectQuery(db).by_status(status).by_priority(priority).search(search)
        if is_active is None:
            query = query.active_only()
        else:
            query = query.active_only(is_active)
        if order_by not in ProjectQuery.ordering_fields:
            raise HTTPException(status_code=400, detail="Invalid order_by")
        return query.order_by(order_by, order_dir).paginate(limit, offset).all()

    @staticmethod
    def update(db: Session, project_id: str, payload: ProjectUpdate):
        data = payload.model_dump(exclude_unset=True)
        with UnitOfWork(db):
            project = _get_project(db, project_id)
            if "code" in data:
                _ensure_code_available(db, data["code"], project.id)
            for key, value in data.items():
                setattr(project, key, value)
            if project.start_at and project.end_at and project.start_at >= project.end_at:
                raise HTTPException(status_code=400, detail="start_at must be before end_at")
        db.refresh(project)
        return project

    @staticmethod
    def delete(db: Session, project_id: str):
        with UnitOfWork(db):
            project = _get_project(db, project_id)
            project.is_active = False


class ProjectTasks(ListResponseMixin):
    @staticmethod
    def create(db: Session, payload: ProjectTaskCreate):
        """Allocate the task identifier and insert the task in one transaction.

        If the insert fails the counter increment is rolled back with it, so
        no caller ever sees an identifier that was not committed.
        """

        def _work(session: Session) -> ProjectTask:
            project = _get_project(session, payload.project_id)
            if not project.is_active:
                raise HTTPException(status_code=404, detail="Project not found")
            _ensure_parent(session, project.id, payload.parent_task_id)
            prefix = task_prefix(project.code, payload.task_type)
            data = payload.model_dump()
            data["number"] = generate_number(session, task_counter_name(prefix), prefix)
            task = ProjectTask(**data)
            _stamp_completion(task)
            session.add(task)
            session.flush()
            return task

        task = run_in_transaction(db, _work).unwrap()
        db.refresh(task)
        logger.info("project_task_created task_id=%s number=%s", task.id, task.number)
        return task

    @staticmethod
    def get(db: Session, task_id: str):
        return _get_task(db, task_id)

    @staticmethod
    def get_by_number(db: Session, number: str):
        if not number:
            raise HTTPException(status_code=404, detail="Project task not found")
        task = db.query(ProjectTask).filter(ProjectTask.number == number.strip()).first()
        if not task:
            raise HTTPException(status_code=404, detail="Project task not found")
        return task

    @staticmethod
    def list(
        db: Session,
        project_id: str | None,
        status: str | None,
        priority: str | None,
        task_type: str | None,
        assigned_to_user_id: str | None,
        parent_task_id: str | None,
        search: str | None,
        is_active: bool | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ):
        query = (
            ProjectTaskQuery(db)
            .by_project(project_id)
            .by_status(status)
            .by_priority(priority)
            .by_type(task_type)
            .by_assignee(assigned_to_user_id)
            .by_parent(parent_task_id)
            .search(search)
        )
        if is_active is None:
            query = query.active_only()
        else:
            query = query.active_only(is_active)
        if order_by not in ProjectTaskQuery.ordering_fields:
            raise HTTPException(status_code=400, detail="Invalid order_by")
        return query.order_by(order_by, order_dir).paginate(limit, offset).all()

    @staticmethod
    def update(db: Session, task_id: str, payload: ProjectTaskUpdate):
        data = payload.model_dump(exclude_unset=True)
        expected_version = data.pop("version", None)
        with UnitOfWork(db):
            task = _get_task(db, task_id)
            if expected_version is not None and expected_version != task.version:
                raise ConcurrentModificationError(
                    f"Task {task.number} is at version {task.version}, not {expected_version}"
                )
            if data.get("parent_task_id"):
                _ensure_parent(db, task.project_id, data["parent_task_id"], task.id)
            previous_status = task.status
            for key, value in data.items():
                setattr(task, key, value)
            if task.status != previous_status:
                _stamp_completion(task)
        db.refresh(task)
        if previous_status != task.status:
            logger.info(
                "project_task_status_changed number=%s from=%s to=%s",
                task.number,
                previous_status.value,
                task.status.value,
            )
        return task

    @staticmethod
    def delete(db: Session, task_id: str):
        with UnitOfWork(db):
            task = _get_task(db, task_id)
            task.is_active = False


projects = Projects()
project_tasks = ProjectTasks()
