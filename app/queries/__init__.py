"""Query builders for database operations.

This module provides composable query builder classes that encapsulate
filter logic, making services cleaner and queries more testable.

Usage:
    from app.queries import ProjectTaskQuery

    results = (
        ProjectTaskQuery(db)
        .by_project(project_id)
        .by_status(TaskStatus.todo)
        .search("login")
        .active_only()
        .order_by("created_at", "desc")
        .paginate(limit=50, offset=0)
        .all()
    )
"""

from app.queries.base import BaseQuery
from app.queries.projects import ProjectQuery, ProjectTaskQuery

__all__ = [
    "BaseQuery",
    "ProjectQuery",
    "ProjectTaskQuery",
]
