"""Dependency injection container.

This module provides a centralized container for managing service dependencies,
enabling proper testing through dependency mocking and ensuring explicit
dependency graphs.

Usage:
    from app.container import container

    # In route handlers (see app.api.deps)
    def create_task(
        payload: ProjectTaskCreate,
        service=Depends(get_project_tasks_service),
    ):
        return service.create(db, payload)

    # In tests
    with container.project_tasks_service.override(MockProjectTasks()):
        response = client.post("/project-tasks", ...)
"""

from __future__ import annotations

from dependency_injector import containers, providers  # type: ignore[import-not-found]


def _get_counters_service():
    from app.services.counters import counters
    return counters


def _get_projects_service():
    from app.services.projects import projects
    return projects


def _get_project_tasks_service():
    from app.services.projects import project_tasks
    return project_tasks


class Container(containers.DeclarativeContainer):
    """Application dependency injection container.

    Provides:
    - Database session factory
    - Service instances

    Services are stateless managers and are provided as singletons.
    """

    # Overridden at runtime with the actual SessionLocal
    db_session_factory = providers.Callable(lambda: None)

    # -------------------------------------------------------------------------
    # Service Providers
    # -------------------------------------------------------------------------

    counters_service = providers.Singleton(_get_counters_service)
    projects_service = providers.Singleton(_get_projects_service)
    project_tasks_service = providers.Singleton(_get_project_tasks_service)


# Global container instance
container = Container()


def configure_container(db_session_factory) -> Container:
    """Configure the container with runtime dependencies.

    Args:
        db_session_factory: Callable that returns a new database session

    Returns:
        Configured container instance
    """
    container.db_session_factory.override(providers.Callable(db_session_factory))
    return container
