from app.db import get_db

# -------------------------------------------------------------------------
# Container-based Dependencies
# -------------------------------------------------------------------------
# These provide services from the DI container for use in route handlers.
# They can be easily mocked in tests by overriding the container providers.


def get_counters_service():
    """Get counters service from container."""
    from app.container import container
    return container.counters_service()


def get_projects_service():
    """Get projects service from container."""
    from app.container import container
    return container.projects_service()


def get_project_tasks_service():
    """Get project tasks service from container."""
    from app.container import container
    return container.project_tasks_service()


__all__ = [
    "get_db",
    "get_counters_service",
    "get_projects_service",
    "get_project_tasks_service",
]
