from app.models.counter import Counter  # noqa: F401
from app.models.projects import (  # noqa: F401
    Project,
    ProjectPriority,
    ProjectStatus,
    ProjectTask,
    TaskPriority,
    TaskStatus,
    TaskType,
)
