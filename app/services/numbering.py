"""Human-readable identifiers built from a prefix and an allocated number."""

from sqlalchemy.orm import Session

from app.config import settings
from app.errors import IdentifierValidationError
from app.models.projects import TaskType
from app.services.counters import counters

PROJECT_TASK_COUNTER_PREFIX = "ProjectTask"


def format_identifier(prefix: str, number: int, padding: int | None = None) -> str:
    """Render ``PREFIX-00042``.

    Numbers wider than the padding are rendered in full, never truncated.
    """
    if not isinstance(prefix, str) or not prefix.strip():
        raise IdentifierValidationError("Identifier prefix must not be empty")
    if isinstance(number, bool) or not isinstance(number, int) or number < 1:
        raise IdentifierValidationError("Identifier number must be a positive integer")
    pad = settings.identifier_padding if padding is None else padding
    if pad < 0:
        raise IdentifierValidationError("Identifier padding must not be negative")
    return f"{prefix.strip()}-{number:0{pad}d}"


def parse_identifier(identifier: str) -> tuple[str, int]:
    prefix, sep, digits = (identifier or "").rpartition("-")
    if not sep or not prefix or not (digits.isascii() and digits.isdigit()):
        raise IdentifierValidationError(f"Malformed identifier: {identifier!r}")
    return prefix, int(digits)


def task_prefix(project_code: str | None, task_type: TaskType) -> str:
    if project_code:
        return f"{project_code}-{task_type.value}"
    return task_type.value


def task_counter_name(prefix: str) -> str:
    return f"{PROJECT_TASK_COUNTER_PREFIX}:{prefix}"


def generate_number(db: Session, counter_name: str, prefix: str, padding: int | None = None) -> str:
    """Allocate the next value of ``counter_name`` and render it.

    The increment joins the caller's transaction; run this inside a unit of
    work so a failed insert rolls the counter back with it.
    """
    # reject a bad prefix before the counter moves
    format_identifier(prefix, 1, padding)
    value = counters.allocate_next(db, counter_name)
    return format_identifier(prefix, value, padding)
