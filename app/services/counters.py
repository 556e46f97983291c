"""Named counters and the sequence allocator.

Every increment is serialized by the database, never by a process-local
lock, so any number of API workers can allocate from the same counter.
The increment joins the caller's transaction: commit makes it durable,
rollback discards it together with whatever else the caller wrote.
"""

from __future__ import annotations

import logging
import time
import uuid
from datetime import UTC, datetime

from fastapi import HTTPException
from sqlalchemy import insert, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.errors import (
    ConcurrentModificationError,
    CounterValidationError,
    IntegrityConflictError,
    StoreUnavailableError,
    translate_db_error,
)
from app.models.counter import Counter
from app.observability import SEQUENCE_ALLOCATION_TIME, SEQUENCE_ALLOCATIONS
from app.schemas.counters import CounterAllocation, CounterCreate
from app.services.common import apply_ordering, apply_pagination
from app.services.response import ListResponseMixin
from app.services.unit_of_work import run_in_transaction
from app.telemetry import get_tracer

logger = logging.getLogger(__name__)

STRATEGY_AUTO = "auto"
STRATEGY_ATOMIC = "atomic"
STRATEGY_COMPARE_AND_SWAP = "compare_and_swap"

COUNTER_NAME_MAX_LENGTH = 50

DEFAULT_COUNTERS: dict[str, str] = {
    "ProjectTask:BUG": "Bug fix or defect resolution",
    "ProjectTask:TASK": "General development task",
    "ProjectTask:SPIKE": "Research or investigation task",
    "ProjectTask:STORY": "Feature development story",
}


def _now() -> datetime:
    return datetime.now(UTC)


def _validate_name(name: str | None) -> str:
    if not isinstance(name, str) or not name.strip():
        raise CounterValidationError("Counter name must not be empty")
    name = name.strip()
    if len(name) > COUNTER_NAME_MAX_LENGTH:
        raise CounterValidationError(f"Counter name must be at most {COUNTER_NAME_MAX_LENGTH} characters")
    return name


def _resolve_strategy(db: Session) -> str:
    dialect = db.get_bind().dialect
    configured = (settings.counter_allocation_strategy or STRATEGY_AUTO).strip().lower()
    if configured == STRATEGY_COMPARE_AND_SWAP:
        return STRATEGY_COMPARE_AND_SWAP
    if configured not in (STRATEGY_AUTO, STRATEGY_ATOMIC):
        logger.warning("counter_strategy_unknown strategy=%s", configured)
    if dialect.update_returning:
        return STRATEGY_ATOMIC
    return STRATEGY_COMPARE_AND_SWAP


def _insert_counter_row(db: Session, name: str, start_value: int = 0, description: str | None = None) -> bool:
    """Create the counter row unless another writer got there first.

    Returns True when this call inserted the row.
    """
    now = _now()
    values = {
        "id": uuid.uuid4(),
        "name": name,
        "current_value": start_value,
        "description": description,
        "created_at": now,
        "updated_at": now,
    }
    dialect_name = db.get_bind().dialect.name
    if dialect_name == "postgresql":
        stmt = pg_insert(Counter).values(**values).on_conflict_do_nothing(index_elements=["name"])
        return db.execute(stmt).rowcount == 1
    if dialect_name == "sqlite":
        stmt = sqlite_insert(Counter).values(**values).on_conflict_do_nothing(index_elements=["name"])
        return db.execute(stmt).rowcount == 1

    if db.execute(select(Counter.id).where(Counter.name == name)).first():
        return False
    try:
        with db.begin_nested():
            db.execute(insert(Counter).values(**values))
    except IntegrityError:
        return False
    return True


def _increment_atomic(db: Session, name: str) -> int | None:
    stmt = (
        update(Counter)
        .where(Counter.name == name)
        .values(current_value=Counter.current_value + 1, updated_at=_now())
        .returning(Counter.current_value)
        .execution_options(synchronize_session=False)
    )
    return db.execute(stmt).scalar_one_or_none()


def _increment_compare_and_swap(db: Session, name: str) -> int | None:
    attempts = max(settings.counter_cas_max_attempts, 1)
    for attempt in range(1, attempts + 1):
        seen = db.execute(select(Counter.current_value).where(Counter.name == name)).scalar_one_or_none()
        if seen is None:
            return None
        stmt = (
            update(Counter)
            .where(Counter.name == name, Counter.current_value == seen)
            .values(current_value=seen + 1, updated_at=_now())
            .execution_options(synchronize_session=False)
        )
        if db.execute(stmt).rowcount == 1:
            return seen + 1
        logger.debug("counter_cas_lost name=%s attempt=%s", name, attempt)
    raise ConcurrentModificationError(f"Counter {name!r} changed on every attempt")


_INCREMENTERS = {
    STRATEGY_ATOMIC: _increment_atomic,
    STRATEGY_COMPARE_AND_SWAP: _increment_compare_and_swap,
}


class Counters(ListResponseMixin):
    @staticmethod
    def allocate_next(db: Session, name: str) -> int:
        """Increment ``name`` and return the new value (first call returns 1).

        Runs inside the caller's transaction. The value is only safe to hand
        out once that transaction commits.
        """
        name = _validate_name(name)
        strategy = _resolve_strategy(db)
        increment = _INCREMENTERS[strategy]
        started = time.perf_counter()
        with get_tracer().start_as_current_span("counter.allocate_next") as span:
            span.set_attribute("counter.name", name)
            span.set_attribute("counter.strategy", strategy)
            try:
                value = increment(db, name)
                if value is None:
                    if _insert_counter_row(db, name):
                        SEQUENCE_ALLOCATIONS.labels(strategy=strategy, status="created").inc()
                        logger.info("counter_created name=%s", name)
                    value = increment(db, name)
            except ConcurrentModificationError:
                SEQUENCE_ALLOCATIONS.labels(strategy=strategy, status="conflict").inc()
                raise
            except SQLAlchemyError as exc:
                SEQUENCE_ALLOCATIONS.labels(strategy=strategy, status="error").inc()
                logger.warning("counter_allocate_failed name=%s error=%s", name, exc.__class__.__name__)
                error = translate_db_error(exc)
                if error is exc:
                    raise
                raise error from exc
        if value is None:
            SEQUENCE_ALLOCATIONS.labels(strategy=strategy, status="error").inc()
            raise StoreUnavailableError(f"Counter {name!r} could not be read back")
        SEQUENCE_ALLOCATIONS.labels(strategy=strategy, status="allocated").inc()
        SEQUENCE_ALLOCATION_TIME.labels(strategy=strategy).observe(time.perf_counter() - started)
        return value

    @staticmethod
    def allocate(db: Session, name: str) -> CounterAllocation:
        """Allocate in a unit of work of its own and return the committed value."""
        name = _validate_name(name)
        value = run_in_transaction(db, lambda session: Counters.allocate_next(session, name)).unwrap()
        logger.info("counter_allocated name=%s value=%s", name, value)
        return CounterAllocation(name=name, value=value)

    @staticmethod
    def create(db: Session, payload: CounterCreate) -> Counter:
        name = _validate_name(payload.name)

        def _work(session: Session) -> bool:
            return _insert_counter_row(session, name, payload.start_value, payload.description)

        created = run_in_transaction(db, _work).unwrap()
        if not created:
            raise IntegrityConflictError(f"Counter {name!r} already exists")
        logger.info("counter_seeded name=%s start_value=%s", name, payload.start_value)
        return Counters.get(db, name)

    @staticmethod
    def get(db: Session, name: str) -> Counter:
        counter = (
            db.query(Counter).filter(Counter.name == _validate_name(name)).populate_existing().first()
        )
        if not counter:
            raise HTTPException(status_code=404, detail="Counter not found")
        return counter

    @staticmethod
    def peek(db: Session, name: str) -> int | None:
        """Current value without incrementing; None when the counter does not exist yet."""
        return db.execute(
            select(Counter.current_value).where(Counter.name == _validate_name(name))
        ).scalar_one_or_none()

    @staticmethod
    def list(
        db: Session,
        search: str | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ):
        query = db.query(Counter).populate_existing()
        if search and search.strip():
            query = query.filter(Counter.name.ilike(f"%{search.strip()}%"))
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {"name": Counter.name, "created_at": Counter.created_at, "current_value": Counter.current_value},
        )
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def reconcile(db: Session, name: str, floor: int) -> int:
        """Raise ``name`` to at least ``floor``; never lowers it.

        Runs in the caller's transaction and returns the resulting value.
        """
        name = _validate_name(name)
        if floor < 0:
            raise CounterValidationError("Counter floor must not be negative")
        _insert_counter_row(db, name)
        db.execute(
            update(Counter)
            .where(Counter.name == name, Counter.current_value < floor)
            .values(current_value=floor, updated_at=_now())
            .execution_options(synchronize_session=False)
        )
        return db.execute(select(Counter.current_value).where(Counter.name == name)).scalar_one()

    @staticmethod
    def seed_defaults(db: Session) -> list[str]:
        """Create the default task-type counters that do not exist yet."""

        def _work(session: Session) -> list[str]:
            return [
                name
                for name, description in DEFAULT_COUNTERS.items()
                if _insert_counter_row(session, name, description=description)
            ]

        created = run_in_transaction(db, _work).unwrap()
        if created:
            logger.info("counters_seeded names=%s", ",".join(created))
        return created


counters = Counters()
