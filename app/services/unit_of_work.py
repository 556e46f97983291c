"""Transaction boundary for allocation plus dependent writes.

A unit of work owns one database transaction on a ``Session``. Either every
write made inside it commits together, or all of them (counter increments
included) are rolled back. Units of work are not reentrant.
"""

from __future__ import annotations

import enum
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.errors import TransactionAlreadyActiveError, translate_db_error
from app.observability import UNIT_OF_WORK_OUTCOMES, UNIT_OF_WORK_RETRIES
from app.telemetry import get_tracer

logger = logging.getLogger(__name__)

T = TypeVar("T")

_ACTIVE_KEY = "unit_of_work_active"


class TransactionStatus(enum.Enum):
    committed = "committed"
    rolled_back = "rolled_back"


@dataclass
class TransactionResult(Generic[T]):
    status: TransactionStatus
    value: T | None = None
    error: Exception | None = None
    attempts: int = 1

    @property
    def committed(self) -> bool:
        return self.status is TransactionStatus.committed

    def unwrap(self) -> T:
        """Return the committed value or raise the error that rolled it back."""
        if self.status is TransactionStatus.committed:
            return self.value
        raise self.error


class UnitOfWork:
    def __init__(self, db: Session, max_attempts: int | None = None):
        self.db = db
        self.max_attempts = max(1, max_attempts or settings.transaction_max_attempts)
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    def begin(self) -> UnitOfWork:
        self._ensure_available()
        self._open()
        return self

    def commit(self) -> None:
        if not self._active:
            raise RuntimeError("No active unit of work to commit")
        try:
            self.db.flush()
            self.db.commit()
        except SQLAlchemyError as exc:
            self._discard()
            error = translate_db_error(exc)
            if error is exc:
                raise
            raise error from exc
        except BaseException:
            self._discard()
            raise
        self._release()

    def rollback(self) -> None:
        if self._active:
            self._discard()

    def run(self, work: Callable[[Session], T]) -> TransactionResult[T]:
        """Run ``work(db)`` inside the unit of work.

        Retryable failures re-run ``work`` from the start, up to
        ``max_attempts`` times. Every other failure rolls back at once and
        is reported in the result instead of being raised.
        """
        attempt = 0
        with get_tracer().start_as_current_span("unit_of_work.run") as span:
            while True:
                attempt += 1
                self._ensure_available()
                try:
                    self._open()
                    value = work(self.db)
                    self.commit()
                except Exception as exc:
                    self.rollback()
                    error = translate_db_error(exc)
                    code = getattr(error, "code", error.__class__.__name__)
                    if getattr(error, "retryable", False) and attempt < self.max_attempts:
                        UNIT_OF_WORK_RETRIES.labels(code=code).inc()
                        logger.warning("unit_of_work_retry attempt=%s code=%s", attempt, code)
                        self._backoff(attempt)
                        continue
                    span.set_attribute("unit_of_work.outcome", TransactionStatus.rolled_back.value)
                    span.set_attribute("unit_of_work.attempts", attempt)
                    UNIT_OF_WORK_OUTCOMES.labels(outcome=TransactionStatus.rolled_back.value).inc()
                    logger.info("unit_of_work_rolled_back attempts=%s code=%s", attempt, code)
                    return TransactionResult(TransactionStatus.rolled_back, error=error, attempts=attempt)
                except BaseException:
                    self.rollback()
                    UNIT_OF_WORK_OUTCOMES.labels(outcome=TransactionStatus.rolled_back.value).inc()
                    raise
                span.set_attribute("unit_of_work.outcome", TransactionStatus.committed.value)
                span.set_attribute("unit_of_work.attempts", attempt)
                UNIT_OF_WORK_OUTCOMES.labels(outcome=TransactionStatus.committed.value).inc()
                return TransactionResult(TransactionStatus.committed, value=value, attempts=attempt)

    def __enter__(self) -> UnitOfWork:
        return self.begin()

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is None:
            self.commit()
            UNIT_OF_WORK_OUTCOMES.labels(outcome=TransactionStatus.committed.value).inc()
            return False
        self.rollback()
        UNIT_OF_WORK_OUTCOMES.labels(outcome=TransactionStatus.rolled_back.value).inc()
        if isinstance(exc, SQLAlchemyError):
            error = translate_db_error(exc)
            if error is not exc:
                raise error from exc
        return False

    def _ensure_available(self) -> None:
        if self.db.info.get(_ACTIVE_KEY):
            raise TransactionAlreadyActiveError()
        if self.db.new or self.db.dirty or self.db.deleted:
            raise TransactionAlreadyActiveError("Session has pending changes outside a unit of work")

    def _open(self) -> None:
        try:
            if self.db.in_transaction():
                # Earlier reads autobegan a transaction with nothing to write.
                self.db.commit()
            self.db.begin()
            self.db.info[_ACTIVE_KEY] = True
            self._active = True
            self._apply_lock_timeout()
        except SQLAlchemyError as exc:
            self._discard()
            error = translate_db_error(exc)
            if error is exc:
                raise
            raise error from exc

    def _apply_lock_timeout(self) -> None:
        timeout_ms = int(settings.db_lock_timeout_ms)
        if timeout_ms > 0 and self.db.get_bind().dialect.name == "postgresql":
            self.db.execute(text(f"SET LOCAL lock_timeout = {timeout_ms}"))

    def _backoff(self, attempt: int) -> None:
        delay_ms = settings.transaction_retry_backoff_ms * attempt
        if delay_ms > 0:
            time.sleep(delay_ms / 1000)

    def _discard(self) -> None:
        try:
            self.db.rollback()
        except SQLAlchemyError:
            logger.warning("unit_of_work_rollback_failed", exc_info=True)
        finally:
            self._release()

    def _release(self) -> None:
        self._active = False
        self.db.info.pop(_ACTIVE_KEY, None)


def run_in_transaction(
    db: Session, work: Callable[[Session], T], max_attempts: int | None = None
) -> TransactionResult[T]:
    return UnitOfWork(db, max_attempts=max_attempts).run(work)
