"""Error taxonomy for sequencing and transactional writes."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import DBAPIError, IntegrityError, InterfaceError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class ProjectManagementError(Exception):
    code: str
    detail: str
    status_code: int = 400
    retryable: bool = False

    def __str__(self) -> str:
        return self.detail

    def to_http_exception(self) -> HTTPException:
        return HTTPException(status_code=self.status_code, detail=self.detail)


class IdentifierValidationError(ProjectManagementError):
    def __init__(self, detail: str):
        super().__init__(code="invalid_identifier", detail=detail, status_code=422, retryable=False)


class CounterValidationError(ProjectManagementError):
    def __init__(self, detail: str):
        super().__init__(code="invalid_counter", detail=detail, status_code=422, retryable=False)


class StoreUnavailableError(ProjectManagementError):
    def __init__(self, detail: str = "Database unavailable"):
        super().__init__(code="store_unavailable", detail=detail, status_code=503, retryable=True)


class IntegrityConflictError(ProjectManagementError):
    def __init__(self, detail: str = "Conflicting record already exists"):
        super().__init__(code="conflict", detail=detail, status_code=409, retryable=False)


class ConcurrentModificationError(ProjectManagementError):
    def __init__(self, detail: str = "Record was modified concurrently"):
        super().__init__(code="concurrent_modification", detail=detail, status_code=409, retryable=True)


class TransactionAlreadyActiveError(ProjectManagementError):
    def __init__(self, detail: str = "A unit of work is already active on this session"):
        super().__init__(code="transaction_already_active", detail=detail, status_code=500, retryable=False)


def translate_db_error(exc: BaseException) -> Exception:
    """Map SQLAlchemy failures onto the error taxonomy.

    Anything that is not a database error is returned unchanged.
    """
    if isinstance(exc, ProjectManagementError):
        return exc
    if isinstance(exc, IntegrityError):
        return IntegrityConflictError()
    if isinstance(exc, StaleDataError):
        return ConcurrentModificationError()
    if isinstance(exc, OperationalError | InterfaceError):
        return StoreUnavailableError()
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return StoreUnavailableError()
    return exc


async def _project_management_error_handler(request: Request, exc: ProjectManagementError):
    if exc.status_code >= 500:
        logger.error("request_failed path=%s code=%s detail=%s", request.url.path, exc.code, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail, "code": exc.code})


async def _unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("unhandled_error path=%s", request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error", "code": "internal_error"})


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ProjectManagementError, _project_management_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
