"""Tests for the error taxonomy."""

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError, OperationalError, ProgrammingError
from sqlalchemy.orm.exc import StaleDataError

from app.errors import (
    ConcurrentModificationError,
    IdentifierValidationError,
    IntegrityConflictError,
    StoreUnavailableError,
    translate_db_error,
)


def _orig():
    return Exception("driver error")


def test_error_to_http_exception():
    exc = IdentifierValidationError("Identifier prefix must not be empty")
    http_exc = exc.to_http_exception()
    assert isinstance(http_exc, HTTPException)
    assert http_exc.status_code == 422
    assert http_exc.detail == "Identifier prefix must not be empty"
    assert str(exc) == "Identifier prefix must not be empty"


def test_retryable_flags():
    assert StoreUnavailableError().retryable
    assert ConcurrentModificationError().retryable
    assert not IntegrityConflictError().retryable
    assert not IdentifierValidationError("bad").retryable


def test_translate_db_error_maps_sqlalchemy_failures():
    assert isinstance(translate_db_error(IntegrityError("INSERT", {}, _orig())), IntegrityConflictError)
    assert isinstance(translate_db_error(OperationalError("SELECT 1", {}, _orig())), StoreUnavailableError)
    assert isinstance(translate_db_error(StaleDataError("row changed")), ConcurrentModificationError)


def test_translate_db_error_leaves_other_errors_alone():
    programming = ProgrammingError("SELECT nope", {}, _orig())
    assert translate_db_error(programming) is programming

    value_error = ValueError("bad input")
    assert translate_db_error(value_error) is value_error

    conflict = IntegrityConflictError()
    assert translate_db_error(conflict) is conflict
