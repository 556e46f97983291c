import pytest

from app.errors import IdentifierValidationError
from app.models.projects import TaskType
from app.services.counters import counters
from app.services.numbering import (
    format_identifier,
    generate_number,
    parse_identifier,
    task_counter_name,
    task_prefix,
)
from app.services.unit_of_work import run_in_transaction


def test_format_identifier_pads_to_width():
    assert format_identifier("PROJ", 7, padding=5) == "PROJ-00007"
    assert format_identifier("PROJ", 7, padding=0) == "PROJ-7"


def test_format_identifier_uses_configured_padding():
    assert format_identifier("BUG", 42) == "BUG-00042"


def test_format_identifier_never_truncates_wide_numbers():
    assert format_identifier("PROJ", 1234567, padding=5) == "PROJ-1234567"


def test_format_identifier_strips_prefix_whitespace():
    assert format_identifier("  OPS ", 3, padding=3) == "OPS-003"


@pytest.mark.parametrize("prefix", ["", "   ", None])
def test_format_identifier_rejects_empty_prefix(prefix):
    with pytest.raises(IdentifierValidationError) as exc_info:
        format_identifier(prefix, 1)
    assert exc_info.value.status_code == 422


@pytest.mark.parametrize("number", [0, -3, True, "7"])
def test_format_identifier_rejects_non_positive_numbers(number):
    with pytest.raises(IdentifierValidationError):
        format_identifier("PROJ", number)


def test_format_identifier_rejects_negative_padding():
    with pytest.raises(IdentifierValidationError):
        format_identifier("PROJ", 1, padding=-1)


def test_parse_identifier_splits_on_last_dash():
    assert parse_identifier("PROJ-TASK-00012") == ("PROJ-TASK", 12)
    assert parse_identifier("BUG-7") == ("BUG", 7)


@pytest.mark.parametrize("identifier", ["", "PROJ", "-0001", "PROJ-", "PROJ-12a", "TASK-\u00b2", "TASK-\u0663"])
def test_parse_identifier_rejects_malformed(identifier):
    with pytest.raises(IdentifierValidationError):
        parse_identifier(identifier)


def test_task_prefix_includes_project_code_when_present():
    assert task_prefix("PROJ", TaskType.BUG) == "PROJ-BUG"
    assert task_prefix(None, TaskType.STORY) == "STORY"
    assert task_counter_name("PROJ-BUG") == "ProjectTask:PROJ-BUG"


def test_generate_number_allocates_then_formats(db_session):
    first = run_in_transaction(db_session, lambda db: generate_number(db, "ProjectTask:OPS", "OPS")).unwrap()
    second = run_in_transaction(db_session, lambda db: generate_number(db, "ProjectTask:OPS", "OPS")).unwrap()

    assert first == "OPS-00001"
    assert second == "OPS-00002"


def test_generate_number_rejects_empty_prefix_before_allocating(db_session):
    result = run_in_transaction(db_session, lambda db: generate_number(db, "ProjectTask:EMPTY", ""))

    assert not result.committed
    assert isinstance(result.error, IdentifierValidationError)
    assert counters.peek(db_session, "ProjectTask:EMPTY") is None
