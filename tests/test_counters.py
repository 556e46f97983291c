import dataclasses
import threading
import typing

import pytest
from fastapi import HTTPException
from sqlalchemy import Update

from app.errors import ConcurrentModificationError, CounterValidationError, IntegrityConflictError
from app.schemas.counters import CounterCreate
from app.services import counters as counters_service
from app.services.counters import DEFAULT_COUNTERS, counters
from app.services.unit_of_work import UnitOfWork, run_in_transaction


def _allocate(db, name):
    return run_in_transaction(db, lambda session: counters.allocate_next(session, name)).unwrap()


def _use_strategy(monkeypatch, strategy, **overrides):
    patched = dataclasses.replace(
        counters_service.settings, counter_allocation_strategy=strategy, **overrides
    )
    monkeypatch.setattr(counters_service, "settings", patched)


def test_first_allocation_returns_one(db_session):
    assert _allocate(db_session, "invoices") == 1
    assert counters.peek(db_session, "invoices") == 1


def test_allocations_are_sequential_and_never_repeat(db_session):
    values = [_allocate(db_session, "invoices") for _ in range(5)]
    assert values == [1, 2, 3, 4, 5]


def test_counters_are_independent(db_session):
    assert _allocate(db_session, "ProjectTask:BUG") == 1
    assert _allocate(db_session, "ProjectTask:BUG") == 2
    assert _allocate(db_session, "ProjectTask:STORY") == 1


def test_allocate_continues_from_seeded_start(db_session):
    counters.create(db_session, CounterCreate(name="legacy", start_value=41))
    assert _allocate(db_session, "legacy") == 42


@pytest.mark.parametrize("name", ["", "   ", None, "x" * 51])
def test_allocate_rejects_invalid_names(db_session, name):
    with pytest.raises(CounterValidationError):
        counters.allocate_next(db_session, name)


def test_allocate_commits_in_its_own_unit_of_work(db_session, session_factory):
    allocation = counters.allocate(db_session, "receipts")
    assert allocation.name == "receipts"
    assert allocation.value == 1

    other = session_factory()
    try:
        assert counters.peek(other, "receipts") == 1
    finally:
        other.close()


def test_rolled_back_allocation_is_discarded(db_session):
    _allocate(db_session, "invoices")

    def _work(session):
        counters.allocate_next(session, "invoices")
        raise RuntimeError("insert failed")

    result = run_in_transaction(db_session, _work)

    assert not result.committed
    assert isinstance(result.error, RuntimeError)
    assert counters.peek(db_session, "invoices") == 1
    assert _allocate(db_session, "invoices") == 2


def test_compare_and_swap_strategy_allocates(db_session, monkeypatch):
    _use_strategy(monkeypatch, counters_service.STRATEGY_COMPARE_AND_SWAP)
    assert counters_service._resolve_strategy(db_session) == counters_service.STRATEGY_COMPARE_AND_SWAP
    assert [_allocate(db_session, "cas") for _ in range(3)] == [1, 2, 3]


def test_auto_strategy_follows_dialect(db_session):
    expected = (
        counters_service.STRATEGY_ATOMIC
        if db_session.get_bind().dialect.update_returning
        else counters_service.STRATEGY_COMPARE_AND_SWAP
    )
    assert counters_service._resolve_strategy(db_session) == expected


def test_compare_and_swap_gives_up_after_bounded_attempts(db_session, monkeypatch):
    counters.create(db_session, CounterCreate(name="contended"))
    _use_strategy(monkeypatch, counters_service.STRATEGY_COMPARE_AND_SWAP, counter_cas_max_attempts=3)

    class _LostRace:
        rowcount = 0

    attempts = []
    real_execute = db_session.execute

    def _racing_execute(statement, *args, **kwargs):
        if isinstance(statement, Update):
            attempts.append(statement)
            return _LostRace()
        return real_execute(statement, *args, **kwargs)

    monkeypatch.setattr(db_session, "execute", _racing_execute)

    with pytest.raises(ConcurrentModificationError) as exc_info:
        counters.allocate_next(db_session, "contended")

    assert exc_info.value.retryable
    assert len(attempts) == 3


def test_concurrent_allocations_are_unique_and_gap_free(session_factory):
    workers = 6
    per_worker = 5
    results: list[int] = []
    errors: list[BaseException] = []
    lock = threading.Lock()
    start = threading.Barrier(workers)

    def _worker():
        session = session_factory()
        try:
            start.wait()
            for _ in range(per_worker):
                result = run_in_transaction(
                    session,
                    lambda db: counters.allocate_next(db, "shared"),
                    max_attempts=10,
                )
                value = result.unwrap()
                with lock:
                    results.append(value)
        except Exception as exc:
            with lock:
                errors.append(exc)
        finally:
            session.close()

    threads = [threading.Thread(target=_worker) for _ in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    assert sorted(results) == list(range(1, workers * per_worker + 1))


def test_reconcile_only_moves_forward(db_session):
    with UnitOfWork(db_session):
        assert counters.reconcile(db_session, "imports", 10) == 10
    with UnitOfWork(db_session):
        assert counters.reconcile(db_session, "imports", 4) == 10

    assert _allocate(db_session, "imports") == 11


def test_reconcile_rejects_negative_floor(db_session):
    with pytest.raises(CounterValidationError):
        counters.reconcile(db_session, "imports", -1)


def test_seed_defaults_is_idempotent(db_session):
    created = counters.seed_defaults(db_session)
    assert sorted(created) == sorted(DEFAULT_COUNTERS)
    assert counters.seed_defaults(db_session) == []

    counter = counters.get(db_session, "ProjectTask:BUG")
    assert counter.current_value == 0
    assert counter.description == DEFAULT_COUNTERS["ProjectTask:BUG"]


def test_create_rejects_duplicate_name(db_session):
    counters.create(db_session, CounterCreate(name="orders"))
    with pytest.raises(IntegrityConflictError):
        counters.create(db_session, CounterCreate(name="orders", start_value=5))
    assert counters.peek(db_session, "orders") == 0


def test_get_missing_counter_is_not_found(db_session):
    with pytest.raises(HTTPException) as exc_info:
        counters.get(db_session, "missing")
    assert exc_info.value.status_code == 404
    assert counters.peek(db_session, "missing") is None


def test_list_filters_and_orders(db_session):
    for name in ("ProjectTask:BUG", "ProjectTask:TASK", "invoices"):
        counters.create(db_session, CounterCreate(name=name))

    items = counters.list(db_session, "ProjectTask", "name", "desc", 50, 0)
    assert [item.name for item in items] == ["ProjectTask:TASK", "ProjectTask:BUG"]

    response = counters.list_response(db_session, None, "name", "asc", 2, 0)
    assert response["count"] == 2
    assert response["limit"] == 2
    assert [item.name for item in response["items"]] == ["ProjectTask:BUG", "ProjectTask:TASK"]


def test_service_annotations_resolve_to_builtins():
    hints = typing.get_type_hints(counters_service.Counters.seed_defaults)
    assert hints["return"] == list[str]
