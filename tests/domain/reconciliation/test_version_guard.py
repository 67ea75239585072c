from __future__ import annotations

import pytest

from ledgersync.domain.model import AuditOperation, new_id
from ledgersync.domain.reconciliation import (
    ConcurrencyConflict,
    Deleted,
    DuplicateBusinessKey,
    GuardStatus,
    NotFound,
    UpdatedRecord,
    VersionGuard,
)
from tests.support.fakes import InMemoryAuditStore, InMemoryEmployeeStore, make_employee


async def test_update_bumps_version_by_exactly_one(employee_store: InMemoryEmployeeStore) -> None:
    employee = make_employee(version=4)
    employee_store.records[employee.id] = employee
    guard = VersionGuard(employee_store)

    outcome = await guard.update_if_version_matches(employee.id, 4, {"name": "Hanako"})

    assert isinstance(outcome, UpdatedRecord)
    assert outcome.status is GuardStatus.UPDATED
    assert outcome.record.version == 5
    assert outcome.record.name == "Hanako"


async def test_update_without_bump_keeps_version(employee_store: InMemoryEmployeeStore) -> None:
    employee = make_employee()
    employee_store.records[employee.id] = employee
    guard = VersionGuard(employee_store)

    outcome = await guard.update_if_version_matches(
        employee.id,
        1,
        {"name": "Hanako"},
        bump_version=False,
    )

    assert isinstance(outcome, UpdatedRecord)
    assert outcome.record.version == 1


async def test_stale_version_is_reported_as_conflict(
    employee_store: InMemoryEmployeeStore,
    audit_store: InMemoryAuditStore,
) -> None:
    employee = make_employee(version=4)
    employee_store.records[employee.id] = employee
    guard = VersionGuard(employee_store)

    outcome = await guard.update_if_version_matches(employee.id, 3, {"name": "Hanako"})

    assert isinstance(outcome, ConcurrencyConflict)
    assert outcome.expected_version == 3
    assert outcome.current_version == 4
    assert employee_store.records[employee.id].name == "Taro Yamada"
    assert audit_store.rows == []


async def test_missing_record_is_reported_as_not_found(
    employee_store: InMemoryEmployeeStore,
) -> None:
    guard = VersionGuard(employee_store)

    outcome = await guard.update_if_version_matches(new_id(), 1, {"name": "Hanako"})

    assert isinstance(outcome, NotFound)


async def test_duplicate_business_code_is_reported(employee_store: InMemoryEmployeeStore) -> None:
    first = make_employee("E100")
    second = make_employee("E200")
    employee_store.records.update({first.id: first, second.id: second})
    guard = VersionGuard(employee_store)

    outcome = await guard.update_if_version_matches(second.id, 1, {"code": "E100"})

    assert isinstance(outcome, DuplicateBusinessKey)
    assert outcome.key == "E100"
    assert employee_store.records[second.id].version == 1


async def test_patch_must_not_touch_reserved_fields(employee_store: InMemoryEmployeeStore) -> None:
    guard = VersionGuard(employee_store)

    with pytest.raises(ValueError, match="version"):
        await guard.update_if_version_matches(new_id(), 1, {"version": 9})


async def test_concurrent_updates_with_same_version_have_one_winner(
    employee_store: InMemoryEmployeeStore,
) -> None:
    employee = make_employee(version=2)
    employee_store.records[employee.id] = employee
    guard = VersionGuard(employee_store)

    first = await guard.update_if_version_matches(employee.id, 2, {"name": "A"})
    second = await guard.update_if_version_matches(employee.id, 2, {"name": "B"})

    assert isinstance(first, UpdatedRecord)
    assert isinstance(second, ConcurrencyConflict)
    assert employee_store.records[employee.id].name == "A"
    assert employee_store.records[employee.id].version == 3


async def test_delete_checks_version(
    employee_store: InMemoryEmployeeStore,
    audit_store: InMemoryAuditStore,
) -> None:
    employee = make_employee(version=2)
    employee_store.records[employee.id] = employee
    guard = VersionGuard(employee_store)

    conflict = await guard.delete_if_version_matches(employee.id, 1)
    deleted = await guard.delete_if_version_matches(employee.id, 2)
    missing = await guard.delete_if_version_matches(employee.id, 2)

    assert isinstance(conflict, ConcurrencyConflict)
    assert isinstance(deleted, Deleted)
    assert isinstance(missing, NotFound)
    assert [row.operation for row in audit_store.rows] == [AuditOperation.DELETE]


async def test_batch_delete_stops_at_first_failure(employee_store: InMemoryEmployeeStore) -> None:
    first = make_employee("E1")
    second = make_employee("E2", version=3)
    third = make_employee("E3")
    for employee in (first, second, third):
        employee_store.records[employee.id] = employee
    guard = VersionGuard(employee_store)

    result = await guard.delete_many_if_versions_match(
        [(first.id, 1), (second.id, 1), (third.id, 1)]
    )

    assert not result.succeeded
    assert result.deleted == [first.id]
    assert isinstance(result.failure, ConcurrencyConflict)
    assert result.skipped == [third.id]
    assert first.id not in employee_store.records
    assert third.id in employee_store.records
