from __future__ import annotations

import pytest

from ledgersync.domain.model import ActorIdentity, AuditOperation, new_id
from ledgersync.domain.ports import IdentityNotFoundError
from ledgersync.domain.reconciliation import (
    AuditAttributionPatcher,
    EmployeeRemoval,
    FailureKind,
    IdentityResolver,
    MatchEvidence,
    PatchApplied,
    RemovalFailure,
    Removed,
)
from tests.support.fakes import (
    FakeIdentityProvider,
    InMemoryAuditStore,
    InMemoryEmployeeStore,
    make_employee,
)

ADMIN = ActorIdentity(name="Suzuki Ichiro", code="A001")


@pytest.fixture
def removal(
    employee_store: InMemoryEmployeeStore,
    identity_provider: FakeIdentityProvider,
    resolver: IdentityResolver,
    audit_store: InMemoryAuditStore,
) -> EmployeeRemoval:
    return EmployeeRemoval(
        employee_store,
        identity_provider,
        resolver,
        attribution=AuditAttributionPatcher(audit_store),
    )


async def test_remove_deletes_identity_then_record(
    removal: EmployeeRemoval,
    employee_store: InMemoryEmployeeStore,
    identity_provider: FakeIdentityProvider,
    audit_store: InMemoryAuditStore,
) -> None:
    identity = identity_provider.add("e100@ledger-system.local", code="E100")
    employee = make_employee(identity_ref=identity.id)
    employee_store.records[employee.id] = employee

    result = await removal.remove(employee.id, 1, actor=ADMIN)

    assert isinstance(result, Removed)
    assert result.identity_id == identity.id
    assert result.evidence is MatchEvidence.BY_REFERENCE
    assert employee_store.records == {}
    assert identity_provider.identities == {}
    assert [row.operation for row in audit_store.rows] == [
        AuditOperation.UPDATE,
        AuditOperation.DELETE,
    ]
    assert all(isinstance(patch, PatchApplied) for patch in result.attribution)
    assert {row.actor_code for row in audit_store.rows} == {"A001"}


async def test_stale_version_removes_nothing(
    removal: EmployeeRemoval,
    employee_store: InMemoryEmployeeStore,
    identity_provider: FakeIdentityProvider,
) -> None:
    identity = identity_provider.add("e100@ledger-system.local")
    employee = make_employee(identity_ref=identity.id, version=2)
    employee_store.records[employee.id] = employee

    result = await removal.remove(employee.id, 1)

    assert isinstance(result, RemovalFailure)
    assert result.kind is FailureKind.CONCURRENCY_CONFLICT
    assert employee.id in employee_store.records
    assert identity.id in identity_provider.identities
    assert identity_provider.count_calls("delete_identity") == 0


async def test_missing_record_is_not_found(removal: EmployeeRemoval) -> None:
    result = await removal.remove(new_id(), 1)

    assert isinstance(result, RemovalFailure)
    assert result.kind is FailureKind.NOT_FOUND


async def test_identity_already_gone_still_removes_record(
    removal: EmployeeRemoval,
    employee_store: InMemoryEmployeeStore,
    identity_provider: FakeIdentityProvider,
) -> None:
    employee = make_employee(identity_ref="auth-gone")
    employee_store.records[employee.id] = employee
    identity_provider.fail_on(
        "delete_identity",
        IdentityNotFoundError("User auth-gone not found", status=404),
    )

    result = await removal.remove(employee.id, 1)

    assert isinstance(result, Removed)
    assert result.identity_id is None
    assert employee_store.records == {}


async def test_identity_provider_failure_restores_link(
    removal: EmployeeRemoval,
    employee_store: InMemoryEmployeeStore,
    identity_provider: FakeIdentityProvider,
) -> None:
    identity = identity_provider.add("e100@ledger-system.local")
    employee = make_employee(identity_ref=identity.id)
    employee_store.records[employee.id] = employee
    identity_provider.fail_on("delete_identity")

    result = await removal.remove(employee.id, 1)

    assert isinstance(result, RemovalFailure)
    assert result.kind is FailureKind.IDENTITY_PROVIDER_ERROR
    stored = employee_store.records[employee.id]
    assert stored.identity_ref == identity.id
    assert stored.version == 3
    assert identity.id in identity_provider.identities


async def test_unlinked_record_deletes_stray_identity(
    removal: EmployeeRemoval,
    employee_store: InMemoryEmployeeStore,
    identity_provider: FakeIdentityProvider,
) -> None:
    stray = identity_provider.add("e100@ledger-system.local")
    bystander = identity_provider.add("e200@ledger-system.local")
    employee = make_employee()
    employee_store.records[employee.id] = employee

    result = await removal.remove(employee.id, 1)

    assert isinstance(result, Removed)
    assert result.identity_id == stray.id
    assert result.evidence is MatchEvidence.BY_LOGIN_KEY
    assert list(identity_provider.identities) == [bystander.id]
    assert employee_store.records == {}


async def test_stray_identity_linked_elsewhere_is_kept(
    removal: EmployeeRemoval,
    employee_store: InMemoryEmployeeStore,
    identity_provider: FakeIdentityProvider,
) -> None:
    shared = identity_provider.add("someone@example.com", code="E100")
    owner = make_employee("E900", identity_ref=shared.id)
    employee = make_employee()
    employee_store.records.update({owner.id: owner, employee.id: employee})

    result = await removal.remove(employee.id, 1)

    assert isinstance(result, Removed)
    assert result.identity_id is None
    assert shared.id in identity_provider.identities
    assert employee.id not in employee_store.records


async def test_ambiguous_stray_identities_are_left_alone(
    removal: EmployeeRemoval,
    employee_store: InMemoryEmployeeStore,
    identity_provider: FakeIdentityProvider,
) -> None:
    identity_provider.add("a@example.com", code="E100")
    identity_provider.add("b@example.com", code="E100")
    employee = make_employee()
    employee_store.records[employee.id] = employee

    result = await removal.remove(employee.id, 1)

    assert isinstance(result, Removed)
    assert len(identity_provider.identities) == 2
    assert identity_provider.count_calls("delete_identity") == 0


async def test_stray_lookup_failure_does_not_block_removal(
    removal: EmployeeRemoval,
    employee_store: InMemoryEmployeeStore,
    identity_provider: FakeIdentityProvider,
) -> None:
    employee = make_employee()
    employee_store.records[employee.id] = employee
    identity_provider.fail_on("list_identities")

    result = await removal.remove(employee.id, 1)

    assert isinstance(result, Removed)
    assert employee_store.records == {}


async def test_batch_removal_stops_at_first_failure(
    removal: EmployeeRemoval,
    employee_store: InMemoryEmployeeStore,
) -> None:
    first = make_employee("E1")
    second = make_employee("E2", version=5)
    third = make_employee("E3")
    for employee in (first, second, third):
        employee_store.records[employee.id] = employee

    result = await removal.remove_many([(first.id, 1), (second.id, 1), (third.id, 1)])

    assert not result.succeeded
    assert [removed.record_id for removed in result.removed] == [first.id]
    assert result.failure is not None
    assert result.failure.kind is FailureKind.CONCURRENCY_CONFLICT
    assert result.skipped == [third.id]
    assert set(employee_store.records) == {second.id, third.id}
