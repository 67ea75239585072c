"""Ports for the domain record store."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from ledgersync.domain.model import Address, Area, Device, Employee, VersionedRecord

if TYPE_CHECKING:
    from collections.abc import Mapping
    from uuid import UUID

type RecordPatch = Mapping[str, object]


class StoreError(RuntimeError):
    """Raised by store adapters for faults the core cannot classify."""


class DuplicateKeyError(StoreError):
    """Raised when a write violates a business-key uniqueness constraint."""

    def __init__(self, message: str, *, key: str | None = None) -> None:
        super().__init__(message)
        self.key = key


@runtime_checkable
class VersionedStore[TRecord: VersionedRecord](Protocol):
    """Store contract for records under optimistic concurrency control.

    ``update_where``/``delete_where`` must be a single conditional statement
    against the store and return the number of affected rows.
    """

    async def get(self, record_id: UUID) -> TRecord | None: ...

    async def find_by_business_code(self, code: str) -> TRecord | None: ...

    async def insert(self, record: TRecord) -> TRecord: ...

    async def update_where(
        self,
        record_id: UUID,
        expected_version: int,
        patch: RecordPatch,
        *,
        bump_version: bool = True,
    ) -> int: ...

    async def delete_where(self, record_id: UUID, expected_version: int) -> int: ...

    async def list_all(self, **filters: object) -> list[TRecord]: ...


@runtime_checkable
class EmployeeStore(VersionedStore[Employee], Protocol):
    """Store contract for employees."""

    async def linked_identity_refs(self) -> set[str]: ...


@runtime_checkable
class AreaStore(VersionedStore[Area], Protocol):
    """Store contract for areas."""


@runtime_checkable
class AddressStore(VersionedStore[Address], Protocol):
    """Store contract for addresses."""


@runtime_checkable
class DeviceStore(VersionedStore[Device], Protocol):
    """Store contract for devices."""
