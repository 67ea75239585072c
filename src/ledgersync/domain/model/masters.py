"""Versioned master data: employees and the records that hang off them."""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

from ledgersync.domain.model.base import VersionedRecord
from ledgersync.domain.model.enums import DeviceKind, EntityKind, Role


@dataclass(kw_only=True)
class Employee(VersionedRecord):
    """Employee master record.

    ``identity_ref`` points at the identity provider record whose lifecycle is
    tied to this employee. Nothing enforces it across stores; the reconciliation
    core keeps it honest.
    """

    ENTITY_KIND: ClassVar[EntityKind] = EntityKind.EMPLOYEE

    name: str
    name_kana: str | None = None
    email: str | None = None
    role: Role = Role.USER
    area_code: str | None = None
    address_code: str | None = None
    identity_ref: str | None = None


@dataclass(kw_only=True)
class Area(VersionedRecord):
    ENTITY_KIND: ClassVar[EntityKind] = EntityKind.AREA

    name: str


@dataclass(kw_only=True)
class Address(VersionedRecord):
    ENTITY_KIND: ClassVar[EntityKind] = EntityKind.ADDRESS

    office_name: str
    area_code: str | None = None
    tel: str | None = None
    fax: str | None = None
    zip_code: str | None = None
    address: str | None = None
    notes: str | None = None


@dataclass(kw_only=True)
class Device(VersionedRecord):
    """A managed device; ``code`` is its management number."""

    ENTITY_KIND: ClassVar[EntityKind] = EntityKind.DEVICE

    kind: DeviceKind
    employee_code: str | None = None
    address_code: str | None = None
    status: str | None = None
    notes: str | None = None
