"""Public domain model surface."""

from __future__ import annotations

from ledgersync.domain.model.audit import UNKNOWN_ACTOR_NAME, ActorIdentity, AuditRow
from ledgersync.domain.model.base import INITIAL_VERSION, VersionedRecord, new_id
from ledgersync.domain.model.enums import AuditOperation, DeviceKind, EntityKind, Role
from ledgersync.domain.model.identity import IdentityClaims, IdentityPatch, IdentityRecord
from ledgersync.domain.model.masters import Address, Area, Device, Employee

__all__ = [
    "INITIAL_VERSION",
    "UNKNOWN_ACTOR_NAME",
    "ActorIdentity",
    "Address",
    "Area",
    "AuditOperation",
    "AuditRow",
    "Device",
    "DeviceKind",
    "Employee",
    "EntityKind",
    "IdentityClaims",
    "IdentityPatch",
    "IdentityRecord",
    "Role",
    "VersionedRecord",
    "new_id",
]
