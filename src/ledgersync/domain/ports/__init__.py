"""Ports consumed by the reconciliation core."""

from __future__ import annotations

from .audit import AuditStore, AuditStoreError, IdentityBackReference, ReferenceSeveranceError
from .identity import (
    DuplicateLoginKeyError,
    IdentityNotFoundError,
    IdentityProvider,
    IdentityProviderError,
)
from .persistence import (
    AddressStore,
    AreaStore,
    DeviceStore,
    DuplicateKeyError,
    EmployeeStore,
    RecordPatch,
    StoreError,
    VersionedStore,
)

__all__ = [
    "AddressStore",
    "AreaStore",
    "AuditStore",
    "AuditStoreError",
    "DeviceStore",
    "DuplicateKeyError",
    "DuplicateLoginKeyError",
    "EmployeeStore",
    "IdentityBackReference",
    "IdentityNotFoundError",
    "IdentityProvider",
    "IdentityProviderError",
    "RecordPatch",
    "ReferenceSeveranceError",
    "StoreError",
    "VersionedStore",
]
