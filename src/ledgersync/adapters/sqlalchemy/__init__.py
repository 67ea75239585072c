"""SQLAlchemy adapter for the domain store and the operation log."""

from __future__ import annotations

from .engine import (
    SqlAlchemyStores,
    StartupError,
    build_stores,
    configured_engine,
    is_started,
    shutdown,
    startup,
)
from .mappings import create_all_tables, metadata
from .repositories import (
    AcknowledgedByReference,
    SqlAlchemyAddressRepository,
    SqlAlchemyAreaRepository,
    SqlAlchemyDeviceRepository,
    SqlAlchemyEmployeeRepository,
    SqlAlchemyOperationLogStore,
    SqlAlchemyVersionedRepository,
)

__all__ = [
    "AcknowledgedByReference",
    "SqlAlchemyAddressRepository",
    "SqlAlchemyAreaRepository",
    "SqlAlchemyDeviceRepository",
    "SqlAlchemyEmployeeRepository",
    "SqlAlchemyOperationLogStore",
    "SqlAlchemyStores",
    "SqlAlchemyVersionedRepository",
    "StartupError",
    "build_stores",
    "configured_engine",
    "create_all_tables",
    "is_started",
    "metadata",
    "shutdown",
    "startup",
]
