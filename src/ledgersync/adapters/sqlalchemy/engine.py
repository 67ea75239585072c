"""Async engine lifecycle for the SQLAlchemy adapter."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy.ext.asyncio import create_async_engine

from ledgersync.config.storage import get_database_config

from .mappings import create_all_tables
from .repositories import (
    DEFAULT_SYSTEM_ACTOR,
    AcknowledgedByReference,
    SqlAlchemyAddressRepository,
    SqlAlchemyAreaRepository,
    SqlAlchemyDeviceRepository,
    SqlAlchemyEmployeeRepository,
    SqlAlchemyOperationLogStore,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine


class StartupError(RuntimeError):
    """Raised when stores are requested before the adapter is initialised."""


@dataclass(slots=True)
class _AdapterState:
    engine: AsyncEngine | None = None


_STATE = _AdapterState()


async def startup(
    *,
    engine: AsyncEngine | None = None,
    database_uri: str | None = None,
    force: bool = False,
) -> AsyncEngine:
    """Create (or adopt) the async engine and make sure all tables exist."""

    if _STATE.engine is not None and not force:
        raise StartupError(
            "SQLAlchemy adapter already initialised. Pass force=True to reconfigure."
        )

    resolved_engine = engine or create_async_engine(
        database_uri or get_database_config().uri,
        future=True,
    )
    await create_all_tables(resolved_engine)
    _STATE.engine = resolved_engine
    return resolved_engine


def configured_engine() -> AsyncEngine:
    if _STATE.engine is None:
        raise StartupError(
            "SQLAlchemy adapter not initialised. Call ledgersync.adapters.sqlalchemy."
            "engine.startup() before requesting stores."
        )
    return _STATE.engine


def is_started() -> bool:
    return _STATE.engine is not None


async def shutdown() -> None:
    """Dispose the managed engine and reset state (primarily for tests)."""

    if _STATE.engine is not None:
        await _STATE.engine.dispose()
    _STATE.engine = None


@dataclass(slots=True, frozen=True)
class SqlAlchemyStores:
    employees: SqlAlchemyEmployeeRepository
    areas: SqlAlchemyAreaRepository
    addresses: SqlAlchemyAddressRepository
    devices: SqlAlchemyDeviceRepository
    operation_logs: SqlAlchemyOperationLogStore
    acknowledged_by: AcknowledgedByReference


def build_stores(
    engine: AsyncEngine | None = None,
    *,
    system_actor: str = DEFAULT_SYSTEM_ACTOR,
) -> SqlAlchemyStores:
    resolved = engine or configured_engine()
    return SqlAlchemyStores(
        employees=SqlAlchemyEmployeeRepository(resolved, system_actor=system_actor),
        areas=SqlAlchemyAreaRepository(resolved, system_actor=system_actor),
        addresses=SqlAlchemyAddressRepository(resolved, system_actor=system_actor),
        devices=SqlAlchemyDeviceRepository(resolved, system_actor=system_actor),
        operation_logs=SqlAlchemyOperationLogStore(resolved),
        acknowledged_by=AcknowledgedByReference(resolved),
    )
