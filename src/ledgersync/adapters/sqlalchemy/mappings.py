"""SQLAlchemy table metadata for the ledger's master data and logs."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Dialect,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    TypeDecorator,
    Uuid,
)

from ledgersync.domain.model import INITIAL_VERSION

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

UUIDColumnType = Uuid[uuid.UUID]


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


metadata = MetaData(
    naming_convention={
        "ix": "ix_%(column_0_label)s",
        "uq": "uq_%(table_name)s_%(column_0_label)s",
        "ck": "ck_%(table_name)s_%(constraint_name)s",
        "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
        "pk": "pk_%(table_name)s",
    }
)


def _versioned_columns() -> list[Column[Any]]:
    return [
        Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
        Column("code", String, nullable=False, unique=True),
        Column("version", Integer, nullable=False, default=INITIAL_VERSION),
        Column("updated_at", UTCDateTime(), nullable=True),
    ]


# Master data -----------------------------------------------------------------

employee_table = Table(
    "employees",
    metadata,
    *_versioned_columns(),
    Column("name", String, nullable=False),
    Column("name_kana", String, nullable=True),
    Column("email", String, nullable=True),
    Column("role", String(16), nullable=False, default="user"),
    Column("area_code", String, nullable=True),
    Column("address_code", String, nullable=True),
    # one employee per identity; nothing can enforce the other direction
    Column("identity_ref", String, nullable=True, unique=True),
)

area_table = Table(
    "areas",
    metadata,
    *_versioned_columns(),
    Column("name", String, nullable=False),
)

address_table = Table(
    "addresses",
    metadata,
    *_versioned_columns(),
    Column("office_name", String, nullable=False),
    Column("area_code", String, nullable=True),
    Column("tel", String, nullable=True),
    Column("fax", String, nullable=True),
    Column("zip_code", String, nullable=True),
    Column("address", String, nullable=True),
    Column("notes", String, nullable=True),
)

device_table = Table(
    "devices",
    metadata,
    *_versioned_columns(),
    Column("kind", String(16), nullable=False),
    Column("employee_code", String, nullable=True),
    Column("address_code", String, nullable=True),
    Column("status", String, nullable=True),
    Column("notes", String, nullable=True),
)

# Logs ------------------------------------------------------------------------

operation_log_table = Table(
    "operation_logs",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("occurred_at", UTCDateTime(), nullable=False),
    Column("table_name", String, nullable=False),
    Column("operation", String(8), nullable=False),
    Column("old_data", JSON(none_as_null=True), nullable=True),
    Column("new_data", JSON(none_as_null=True), nullable=True),
    Column("actor_name", String, nullable=True),
    Column("actor_code", String, nullable=True),
    Index("ix_operation_logs_lookup", "table_name", "operation", "occurred_at"),
)

audit_log_table = Table(
    "audit_logs",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("occurred_at", UTCDateTime(), nullable=False),
    Column("action", String, nullable=False),
    Column("target", String, nullable=True),
    Column("details", JSON(none_as_null=True), nullable=True),
    # identity id of the administrator who acknowledged the entry
    Column("acknowledged_by", String, nullable=True),
)


async def create_all_tables(engine: AsyncEngine) -> None:
    async with engine.begin() as connection:
        await connection.run_sync(metadata.create_all)
