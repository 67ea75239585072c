"""Async SQLAlchemy implementations of the store ports.

Every write to a master-data table appends an ``operation_logs`` row in the same
transaction, attributed to the privileged system actor. This mirrors the
database trigger the reconciliation core has to correct after the fact.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, ClassVar
from uuid import UUID

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ledgersync.domain.model import (
    Address,
    Area,
    AuditOperation,
    AuditRow,
    Device,
    DeviceKind,
    Employee,
    Role,
    VersionedRecord,
)
from ledgersync.domain.ports import (
    AuditStoreError,
    DuplicateKeyError,
    ReferenceSeveranceError,
    StoreError,
)
from ledgersync.domain.reconciliation.normalize import normalize_code, normalize_key

from .mappings import (
    address_table,
    area_table,
    audit_log_table,
    device_table,
    employee_table,
    operation_log_table,
)

if TYPE_CHECKING:
    from sqlalchemy import Table
    from sqlalchemy.engine import RowMapping
    from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

    from ledgersync.domain.ports import RecordPatch

log = logging.getLogger(__name__)

DEFAULT_SYSTEM_ACTOR = "service_role"

type Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _jsonable(value: object) -> object:
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return value


def _column_value(value: object) -> object:
    return value.value if isinstance(value, Enum) else value


def _payload(row: RowMapping | None) -> dict[str, object] | None:
    if row is None:
        return None
    return {key: _jsonable(value) for key, value in row.items()}


class SqlAlchemyVersionedRepository[TRecord: VersionedRecord]:
    """Conditional writes against one master-data table."""

    record_type: type[TRecord]
    decoders: ClassVar[Mapping[str, Callable[[Any], object]]] = {}

    def __init__(
        self,
        engine: AsyncEngine,
        table: Table,
        *,
        system_actor: str = DEFAULT_SYSTEM_ACTOR,
        clock: Clock = _utcnow,
    ) -> None:
        self.engine = engine
        self.table = table
        self.system_actor = system_actor
        self.clock = clock
        self._fields = tuple(field.name for field in dataclasses.fields(self.record_type))

    async def get(self, record_id: UUID) -> TRecord | None:
        async with self.engine.connect() as connection:
            row = await self._fetch(connection, record_id)
        return self._to_record(row) if row is not None else None

    async def find_by_business_code(self, code: str) -> TRecord | None:
        # codes are stored NFKC-normalized; compare case-insensitively
        statement = select(self.table).where(func.lower(self.table.c.code) == normalize_key(code))
        async with self.engine.connect() as connection:
            row = (await connection.execute(statement)).mappings().first()
        return self._to_record(row) if row is not None else None

    async def list_all(self, **filters: object) -> list[TRecord]:
        statement = select(self.table).order_by(self.table.c.code)
        for name, value in filters.items():
            if name not in self.table.c:
                raise ValueError(f"Unknown filter {name!r} for {self.table.name}")
            statement = statement.where(self.table.c[name] == _column_value(value))
        async with self.engine.connect() as connection:
            rows = (await connection.execute(statement)).mappings().all()
        return [self._to_record(row) for row in rows]

    async def insert(self, record: TRecord) -> TRecord:
        values = {name: _column_value(getattr(record, name)) for name in self._fields}
        values["code"] = normalize_code(record.code)
        values["updated_at"] = self.clock()
        try:
            async with self.engine.begin() as connection:
                await connection.execute(insert(self.table).values(**values))
                row = await self._fetch(connection, record.id)
                await self._log(connection, AuditOperation.INSERT, None, row)
        except IntegrityError as exc:
            raise DuplicateKeyError(
                f"{self.table.name} {record.code} violates a unique constraint",
                key=record.code,
            ) from exc
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to insert into {self.table.name}: {exc}") from exc
        assert row is not None  # noqa: S101
        return self._to_record(row)

    async def update_where(
        self,
        record_id: UUID,
        expected_version: int,
        patch: RecordPatch,
        *,
        bump_version: bool = True,
    ) -> int:
        values: dict[str, object] = {name: _column_value(value) for name, value in patch.items()}
        values["updated_at"] = self.clock()
        if bump_version:
            values["version"] = self.table.c.version + 1
        if "code" in values and isinstance(values["code"], str):
            values["code"] = normalize_code(values["code"])
        statement = (
            update(self.table)
            .where(self.table.c.id == record_id, self.table.c.version == expected_version)
            .values(**values)
        )
        try:
            async with self.engine.begin() as connection:
                before = await self._fetch(connection, record_id)
                affected = (await connection.execute(statement)).rowcount
                if affected:
                    after = await self._fetch(connection, record_id)
                    await self._log(connection, AuditOperation.UPDATE, before, after)
        except IntegrityError as exc:
            key = patch.get("code")
            raise DuplicateKeyError(
                f"{self.table.name} {record_id} update violates a unique constraint",
                key=str(key) if key is not None else None,
            ) from exc
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to update {self.table.name}: {exc}") from exc
        return affected

    async def delete_where(self, record_id: UUID, expected_version: int) -> int:
        statement = delete(self.table).where(
            self.table.c.id == record_id,
            self.table.c.version == expected_version,
        )
        try:
            async with self.engine.begin() as connection:
                before = await self._fetch(connection, record_id)
                affected = (await connection.execute(statement)).rowcount
                if affected:
                    await self._log(connection, AuditOperation.DELETE, before, None)
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to delete from {self.table.name}: {exc}") from exc
        return affected

    async def _fetch(self, connection: AsyncConnection, record_id: UUID) -> RowMapping | None:
        statement = select(self.table).where(self.table.c.id == record_id)
        return (await connection.execute(statement)).mappings().first()

    async def _log(
        self,
        connection: AsyncConnection,
        operation: AuditOperation,
        before: RowMapping | None,
        after: RowMapping | None,
    ) -> None:
        await connection.execute(
            insert(operation_log_table).values(
                occurred_at=self.clock(),
                table_name=self.table.name,
                operation=operation.value,
                old_data=_payload(before),
                new_data=_payload(after),
                actor_name=self.system_actor,
                actor_code=self.system_actor,
            )
        )

    def _to_record(self, row: RowMapping) -> TRecord:
        values: dict[str, object] = {}
        for name in self._fields:
            value = row[name]
            decoder = self.decoders.get(name)
            values[name] = decoder(value) if decoder is not None and value is not None else value
        return self.record_type(**values)


class SqlAlchemyEmployeeRepository(SqlAlchemyVersionedRepository[Employee]):
    record_type = Employee
    decoders: ClassVar[Mapping[str, Callable[[Any], object]]] = {"role": Role.coerce}

    def __init__(self, engine: AsyncEngine, **kwargs: Any) -> None:
        super().__init__(engine, employee_table, **kwargs)

    async def linked_identity_refs(self) -> set[str]:
        statement = select(employee_table.c.identity_ref).where(
            employee_table.c.identity_ref.is_not(None)
        )
        async with self.engine.connect() as connection:
            refs = (await connection.execute(statement)).scalars().all()
        return {ref for ref in refs if ref}


class SqlAlchemyAreaRepository(SqlAlchemyVersionedRepository[Area]):
    record_type = Area

    def __init__(self, engine: AsyncEngine, **kwargs: Any) -> None:
        super().__init__(engine, area_table, **kwargs)


class SqlAlchemyAddressRepository(SqlAlchemyVersionedRepository[Address]):
    record_type = Address

    def __init__(self, engine: AsyncEngine, **kwargs: Any) -> None:
        super().__init__(engine, address_table, **kwargs)


class SqlAlchemyDeviceRepository(SqlAlchemyVersionedRepository[Device]):
    record_type = Device
    decoders: ClassVar[Mapping[str, Callable[[Any], object]]] = {"kind": DeviceKind}

    def __init__(self, engine: AsyncEngine, **kwargs: Any) -> None:
        super().__init__(engine, device_table, **kwargs)


class SqlAlchemyOperationLogStore:
    """Audit store over ``operation_logs``."""

    def __init__(self, engine: AsyncEngine) -> None:
        self.engine = engine

    async def query_recent(
        self,
        target_type: str,
        operation: AuditOperation,
        since: datetime,
        target_id: str,
    ) -> list[AuditRow]:
        table = operation_log_table
        payload = table.c.old_data if operation is AuditOperation.DELETE else table.c.new_data
        statement = (
            select(table)
            .where(
                table.c.table_name == target_type,
                table.c.operation == operation.value,
                table.c.occurred_at >= since,
                payload["id"].as_string() == target_id,
            )
            .order_by(table.c.occurred_at.desc(), table.c.id.desc())
        )
        try:
            async with self.engine.connect() as connection:
                rows = (await connection.execute(statement)).mappings().all()
        except SQLAlchemyError as exc:
            raise AuditStoreError(f"Failed to query operation logs: {exc}") from exc
        return [_audit_row(row) for row in rows]

    async def patch_actor_fields(self, row_id: int, actor_name: str, actor_code: str) -> None:
        statement = (
            update(operation_log_table)
            .where(operation_log_table.c.id == row_id)
            .values(actor_name=actor_name, actor_code=actor_code)
        )
        try:
            async with self.engine.begin() as connection:
                affected = (await connection.execute(statement)).rowcount
        except SQLAlchemyError as exc:
            raise AuditStoreError(f"Failed to patch operation log {row_id}: {exc}") from exc
        if not affected:
            raise AuditStoreError(f"Operation log {row_id} does not exist")

    async def list_rows(self, *, table_name: str | None = None) -> list[AuditRow]:
        statement = select(operation_log_table).order_by(operation_log_table.c.id)
        if table_name is not None:
            statement = statement.where(operation_log_table.c.table_name == table_name)
        async with self.engine.connect() as connection:
            rows = (await connection.execute(statement)).mappings().all()
        return [_audit_row(row) for row in rows]


def _audit_row(row: RowMapping) -> AuditRow:
    return AuditRow(
        id=row["id"],
        occurred_at=row["occurred_at"],
        table_name=row["table_name"],
        operation=AuditOperation(row["operation"]),
        old_payload=row["old_data"],
        new_payload=row["new_data"],
        actor_name=row["actor_name"],
        actor_code=row["actor_code"],
    )


class AcknowledgedByReference:
    """``audit_logs.acknowledged_by`` holds the identity id of an administrator."""

    name = "audit_logs.acknowledged_by"

    def __init__(self, engine: AsyncEngine) -> None:
        self.engine = engine

    async def sever(self, identity_id: str) -> int:
        statement = (
            update(audit_log_table)
            .where(audit_log_table.c.acknowledged_by == identity_id)
            .values(acknowledged_by=None)
        )
        try:
            async with self.engine.begin() as connection:
                return (await connection.execute(statement)).rowcount
        except SQLAlchemyError as exc:
            raise ReferenceSeveranceError(
                f"Failed to clear {self.name} for {identity_id}: {exc}"
            ) from exc

