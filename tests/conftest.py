from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from ledgersync.adapters.sqlalchemy import create_all_tables, shutdown, startup
from ledgersync.domain.reconciliation import IdentityResolver
from tests.support.fakes import FakeIdentityProvider, InMemoryAuditStore, InMemoryEmployeeStore

os.environ.setdefault("DATABASE_URI", "sqlite+aiosqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncEngine


@pytest.fixture
def audit_store() -> InMemoryAuditStore:
    return InMemoryAuditStore()


@pytest.fixture
def employee_store(audit_store: InMemoryAuditStore) -> InMemoryEmployeeStore:
    return InMemoryEmployeeStore(audit=audit_store)


@pytest.fixture
def identity_provider() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture
def resolver(identity_provider: FakeIdentityProvider) -> IdentityResolver:
    # small pages so multi-page listings get exercised
    return IdentityResolver(identity_provider, page_size=2)


@pytest.fixture
async def sqlite_engine() -> AsyncIterator[AsyncEngine]:
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await create_all_tables(engine)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
async def managed_engine(sqlite_engine: AsyncEngine) -> AsyncIterator[AsyncEngine]:
    """Install ``sqlite_engine`` as the adapter's process-wide engine."""

    await startup(engine=sqlite_engine, force=True)
    try:
        yield sqlite_engine
    finally:
        await shutdown()
