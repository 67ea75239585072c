"""Application orchestration entry points."""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from ledgersync.adapters.identity import HttpIdentityProvider
from ledgersync.adapters.sqlalchemy import build_stores, is_started, shutdown, startup
from ledgersync.config import get_attribution_settings, get_identity_settings
from ledgersync.domain.model import ActorIdentity
from ledgersync.domain.reconciliation import (
    AuditAttributionPatcher,
    EmployeeReconciler,
    EmployeeRemoval,
    IdentityMaintenance,
    IdentityResolver,
    IdentitySync,
    OrphanScanner,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Sequence

    from ledgersync.adapters.sqlalchemy import SqlAlchemyStores
    from ledgersync.config import AttributionSettings, IdentitySettings
    from ledgersync.domain.ports import IdentityProvider
    from ledgersync.domain.reconciliation import (
        BatchUpsertResult,
        EmployeeDiagnosis,
        EmployeeFields,
        OrphanScanReport,
        PurgeReport,
        RemovalResult,
        SyncReport,
    )

log = getLogger(__name__)


@dataclass(slots=True)
class LedgerServices:
    """Reconciliation components wired to one set of adapters."""

    stores: SqlAlchemyStores
    identities: IdentityProvider
    resolver: IdentityResolver
    attribution: AuditAttributionPatcher
    reconciler: EmployeeReconciler
    removal: EmployeeRemoval
    scanner: OrphanScanner
    sync: IdentitySync
    maintenance: IdentityMaintenance

    async def actor_for(self, code: str | None) -> ActorIdentity | None:
        """Look up the initiating administrator by business code."""

        if not code:
            return None
        employee = await self.stores.employees.find_by_business_code(code)
        login_key = self.resolver.login_key_for(code)
        if employee is None:
            log.warning("Actor %s is not a known employee", code)
            return ActorIdentity(code=code, login_key=login_key)
        return ActorIdentity(
            name=employee.name,
            name_kana=employee.name_kana,
            code=employee.code,
            login_key=login_key,
        )


def build_services(
    stores: SqlAlchemyStores,
    identities: IdentityProvider,
    *,
    identity_settings: IdentitySettings | None = None,
    attribution_settings: AttributionSettings | None = None,
) -> LedgerServices:
    settings = identity_settings or get_identity_settings()
    attribution_config = attribution_settings or get_attribution_settings()

    resolver = IdentityResolver(
        identities,
        login_domain=settings.login_domain,
        page_size=settings.page_size,
    )
    attribution = AuditAttributionPatcher(stores.operation_logs, window=attribution_config.window)
    return LedgerServices(
        stores=stores,
        identities=identities,
        resolver=resolver,
        attribution=attribution,
        reconciler=EmployeeReconciler(
            stores.employees,
            identities,
            resolver,
            attribution=attribution,
            default_credential=settings.default_credential,
        ),
        removal=EmployeeRemoval(stores.employees, identities, resolver, attribution=attribution),
        scanner=OrphanScanner(
            stores.employees,
            identities,
            resolver,
            back_references=(stores.acknowledged_by,),
        ),
        sync=IdentitySync(
            stores.employees,
            identities,
            resolver,
            default_credential=settings.default_credential,
        ),
        maintenance=IdentityMaintenance(stores.employees, identities, resolver),
    )


@asynccontextmanager
async def open_services(
    *,
    identities: IdentityProvider | None = None,
    database_uri: str | None = None,
) -> AsyncIterator[LedgerServices]:
    """Start the configured adapters for the duration of one command."""

    started_here = not is_started()
    if started_here:
        await startup(database_uri=database_uri)
    attribution_settings = get_attribution_settings()
    stores = build_stores(system_actor=attribution_settings.system_actor)

    owned_provider: HttpIdentityProvider | None = None
    if identities is None:
        owned_provider = HttpIdentityProvider()
        identities = owned_provider
    try:
        yield build_services(
            stores,
            identities,
            attribution_settings=attribution_settings,
        )
    finally:
        if owned_provider is not None:
            await owned_provider.aclose()
        if started_here:
            await shutdown()


async def upsert_employees(
    entries: Sequence[EmployeeFields],
    *,
    actor_code: str | None = None,
    identities: IdentityProvider | None = None,
) -> BatchUpsertResult:
    async with open_services(identities=identities) as services:
        actor = await services.actor_for(actor_code)
        log.info("Upserting %s employees (actor=%s)", len(entries), actor_code)
        return await services.reconciler.upsert_many(entries, actor=actor)


async def remove_employee(
    code: str,
    *,
    version: int | None = None,
    actor_code: str | None = None,
    identities: IdentityProvider | None = None,
) -> RemovalResult:
    async with open_services(identities=identities) as services:
        employee = await services.stores.employees.find_by_business_code(code)
        if employee is None:
            raise LookupError(f"No employee with code {code}")
        actor = await services.actor_for(actor_code)
        return await services.removal.remove(
            employee.id,
            employee.version if version is None else version,
            actor=actor,
        )


async def scan_orphans(
    *,
    dry_run: bool = True,
    identities: IdentityProvider | None = None,
) -> OrphanScanReport:
    async with open_services(identities=identities) as services:
        return await services.scanner.scan(dry_run=dry_run)


async def sync_identities(*, identities: IdentityProvider | None = None) -> SyncReport:
    async with open_services(identities=identities) as services:
        return await services.sync.sync_all()


async def diagnose_employee(
    code: str,
    *,
    identities: IdentityProvider | None = None,
) -> EmployeeDiagnosis:
    async with open_services(identities=identities) as services:
        return await services.maintenance.diagnose(code)


async def purge_stray_identities(
    code: str,
    *,
    identities: IdentityProvider | None = None,
) -> PurgeReport:
    async with open_services(identities=identities) as services:
        return await services.maintenance.purge_stray_identities(code)
