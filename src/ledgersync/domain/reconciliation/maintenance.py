"""Operator tools for one business code: look at both stores, purge leftovers."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from ledgersync.domain.ports import IdentityProviderError

from .normalize import keys_match

if TYPE_CHECKING:
    from ledgersync.domain.model import Employee, IdentityRecord
    from ledgersync.domain.ports import EmployeeStore, IdentityProvider

    from .resolve import IdentityResolver

log = logging.getLogger(__name__)


@dataclass(slots=True, kw_only=True)
class EmployeeDiagnosis:
    code: str
    record: Employee | None
    identities: list[IdentityRecord] = field(default_factory=list["IdentityRecord"])

    @property
    def linked(self) -> bool:
        return self.record is not None and any(
            identity.id == self.record.identity_ref for identity in self.identities
        )

    @property
    def summary(self) -> str:
        found = "FOUND" if self.record is not None else "NOT FOUND"
        return f"DB: {found}, identities: {len(self.identities)} found"


@dataclass(slots=True, kw_only=True)
class PurgeReport:
    code: str
    deleted: list[str] = field(default_factory=list[str])
    errors: list[str] = field(default_factory=list[str])
    # set when the purge was refused
    refused: str | None = None


@dataclass(slots=True)
class IdentityMaintenance:
    employees: EmployeeStore
    identities: IdentityProvider
    resolver: IdentityResolver

    async def matching_identities(self, code: str) -> list[IdentityRecord]:
        """Every identity whose login key or claim code corresponds to ``code``."""

        login_key = self.resolver.login_key_for(code)
        return [
            identity
            async for identity in self.resolver.iter_identities()
            if keys_match(identity.login_key, login_key) or keys_match(identity.claims.code, code)
        ]

    async def diagnose(self, code: str) -> EmployeeDiagnosis:
        record = await self.employees.find_by_business_code(code)
        identities = await self.matching_identities(code)
        if record is not None and record.identity_ref:
            if all(identity.id != record.identity_ref for identity in identities):
                identities.extend(
                    [
                        identity
                        async for identity in self.resolver.iter_identities()
                        if identity.id == record.identity_ref
                    ]
                )
        diagnosis = EmployeeDiagnosis(code=code, record=record, identities=identities)
        log.info("Diagnosis for %s: %s", code, diagnosis.summary)
        return diagnosis

    async def purge_stray_identities(self, code: str) -> PurgeReport:
        """Delete identities left behind for ``code`` once its employee is gone."""

        report = PurgeReport(code=code)
        if await self.employees.find_by_business_code(code) is not None:
            report.refused = f"employee {code} still exists; remove it instead"
            log.warning("Refusing to purge identities of live employee %s", code)
            return report

        linked = await self.employees.linked_identity_refs()
        for identity in await self.matching_identities(code):
            if identity.id in linked:
                log.warning("Identity %s is linked to another employee; keeping it", identity.id)
                continue
            try:
                await self.identities.delete_identity(identity.id)
            except IdentityProviderError as exc:
                log.warning("Failed to delete stray identity %s: %s", identity.id, exc)
                report.errors.append(f"{identity.id}: {exc}")
                continue
            log.info("Deleted stray identity %s for %s", identity.id, code)
            report.deleted.append(identity.id)
        return report
