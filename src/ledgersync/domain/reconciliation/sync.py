"""Bulk pass that gives every employee a linked identity with current claims."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from ledgersync.domain.model import IdentityClaims, IdentityPatch
from ledgersync.domain.ports import (
    DuplicateLoginKeyError,
    IdentityNotFoundError,
    IdentityProviderError,
)

from .contracts import (
    AmbiguousIdentityMatch,
    FailureKind,
    IdentityCandidate,
    MatchEvidence,
    NoIdentityMatch,
    ResolvedIdentity,
    UpdatedRecord,
    failure_kind_for,
)
from .engine import DEFAULT_CREDENTIAL
from .version_guard import VersionGuard

if TYPE_CHECKING:
    from ledgersync.domain.model import Employee, IdentityRecord
    from ledgersync.domain.ports import EmployeeStore, IdentityProvider

    from .contracts import IdentityResolution
    from .resolve import IdentityResolver

log = logging.getLogger(__name__)


class SyncAction(StrEnum):
    CREATED = "created"
    UPDATED = "updated"
    FAILED = "failed"


@dataclass(slots=True, kw_only=True)
class SyncEntry:
    code: str
    action: SyncAction
    identity_id: str | None = None
    # identity_ref was written during this pass
    linked: bool = False
    kind: FailureKind | None = None
    error: str | None = None


@dataclass(slots=True, kw_only=True)
class SyncReport:
    entries: list[SyncEntry] = field(default_factory=list["SyncEntry"])

    def count(self, action: SyncAction) -> int:
        return sum(1 for entry in self.entries if entry.action is action)

    @property
    def failures(self) -> list[SyncEntry]:
        return [entry for entry in self.entries if entry.action is SyncAction.FAILED]


class _EntryFailedError(Exception):
    def __init__(self, kind: FailureKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind


@dataclass(slots=True)
class IdentitySync:
    employees: EmployeeStore
    identities: IdentityProvider
    resolver: IdentityResolver
    default_credential: str = field(default=DEFAULT_CREDENTIAL, repr=False)
    guard: VersionGuard[Employee] = field(init=False)

    def __post_init__(self) -> None:
        self.guard = VersionGuard(self.employees)

    async def sync_all(self) -> SyncReport:
        """Ensure every employee has an identity; failures are collected per employee."""

        population = await self.resolver.list_identities()
        report = SyncReport()
        for employee in await self.employees.list_all():
            try:
                entry = await self._sync_one(employee, population)
            except _EntryFailedError as exc:
                entry = SyncEntry(
                    code=employee.code,
                    action=SyncAction.FAILED,
                    kind=exc.kind,
                    error=str(exc),
                )
            except DuplicateLoginKeyError as exc:
                log.warning("Login key of %s is taken: %s", employee.code, exc)
                entry = SyncEntry(
                    code=employee.code,
                    action=SyncAction.FAILED,
                    kind=FailureKind.DUPLICATE_BUSINESS_KEY,
                    error=str(exc),
                )
            except IdentityProviderError as exc:
                log.warning("Identity sync failed for %s: %s", employee.code, exc)
                entry = SyncEntry(
                    code=employee.code,
                    action=SyncAction.FAILED,
                    kind=FailureKind.IDENTITY_PROVIDER_ERROR,
                    error=str(exc),
                )
            except Exception as exc:
                log.exception("Unexpected failure syncing %s", employee.code)
                entry = SyncEntry(
                    code=employee.code,
                    action=SyncAction.FAILED,
                    kind=FailureKind.UNKNOWN,
                    error=str(exc),
                )
            report.entries.append(entry)

        log.info(
            "Identity sync: %s created, %s updated, %s failed",
            report.count(SyncAction.CREATED),
            report.count(SyncAction.UPDATED),
            report.count(SyncAction.FAILED),
        )
        return report

    async def _sync_one(
        self,
        employee: Employee,
        population: list[IdentityRecord],
    ) -> SyncEntry:
        candidate = IdentityCandidate.from_employee(employee)
        claims = IdentityClaims(role=employee.role, code=employee.code, name=employee.name)
        login_key = self.resolver.login_key_for(employee.code)
        patch = IdentityPatch(login_key=login_key, claims=claims)

        resolution: IdentityResolution = await self.resolver.resolve(
            candidate,
            population=population,
        )
        if (
            isinstance(resolution, ResolvedIdentity)
            and resolution.evidence is MatchEvidence.BY_REFERENCE
        ):
            try:
                await self.identities.update_identity(resolution.identity_id, patch)
            except IdentityNotFoundError:
                log.warning(
                    "Identity %s referenced by %s is gone; re-resolving",
                    resolution.identity_id,
                    employee.code,
                )
                resolution = self.resolver.match(candidate, population)
            else:
                return SyncEntry(
                    code=employee.code,
                    action=SyncAction.UPDATED,
                    identity_id=resolution.identity_id,
                )

        if isinstance(resolution, AmbiguousIdentityMatch):
            raise _EntryFailedError(
                FailureKind.AMBIGUOUS_IDENTITY,
                f"identities {', '.join(resolution.identity_ids)} all match {employee.code}",
            )
        if isinstance(resolution, NoIdentityMatch):
            identity = await self.identities.create_identity(
                login_key,
                self.default_credential,
                claims,
            )
            population.append(identity)
            identity_id, action = identity.id, SyncAction.CREATED
        else:
            if (
                resolution.identity_id != employee.identity_ref
                and resolution.identity_id in await self.employees.linked_identity_refs()
            ):
                raise _EntryFailedError(
                    FailureKind.DUPLICATE_BUSINESS_KEY,
                    f"identity {resolution.identity_id} matches {employee.code} "
                    f"{resolution.evidence} but is linked to another employee",
                )
            await self.identities.update_identity(resolution.identity_id, patch)
            identity_id, action = resolution.identity_id, SyncAction.UPDATED

        try:
            linked = await self._link(employee, identity_id)
        except _EntryFailedError:
            if action is SyncAction.CREATED:
                await self._discard(identity_id, employee.code, population)
            raise
        return SyncEntry(code=employee.code, action=action, identity_id=identity_id, linked=linked)

    async def _discard(
        self,
        identity_id: str,
        code: str,
        population: list[IdentityRecord],
    ) -> None:
        population[:] = [identity for identity in population if identity.id != identity_id]
        try:
            await self.identities.delete_identity(identity_id)
        except IdentityNotFoundError:
            return
        except IdentityProviderError as exc:
            log.error(  # noqa: TRY400
                "Could not delete unlinked identity %s of %s: %s",
                identity_id,
                code,
                exc,
            )
            return
        log.warning("Deleted identity %s after failing to link it to %s", identity_id, code)

    async def _link(self, employee: Employee, identity_id: str) -> bool:
        if employee.identity_ref == identity_id:
            return False
        outcome = await self.guard.update_if_version_matches(
            employee.id,
            employee.version,
            {"identity_ref": identity_id},
            bump_version=False,
        )
        if not isinstance(outcome, UpdatedRecord):
            raise _EntryFailedError(
                failure_kind_for(outcome),
                f"could not link identity {identity_id}: {outcome.status}",
            )
        return True
