"""Version-guarded removal of an employee together with its identity.

The identity goes first: a domain record without an identity is harmless, an
identity without a domain record is a live credential nobody administers.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Literal

from ledgersync.domain.model import AuditOperation, EntityKind
from ledgersync.domain.ports import IdentityNotFoundError, IdentityProviderError

from .contracts import (
    AmbiguousIdentityMatch,
    ConcurrencyConflict,
    Deleted,
    FailureKind,
    IdentityCandidate,
    MatchEvidence,
    NotFound,
    ResolvedIdentity,
    UpdatedRecord,
    failure_kind_for,
)
from .version_guard import VersionGuard

if TYPE_CHECKING:
    from collections.abc import Iterable
    from uuid import UUID

    from ledgersync.domain.model import ActorIdentity, Employee
    from ledgersync.domain.ports import EmployeeStore, IdentityProvider

    from .attribution import AuditAttributionPatcher, PatchResult
    from .resolve import IdentityResolver

log = logging.getLogger(__name__)


class RemovalStatus(StrEnum):
    REMOVED = "removed"
    FAILED = "failed"


@dataclass(slots=True, kw_only=True)
class Removed:
    record_id: UUID
    code: str
    # identity that was deleted alongside the record, if any
    identity_id: str | None = None
    evidence: MatchEvidence | None = None
    attribution: list[PatchResult] = field(default_factory=list["PatchResult"])
    status: Literal[RemovalStatus.REMOVED] = RemovalStatus.REMOVED


@dataclass(slots=True, kw_only=True)
class RemovalFailure:
    record_id: UUID
    kind: FailureKind
    message: str
    status: Literal[RemovalStatus.FAILED] = RemovalStatus.FAILED


type RemovalResult = Removed | RemovalFailure


@dataclass(slots=True, kw_only=True)
class BatchRemovalResult:
    """Sequential removal; stops at the first failure, earlier removals stay."""

    removed: list[Removed] = field(default_factory=list["Removed"])
    failure: RemovalFailure | None = None
    skipped: list[UUID] = field(default_factory=list["UUID"])

    @property
    def succeeded(self) -> bool:
        return self.failure is None


@dataclass(slots=True)
class EmployeeRemoval:
    employees: EmployeeStore
    identities: IdentityProvider
    resolver: IdentityResolver
    attribution: AuditAttributionPatcher | None = None
    guard: VersionGuard[Employee] = field(init=False)

    def __post_init__(self) -> None:
        self.guard = VersionGuard(self.employees)

    async def remove(
        self,
        employee_id: UUID,
        expected_version: int,
        *,
        actor: ActorIdentity | None = None,
    ) -> RemovalResult:
        record = await self.employees.get(employee_id)
        if record is None:
            return _failure(employee_id, NotFound(record_id=employee_id))
        if record.version != expected_version:
            return _failure(
                employee_id,
                ConcurrencyConflict(
                    record_id=employee_id,
                    expected_version=expected_version,
                    current_version=record.version,
                ),
            )

        removed = Removed(record_id=employee_id, code=record.code)
        version = expected_version
        if record.identity_ref:
            severed = await self._sever_and_delete(record, expected_version, removed, actor)
            if isinstance(severed, RemovalFailure):
                return severed
            version = severed
        else:
            await self._delete_stray_identity(record, removed)

        outcome = await self.guard.delete_if_version_matches(employee_id, version)
        if not isinstance(outcome, Deleted):
            log.error(
                "Employee %s lost its identity but could not be deleted (%s)",
                record.code,
                outcome.status,
            )
            return _failure(employee_id, outcome)

        log.info("Removed employee %s (identity %s)", record.code, removed.identity_id)
        await self._attribute(removed, AuditOperation.DELETE, actor)
        return removed

    async def remove_many(
        self,
        items: Iterable[tuple[UUID, int]],
        *,
        actor: ActorIdentity | None = None,
    ) -> BatchRemovalResult:
        result = BatchRemovalResult()
        pending = list(items)
        for index, (employee_id, version) in enumerate(pending):
            outcome = await self.remove(employee_id, version, actor=actor)
            if isinstance(outcome, Removed):
                result.removed.append(outcome)
                continue
            result.failure = outcome
            result.skipped = [skipped_id for skipped_id, _ in pending[index + 1 :]]
            log.warning(
                "Batch removal stopped at %s (%s) after %s removals",
                employee_id,
                outcome.kind,
                len(result.removed),
            )
            break
        return result

    async def _sever_and_delete(
        self,
        record: Employee,
        expected_version: int,
        removed: Removed,
        actor: ActorIdentity | None,
    ) -> int | RemovalFailure:
        """Unlink, delete the identity, re-link on failure; returns the new version."""

        identity_id = record.identity_ref
        assert identity_id is not None  # noqa: S101

        unlinked = await self.guard.update_if_version_matches(
            record.id,
            expected_version,
            {"identity_ref": None},
        )
        if not isinstance(unlinked, UpdatedRecord):
            return _failure(record.id, unlinked)
        await self._attribute(removed, AuditOperation.UPDATE, actor)
        version = unlinked.record.version

        try:
            await self.identities.delete_identity(identity_id)
        except IdentityNotFoundError:
            log.info("Identity %s of %s was already gone", identity_id, record.code)
            return version
        except IdentityProviderError as exc:
            log.warning("Failed to delete identity %s of %s: %s", identity_id, record.code, exc)
            relinked = await self.guard.update_if_version_matches(
                record.id,
                version,
                {"identity_ref": identity_id},
            )
            if not isinstance(relinked, UpdatedRecord):
                log.error(  # noqa: TRY400
                    "Could not restore identity link %s on %s (%s)",
                    identity_id,
                    record.code,
                    relinked.status,
                )
            return RemovalFailure(
                record_id=record.id,
                kind=FailureKind.IDENTITY_PROVIDER_ERROR,
                message=str(exc),
            )

        removed.identity_id = identity_id
        removed.evidence = MatchEvidence.BY_REFERENCE
        return version

    async def _delete_stray_identity(self, record: Employee, removed: Removed) -> None:
        """Find an identity left unlinked by an earlier failed upsert and delete it."""

        candidate = IdentityCandidate(code=record.code)
        try:
            resolution = self.resolver.match(candidate, await self.resolver.list_identities())
        except IdentityProviderError as exc:
            log.warning("Could not look up stray identity for %s: %s", record.code, exc)
            return

        if isinstance(resolution, AmbiguousIdentityMatch):
            log.warning(
                "Employee %s matches identities %s; leaving them to the orphan scanner",
                record.code,
                list(resolution.identity_ids),
            )
            return
        if not isinstance(resolution, ResolvedIdentity):
            return

        if resolution.identity_id in await self.employees.linked_identity_refs():
            log.warning(
                "Identity %s matches %s but is linked to another employee; keeping it",
                resolution.identity_id,
                record.code,
            )
            return

        try:
            await self.identities.delete_identity(resolution.identity_id)
        except IdentityProviderError as exc:
            log.warning(
                "Failed to delete stray identity %s of %s: %s",
                resolution.identity_id,
                record.code,
                exc,
            )
            return
        log.info(
            "Deleted stray identity %s of %s (%s)",
            resolution.identity_id,
            record.code,
            resolution.evidence,
        )
        removed.identity_id = resolution.identity_id
        removed.evidence = resolution.evidence

    async def _attribute(
        self,
        removed: Removed,
        operation: AuditOperation,
        actor: ActorIdentity | None,
    ) -> None:
        if self.attribution is None:
            return
        try:
            result = await self.attribution.patch_actor(
                removed.record_id,
                EntityKind.EMPLOYEE,
                actor,
                operation,
            )
        except Exception:
            log.exception("Attribution of %s %s failed", operation, removed.code)
            return
        removed.attribution.append(result)


def _failure(record_id: UUID, outcome: ConcurrencyConflict | NotFound) -> RemovalFailure:
    return RemovalFailure(
        record_id=record_id,
        kind=failure_kind_for(outcome),
        message=f"Employee {record_id} was not removed: {outcome.status}",
    )
