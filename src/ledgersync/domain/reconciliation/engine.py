"""Create-or-update of an employee across the domain store and the identity provider.

Order of operations for one upsert:
1) look up the employee by business code (insert vs. update, current version)
2) resolve its identity; create one when nothing matches
3) push the latest login key, claims and (if supplied) credential onto an existing identity
4) write the employee: insert, or compare-and-swap through the version guard
5) on a failed write, delete the identity if step 2 created it in this call
6) attribute the operation-log row to the initiating actor

There is no cross-store transaction. Step 5 is best effort; an identity left
behind by a failed compensation is picked up later by the orphan scanner.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import StrEnum
from typing import TYPE_CHECKING, Literal

from ledgersync.domain.model import AuditOperation, EntityKind, IdentityPatch
from ledgersync.domain.ports import (
    DuplicateKeyError,
    DuplicateLoginKeyError,
    IdentityNotFoundError,
    IdentityProviderError,
    StoreError,
)

from .contracts import (
    AmbiguousIdentityMatch,
    FailureKind,
    IdentityAction,
    IdentityCandidate,
    MatchEvidence,
    NoIdentityMatch,
    ResolvedIdentity,
    UpdatedRecord,
    failure_kind_for,
)
from .version_guard import VersionGuard

if TYPE_CHECKING:
    from collections.abc import Iterable

    from ledgersync.domain.model import ActorIdentity, Employee
    from ledgersync.domain.ports import EmployeeStore, IdentityProvider

    from .attribution import AuditAttributionPatcher, PatchResult
    from .contracts import EmployeeFields, IdentityResolution
    from .resolve import IdentityResolver

log = logging.getLogger(__name__)

DEFAULT_CREDENTIAL = "12345678"  # noqa: S105


class UpsertStatus(StrEnum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(slots=True, kw_only=True)
class UpsertOutcome:
    record: Employee
    identity_id: str
    identity_action: IdentityAction
    operation: AuditOperation
    attribution: PatchResult | None = None
    status: Literal[UpsertStatus.SUCCEEDED] = UpsertStatus.SUCCEEDED


@dataclass(slots=True, kw_only=True)
class UpsertFailure:
    code: str
    kind: FailureKind
    message: str
    # True only when a fresh identity was created and removed again
    compensated: bool = False
    identity_ids: tuple[str, ...] = ()
    status: Literal[UpsertStatus.FAILED] = UpsertStatus.FAILED

    @property
    def retryable(self) -> bool:
        return self.kind.retryable


type UpsertResult = UpsertOutcome | UpsertFailure


@dataclass(slots=True, kw_only=True)
class BatchUpsertResult:
    """Per-entry results of a sequential batch; one failure never stops the rest."""

    results: list[UpsertResult] = field(default_factory=list["UpsertResult"])

    @property
    def succeeded(self) -> list[UpsertOutcome]:
        return [result for result in self.results if isinstance(result, UpsertOutcome)]

    @property
    def failed(self) -> list[UpsertFailure]:
        return [result for result in self.results if isinstance(result, UpsertFailure)]


@dataclass(slots=True, frozen=True)
class _IdentityLink:
    identity_id: str
    action: IdentityAction


class _LinkFailedError(Exception):
    def __init__(self, failure: UpsertFailure) -> None:
        super().__init__(failure.message)
        self.failure = failure


@dataclass(slots=True)
class EmployeeReconciler:
    """Keep an employee and its identity in step."""

    employees: EmployeeStore
    identities: IdentityProvider
    resolver: IdentityResolver
    attribution: AuditAttributionPatcher | None = None
    default_credential: str = field(default=DEFAULT_CREDENTIAL, repr=False)
    guard: VersionGuard[Employee] = field(init=False)

    def __post_init__(self) -> None:
        self.guard = VersionGuard(self.employees)

    async def upsert(
        self,
        fields: EmployeeFields,
        *,
        actor: ActorIdentity | None = None,
    ) -> UpsertResult:
        existing = await self.employees.find_by_business_code(fields.code)
        if existing is not None and existing.code != fields.code:
            # keep the stored spelling of the code
            fields = replace(fields, code=existing.code)
        if (
            existing is not None
            and fields.version is not None
            and fields.version != existing.version
        ):
            # nothing has been pushed to the identity provider yet
            return UpsertFailure(
                code=fields.code,
                kind=FailureKind.CONCURRENCY_CONFLICT,
                message=(
                    f"Employee {fields.code} is at version {existing.version}, "
                    f"not {fields.version}"
                ),
            )

        candidate = (
            IdentityCandidate.from_employee(existing)
            if existing is not None
            else IdentityCandidate(code=fields.code)
        )
        try:
            link = await self._link_identity(fields, candidate)
        except _LinkFailedError as exc:
            return exc.failure

        created = link.action is IdentityAction.CREATED
        try:
            written = await self._write(fields, existing, link.identity_id)
        except Exception:
            if created:
                await self._compensate(link.identity_id, fields.code)
            raise

        if isinstance(written, UpsertFailure):
            if created:
                written.compensated = await self._compensate(link.identity_id, fields.code)
            return written

        record, operation = written
        outcome = UpsertOutcome(
            record=record,
            identity_id=link.identity_id,
            identity_action=link.action,
            operation=operation,
        )
        outcome.attribution = await self._attribute(record, operation, actor)
        return outcome

    async def upsert_many(
        self,
        entries: Iterable[EmployeeFields],
        *,
        actor: ActorIdentity | None = None,
    ) -> BatchUpsertResult:
        """Upsert entries one after another, collecting each result."""

        batch = BatchUpsertResult()
        for fields in entries:
            try:
                result = await self.upsert(fields, actor=actor)
            except Exception as exc:
                log.exception("Unexpected failure upserting employee %s", fields.code)
                result = UpsertFailure(code=fields.code, kind=FailureKind.UNKNOWN, message=str(exc))
            batch.results.append(result)
        log.info(
            "Batch upsert finished: %s succeeded, %s failed",
            len(batch.succeeded),
            len(batch.failed),
        )
        return batch

    # identity side ------------------------------------------------------------

    async def _link_identity(
        self,
        fields: EmployeeFields,
        candidate: IdentityCandidate,
    ) -> _IdentityLink:
        try:
            resolution = await self.resolver.resolve(candidate)
            if (
                isinstance(resolution, ResolvedIdentity)
                and resolution.evidence is MatchEvidence.BY_REFERENCE
            ):
                try:
                    await self._push(resolution.identity_id, fields)
                except IdentityNotFoundError:
                    log.warning(
                        "Identity %s referenced by %s no longer exists; re-resolving",
                        resolution.identity_id,
                        fields.code,
                    )
                    resolution = await self.resolver.resolve(candidate, trust_reference=False)
                else:
                    return _IdentityLink(resolution.identity_id, IdentityAction.UPDATED_IN_PLACE)
            return await self._link_heuristic(fields, candidate, resolution)
        except DuplicateLoginKeyError as exc:
            raise _LinkFailedError(
                UpsertFailure(
                    code=fields.code,
                    kind=FailureKind.DUPLICATE_BUSINESS_KEY,
                    message=str(exc),
                )
            ) from exc
        except IdentityProviderError as exc:
            log.warning("Identity provider failed for %s: %s", fields.code, exc)
            raise _LinkFailedError(
                UpsertFailure(
                    code=fields.code,
                    kind=FailureKind.IDENTITY_PROVIDER_ERROR,
                    message=str(exc),
                )
            ) from exc

    async def _link_heuristic(
        self,
        fields: EmployeeFields,
        candidate: IdentityCandidate,
        resolution: IdentityResolution,
    ) -> _IdentityLink:
        if isinstance(resolution, AmbiguousIdentityMatch):
            raise _LinkFailedError(
                UpsertFailure(
                    code=fields.code,
                    kind=FailureKind.AMBIGUOUS_IDENTITY,
                    message=(
                        f"{len(resolution.candidates)} identities match {fields.code} "
                        f"{resolution.evidence}; link one explicitly"
                    ),
                    identity_ids=resolution.identity_ids,
                )
            )
        if isinstance(resolution, NoIdentityMatch):
            identity = await self.identities.create_identity(
                self.resolver.login_key_for(fields.code),
                fields.credential or self.default_credential,
                fields.claims(),
            )
            log.info("Created identity %s for employee %s", identity.id, fields.code)
            return _IdentityLink(identity.id, IdentityAction.CREATED)

        if (
            resolution.identity_id != candidate.identity_ref
            and resolution.identity_id in await self.employees.linked_identity_refs()
        ):
            raise _LinkFailedError(
                UpsertFailure(
                    code=fields.code,
                    kind=FailureKind.DUPLICATE_BUSINESS_KEY,
                    message=(
                        f"Identity {resolution.identity_id} matches {fields.code} "
                        f"{resolution.evidence} but is linked to another employee"
                    ),
                    identity_ids=(resolution.identity_id,),
                )
            )
        await self._push(resolution.identity_id, fields)
        log.info(
            "Reusing identity %s for employee %s (%s)",
            resolution.identity_id,
            fields.code,
            resolution.evidence,
        )
        return _IdentityLink(resolution.identity_id, IdentityAction.REUSED)

    async def _push(self, identity_id: str, fields: EmployeeFields) -> None:
        """Claims must always mirror the domain record; downstream authz reads them."""
        patch = IdentityPatch(
            login_key=self.resolver.login_key_for(fields.code),
            credential=fields.credential,
            claims=fields.claims(),
        )
        await self.identities.update_identity(identity_id, patch)

    async def _compensate(self, identity_id: str, code: str) -> bool:
        try:
            await self.identities.delete_identity(identity_id)
        except IdentityNotFoundError:
            log.warning("Identity %s for %s was already gone", identity_id, code)
            return True
        except IdentityProviderError as exc:
            log.error(  # noqa: TRY400
                "Compensation failed; identity %s for %s left behind: %s",
                identity_id,
                code,
                exc,
            )
            return False
        log.warning("Deleted identity %s after failed write of employee %s", identity_id, code)
        return True

    # domain side --------------------------------------------------------------

    async def _write(
        self,
        fields: EmployeeFields,
        existing: Employee | None,
        identity_id: str,
    ) -> tuple[Employee, AuditOperation] | UpsertFailure:
        if existing is None:
            try:
                record = await self.employees.insert(fields.to_employee(identity_ref=identity_id))
            except DuplicateKeyError as exc:
                return UpsertFailure(
                    code=fields.code,
                    kind=FailureKind.DUPLICATE_BUSINESS_KEY,
                    message=str(exc),
                )
            except StoreError as exc:
                return UpsertFailure(code=fields.code, kind=FailureKind.UNKNOWN, message=str(exc))
            return record, AuditOperation.INSERT

        patch = {**fields.profile(), "identity_ref": identity_id}
        explicit = fields.version is not None
        try:
            outcome = await self.guard.update_if_version_matches(
                existing.id,
                fields.version if explicit else existing.version,
                patch,
                bump_version=explicit,
            )
        except StoreError as exc:
            return UpsertFailure(code=fields.code, kind=FailureKind.UNKNOWN, message=str(exc))
        if isinstance(outcome, UpdatedRecord):
            return outcome.record, AuditOperation.UPDATE
        return UpsertFailure(
            code=fields.code,
            kind=failure_kind_for(outcome),
            message=f"Employee {fields.code} was not updated: {outcome.status}",
        )

    async def _attribute(
        self,
        record: Employee,
        operation: AuditOperation,
        actor: ActorIdentity | None,
    ) -> PatchResult | None:
        if self.attribution is None:
            return None
        try:
            return await self.attribution.patch_actor(
                record.id,
                EntityKind.EMPLOYEE,
                actor,
                operation,
            )
        except Exception:
            log.exception("Attribution of %s %s failed", operation, record.code)
            return None
