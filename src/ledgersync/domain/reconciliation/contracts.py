"""Shared reconciliation contract components.

This module intentionally holds only:
- outcome dataclasses returned by the version guard and the identity resolver
- the failure taxonomy surfaced by the reconciliation engine
- the input shapes (``IdentityCandidate``, ``EmployeeFields``) they consume
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Literal

from ledgersync.domain.model import Employee, IdentityClaims, Role, VersionedRecord

from .normalize import normalize_code

if TYPE_CHECKING:
    from uuid import UUID

    from ledgersync.domain.model import IdentityRecord


# Version guard ---------------------------------------------------------------


class GuardStatus(StrEnum):
    """Outcome of a conditional write against a versioned record."""

    UPDATED = "updated"
    DELETED = "deleted"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    DUPLICATE = "duplicate"


@dataclass(slots=True, kw_only=True)
class UpdatedRecord[TRecord: VersionedRecord]:
    record: TRecord
    status: Literal[GuardStatus.UPDATED] = GuardStatus.UPDATED


@dataclass(slots=True, kw_only=True)
class Deleted:
    record_id: UUID
    status: Literal[GuardStatus.DELETED] = GuardStatus.DELETED


@dataclass(slots=True, kw_only=True)
class ConcurrencyConflict:
    """Someone else changed the record first; reload and retry."""

    record_id: UUID
    expected_version: int
    current_version: int | None = None
    status: Literal[GuardStatus.CONFLICT] = GuardStatus.CONFLICT


@dataclass(slots=True, kw_only=True)
class NotFound:
    record_id: UUID
    status: Literal[GuardStatus.NOT_FOUND] = GuardStatus.NOT_FOUND


@dataclass(slots=True, kw_only=True)
class DuplicateBusinessKey:
    record_id: UUID | None = None
    key: str | None = None
    message: str | None = None
    status: Literal[GuardStatus.DUPLICATE] = GuardStatus.DUPLICATE


type UpdateOutcome[TRecord: VersionedRecord] = (
    UpdatedRecord[TRecord] | ConcurrencyConflict | NotFound | DuplicateBusinessKey
)
type DeleteOutcome = Deleted | ConcurrencyConflict | NotFound


@dataclass(slots=True, kw_only=True)
class BatchDeleteResult:
    """Result of a sequential batch delete.

    Deletes are committed one by one; ``failure`` is the item that stopped the
    batch and everything in ``deleted`` stays deleted regardless.
    """

    deleted: list[UUID] = field(default_factory=list["UUID"])
    failure: ConcurrencyConflict | NotFound | None = None
    skipped: list[UUID] = field(default_factory=list["UUID"])

    @property
    def succeeded(self) -> bool:
        return self.failure is None


# Identity resolution ---------------------------------------------------------


class MatchEvidence(StrEnum):
    """Which rule tied a domain candidate to an identity; earlier rules win."""

    BY_REFERENCE = "by-reference"
    BY_LOGIN_KEY = "by-login-key"
    BY_CLAIM_CODE = "by-claim-code"


class ResolutionStatus(StrEnum):
    RESOLVED = "resolved"
    NEW = "new"
    AMBIGUOUS = "ambiguous"


@dataclass(frozen=True, slots=True, kw_only=True)
class IdentityCandidate:
    """What the resolver needs to know about a domain record."""

    code: str
    identity_ref: str | None = None

    @classmethod
    def from_employee(cls, employee: Employee) -> IdentityCandidate:
        return cls(code=employee.code, identity_ref=employee.identity_ref)


@dataclass(slots=True, kw_only=True)
class ResolvedIdentity:
    identity_id: str
    evidence: MatchEvidence
    # not populated for by-reference matches: the provider is never consulted
    identity: IdentityRecord | None = None
    status: Literal[ResolutionStatus.RESOLVED] = ResolutionStatus.RESOLVED


@dataclass(slots=True, kw_only=True)
class NoIdentityMatch:
    """No identity corresponds to the candidate; the caller has to create one."""

    reason: str | None = None
    status: Literal[ResolutionStatus.NEW] = ResolutionStatus.NEW


@dataclass(slots=True, kw_only=True)
class AmbiguousIdentityMatch:
    """More than one identity satisfied the same rule."""

    candidates: tuple[IdentityRecord, ...]
    evidence: MatchEvidence
    status: Literal[ResolutionStatus.AMBIGUOUS] = ResolutionStatus.AMBIGUOUS

    def __post_init__(self) -> None:
        if len(self.candidates) < 2:  # noqa: PLR2004
            raise ValueError("Ambiguous resolution must include at least two candidates")

    @property
    def identity_ids(self) -> tuple[str, ...]:
        return tuple(candidate.id for candidate in self.candidates)


type IdentityResolution = ResolvedIdentity | NoIdentityMatch | AmbiguousIdentityMatch


# Reconciliation engine -------------------------------------------------------


class IdentityAction(StrEnum):
    CREATED = "created"
    REUSED = "reused"
    UPDATED_IN_PLACE = "updated_in_place"


class FailureKind(StrEnum):
    """Error taxonomy surfaced to callers of the reconciliation core."""

    DUPLICATE_BUSINESS_KEY = "duplicate_business_key"
    CONCURRENCY_CONFLICT = "concurrency_conflict"
    IDENTITY_PROVIDER_ERROR = "identity_provider_error"
    AMBIGUOUS_IDENTITY = "ambiguous_identity"
    NOT_FOUND = "not_found"
    UNKNOWN = "unknown"

    @property
    def retryable(self) -> bool:
        """Conflicts and vanished targets clear up after a reload."""
        return self in {
            FailureKind.CONCURRENCY_CONFLICT,
            FailureKind.NOT_FOUND,
            FailureKind.DUPLICATE_BUSINESS_KEY,
        }


def failure_kind_for(outcome: ConcurrencyConflict | NotFound | DuplicateBusinessKey) -> FailureKind:
    if isinstance(outcome, ConcurrencyConflict):
        return FailureKind.CONCURRENCY_CONFLICT
    if isinstance(outcome, NotFound):
        return FailureKind.NOT_FOUND
    return FailureKind.DUPLICATE_BUSINESS_KEY


@dataclass(frozen=True, slots=True, kw_only=True)
class EmployeeFields:
    """Employee attributes supplied by an administrator.

    ``version`` is the caller's view of the stored record. When present the
    update goes through the version guard and bumps the version; when absent
    the write is still conditional on the version read during lookup but leaves
    it unchanged.
    """

    code: str
    name: str
    name_kana: str | None = None
    email: str | None = None
    role: Role = Role.USER
    area_code: str | None = None
    address_code: str | None = None
    credential: str | None = field(default=None, repr=False)
    version: int | None = None

    def __post_init__(self) -> None:
        code = normalize_code(self.code)
        if not code:
            raise ValueError("Employee business code must not be blank")
        object.__setattr__(self, "code", code)
        object.__setattr__(self, "role", Role.coerce(self.role))

    def claims(self) -> IdentityClaims:
        return IdentityClaims(role=self.role, code=self.code, name=self.name)

    def profile(self) -> dict[str, object]:
        """Column values written to the store (never the credential)."""
        return {
            "code": self.code,
            "name": self.name,
            "name_kana": self.name_kana,
            "email": self.email,
            "role": self.role,
            "area_code": self.area_code,
            "address_code": self.address_code,
        }

    def to_employee(self, *, identity_ref: str | None) -> Employee:
        return Employee(
            code=self.code,
            name=self.name,
            name_kana=self.name_kana,
            email=self.email,
            role=self.role,
            area_code=self.area_code,
            address_code=self.address_code,
            identity_ref=identity_ref,
        )
