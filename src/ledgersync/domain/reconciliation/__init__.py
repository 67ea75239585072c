"""Reconciliation between the domain store, the identity provider and the operation log."""

from __future__ import annotations

from .attribution import (
    DEFAULT_ATTRIBUTION_WINDOW,
    AuditAttributionPatcher,
    PatchApplied,
    PatchResult,
    PatchSkipped,
    PatchStatus,
    SkipReason,
)
from .contracts import (
    AmbiguousIdentityMatch,
    BatchDeleteResult,
    ConcurrencyConflict,
    Deleted,
    DeleteOutcome,
    DuplicateBusinessKey,
    EmployeeFields,
    FailureKind,
    GuardStatus,
    IdentityAction,
    IdentityCandidate,
    IdentityResolution,
    MatchEvidence,
    NoIdentityMatch,
    NotFound,
    ResolutionStatus,
    ResolvedIdentity,
    UpdatedRecord,
    UpdateOutcome,
    failure_kind_for,
)
from .engine import (
    DEFAULT_CREDENTIAL,
    BatchUpsertResult,
    EmployeeReconciler,
    UpsertFailure,
    UpsertOutcome,
    UpsertResult,
    UpsertStatus,
)
from .maintenance import EmployeeDiagnosis, IdentityMaintenance, PurgeReport
from .normalize import keys_match, login_key_for, normalize_code, normalize_key
from .orphans import (
    OrphanCandidate,
    OrphanKind,
    OrphanScanner,
    OrphanScanReport,
    ScanError,
    ScanPhase,
)
from .removal import (
    BatchRemovalResult,
    EmployeeRemoval,
    RemovalFailure,
    RemovalResult,
    RemovalStatus,
    Removed,
)
from .resolve import DEFAULT_LOGIN_DOMAIN, DEFAULT_PAGE_SIZE, CodeIndex, IdentityResolver
from .sync import IdentitySync, SyncAction, SyncEntry, SyncReport
from .version_guard import VersionGuard

__all__ = [
    "DEFAULT_ATTRIBUTION_WINDOW",
    "DEFAULT_CREDENTIAL",
    "DEFAULT_LOGIN_DOMAIN",
    "DEFAULT_PAGE_SIZE",
    "AmbiguousIdentityMatch",
    "AuditAttributionPatcher",
    "BatchDeleteResult",
    "BatchRemovalResult",
    "BatchUpsertResult",
    "CodeIndex",
    "ConcurrencyConflict",
    "DeleteOutcome",
    "Deleted",
    "DuplicateBusinessKey",
    "EmployeeDiagnosis",
    "EmployeeFields",
    "EmployeeReconciler",
    "EmployeeRemoval",
    "FailureKind",
    "GuardStatus",
    "IdentityAction",
    "IdentityCandidate",
    "IdentityMaintenance",
    "IdentityResolution",
    "IdentityResolver",
    "IdentitySync",
    "MatchEvidence",
    "NoIdentityMatch",
    "NotFound",
    "OrphanCandidate",
    "OrphanKind",
    "OrphanScanReport",
    "OrphanScanner",
    "PatchApplied",
    "PatchResult",
    "PatchSkipped",
    "PatchStatus",
    "PurgeReport",
    "RemovalFailure",
    "RemovalResult",
    "RemovalStatus",
    "Removed",
    "ResolutionStatus",
    "ResolvedIdentity",
    "ScanError",
    "ScanPhase",
    "SkipReason",
    "SyncAction",
    "SyncEntry",
    "SyncReport",
    "UpdateOutcome",
    "UpdatedRecord",
    "UpsertFailure",
    "UpsertOutcome",
    "UpsertResult",
    "UpsertStatus",
    "VersionGuard",
    "failure_kind_for",
    "keys_match",
    "login_key_for",
    "normalize_code",
    "normalize_key",
]
