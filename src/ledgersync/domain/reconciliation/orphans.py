"""Find, and optionally delete, identities no employee references.

An identity is an orphan candidate iff its id is absent from the set of
non-null ``identity_ref`` values at scan time. Live mode severs back-references
to each candidate before deleting it; a severance failure is recorded and the
identity is deleted anyway.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from ledgersync.domain.ports import IdentityProviderError, ReferenceSeveranceError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from ledgersync.domain.model import IdentityRecord
    from ledgersync.domain.ports import EmployeeStore, IdentityBackReference, IdentityProvider

    from .contracts import MatchEvidence
    from .resolve import CodeIndex, IdentityResolver

log = logging.getLogger(__name__)


class OrphanKind(StrEnum):
    # a live employee matches by login key or claim code but does not link it
    UNLINKED = "unlinked"
    UNMATCHED = "unmatched"


class ScanPhase(StrEnum):
    SEVER = "sever"
    DELETE = "delete"


@dataclass(slots=True, frozen=True, kw_only=True)
class OrphanCandidate:
    identity_id: str
    login_key: str | None
    kind: OrphanKind
    matched_code: str | None = None
    evidence: MatchEvidence | None = None


@dataclass(slots=True, frozen=True, kw_only=True)
class ScanError:
    identity_id: str
    login_key: str | None
    phase: ScanPhase
    message: str
    reference: str | None = None


@dataclass(slots=True, kw_only=True)
class OrphanScanReport:
    dry_run: bool
    total_identities: int = 0
    total_linked_domain_records: int = 0
    orphan_candidates: list[OrphanCandidate] = field(default_factory=list["OrphanCandidate"])
    deleted: list[str] = field(default_factory=list[str])
    severed: int = 0
    errors: list[ScanError] = field(default_factory=list["ScanError"])


@dataclass(slots=True)
class OrphanScanner:
    employees: EmployeeStore
    identities: IdentityProvider
    resolver: IdentityResolver
    back_references: Sequence[IdentityBackReference] = ()

    async def scan(self, *, dry_run: bool = True) -> OrphanScanReport:
        population = await self.resolver.list_identities()
        linked = await self.employees.linked_identity_refs()
        index = self.resolver.index_codes(
            employee.code for employee in await self.employees.list_all()
        )

        report = OrphanScanReport(
            dry_run=dry_run,
            total_identities=len(population),
            total_linked_domain_records=len(linked),
            orphan_candidates=[
                _classify(identity, index) for identity in population if identity.id not in linked
            ],
        )
        log.info(
            "Orphan scan: %s identities, %s linked, %s candidates (%s)",
            report.total_identities,
            report.total_linked_domain_records,
            len(report.orphan_candidates),
            "dry run" if dry_run else "live",
        )
        if dry_run:
            return report

        for candidate in report.orphan_candidates:
            await self._sever(candidate, report)
            await self._delete(candidate, report)
        log.info(
            "Orphan cleanup deleted %s identities with %s errors",
            len(report.deleted),
            len(report.errors),
        )
        return report

    async def _sever(self, candidate: OrphanCandidate, report: OrphanScanReport) -> None:
        for reference in self.back_references:
            try:
                report.severed += await reference.sever(candidate.identity_id)
            except ReferenceSeveranceError as exc:
                log.warning(
                    "Failed to clear %s for %s: %s",
                    reference.name,
                    candidate.login_key or candidate.identity_id,
                    exc,
                )
                report.errors.append(
                    ScanError(
                        identity_id=candidate.identity_id,
                        login_key=candidate.login_key,
                        phase=ScanPhase.SEVER,
                        reference=reference.name,
                        message=str(exc),
                    )
                )

    async def _delete(self, candidate: OrphanCandidate, report: OrphanScanReport) -> None:
        try:
            await self.identities.delete_identity(candidate.identity_id)
        except IdentityProviderError as exc:
            log.error(  # noqa: TRY400
                "Failed to delete orphan %s: %s",
                candidate.login_key or candidate.identity_id,
                exc,
            )
            report.errors.append(
                ScanError(
                    identity_id=candidate.identity_id,
                    login_key=candidate.login_key,
                    phase=ScanPhase.DELETE,
                    message=str(exc),
                )
            )
            return
        log.info("Deleted orphan identity %s (%s)", candidate.identity_id, candidate.kind)
        report.deleted.append(candidate.identity_id)


def _classify(identity: IdentityRecord, index: CodeIndex) -> OrphanCandidate:
    hit = index.lookup(identity)
    if hit is None:
        return OrphanCandidate(
            identity_id=identity.id,
            login_key=identity.login_key,
            kind=OrphanKind.UNMATCHED,
        )
    code, evidence = hit
    return OrphanCandidate(
        identity_id=identity.id,
        login_key=identity.login_key,
        kind=OrphanKind.UNLINKED,
        matched_code=code,
        evidence=evidence,
    )
