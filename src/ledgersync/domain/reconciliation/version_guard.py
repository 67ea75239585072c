"""Optimistic concurrency for versioned master data.

Every update and delete is a single compare-and-swap statement in the store:
it only touches the row when the caller's version equals the stored one, and a
successful update leaves the stored version at exactly ``expected + 1``.
Zero affected rows is reported as a typed outcome, never raised.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ledgersync.domain.ports import DuplicateKeyError

from .contracts import (
    BatchDeleteResult,
    ConcurrencyConflict,
    Deleted,
    DuplicateBusinessKey,
    NotFound,
    UpdatedRecord,
)

if TYPE_CHECKING:
    from collections.abc import Iterable
    from uuid import UUID

    from ledgersync.domain.model import VersionedRecord
    from ledgersync.domain.ports import RecordPatch, VersionedStore

    from .contracts import DeleteOutcome, UpdateOutcome

log = logging.getLogger(__name__)

_RESERVED_FIELDS = frozenset({"id", "version"})


@dataclass(slots=True)
class VersionGuard[TRecord: VersionedRecord]:
    """Conditional writes against one versioned store."""

    store: VersionedStore[TRecord]

    async def update_if_version_matches(
        self,
        record_id: UUID,
        expected_version: int,
        patch: RecordPatch,
        *,
        bump_version: bool = True,
    ) -> UpdateOutcome[TRecord]:
        reserved = _RESERVED_FIELDS.intersection(patch)
        if reserved:
            raise ValueError(f"Patch must not set {', '.join(sorted(reserved))}")

        try:
            affected = await self.store.update_where(
                record_id,
                expected_version,
                patch,
                bump_version=bump_version,
            )
        except DuplicateKeyError as exc:
            return DuplicateBusinessKey(record_id=record_id, key=exc.key, message=str(exc))

        if affected == 0:
            return await self._classify_miss(record_id, expected_version)

        record = await self.store.get(record_id)
        if record is None:
            # deleted by someone else right after our write committed
            return NotFound(record_id=record_id)
        return UpdatedRecord(record=record)

    async def delete_if_version_matches(
        self,
        record_id: UUID,
        expected_version: int,
    ) -> DeleteOutcome:
        affected = await self.store.delete_where(record_id, expected_version)
        if affected == 0:
            return await self._classify_miss(record_id, expected_version)
        return Deleted(record_id=record_id)

    async def delete_many_if_versions_match(
        self,
        items: Iterable[tuple[UUID, int]],
    ) -> BatchDeleteResult:
        """Delete ``(id, version)`` pairs one at a time, stopping at the first miss.

        Not all-or-nothing: deletes committed before the failing item stay
        committed, and items after it are reported as skipped.
        """

        result = BatchDeleteResult()
        pending = list(items)
        for index, (record_id, version) in enumerate(pending):
            outcome = await self.delete_if_version_matches(record_id, version)
            if isinstance(outcome, Deleted):
                result.deleted.append(record_id)
                continue
            result.failure = outcome
            result.skipped = [skipped_id for skipped_id, _ in pending[index + 1 :]]
            log.warning(
                "Batch delete stopped at %s (%s) after %s deletes; %s items skipped",
                record_id,
                outcome.status,
                len(result.deleted),
                len(result.skipped),
            )
            break
        return result

    async def _classify_miss(
        self,
        record_id: UUID,
        expected_version: int,
    ) -> ConcurrencyConflict | NotFound:
        current = await self.store.get(record_id)
        if current is None:
            return NotFound(record_id=record_id)
        return ConcurrencyConflict(
            record_id=record_id,
            expected_version=expected_version,
            current_version=current.version,
        )
