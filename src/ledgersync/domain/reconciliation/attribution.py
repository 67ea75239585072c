"""Retroactive actor attribution for operation-log rows.

The store's log trigger fires under the privileged credential, so every row it
writes names the system identity. After a write performed on behalf of a human,
the patcher finds the row that write produced and rewrites only its actor
fields.

Known limitation: rows are correlated by target, operation and a short
trailing time window. Two writes to the same target inside the window can be
attributed to the wrong actor; there is no request id to join on.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from typing import TYPE_CHECKING, Literal

from ledgersync.domain.ports import AuditStoreError

if TYPE_CHECKING:
    from collections.abc import Callable
    from uuid import UUID

    from ledgersync.domain.model import ActorIdentity, AuditOperation, AuditRow, EntityKind
    from ledgersync.domain.ports import AuditStore

log = logging.getLogger(__name__)

DEFAULT_ATTRIBUTION_WINDOW = timedelta(seconds=5)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class PatchStatus(StrEnum):
    APPLIED = "applied"
    SKIPPED = "skipped"


class SkipReason(StrEnum):
    NO_ACTOR = "no_actor"
    NO_MATCHING_ROW = "no_matching_row"
    QUERY_FAILED = "query_failed"
    PATCH_FAILED = "patch_failed"


@dataclass(slots=True, kw_only=True)
class PatchApplied:
    row_id: int
    actor_name: str
    actor_code: str
    # more than one means the window was ambiguous and the newest row won
    candidates: int = 1
    status: Literal[PatchStatus.APPLIED] = PatchStatus.APPLIED


@dataclass(slots=True, kw_only=True)
class PatchSkipped:
    reason: SkipReason
    detail: str | None = None
    status: Literal[PatchStatus.SKIPPED] = PatchStatus.SKIPPED


type PatchResult = PatchApplied | PatchSkipped


@dataclass(slots=True)
class AuditAttributionPatcher:
    """Rewrite ``actor_name``/``actor_code`` on the newest matching log row."""

    audit: AuditStore
    window: timedelta = DEFAULT_ATTRIBUTION_WINDOW
    clock: Callable[[], datetime] = field(default=_utcnow)

    async def patch_actor(
        self,
        target_id: UUID | str,
        target_type: EntityKind | str,
        actor: ActorIdentity | None,
        operation: AuditOperation,
    ) -> PatchResult:
        """Attribute the row produced by ``operation`` on ``target_id`` to ``actor``.

        Never raises for a missing row or a failing log store: a log that cannot
        be attributed must not fail the business operation that wrote it.
        """

        if actor is None:
            return PatchSkipped(reason=SkipReason.NO_ACTOR)

        target = f"{target_type}:{operation}:{target_id}"
        since = self.clock() - self.window
        try:
            rows = await self.audit.query_recent(str(target_type), operation, since, str(target_id))
        except AuditStoreError as exc:
            log.warning("Failed to find operation log for %s: %s", target, exc)
            return PatchSkipped(reason=SkipReason.QUERY_FAILED, detail=str(exc))

        if not rows:
            log.warning("No operation log found to patch for %s", target)
            return PatchSkipped(reason=SkipReason.NO_MATCHING_ROW)

        row = _newest(rows)
        if len(rows) > 1:
            log.info(
                "%s log rows for %s inside %s; patching newest %s",
                len(rows),
                target,
                self.window,
                row.id,
            )

        actor_name = actor.display_name
        actor_code = actor.display_code
        try:
            await self.audit.patch_actor_fields(row.id, actor_name, actor_code)
        except AuditStoreError as exc:
            log.error("Failed to patch operation log %s: %s", row.id, exc)  # noqa: TRY400
            return PatchSkipped(reason=SkipReason.PATCH_FAILED, detail=str(exc))

        log.info("Patched operation log %s -> actor %s", row.id, actor_name)
        return PatchApplied(
            row_id=row.id,
            actor_name=actor_name,
            actor_code=actor_code,
            candidates=len(rows),
        )


def _newest(rows: list[AuditRow]) -> AuditRow:
    return max(rows, key=lambda row: (row.occurred_at, row.id))
