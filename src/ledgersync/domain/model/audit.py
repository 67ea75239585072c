"""Operation-log rows and the human actor they should be attributed to."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

from .enums import AuditOperation

if TYPE_CHECKING:
    from datetime import datetime

UNKNOWN_ACTOR_NAME: Final[str] = "Unknown User"


@dataclass(frozen=True, slots=True, kw_only=True)
class AuditRow:
    """Append-only row written by the store as a side effect of a mutation.

    The actor fields are wrong at creation time: they name the privileged
    system identity that performed the write.
    """

    id: int
    occurred_at: datetime
    table_name: str
    operation: AuditOperation
    old_payload: dict[str, object] | None = None
    new_payload: dict[str, object] | None = None
    actor_name: str | None = None
    actor_code: str | None = None

    def payload_for(self, operation: AuditOperation) -> dict[str, object] | None:
        """Deleted rows only carry the old state; inserts and updates the new one."""
        return self.old_payload if operation is AuditOperation.DELETE else self.new_payload


@dataclass(frozen=True, slots=True, kw_only=True)
class ActorIdentity:
    """The human who initiated a request executed under the privileged credential."""

    name: str | None = None
    name_kana: str | None = None
    code: str | None = None
    login_key: str | None = None

    @property
    def display_name(self) -> str:
        for candidate in (self.name, self.name_kana, self.login_key):
            if candidate and candidate.strip():
                return candidate.strip()
        return UNKNOWN_ACTOR_NAME

    @property
    def display_code(self) -> str:
        return (self.code or "").strip()
