"""Ports for the operation-log store and identity back-references."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from datetime import datetime

    from ledgersync.domain.model import AuditOperation, AuditRow


class AuditStoreError(RuntimeError):
    """Raised when the operation-log store cannot be queried or patched."""


class ReferenceSeveranceError(RuntimeError):
    """Raised when a back-reference to an identity cannot be cleared."""


@runtime_checkable
class AuditStore(Protocol):
    async def query_recent(
        self,
        target_type: str,
        operation: AuditOperation,
        since: datetime,
        target_id: str,
    ) -> list[AuditRow]:
        """Rows newer than ``since`` whose relevant payload has ``id == target_id``.

        Newest first.
        """
        ...

    async def patch_actor_fields(self, row_id: int, actor_name: str, actor_code: str) -> None: ...


@runtime_checkable
class IdentityBackReference(Protocol):
    """A column elsewhere in the system that may point at an identity id."""

    @property
    def name(self) -> str: ...

    async def sever(self, identity_id: str) -> int:
        """Null out every reference to ``identity_id``; return how many were cleared."""
        ...
