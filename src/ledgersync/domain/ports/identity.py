"""Ports for the external identity provider."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ledgersync.domain.model import IdentityClaims, IdentityPatch, IdentityRecord


class IdentityProviderError(RuntimeError):
    """Raised when a call against the identity store fails."""

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class DuplicateLoginKeyError(IdentityProviderError):
    """Raised when the login key is already registered to another identity."""


class IdentityNotFoundError(IdentityProviderError):
    """Raised when the addressed identity does not exist (anymore)."""


@runtime_checkable
class IdentityProvider(Protocol):
    """Admin surface of the identity provider.

    ``list_identities`` is paginated; callers keep requesting pages until one
    comes back shorter than ``page_size``.
    """

    async def list_identities(self, page: int, page_size: int) -> list[IdentityRecord]: ...

    async def create_identity(
        self,
        login_key: str,
        credential: str,
        claims: IdentityClaims,
    ) -> IdentityRecord: ...

    async def update_identity(self, identity_id: str, patch: IdentityPatch) -> None: ...

    async def delete_identity(self, identity_id: str) -> None: ...
