"""Identity provider records as seen by the reconciliation core."""

from __future__ import annotations

from dataclasses import dataclass, field

from ledgersync.domain.model.enums import Role


@dataclass(frozen=True, slots=True, kw_only=True)
class IdentityClaims:
    """Authorization-relevant metadata carried by an identity.

    Downstream authorization reads these, not the employee table, so they must
    track the latest domain role and code.
    """

    role: Role = Role.USER
    code: str | None = None
    name: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class IdentityRecord:
    id: str
    login_key: str | None
    claims: IdentityClaims = field(default_factory=IdentityClaims)


@dataclass(frozen=True, slots=True, kw_only=True)
class IdentityPatch:
    """Partial update pushed onto an existing identity; ``None`` leaves a field alone."""

    login_key: str | None = None
    credential: str | None = field(default=None, repr=False)
    claims: IdentityClaims | None = None
