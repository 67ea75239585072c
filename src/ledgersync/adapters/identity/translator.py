"""Translate identity admin API payloads to and from domain objects."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ledgersync.domain.model import IdentityClaims, IdentityRecord, Role

from .schema import UserPayload

if TYPE_CHECKING:
    from collections.abc import Mapping

    from ledgersync.domain.model import IdentityPatch


def parse_identity(payload: UserPayload | Mapping[str, object]) -> IdentityRecord:
    user = payload if isinstance(payload, UserPayload) else UserPayload.model_validate(payload)
    return IdentityRecord(
        id=user.id,
        login_key=user.email,
        claims=IdentityClaims(
            role=Role.coerce(user.app_metadata.role),
            code=user.app_metadata.employee_code or user.user_metadata.employee_code,
            name=user.user_metadata.name,
        ),
    )


def _claims_body(claims: IdentityClaims) -> dict[str, object]:
    return {
        "app_metadata": {"role": str(claims.role), "employee_code": claims.code},
        "user_metadata": {"name": claims.name},
    }


def create_body(login_key: str, credential: str, claims: IdentityClaims) -> dict[str, object]:
    return {
        "email": login_key,
        "password": credential,
        "email_confirm": True,
        **_claims_body(claims),
    }


def update_body(patch: IdentityPatch) -> dict[str, object]:
    body: dict[str, object] = {}
    if patch.login_key is not None:
        body["email"] = patch.login_key
        body["email_confirm"] = True
    if patch.credential is not None:
        body["password"] = patch.credential
    if patch.claims is not None:
        body.update(_claims_body(patch.claims))
    return body
