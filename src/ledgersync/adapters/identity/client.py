"""HTTP client for the identity provider's admin API."""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Final

import httpx
from pydantic import ValidationError

from ledgersync.adapters.http_resilience import ResilientClient
from ledgersync.config.identity import IdentityProviderConfig, get_identity_provider_config
from ledgersync.domain.ports import (
    DuplicateLoginKeyError,
    IdentityNotFoundError,
    IdentityProvider,
    IdentityProviderError,
)

from .schema import ErrorPayload, UserPayload, UsersPage
from .translator import create_body, parse_identity, update_body

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

    from ledgersync.config.http_resilience import ResilienceConfig
    from ledgersync.domain.model import IdentityClaims, IdentityPatch, IdentityRecord

log = getLogger(__name__)

USERS_PATH: Final[str] = "/admin/users"
_DUPLICATE_ERROR_CODES: Final[frozenset[str]] = frozenset({"email_exists", "user_already_exists"})
_DUPLICATE_MARKERS: Final[tuple[str, ...]] = ("already been registered", "already registered")


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


@dataclass(slots=True)
class HttpIdentityProvider:
    """Identity provider port backed by a GoTrue-style admin REST API."""

    config: IdentityProviderConfig = field(default_factory=get_identity_provider_config)
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )
    _client: ResilientClient | None = field(default=None, init=False, repr=False)

    async def __aenter__(self) -> HttpIdentityProvider:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def list_identities(self, page: int, page_size: int) -> list[IdentityRecord]:
        response = await self._request(
            "GET",
            USERS_PATH,
            params={"page": page, "per_page": page_size},
        )
        try:
            users = UsersPage.model_validate(response.json()).users
        except (ValidationError, ValueError) as exc:
            raise IdentityProviderError(f"Unexpected identity listing payload: {exc}") from exc
        return [parse_identity(user) for user in users]

    async def create_identity(
        self,
        login_key: str,
        credential: str,
        claims: IdentityClaims,
    ) -> IdentityRecord:
        response = await self._request(
            "POST",
            USERS_PATH,
            json=create_body(login_key, credential, claims),
        )
        try:
            payload = response.json()
            if isinstance(payload, dict) and "user" in payload:
                payload = payload["user"]
            identity = parse_identity(UserPayload.model_validate(payload))
        except (ValidationError, ValueError) as exc:
            raise IdentityProviderError(f"Unexpected identity payload: {exc}") from exc
        log.info(f"Created identity {identity.id} ({login_key})")
        return identity

    async def update_identity(self, identity_id: str, patch: IdentityPatch) -> None:
        body = update_body(patch)
        if not body:
            return
        await self._request("PUT", f"{USERS_PATH}/{identity_id}", json=body)

    async def delete_identity(self, identity_id: str) -> None:
        await self._request("DELETE", f"{USERS_PATH}/{identity_id}")
        log.info(f"Deleted identity {identity_id}")

    def _http(self) -> ResilientClient:
        if self._client is None:
            self._client = self.client_factory(self.config.resilience)
        return self._client

    def _headers(self) -> dict[str, str]:
        return {
            "apikey": self.config.service_key,
            "Authorization": f"Bearer {self.config.service_key}",
        }

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, int] | None = None,
        json: object = None,
    ) -> httpx.Response:
        url = f"{self.config.base_url}{path}"
        try:
            response = await self._http().request(
                method,
                url,
                params=params,
                json=json,
                headers=self._headers(),
            )
        except httpx.HTTPError as exc:
            raise IdentityProviderError(f"{method} {path} failed: {exc}") from exc

        if response.is_success:
            return response
        raise _error_for(method, path, response)


def _error_for(method: str, path: str, response: httpx.Response) -> IdentityProviderError:
    try:
        error = ErrorPayload.model_validate(response.json())
    except (ValidationError, ValueError):
        error = ErrorPayload(message=response.text or response.reason_phrase)

    status = response.status_code
    message = f"{method} {path} -> {status}: {error.text}"
    if status == httpx.codes.NOT_FOUND:
        return IdentityNotFoundError(message, status=status)
    lowered = error.text.lower()
    if error.error_code in _DUPLICATE_ERROR_CODES or any(
        marker in lowered for marker in _DUPLICATE_MARKERS
    ):
        return DuplicateLoginKeyError(message, status=status)
    log.error(f"Identity provider error {message}")
    return IdentityProviderError(message, status=status)


if TYPE_CHECKING:
    _provider_check: IdentityProvider = HttpIdentityProvider()
