from __future__ import annotations

import json
from collections.abc import Callable  # noqa: TC003

import httpx
import pytest

from ledgersync.adapters.http_resilience import ResilientClient
from ledgersync.adapters.identity import HttpIdentityProvider
from ledgersync.config import (
    IdentityProviderConfig,
    MissingConfigurationError,
    ResilienceConfig,
    get_identity_provider_config,
)
from ledgersync.domain.model import IdentityClaims, IdentityPatch, Role
from ledgersync.domain.ports import (
    DuplicateLoginKeyError,
    IdentityNotFoundError,
    IdentityProviderError,
)
from ledgersync.domain.reconciliation import IdentityResolver

BASE_URL = "https://auth.example.test/auth/v1"


def _make_client_factory(
    handler: Callable[[httpx.Request], httpx.Response],
) -> Callable[[ResilienceConfig], ResilientClient]:
    async def async_handler(request: httpx.Request) -> httpx.Response:
        return handler(request)

    def factory(resilience: ResilienceConfig) -> ResilientClient:
        client = ResilientClient(resilience)
        client._client = httpx.AsyncClient(transport=httpx.MockTransport(async_handler))  # noqa: SLF001  # type: ignore[reportPrivateUsage]
        return client

    return factory


def _provider(handler: Callable[[httpx.Request], httpx.Response]) -> HttpIdentityProvider:
    config = IdentityProviderConfig(
        base_url=BASE_URL,
        service_key="service-key",
        resilience=ResilienceConfig(name="identity-test", base_url=BASE_URL),
    )
    return HttpIdentityProvider(config=config, client_factory=_make_client_factory(handler))


def _user(identity_id: str, email: str, code: object = None) -> dict[str, object]:
    return {
        "id": identity_id,
        "email": email,
        "app_metadata": {"role": "admin", "employee_code": code},
        "user_metadata": {"name": "Taro"},
    }


async def test_list_identities_sends_paging_and_credentials() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={"users": [_user("u1", "e100@ledger-system.local", 100)], "aud": "authenticated"},
        )

    async with _provider(handler) as provider:
        identities = await provider.list_identities(2, 50)

    request = seen[0]
    assert request.method == "GET"
    assert request.url.path == "/auth/v1/admin/users"
    assert request.url.params["page"] == "2"
    assert request.url.params["per_page"] == "50"
    assert request.headers["apikey"] == "service-key"
    assert request.headers["Authorization"] == "Bearer service-key"
    assert identities[0].id == "u1"
    assert identities[0].claims.code == "100"
    assert identities[0].claims.role is Role.ADMIN


async def test_resolver_pages_through_http_provider() -> None:
    pages = {
        "1": [_user("u1", "a@example.com"), _user("u2", "e100@ledger-system.local")],
        "2": [],
    }

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"users": pages[request.url.params["page"]]})

    async with _provider(handler) as provider:
        identities = await IdentityResolver(provider, page_size=2).list_identities()

    assert [identity.id for identity in identities] == ["u1", "u2"]


async def test_create_identity_posts_claims() -> None:
    bodies: list[dict[str, object]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"user": _user("u9", "e100@ledger-system.local", "E100")})

    async with _provider(handler) as provider:
        identity = await provider.create_identity(
            "e100@ledger-system.local",
            "12345678",
            IdentityClaims(role=Role.USER, code="E100", name="Taro"),
        )

    assert identity.id == "u9"
    assert bodies == [
        {
            "email": "e100@ledger-system.local",
            "password": "12345678",
            "email_confirm": True,
            "app_metadata": {"role": "user", "employee_code": "E100"},
            "user_metadata": {"name": "Taro"},
        }
    ]


async def test_duplicate_email_maps_to_duplicate_login_key() -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            422,
            json={
                "code": 422,
                "error_code": "email_exists",
                "msg": "A user with this email address has already been registered",
            },
        )

    async with _provider(handler) as provider:
        with pytest.raises(DuplicateLoginKeyError) as exc:
            await provider.create_identity("e100@ledger-system.local", "pw", IdentityClaims())

    assert exc.value.status == 422


async def test_update_identity_puts_only_set_fields() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=_user("u1", "e100@ledger-system.local"))

    async with _provider(handler) as provider:
        await provider.update_identity("u1", IdentityPatch(login_key="e100@ledger-system.local"))
        await provider.update_identity("u1", IdentityPatch())

    assert len(seen) == 1
    assert seen[0].method == "PUT"
    assert seen[0].url.path.endswith("/admin/users/u1")
    assert json.loads(seen[0].content) == {
        "email": "e100@ledger-system.local",
        "email_confirm": True,
    }


async def test_missing_identity_maps_to_not_found() -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"code": 404, "msg": "User not found"})

    async with _provider(handler) as provider:
        with pytest.raises(IdentityNotFoundError):
            await provider.delete_identity("u404")


async def test_server_error_and_bad_payload_map_to_provider_error() -> None:
    def failing(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="upstream exploded")

    def garbage(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"users": [{"email": "no-id@example.com"}]})

    async with _provider(failing) as provider:
        with pytest.raises(IdentityProviderError) as exc:
            await provider.delete_identity("u1")
    async with _provider(garbage) as provider:
        with pytest.raises(IdentityProviderError):
            await provider.list_identities(1, 10)

    assert exc.value.status == 500
    assert "upstream exploded" in str(exc.value)


async def test_transport_error_maps_to_provider_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with _provider(handler) as provider:
        with pytest.raises(IdentityProviderError, match="connection refused"):
            await provider.list_identities(1, 10)


def test_config_requires_url_and_service_key(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("LEDGERSYNC_IDENTITY_URL", raising=False)
    monkeypatch.setenv("LEDGERSYNC_SERVICE_KEY", "key")

    with pytest.raises(MissingConfigurationError, match="LEDGERSYNC_IDENTITY_URL"):
        get_identity_provider_config()


def test_config_strips_trailing_slash(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LEDGERSYNC_IDENTITY_URL", f"{BASE_URL}/")
    monkeypatch.setenv("LEDGERSYNC_SERVICE_KEY", "key")

    config = get_identity_provider_config()

    assert config.base_url == BASE_URL
    assert config.resilience.ratelimit is not None
    assert "POST" not in config.resilience.retry.allowed_methods
