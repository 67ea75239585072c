"""Identity provider configuration values."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from .env import int_env_var, optional_env_var, require_env_vars
from .http_resilience import RateLimit, ResilienceConfig

DEFAULT_LOGIN_DOMAIN: Final[str] = "ledger-system.local"
DEFAULT_CREDENTIAL: Final[str] = "12345678"
DEFAULT_PAGE_SIZE: Final[int] = 1000
IDENTITY_TIMEOUT_SECONDS: Final[float] = 15.0


@dataclass(frozen=True, slots=True)
class IdentitySettings:
    """Provider-independent identity rules shared by the reconciliation core."""

    login_domain: str = DEFAULT_LOGIN_DOMAIN
    default_credential: str = DEFAULT_CREDENTIAL
    page_size: int = DEFAULT_PAGE_SIZE


@dataclass(frozen=True)
class IdentityProviderConfig:
    """Holds the identity admin API endpoint and privileged service key."""

    base_url: str
    service_key: str
    resilience: ResilienceConfig


def get_identity_settings() -> IdentitySettings:
    page_size = int_env_var("LEDGERSYNC_IDENTITY_PAGE_SIZE", DEFAULT_PAGE_SIZE)
    if page_size <= 0:
        page_size = DEFAULT_PAGE_SIZE
    return IdentitySettings(
        login_domain=optional_env_var("LEDGERSYNC_LOGIN_DOMAIN", DEFAULT_LOGIN_DOMAIN),
        default_credential=optional_env_var("LEDGERSYNC_DEFAULT_CREDENTIAL", DEFAULT_CREDENTIAL),
        page_size=page_size,
    )


def get_identity_provider_config(
    *,
    resilience: ResilienceConfig | None = None,
) -> IdentityProviderConfig:
    values = require_env_vars(("LEDGERSYNC_IDENTITY_URL", "LEDGERSYNC_SERVICE_KEY"))
    base_url = values["LEDGERSYNC_IDENTITY_URL"].rstrip("/")
    return IdentityProviderConfig(
        base_url=base_url,
        service_key=values["LEDGERSYNC_SERVICE_KEY"],
        resilience=resilience
        or ResilienceConfig(
            name="identity",
            base_url=base_url,
            timeout_seconds=IDENTITY_TIMEOUT_SECONDS,
            ratelimit=RateLimit(max_calls=10, per_seconds=1.0),
        ),
    )
