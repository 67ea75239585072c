"""Settings for audit attribution and the emulated operation-log trigger."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Final

from .env import float_env_var, optional_env_var

DEFAULT_ATTRIBUTION_WINDOW_SECONDS: Final[float] = 5.0
DEFAULT_SYSTEM_ACTOR: Final[str] = "service_role"


@dataclass(frozen=True, slots=True)
class AttributionSettings:
    window: timedelta = timedelta(seconds=DEFAULT_ATTRIBUTION_WINDOW_SECONDS)
    system_actor: str = DEFAULT_SYSTEM_ACTOR


def get_attribution_settings() -> AttributionSettings:
    seconds = float_env_var(
        "LEDGERSYNC_ATTRIBUTION_WINDOW_SECONDS",
        DEFAULT_ATTRIBUTION_WINDOW_SECONDS,
    )
    if seconds <= 0:
        seconds = DEFAULT_ATTRIBUTION_WINDOW_SECONDS
    return AttributionSettings(
        window=timedelta(seconds=seconds),
        system_actor=optional_env_var("LEDGERSYNC_SYSTEM_ACTOR", DEFAULT_SYSTEM_ACTOR),
    )
