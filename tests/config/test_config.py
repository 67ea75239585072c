from __future__ import annotations

from datetime import timedelta

import pytest

from ledgersync.config import (
    ConfigurationError,
    MissingConfigurationError,
    get_attribution_settings,
    get_identity_settings,
    int_env_var,
    optional_env_var,
    require_env_vars,
)


def test_require_env_vars_reports_every_missing_name(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PRESENT_VAR", "value")
    monkeypatch.setenv("BLANK_VAR", "   ")
    monkeypatch.delenv("MISSING_VAR", raising=False)

    with pytest.raises(MissingConfigurationError) as exc:
        require_env_vars(["PRESENT_VAR", "BLANK_VAR", "MISSING_VAR"])

    assert "BLANK_VAR, MISSING_VAR" in str(exc.value)


def test_optional_env_var_falls_back_on_blank(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SOME_VAR", "  ")

    assert optional_env_var("SOME_VAR", "fallback") == "fallback"


def test_int_env_var_rejects_garbage(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SOME_INT", "many")

    with pytest.raises(ConfigurationError, match="SOME_INT"):
        int_env_var("SOME_INT", 1)


def test_identity_settings_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "LEDGERSYNC_LOGIN_DOMAIN",
        "LEDGERSYNC_DEFAULT_CREDENTIAL",
        "LEDGERSYNC_IDENTITY_PAGE_SIZE",
    ):
        monkeypatch.delenv(name, raising=False)

    settings = get_identity_settings()

    assert settings.login_domain == "ledger-system.local"
    assert settings.default_credential == "12345678"
    assert settings.page_size == 1000


def test_identity_settings_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LEDGERSYNC_LOGIN_DOMAIN", "corp.example")
    monkeypatch.setenv("LEDGERSYNC_IDENTITY_PAGE_SIZE", "0")

    settings = get_identity_settings()

    assert settings.login_domain == "corp.example"
    assert settings.page_size == 1000


def test_attribution_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LEDGERSYNC_ATTRIBUTION_WINDOW_SECONDS", "2.5")
    monkeypatch.setenv("LEDGERSYNC_SYSTEM_ACTOR", "supabase_admin")

    settings = get_attribution_settings()

    assert settings.window == timedelta(seconds=2.5)
    assert settings.system_actor == "supabase_admin"
