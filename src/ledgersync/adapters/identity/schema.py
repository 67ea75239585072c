"""Pydantic models describing the identity admin API payloads."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _none_to_empty(value: object) -> object:
    return {} if value is None else value


def _code_to_str(value: object) -> object:
    # legacy identities carry numeric employee codes
    if isinstance(value, int | float) and not isinstance(value, bool):
        return str(int(value))
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


class IdentityBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class AppMetadata(IdentityBaseModel):
    role: str | None = None
    employee_code: str | None = None

    _normalize_code = field_validator("employee_code", mode="before")(_code_to_str)


class UserMetadata(IdentityBaseModel):
    name: str | None = None
    employee_code: str | None = None

    _normalize_code = field_validator("employee_code", mode="before")(_code_to_str)


class UserPayload(IdentityBaseModel):
    id: str
    email: str | None = None
    app_metadata: AppMetadata = Field(default_factory=AppMetadata)
    user_metadata: UserMetadata = Field(default_factory=UserMetadata)

    _normalize_metadata = field_validator("app_metadata", "user_metadata", mode="before")(
        _none_to_empty
    )


class UsersPage(IdentityBaseModel):
    users: list[UserPayload] = Field(default_factory=list["UserPayload"])


class ErrorPayload(IdentityBaseModel):
    """Error body; the admin API has used several shapes over time."""

    code: int | str | None = None
    error_code: str | None = None
    msg: str | None = None
    message: str | None = None
    error: str | None = None
    error_description: str | None = None

    @property
    def text(self) -> str:
        for candidate in (self.msg, self.message, self.error_description, self.error):
            if candidate:
                return candidate
        return "identity provider error"
