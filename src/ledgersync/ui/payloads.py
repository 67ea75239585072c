"""Pydantic models for employee batches handed to the CLI as JSON."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from ledgersync.domain.model import Role
from ledgersync.domain.reconciliation import EmployeeFields

if TYPE_CHECKING:
    from pathlib import Path


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


class EmployeePayload(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    code: str = Field(min_length=1, validation_alias=AliasChoices("code", "employee_code"))
    name: str
    name_kana: str | None = None
    email: str | None = None
    role: Role = Field(default=Role.USER, validation_alias=AliasChoices("role", "authority"))
    area_code: str | None = None
    address_code: str | None = None
    credential: str | None = Field(
        default=None,
        validation_alias=AliasChoices("credential", "password"),
        repr=False,
    )
    version: int | None = None

    @field_validator("code", mode="before")
    @classmethod
    def _code_to_str(cls, value: object) -> object:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("role", mode="before")
    @classmethod
    def _coerce_role(cls, value: object) -> Role:
        return Role.coerce(value)

    _normalize_optional = field_validator(
        "name_kana",
        "email",
        "area_code",
        "address_code",
        "credential",
        mode="before",
    )(_blank_to_none)

    def to_fields(self) -> EmployeeFields:
        return EmployeeFields(
            code=self.code,
            name=self.name,
            name_kana=self.name_kana,
            email=self.email,
            role=self.role,
            area_code=self.area_code,
            address_code=self.address_code,
            credential=self.credential,
            version=self.version,
        )


_BATCH = TypeAdapter(list[EmployeePayload])


def parse_employee_batch(raw: str | bytes) -> list[EmployeeFields]:
    """Parse a JSON array of employees; a single object is accepted as a batch of one."""

    text = raw.decode("utf-8") if isinstance(raw, bytes) else raw
    stripped = text.lstrip()
    if stripped.startswith("{"):
        return [EmployeePayload.model_validate_json(text).to_fields()]
    return [payload.to_fields() for payload in _BATCH.validate_json(text)]


def load_employee_file(path: Path) -> list[EmployeeFields]:
    return parse_employee_batch(path.read_bytes())
