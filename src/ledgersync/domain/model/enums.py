"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class EntityKind(StrEnum):
    """Versioned master-data kinds; values double as audit ``table_name``."""

    EMPLOYEE = "employees"
    AREA = "areas"
    ADDRESS = "addresses"
    DEVICE = "devices"


class Role(StrEnum):
    ADMIN = "admin"
    USER = "user"

    @classmethod
    def coerce(cls, value: object) -> Role:
        """Anything that is not explicitly ``admin`` is a plain user."""
        if isinstance(value, str) and value.strip().lower() == cls.ADMIN:
            return cls.ADMIN
        return cls.USER


class DeviceKind(StrEnum):
    IPHONE = "iphone"
    TABLET = "tablet"
    FEATURE_PHONE = "featurephone"
    ROUTER = "router"


class AuditOperation(StrEnum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
