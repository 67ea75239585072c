"""Public interface for the identity admin API adapter."""

from __future__ import annotations

from .client import HttpIdentityProvider
from .schema import ErrorPayload, UserPayload, UsersPage
from .translator import create_body, parse_identity, update_body

__all__ = [
    "ErrorPayload",
    "HttpIdentityProvider",
    "UserPayload",
    "UsersPage",
    "create_body",
    "parse_identity",
    "update_body",
]
