"""String normalization shared by every identity matching rule.

Business codes are typed by humans (full-width digits, stray blanks) while
login keys are issued by machines and get lower-cased on the way in; every
comparison between the two goes through ``normalize_key``.
"""

from __future__ import annotations

import unicodedata


def normalize_code(value: str | None) -> str:
    """Canonical spelling of a business code; case is preserved."""
    if value is None:
        return ""
    return unicodedata.normalize("NFKC", value).strip()


def normalize_key(value: str | None) -> str:
    """Comparison form: NFKC, trimmed, case-folded."""
    return normalize_code(value).casefold()


def keys_match(left: str | None, right: str | None) -> bool:
    """Blank values never match anything, not even each other."""
    left_key = normalize_key(left)
    return bool(left_key) and left_key == normalize_key(right)


def login_key_for(code: str, domain: str) -> str:
    """Deterministic login key derived from a business code."""
    normalized = normalize_code(code)
    if not normalized:
        raise ValueError("Cannot derive a login key from a blank business code")
    suffix = normalize_code(domain).lstrip("@")
    if not suffix:
        raise ValueError("Login domain must not be blank")
    return f"{normalized}@{suffix}".lower()
