"""Canonical match keys for part codes."""

from __future__ import annotations

from typing import Final

DEFAULT_PLACEHOLDER: Final[str] = "pendiente"


def normalize_code(code: str) -> str:
    """Trim and upper-case ``code``."""

    return code.strip().upper()


def is_placeholder(code: str | None, placeholder: str = DEFAULT_PLACEHOLDER) -> bool:
    """Return whether ``code`` means "not yet known".

    Missing and blank codes count as unknown too.
    """

    if code is None:
        return True
    trimmed = code.strip()
    return not trimmed or trimmed.casefold() == placeholder.strip().casefold()


def match_key(code: str | None, placeholder: str = DEFAULT_PLACEHOLDER) -> str | None:
    """Return the key used for matching, or ``None`` for unknown codes."""

    if code is None or is_placeholder(code, placeholder):
        return None
    return normalize_code(code)
