"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum

_LEGACY_KIND_ALIASES = {
    "solicitud": "request",
    "bodega": "stock",
}


class ContextKind(StrEnum):
    """Which tally a context assignment counts."""

    REQUEST = "request"
    STOCK = "stock"

    @classmethod
    def _missing_(cls, value: object) -> ContextKind | None:
        if not isinstance(value, str):
            return None
        normalized = value.strip().casefold()
        alias = _LEGACY_KIND_ALIASES.get(normalized, normalized)
        for member in cls:
            if member.value == alias:
                return member
        return None


class ImportMode(StrEnum):
    CONTEXT = "context"
    CATALOG = "catalog"


class OriginSource(StrEnum):
    """Who triggered a mutation; history recorders skip restores."""

    USER = "user"
    RESTORE = "restore"
