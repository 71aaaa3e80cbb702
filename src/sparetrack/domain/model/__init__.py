"""Domain model for the spare-parts inventory."""

from __future__ import annotations

from .enums import ContextKind, ImportMode, OriginSource
from .inventory import (
    ZERO,
    ContextAssignment,
    ImportRow,
    InventoryItem,
    NamedContext,
    utcnow,
)

__all__ = [
    "ZERO",
    "ContextAssignment",
    "ContextKind",
    "ImportMode",
    "ImportRow",
    "InventoryItem",
    "NamedContext",
    "OriginSource",
    "utcnow",
]
