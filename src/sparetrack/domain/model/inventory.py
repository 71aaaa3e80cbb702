"""Inventory items, their context assignments and externally supplied rows."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from typing import Final

from .enums import ContextKind

ZERO: Final[Decimal] = Decimal(0)


def utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(frozen=True, slots=True, kw_only=True)
class ContextAssignment:
    """Quantity of one item counted under a named, kind-tagged context."""

    name: str
    kind: ContextKind
    quantity: int = 0
    assigned_at: datetime = field(default_factory=utcnow)

    @property
    def key(self) -> tuple[str, ContextKind]:
        return (self.name, self.kind)


@dataclass(frozen=True, slots=True)
class NamedContext:
    """Context tag persisted as a bare name by older catalog versions."""

    name: str


@dataclass(slots=True, kw_only=True)
class InventoryItem:
    """A spare part in the catalog.

    ``id`` is assigned by the document store and stays ``None`` until the item
    has been created. ``derived_total`` is owned by
    :func:`sparetrack.domain.reconciliation.totals.derive_total`; writers never
    set it by hand.
    """

    id: str | None = None
    primary_code: str
    secondary_code: str
    description: str = ""
    unit_value: Decimal = ZERO
    legacy_requested_qty: int = 0
    legacy_stock_qty: int = 0
    contexts: tuple[ContextAssignment, ...] = ()
    derived_total: Decimal = ZERO
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def context(self, name: str, kind: ContextKind) -> ContextAssignment | None:
        for assignment in self.contexts:
            if assignment.name == name and assignment.kind is kind:
                return assignment
        return None

    def has_context(self, name: str) -> bool:
        return any(assignment.name == name for assignment in self.contexts)


@dataclass(frozen=True, slots=True, kw_only=True)
class ImportRow:
    """One spreadsheet row as handed over by the parser.

    ``quantity`` is ``None`` for catalog-only imports.
    """

    primary_code: str | None = None
    secondary_code: str | None = None
    description: str | None = None
    unit_value: Decimal | None = None
    quantity: int | None = None
