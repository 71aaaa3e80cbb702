"""Derived monetary total of an inventory item."""

from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING

from sparetrack.domain.model import ZERO

if TYPE_CHECKING:
    from decimal import Decimal

    from sparetrack.domain.model import InventoryItem


def derive_total(item: InventoryItem) -> Decimal:
    """Compute the total value of ``item``.

    Request and stock assignments both add to the context total. Items whose
    context total is zero fall back to the legacy quantity fields.
    """

    context_total = sum(
        (assignment.quantity * item.unit_value for assignment in item.contexts),
        start=ZERO,
    )
    if context_total > 0:
        return context_total
    return item.legacy_requested_qty * item.unit_value + item.legacy_stock_qty * item.unit_value


def with_derived_total(item: InventoryItem) -> InventoryItem:
    return replace(item, derived_total=derive_total(item))
