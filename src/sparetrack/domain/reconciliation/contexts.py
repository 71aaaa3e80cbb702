"""Copy-on-write operations on an item's context assignments.

Every function returns new tuples/items and leaves its inputs untouched so
callers can diff old and new values for the audit trail.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

from sparetrack.domain.model import (
    ZERO,
    ContextAssignment,
    ContextKind,
    NamedContext,
    utcnow,
)

from .totals import with_derived_total

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from datetime import datetime
    from decimal import Decimal

    from sparetrack.domain.model import InventoryItem


def upsert_context(
    contexts: Sequence[ContextAssignment],
    name: str,
    kind: ContextKind,
    quantity: int,
    *,
    now: datetime | None = None,
) -> tuple[ContextAssignment, ...]:
    """Set the quantity of ``(name, kind)``, appending it when absent.

    An assignment that already holds ``quantity`` is kept as is, timestamp
    included, so re-importing the same figures changes nothing.
    """

    assigned = ContextAssignment(
        name=name,
        kind=kind,
        quantity=max(quantity, 0),
        assigned_at=now or utcnow(),
    )
    updated: list[ContextAssignment] = []
    replaced = False
    for existing in contexts:
        if existing.key == assigned.key:
            if not replaced:
                same = existing.quantity == assigned.quantity
                updated.append(existing if same else assigned)
                replaced = True
            continue
        updated.append(existing)
    if not replaced:
        updated.append(assigned)
    return tuple(updated)


def rename_context(
    items: Iterable[InventoryItem],
    old_name: str,
    new_name: str,
    *,
    now: datetime | None = None,
) -> list[InventoryItem]:
    """Rename ``old_name`` on every item carrying it, whatever its kind.

    Items without the context are left out of the result. When an item
    already has ``(new_name, kind)``, the renamed assignment replaces it.
    """

    if old_name == new_name:
        return []
    stamp = now or utcnow()
    updated: list[InventoryItem] = []
    for item in items:
        if not item.has_context(old_name):
            continue
        renamed = tuple(
            replace(assignment, name=new_name) if assignment.name == old_name else assignment
            for assignment in item.contexts
        )
        winners = {
            (new_name, assignment.kind): replace(assignment, name=new_name)
            for assignment in item.contexts
            if assignment.name == old_name
        }
        contexts = _dedupe(renamed, winners)
        updated.append(with_derived_total(replace(item, contexts=contexts, updated_at=stamp)))
    return updated


def remove_context(
    items: Iterable[InventoryItem],
    name: str,
    *,
    kind: ContextKind | None = None,
    now: datetime | None = None,
) -> list[InventoryItem]:
    """Drop every assignment named ``name`` (of ``kind`` only, if given)."""

    stamp = now or utcnow()
    updated: list[InventoryItem] = []
    for item in items:
        remaining = tuple(
            assignment
            for assignment in item.contexts
            if assignment.name != name or (kind is not None and assignment.kind is not kind)
        )
        if len(remaining) == len(item.contexts):
            continue
        updated.append(with_derived_total(replace(item, contexts=remaining, updated_at=stamp)))
    return updated


def coerce_context(raw: object, *, now: datetime | None = None) -> ContextAssignment:
    """Turn a stored context tag of any supported shape into an assignment.

    Accepted shapes: :class:`ContextAssignment`, :class:`NamedContext` and a bare
    string. Bare names become request assignments with quantity zero. Stored
    records are validated by the store adapter before they get here.
    """

    match raw:
        case ContextAssignment():
            return raw
        case NamedContext(name=name):
            return _bare_name(name, now=now)
        case str():
            return _bare_name(raw, now=now)
        case _:
            raise TypeError(f"Unsupported context tag: {raw!r}")


def coerce_contexts(
    raw_tags: Iterable[object],
    *,
    now: datetime | None = None,
) -> tuple[ContextAssignment, ...]:
    """Coerce stored tags and collapse duplicate ``(name, kind)`` pairs (last wins)."""

    contexts: tuple[ContextAssignment, ...] = ()
    for raw in raw_tags:
        assignment = coerce_context(raw, now=now)
        contexts = _put(contexts, assignment)
    return contexts


def contexts_in_use(items: Iterable[InventoryItem]) -> list[str]:
    names = {assignment.name for item in items for assignment in item.contexts}
    return sorted(names, key=str.casefold)


@dataclass(slots=True, kw_only=True)
class ContextSummary:
    """Aggregated quantities and values of one context across the catalog."""

    name: str
    item_count: int = 0
    requested_qty: int = 0
    stock_qty: int = 0
    requested_value: Decimal = ZERO
    stock_value: Decimal = ZERO
    latest_assigned_at: datetime | None = None

    @property
    def total_value(self) -> Decimal:
        return self.requested_value + self.stock_value

    @property
    def kinds(self) -> frozenset[ContextKind]:
        kinds: set[ContextKind] = set()
        if self.requested_qty or self.requested_value:
            kinds.add(ContextKind.REQUEST)
        if self.stock_qty or self.stock_value:
            kinds.add(ContextKind.STOCK)
        return frozenset(kinds)


def summarize_context(items: Iterable[InventoryItem], name: str) -> ContextSummary:
    summary = ContextSummary(name=name)
    for item in items:
        assignments = [assignment for assignment in item.contexts if assignment.name == name]
        if not assignments:
            continue
        summary.item_count += 1
        for assignment in assignments:
            value = assignment.quantity * item.unit_value
            if assignment.kind is ContextKind.REQUEST:
                summary.requested_qty += assignment.quantity
                summary.requested_value += value
            else:
                summary.stock_qty += assignment.quantity
                summary.stock_value += value
            latest = summary.latest_assigned_at
            if latest is None or assignment.assigned_at > latest:
                summary.latest_assigned_at = assignment.assigned_at
    return summary


def _bare_name(name: str, *, now: datetime | None) -> ContextAssignment:
    return ContextAssignment(name=name, kind=ContextKind.REQUEST, assigned_at=now or utcnow())


def _put(
    contexts: tuple[ContextAssignment, ...],
    assignment: ContextAssignment,
) -> tuple[ContextAssignment, ...]:
    kept = tuple(existing for existing in contexts if existing.key != assignment.key)
    return (*kept, assignment)


def _dedupe(
    contexts: tuple[ContextAssignment, ...],
    winners: dict[tuple[str, ContextKind], ContextAssignment],
) -> tuple[ContextAssignment, ...]:
    seen: set[tuple[str, ContextKind]] = set()
    result: list[ContextAssignment] = []
    for assignment in contexts:
        if assignment.key in seen:
            continue
        seen.add(assignment.key)
        result.append(winners.get(assignment.key, assignment))
    return tuple(result)


def migrate_legacy_quantities(
    items: Iterable[InventoryItem],
    request_name: str,
    stock_name: str,
    *,
    now: datetime | None = None,
) -> list[InventoryItem]:
    """Seed context assignments from the legacy quantity fields.

    A positive legacy requested quantity becomes a ``request`` assignment named
    ``request_name``; a positive legacy stock quantity becomes a ``stock``
    assignment named ``stock_name``. Existing assignments are never overwritten
    and items that gain nothing are left out.
    """

    stamp = now or utcnow()
    updated: list[InventoryItem] = []
    for item in items:
        contexts = item.contexts
        seeds = (
            (request_name, ContextKind.REQUEST, item.legacy_requested_qty),
            (stock_name, ContextKind.STOCK, item.legacy_stock_qty),
        )
        for name, kind, quantity in seeds:
            if quantity > 0 and item.context(name, kind) is None:
                contexts = upsert_context(contexts, name, kind, quantity, now=stamp)
        if contexts == item.contexts:
            continue
        updated.append(with_derived_total(replace(item, contexts=contexts, updated_at=stamp)))
    return updated
