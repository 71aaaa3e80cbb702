"""Decide, per import row, whether it updates a catalog item or creates one.

Matching policy:
- a non-placeholder primary code found in the index wins
- otherwise a non-placeholder secondary code found in the index
- otherwise the row creates a new item

Rows that hit the same item within one pass are coalesced into a single
operation, and later rows see the effect of earlier ones. Rows whose codes
match an item created earlier in the same pass merge into that pending
create. Placeholder codes never match anything.

Merge policy for a matched item: descriptive and pricing fields are only
filled when empty; the targeted context quantity is replaced outright.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import StrEnum
from typing import TYPE_CHECKING, Final, Literal

from sparetrack.domain.model import ZERO, ContextKind, ImportMode, InventoryItem, utcnow

from .contexts import upsert_context
from .index import MatchKind
from .keys import DEFAULT_PLACEHOLDER, is_placeholder, match_key
from .totals import with_derived_total

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime

    from sparetrack.domain.model import ContextAssignment, ImportRow

    from .index import CatalogIndex

log = logging.getLogger(__name__)

TRACKED_FIELDS: Final[tuple[str, ...]] = (
    "primary_code",
    "secondary_code",
    "description",
    "unit_value",
    "legacy_requested_qty",
    "legacy_stock_qty",
    "contexts",
    "derived_total",
)


class OperationKind(StrEnum):
    CREATE = "create"
    UPDATE = "update"


@dataclass(frozen=True, slots=True)
class FieldChange:
    """Before/after value of one field, as seen by the audit trail."""

    field: str
    before: object
    after: object


@dataclass(slots=True, kw_only=True)
class CreateItem:
    item: InventoryItem
    row_indices: tuple[int, ...] = ()
    kind: Literal[OperationKind.CREATE] = OperationKind.CREATE


@dataclass(slots=True, kw_only=True)
class UpdateItem:
    item_id: str
    before: InventoryItem
    after: InventoryItem
    changes: tuple[FieldChange, ...]
    row_indices: tuple[int, ...] = ()
    kind: Literal[OperationKind.UPDATE] = OperationKind.UPDATE

    @property
    def patch(self) -> dict[str, object]:
        return {change.field: change.after for change in self.changes}


type ItemOperation = CreateItem | UpdateItem


@dataclass(frozen=True, slots=True)
class ContextTarget:
    """The context a quantity import writes into."""

    name: str
    kind: ContextKind


@dataclass(slots=True)
class ImportPlan:
    """Operations for one import plus bookkeeping for the caller's report."""

    operations: list[ItemOperation] = field(default_factory=list["ItemOperation"])
    rows: int = 0
    unchanged: int = 0
    unchanged_rows: int = 0
    ambiguous: int = 0

    @property
    def creates(self) -> int:
        return sum(1 for operation in self.operations if operation.kind is OperationKind.CREATE)

    @property
    def updates(self) -> int:
        return sum(1 for operation in self.operations if operation.kind is OperationKind.UPDATE)


def update_operation(
    before: InventoryItem,
    after: InventoryItem,
    *,
    now: datetime,
    row_indices: tuple[int, ...] = (),
) -> UpdateItem | None:
    """Diff two versions of an item; ``None`` when nothing tracked changed.

    The derived total is recomputed on ``after`` before diffing.
    """

    if before.id is None:
        raise ValueError("Cannot update an item that has no store id")
    after = with_derived_total(after)
    changes = [
        FieldChange(name, getattr(before, name), getattr(after, name))
        for name in TRACKED_FIELDS
        if getattr(before, name) != getattr(after, name)
    ]
    if not changes:
        return None
    changes.append(FieldChange("updated_at", before.updated_at, now))
    return UpdateItem(
        item_id=before.id,
        before=before,
        after=replace(after, updated_at=now),
        changes=tuple(changes),
        row_indices=row_indices,
    )


def plan_import(
    rows: Iterable[ImportRow],
    index: CatalogIndex,
    mode: ImportMode,
    *,
    target: ContextTarget | None = None,
    placeholder: str = DEFAULT_PLACEHOLDER,
    now: datetime | None = None,
) -> ImportPlan:
    """Plan the create/update operations that merge ``rows`` into the catalog."""

    if mode is ImportMode.CONTEXT and target is None:
        raise ValueError("Context imports need a target context")
    planner = _Planner(
        index=index,
        mode=mode,
        target=target if mode is ImportMode.CONTEXT else None,
        placeholder=placeholder,
        now=now or utcnow(),
    )
    for position, row in enumerate(rows):
        planner.add(position, row)
    return planner.finish()


type _Handle = tuple[Literal["existing", "new"], str]


@dataclass(slots=True, kw_only=True)
class _Planner:
    index: CatalogIndex
    mode: ImportMode
    target: ContextTarget | None
    placeholder: str
    now: datetime
    _plan: ImportPlan = field(default_factory=ImportPlan)
    _working: dict[_Handle, InventoryItem] = field(default_factory=dict["_Handle", "InventoryItem"])
    _originals: dict[_Handle, InventoryItem] = field(
        default_factory=dict["_Handle", "InventoryItem"]
    )
    _rows: dict[_Handle, list[int]] = field(default_factory=dict["_Handle", "list[int]"])
    _session_primary: dict[str, _Handle] = field(default_factory=dict["str", "_Handle"])
    _session_secondary: dict[str, _Handle] = field(default_factory=dict["str", "_Handle"])
    _created: int = 0

    def add(self, position: int, row: ImportRow) -> None:
        self._plan.rows += 1
        handle = self._match(row)
        if handle is None:
            self._created += 1
            handle = ("new", str(self._created))
            item = self._new_item(row)
        else:
            item = self._merge(self._working[handle], row)
        self._working[handle] = item
        self._rows.setdefault(handle, []).append(position)
        self._remember(handle, item)

    def finish(self) -> ImportPlan:
        for handle, item in self._working.items():
            row_indices = tuple(self._rows[handle])
            if handle[0] == "new":
                self._plan.operations.append(CreateItem(item=item, row_indices=row_indices))
                continue
            operation = update_operation(
                self._originals[handle],
                item,
                now=self.now,
                row_indices=row_indices,
            )
            if operation is None:
                self._plan.unchanged += 1
                self._plan.unchanged_rows += len(row_indices)
            else:
                self._plan.operations.append(operation)
        return self._plan

    def _match(self, row: ImportRow) -> _Handle | None:
        catalog = self.index.lookup(row.primary_code, row.secondary_code)
        if catalog.kind is MatchKind.PRIMARY and catalog.item is not None:
            if catalog.shadowed is not None:
                self._plan.ambiguous += 1
                log.debug(
                    "Codes %s/%s match items %s and %s; using primary-code match",
                    row.primary_code,
                    row.secondary_code,
                    catalog.item.id,
                    catalog.shadowed.id,
                )
            return self._existing(catalog.item)

        primary = match_key(row.primary_code, self.placeholder)
        if primary is not None and primary in self._session_primary:
            return self._session_primary[primary]
        if catalog.kind is MatchKind.SECONDARY and catalog.item is not None:
            return self._existing(catalog.item)
        secondary = match_key(row.secondary_code, self.placeholder)
        if secondary is not None and secondary in self._session_secondary:
            return self._session_secondary[secondary]
        return None

    def _existing(self, item: InventoryItem) -> _Handle:
        if item.id is None:
            raise ValueError("Catalog items must carry a store id")
        handle: _Handle = ("existing", item.id)
        if handle not in self._working:
            self._originals[handle] = item
            self._working[handle] = item
        return handle

    def _remember(self, handle: _Handle, item: InventoryItem) -> None:
        primary = match_key(item.primary_code, self.placeholder)
        if primary is not None:
            self._session_primary[primary] = handle
        secondary = match_key(item.secondary_code, self.placeholder)
        if secondary is not None:
            self._session_secondary[secondary] = handle

    def _new_item(self, row: ImportRow) -> InventoryItem:
        contexts: tuple[ContextAssignment, ...] = ()
        if self.target is not None:
            contexts = upsert_context(
                (),
                self.target.name,
                self.target.kind,
                row.quantity or 0,
                now=self.now,
            )
        item = InventoryItem(
            primary_code=self._code(row.primary_code),
            secondary_code=self._code(row.secondary_code),
            description=(row.description or "").strip(),
            unit_value=max(row.unit_value or ZERO, ZERO),
            contexts=contexts,
            created_at=self.now,
            updated_at=self.now,
        )
        return with_derived_total(item)

    def _merge(self, item: InventoryItem, row: ImportRow) -> InventoryItem:
        updates: dict[str, object] = {}
        if self._unset(item.description) and not self._unset(row.description):
            updates["description"] = (row.description or "").strip()
        if item.unit_value <= 0 and row.unit_value is not None and row.unit_value > 0:
            updates["unit_value"] = row.unit_value
        if self._unset(item.primary_code) and not self._unset(row.primary_code):
            updates["primary_code"] = (row.primary_code or "").strip()
        if self._unset(item.secondary_code) and not self._unset(row.secondary_code):
            updates["secondary_code"] = (row.secondary_code or "").strip()
        if self.target is not None:
            updates["contexts"] = upsert_context(
                item.contexts,
                self.target.name,
                self.target.kind,
                row.quantity or 0,
                now=self.now,
            )
        if not updates:
            return item
        return with_derived_total(replace(item, **updates))  # pyright: ignore[reportArgumentType]

    def _unset(self, value: str | None) -> bool:
        return is_placeholder(value, self.placeholder)

    def _code(self, code: str | None) -> str:
        if code is None or self._unset(code):
            return self.placeholder
        return code.strip()
