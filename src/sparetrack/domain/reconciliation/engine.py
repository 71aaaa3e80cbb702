"""Entry points of the reconciliation core.

The reconciler ties the pure stages together for one operator action:
snapshot -> index -> plan -> chunked execution -> history. It keeps no
state of its own between calls; the next call reads whatever the store has
pushed into the snapshot since.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, Final

from sparetrack.domain.errors import PartialBatchError, PartialImportError
from sparetrack.domain.model import ContextKind, ImportMode, OriginSource, utcnow

from . import contexts as context_ops
from .execute import DEFAULT_CHUNK_SIZE, BatchExecutor
from .index import build_index
from .keys import DEFAULT_PLACEHOLDER
from .plan import (
    TRACKED_FIELDS,
    ContextTarget,
    CreateItem,
    FieldChange,
    ImportPlan,
    ItemOperation,
    UpdateItem,
    plan_import,
    update_operation,
)
from .totals import with_derived_total

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping, Sequence
    from datetime import datetime

    from sparetrack.domain.model import ImportRow, InventoryItem
    from sparetrack.domain.ports import DocumentStore, HistoryRecorder
    from sparetrack.domain.snapshot import CatalogSnapshot

    from .contexts import ContextSummary
    from .execute import BatchExecutionResult

log = logging.getLogger(__name__)

EDITABLE_FIELDS: Final[frozenset[str]] = frozenset(
    {
        "primary_code",
        "secondary_code",
        "description",
        "unit_value",
        "legacy_requested_qty",
        "legacy_stock_qty",
        "contexts",
    }
)


@dataclass(slots=True, kw_only=True)
class ImportResult:
    """What an import did, row- and item-wise."""

    created: int = 0
    updated: int = 0
    unchanged: int = 0
    ambiguous: int = 0
    rows_applied: int = 0
    rows_not_attempted: int = 0
    created_ids: tuple[str, ...] = ()


class InventoryReconciler:
    """Reconcile imports and catalog-wide context edits against a document store."""

    def __init__(
        self,
        store: DocumentStore,
        snapshot: CatalogSnapshot,
        *,
        placeholder: str = DEFAULT_PLACEHOLDER,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        history: HistoryRecorder | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.snapshot = snapshot
        self.placeholder = placeholder
        self.chunk_size = chunk_size
        self.history = history
        self.clock = clock

    def reconcile_context_import(
        self,
        rows: Iterable[ImportRow],
        context_name: str,
        context_kind: ContextKind | str,
        placeholder: str | None = None,
        *,
        origin: OriginSource = OriginSource.USER,
    ) -> ImportResult:
        """Merge ``rows`` and write each row's quantity into one context."""

        target = ContextTarget(name=_context_name(context_name), kind=ContextKind(context_kind))
        return self._reconcile(rows, ImportMode.CONTEXT, target, placeholder, origin)

    def reconcile_catalog_import(
        self,
        rows: Iterable[ImportRow],
        placeholder: str | None = None,
        *,
        origin: OriginSource = OriginSource.USER,
    ) -> ImportResult:
        """Merge descriptive and pricing data only; quantities stay untouched."""

        return self._reconcile(rows, ImportMode.CATALOG, None, placeholder, origin)

    def rename_context(
        self,
        old_name: str,
        new_name: str,
        *,
        origin: OriginSource = OriginSource.USER,
    ) -> int:
        """Rename a context on every item carrying it; returns the items rewritten."""

        now = self.clock()
        updated = context_ops.rename_context(
            self.snapshot.items,
            old_name,
            _context_name(new_name),
            now=now,
        )
        affected = self._write_updates(updated, now=now, origin=origin)
        log.info("Renamed context %r to %r on %s items", old_name, new_name, affected)
        return affected

    def remove_context(
        self,
        name: str,
        *,
        kind: ContextKind | None = None,
        origin: OriginSource = OriginSource.USER,
    ) -> int:
        """Drop a context (or only one kind of it) from every item."""

        now = self.clock()
        updated = context_ops.remove_context(self.snapshot.items, name, kind=kind, now=now)
        affected = self._write_updates(updated, now=now, origin=origin)
        log.info("Removed context %r (kind=%s) from %s items", name, kind, affected)
        return affected

    def migrate_legacy_quantities(
        self,
        request_context: str,
        stock_context: str,
        *,
        origin: OriginSource = OriginSource.USER,
    ) -> int:
        """Move legacy quantities into named contexts without overwriting any."""

        now = self.clock()
        updated = context_ops.migrate_legacy_quantities(
            self.snapshot.items,
            _context_name(request_context),
            _context_name(stock_context),
            now=now,
        )
        affected = self._write_updates(updated, now=now, origin=origin)
        log.info("Migrated legacy quantities on %s items", affected)
        return affected

    def create_item(
        self,
        item: InventoryItem,
        *,
        origin: OriginSource = OriginSource.USER,
    ) -> str:
        """Add one hand-entered item and return the id the store assigned.

        Blank codes fall back to the placeholder. Whatever ``derived_total``
        the caller set is replaced by the computed one.
        """

        now = self.clock()
        fresh = with_derived_total(
            replace(
                item,
                id=None,
                primary_code=item.primary_code.strip() or self.placeholder,
                secondary_code=item.secondary_code.strip() or self.placeholder,
                created_at=now,
                updated_at=now,
            )
        )
        _check_amounts(fresh)
        execution = self._execute([CreateItem(item=fresh)], origin=origin)
        item_id = execution.created_ids[0]
        log.info("Created item %s (%s / %s)", item_id, fresh.primary_code, fresh.secondary_code)
        return item_id

    def update_item(
        self,
        item_id: str,
        changes: Mapping[str, Any],
        *,
        origin: OriginSource = OriginSource.USER,
    ) -> bool:
        """Apply hand edits to one item; ``False`` when they change nothing.

        Only :data:`EDITABLE_FIELDS` may be edited. The derived total is
        recomputed from the edited values.
        """

        rejected = set(changes) - EDITABLE_FIELDS
        if rejected:
            raise ValueError(f"Fields cannot be edited: {', '.join(sorted(rejected))}")
        before = next((item for item in self.snapshot.items if item.id == item_id), None)
        if before is None:
            raise KeyError(item_id)

        now = self.clock()
        edits = dict(changes)
        if "contexts" in edits:
            edits["contexts"] = context_ops.coerce_contexts(edits["contexts"], now=now)
        after = replace(before, **edits)
        _check_amounts(after)
        operation = update_operation(before, after, now=now)
        if operation is None:
            return False
        self._execute([operation], origin=origin)
        log.info(
            "Updated item %s: %s",
            item_id,
            ", ".join(change.field for change in operation.changes),
        )
        return True

    def summarize_context(self, name: str) -> ContextSummary:
        return context_ops.summarize_context(self.snapshot.items, name)

    def _reconcile(
        self,
        rows: Iterable[ImportRow],
        mode: ImportMode,
        target: ContextTarget | None,
        placeholder: str | None,
        origin: OriginSource,
    ) -> ImportResult:
        effective_placeholder = placeholder or self.placeholder
        index = build_index(self.snapshot.items, effective_placeholder)
        plan = plan_import(
            rows,
            index,
            mode,
            target=target,
            placeholder=effective_placeholder,
            now=self.clock(),
        )
        log.info(
            "Planned %s import: rows=%s, creates=%s, updates=%s, unchanged=%s, ambiguous=%s",
            mode,
            plan.rows,
            plan.creates,
            plan.updates,
            plan.unchanged,
            plan.ambiguous,
        )

        try:
            execution = self._execute(plan.operations, origin=origin)
        except PartialBatchError as exc:
            result = _import_result(plan, exc.committed, not_attempted=exc.not_attempted)
            log.warning(
                "Import stopped at chunk %s/%s: rows_applied=%s, rows_not_attempted=%s",
                exc.failed_chunk,
                exc.total_chunks,
                result.rows_applied,
                result.rows_not_attempted,
            )
            raise PartialImportError(
                f"Import stopped after {result.rows_applied} of {plan.rows} rows: {exc}",
                result=result,
            ) from exc

        result = _import_result(plan, execution.committed, created_ids=execution.created_ids)
        log.info(
            "Finished %s import: created=%s, updated=%s, unchanged=%s",
            mode,
            result.created,
            result.updated,
            result.unchanged,
        )
        return result

    def _write_updates(
        self,
        updated: Sequence[InventoryItem],
        *,
        now: datetime,
        origin: OriginSource,
    ) -> int:
        originals = {item.id: item for item in self.snapshot.items}
        operations: list[ItemOperation] = []
        for item in updated:
            operation = update_operation(originals[item.id], item, now=now)
            if operation is not None:
                operations.append(operation)
        if operations:
            self._execute(operations, origin=origin)
        return len(operations)

    def _execute(
        self,
        operations: Sequence[ItemOperation],
        *,
        origin: OriginSource,
    ) -> BatchExecutionResult:
        def record(
            _number: int,
            chunk: Sequence[ItemOperation],
            created_ids: dict[int, str],
        ) -> None:
            self._record_history(chunk, created_ids, origin=origin)

        executor = BatchExecutor(
            self.store,
            chunk_size=self.chunk_size,
            on_chunk_committed=record if self.history is not None else None,
        )
        return executor.execute(operations)

    def _record_history(
        self,
        chunk: Sequence[ItemOperation],
        created_ids: dict[int, str],
        *,
        origin: OriginSource,
    ) -> None:
        if self.history is None:
            return
        for position, operation in enumerate(chunk):
            match operation:
                case UpdateItem(item_id=item_id, changes=changes):
                    self.history.record(item_id, changes, origin=origin)
                case CreateItem(item=item):
                    self.history.record(
                        created_ids[position],
                        creation_changes(item),
                        origin=origin,
                    )


def creation_changes(item: InventoryItem) -> tuple[FieldChange, ...]:
    """Audit view of a create: every tracked field goes from nothing to its value."""

    return tuple(FieldChange(name, None, getattr(item, name)) for name in TRACKED_FIELDS)


def _import_result(
    plan: ImportPlan,
    committed: Sequence[ItemOperation],
    *,
    not_attempted: Sequence[ItemOperation] = (),
    created_ids: dict[int, str] | None = None,
) -> ImportResult:
    return ImportResult(
        created=sum(1 for operation in committed if isinstance(operation, CreateItem)),
        updated=sum(1 for operation in committed if isinstance(operation, UpdateItem)),
        unchanged=plan.unchanged,
        ambiguous=plan.ambiguous,
        rows_applied=plan.unchanged_rows + _row_count(committed),
        rows_not_attempted=_row_count(not_attempted),
        created_ids=tuple(created_ids[key] for key in sorted(created_ids or {})),
    )


def _row_count(operations: Sequence[ItemOperation]) -> int:
    return sum(len(operation.row_indices) for operation in operations)


def _check_amounts(item: InventoryItem) -> None:
    if item.unit_value < 0:
        raise ValueError("Unit value must not be negative")
    if item.legacy_requested_qty < 0 or item.legacy_stock_qty < 0:
        raise ValueError("Quantities must not be negative")


def _context_name(name: str) -> str:

    stripped = name.strip()
    if not stripped:
        raise ValueError("Context name must not be blank")
    return stripped
