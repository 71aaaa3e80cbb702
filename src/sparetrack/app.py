"""Application orchestration entry points."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, Any

from sparetrack.adapters.spreadsheet import read_import_rows
from sparetrack.adapters.sqlalchemy import (
    SqlAlchemyDocumentStore,
    SqlAlchemyHistoryRecorder,
    configured_engine,
    is_started,
    shutdown,
    startup,
)
from sparetrack.config import get_reconciliation_config
from sparetrack.domain.errors import ExternalStoreError
from sparetrack.domain.model import ZERO, ContextKind, InventoryItem
from sparetrack.domain.reconciliation import InventoryReconciler
from sparetrack.domain.snapshot import CatalogSnapshot

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping
    from decimal import Decimal
    from pathlib import Path

    from sqlalchemy.engine import Engine

    from sparetrack.config import ReconciliationConfig
    from sparetrack.domain.ports import Unsubscribe
    from sparetrack.domain.reconciliation import ContextSummary, ImportResult


log = getLogger(__name__)


@dataclass(slots=True)
class InventoryServices:
    """Adapters and reconciler wired for one process."""

    store: SqlAlchemyDocumentStore
    snapshot: CatalogSnapshot
    history: SqlAlchemyHistoryRecorder
    reconciler: InventoryReconciler
    unsubscribe: Unsubscribe
    owns_engine: bool = False

    def close(self) -> None:
        """Detach the snapshot and release the engine if these services started it."""

        self.unsubscribe()
        if self.owns_engine:
            shutdown()


def build_services(
    *,
    engine: Engine | None = None,
    config: ReconciliationConfig | None = None,
) -> InventoryServices:
    """Wire the SQL store, its live snapshot and the reconciler."""

    owns_engine = False
    if engine is None:
        if not is_started():
            startup()
            owns_engine = True
        engine = configured_engine()
    settings = config or get_reconciliation_config()

    store = SqlAlchemyDocumentStore(engine, max_batch_operations=settings.max_batch_operations)
    snapshot = CatalogSnapshot()
    try:
        unsubscribe = snapshot.attach(store)
    except ExternalStoreError:
        if owns_engine:
            shutdown()
        raise
    history = SqlAlchemyHistoryRecorder(engine)
    reconciler = InventoryReconciler(
        store,
        snapshot,
        placeholder=settings.placeholder,
        chunk_size=settings.chunk_size,
        history=history,
    )
    log.debug(
        "Services ready: items=%s, placeholder=%r, chunk_size=%s",
        len(snapshot.items),
        settings.placeholder,
        settings.chunk_size,
    )
    return InventoryServices(
        store=store,
        snapshot=snapshot,
        history=history,
        reconciler=reconciler,
        unsubscribe=unsubscribe,
        owns_engine=owns_engine,
    )


@contextmanager
def _using(services: InventoryServices | None) -> Iterator[InventoryServices]:
    """Yield ``services``, or services built for this call and closed after it."""

    if services is not None:
        yield services
        return
    built = build_services()
    try:
        yield built
    finally:
        built.close()


def import_context_file(
    path: str | Path,
    *,
    context_name: str,
    context_kind: ContextKind | str,
    placeholder: str | None = None,
    services: InventoryServices | None = None,
) -> ImportResult:
    """Import quantities from a spreadsheet into one named context."""

    kind = ContextKind(context_kind)
    rows = read_import_rows(path, with_quantity=True)
    log.info("Importing %s rows from %s into %s (%s)", len(rows), path, context_name, kind)
    with _using(services) as effective:
        return effective.reconciler.reconcile_context_import(
            rows,
            context_name,
            kind,
            placeholder,
        )


def import_catalog_file(
    path: str | Path,
    *,
    placeholder: str | None = None,
    services: InventoryServices | None = None,
) -> ImportResult:
    """Import descriptive and pricing data; quantities stay as they are."""

    rows = read_import_rows(path, with_quantity=False)
    log.info("Importing %s catalog rows from %s", len(rows), path)
    with _using(services) as effective:
        return effective.reconciler.reconcile_catalog_import(rows, placeholder)


def create_item(
    *,
    primary_code: str,
    secondary_code: str,
    description: str = "",
    unit_value: Decimal = ZERO,
    services: InventoryServices | None = None,
) -> str:
    """Add one hand-entered item; returns its id."""

    item = InventoryItem(
        primary_code=primary_code,
        secondary_code=secondary_code,
        description=description,
        unit_value=unit_value,
    )
    with _using(services) as effective:
        return effective.reconciler.create_item(item)


def update_item(
    item_id: str,
    changes: Mapping[str, Any],
    *,
    services: InventoryServices | None = None,
) -> bool:
    with _using(services) as effective:
        return effective.reconciler.update_item(item_id, changes)


def rename_context(
    old_name: str,
    new_name: str,
    *,
    services: InventoryServices | None = None,
) -> int:
    with _using(services) as effective:
        return effective.reconciler.rename_context(old_name, new_name)


def remove_context(
    name: str,
    *,
    kind: ContextKind | str | None = None,
    services: InventoryServices | None = None,
) -> int:
    with _using(services) as effective:
        return effective.reconciler.remove_context(
            name,
            kind=ContextKind(kind) if kind is not None else None,
        )


def migrate_legacy(
    *,
    request_context: str,
    stock_context: str,
    services: InventoryServices | None = None,
) -> int:
    with _using(services) as effective:
        return effective.reconciler.migrate_legacy_quantities(request_context, stock_context)


def summarize_context(
    name: str,
    *,
    services: InventoryServices | None = None,
) -> ContextSummary:
    with _using(services) as effective:
        return effective.reconciler.summarize_context(name)
