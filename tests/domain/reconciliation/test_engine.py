from __future__ import annotations

from decimal import Decimal

import pytest

from sparetrack.domain.errors import PartialImportError
from sparetrack.domain.model import ContextKind, OriginSource
from sparetrack.domain.reconciliation import InventoryReconciler
from sparetrack.domain.snapshot import CatalogSnapshot
from tests.helpers.items import LATER, assignment, make_item, make_row
from tests.helpers.store import InMemoryDocumentStore, RecordingHistory


def _reconciler(
    store: InMemoryDocumentStore,
    *,
    chunk_size: int = 400,
    history: RecordingHistory | None = None,
) -> InventoryReconciler:
    snapshot = CatalogSnapshot()
    snapshot.attach(store)
    return InventoryReconciler(
        store,
        snapshot,
        chunk_size=chunk_size,
        history=history,
        clock=lambda: LATER,
    )


def test_context_import_sets_quantity_and_total() -> None:
    store = InMemoryDocumentStore()
    store.seed(make_item("a", primary_code="S1", secondary_code="B1", unit_value=10))
    reconciler = _reconciler(store)

    result = reconciler.reconcile_context_import(
        [make_row("S1", None, quantity=5)], "Req-Jan", ContextKind.REQUEST
    )

    item = store.items["a"]
    assert result.updated == 1
    assert result.created == 0
    assert item.contexts == (assignment("Req-Jan", 5, assigned_at=LATER),)
    assert item.derived_total == Decimal(50)


def test_reimport_replaces_quantity_without_duplicating() -> None:
    store = InMemoryDocumentStore()
    store.seed(make_item("a", primary_code="S1", secondary_code="B1", unit_value=10))
    reconciler = _reconciler(store)

    reconciler.reconcile_context_import([make_row("S1", quantity=5)], "Req-Jan", "request")
    reconciler.reconcile_context_import([make_row("S1", quantity=8)], "Req-Jan", "request")

    item = store.items["a"]
    assert len(item.contexts) == 1
    assert item.contexts[0].quantity == 8
    assert item.derived_total == Decimal(80)


def test_same_file_twice_is_idempotent() -> None:
    store = InMemoryDocumentStore()
    reconciler = _reconciler(store)
    rows = [make_row("S1", "B1", unit_value=2, quantity=3), make_row("S2", None, quantity=1)]

    first = reconciler.reconcile_context_import(rows, "Req-Jan", ContextKind.REQUEST)
    second = reconciler.reconcile_context_import(rows, "Req-Jan", ContextKind.REQUEST)

    assert first.created == 2
    assert second.created == 0
    assert second.updated == 0
    assert second.unchanged == 2
    assert second.rows_applied == 2
    assert len(store.items) == 2


def test_placeholder_row_creates_new_item() -> None:
    store = InMemoryDocumentStore()
    store.seed(make_item("a", primary_code="pendiente", secondary_code="pendiente"))
    reconciler = _reconciler(store)

    result = reconciler.reconcile_context_import(
        [make_row("pendiente", "pendiente", description="Bolt", quantity=2)],
        "Req-Jan",
        ContextKind.REQUEST,
    )

    assert result.created == 1
    (created_id,) = result.created_ids
    assert store.items[created_id].description == "Bolt"
    assert store.items[created_id].id == created_id
    assert store.writes == {created_id: 1}


def test_custom_placeholder_per_call() -> None:
    store = InMemoryDocumentStore()
    store.seed(make_item("a", primary_code="TBD", secondary_code="B1"))
    reconciler = _reconciler(store)

    result = reconciler.reconcile_context_import(
        [make_row("TBD", None, quantity=1)], "Req-Jan", ContextKind.REQUEST, "tbd"
    )

    assert result.created == 1
    assert store.items["a"].contexts == ()


def test_rename_context_writes_only_affected_items() -> None:
    store = InMemoryDocumentStore()
    store.seed(
        make_item("a", primary_code="S1", contexts=(assignment("Req-Jan", 1),)),
        make_item("b", primary_code="S2", contexts=(assignment("Req-Jan", 2),)),
        make_item("c", primary_code="S3", contexts=(assignment("Req-Jan", 3, ContextKind.STOCK),)),
        make_item("d", primary_code="S4", contexts=(assignment("Req-Feb", 4),)),
        make_item("e", primary_code="S5"),
    )
    reconciler = _reconciler(store)

    affected = reconciler.rename_context("Req-Jan", "Req-2024-01")

    assert affected == 3
    assert set(store.writes) == {"a", "b", "c"}
    for item_id in ("a", "b", "c"):
        assert store.items[item_id].has_context("Req-2024-01")
        assert not store.items[item_id].has_context("Req-Jan")
    assert store.items["d"].contexts == (assignment("Req-Feb", 4),)


def test_rename_to_blank_name_is_rejected() -> None:
    store = InMemoryDocumentStore()
    reconciler = _reconciler(store)

    with pytest.raises(ValueError, match="blank"):
        reconciler.rename_context("Req-Jan", "  ")


def test_remove_context_and_summary() -> None:
    store = InMemoryDocumentStore()
    store.seed(
        make_item(
            "a",
            unit_value=5,
            contexts=(assignment("Planta", 2), assignment("Planta", 1, ContextKind.STOCK)),
        ),
    )
    reconciler = _reconciler(store)

    assert reconciler.summarize_context("Planta").total_value == Decimal(15)
    assert reconciler.remove_context("Planta", kind=ContextKind.STOCK) == 1

    assert store.items["a"].derived_total == Decimal(10)
    assert reconciler.summarize_context("Planta").stock_qty == 0


def test_migrate_legacy_quantities() -> None:
    store = InMemoryDocumentStore()
    store.seed(make_item("a", unit_value=1, legacy_requested_qty=2, legacy_stock_qty=3))
    reconciler = _reconciler(store)

    assert reconciler.migrate_legacy_quantities("Legacy", "Legacy") == 1
    assert reconciler.migrate_legacy_quantities("Legacy", "Legacy") == 0

    item = store.items["a"]
    assert {(a.kind, a.quantity) for a in item.contexts} == {
        (ContextKind.REQUEST, 2),
        (ContextKind.STOCK, 3),
    }
    assert item.derived_total == Decimal(5)


def test_partial_import_reports_applied_rows() -> None:
    store = InMemoryDocumentStore(max_batch_operations=5, fail_on_commit=2)
    reconciler = _reconciler(store, chunk_size=2)
    rows = [make_row(f"S{n}", quantity=1) for n in range(5)]

    with pytest.raises(PartialImportError) as excinfo:
        reconciler.reconcile_context_import(rows, "Req-Jan", ContextKind.REQUEST)

    result = excinfo.value.result
    assert result.created == 2
    assert result.rows_applied == 2
    assert result.rows_not_attempted == 3
    assert len(store.items) == 2


def test_history_receives_committed_changes() -> None:
    store = InMemoryDocumentStore()
    store.seed(make_item("a", primary_code="S1", unit_value=10))
    history = RecordingHistory()
    reconciler = _reconciler(store, history=history)

    result = reconciler.reconcile_context_import(
        [make_row("S1", quantity=5), make_row("S7", quantity=1)],
        "Req-Jan",
        ContextKind.REQUEST,
        origin=OriginSource.RESTORE,
    )

    (created_id,) = result.created_ids
    assert history.fields_for("a") == {"contexts", "derived_total", "updated_at"}
    assert "primary_code" in history.fields_for(created_id)
    assert {origin for _, _, origin in history.entries} == {OriginSource.RESTORE}


def test_history_failure_after_commit_counts_the_committed_chunk() -> None:
    store = InMemoryDocumentStore(max_batch_operations=5)
    history = RecordingHistory(fail_on_record=1)
    reconciler = _reconciler(store, chunk_size=2, history=history)
    rows = [make_row(f"S{n}", quantity=1) for n in range(5)]

    with pytest.raises(PartialImportError) as excinfo:
        reconciler.reconcile_context_import(rows, "Req-Jan", ContextKind.REQUEST)

    result = excinfo.value.result
    assert result.created == 2
    assert result.rows_applied == 2
    assert result.rows_not_attempted == 3
    assert len(store.items) == 2
    assert store.commits == 1


def test_create_item_computes_total_and_records_history() -> None:
    store = InMemoryDocumentStore()
    history = RecordingHistory()
    reconciler = _reconciler(store, history=history)

    item_id = reconciler.create_item(
        make_item(
            None,
            primary_code=" ",
            secondary_code="B9",
            unit_value=4,
            contexts=(assignment("Req-Jan", 3),),
        )
    )

    item = store.items[item_id]
    assert item.primary_code == "pendiente"
    assert item.derived_total == Decimal(12)
    assert item.created_at == LATER
    assert "primary_code" in history.fields_for(item_id)


def test_update_item_recomputes_total_and_records_history() -> None:
    store = InMemoryDocumentStore()
    store.seed(make_item("a", unit_value=10, legacy_requested_qty=2))
    history = RecordingHistory()
    reconciler = _reconciler(store, history=history)

    changed = reconciler.update_item("a", {"unit_value": Decimal(20)})

    item = store.items["a"]
    assert changed
    assert item.unit_value == Decimal(20)
    assert item.derived_total == Decimal(40)
    assert item.updated_at == LATER
    assert history.fields_for("a") == {"unit_value", "derived_total", "updated_at"}


def test_update_item_without_changes_writes_nothing() -> None:
    store = InMemoryDocumentStore()
    store.seed(make_item("a", description="Valve"))
    reconciler = _reconciler(store)

    assert not reconciler.update_item("a", {"description": "Valve"})
    assert store.commits == 0


def test_update_item_rejects_derived_and_unknown_fields() -> None:
    store = InMemoryDocumentStore()
    store.seed(make_item("a"))
    reconciler = _reconciler(store)

    with pytest.raises(ValueError, match="derived_total"):
        reconciler.update_item("a", {"derived_total": Decimal(1)})
    with pytest.raises(ValueError, match="negative"):
        reconciler.update_item("a", {"unit_value": Decimal(-1)})
    with pytest.raises(KeyError):
        reconciler.update_item("missing", {"description": "x"})
    assert store.commits == 0
