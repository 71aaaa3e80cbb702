from __future__ import annotations

from decimal import Decimal

import pytest

from sparetrack.domain.model import ContextAssignment, ContextKind, NamedContext
from sparetrack.domain.reconciliation import (
    coerce_context,
    coerce_contexts,
    contexts_in_use,
    migrate_legacy_quantities,
    remove_context,
    rename_context,
    summarize_context,
    upsert_context,
)
from tests.helpers.items import FIXED_NOW, LATER, assignment, make_item


def test_upsert_appends_new_context() -> None:
    contexts = upsert_context((), "Req-Jan", ContextKind.REQUEST, 5, now=LATER)

    assert contexts == (assignment("Req-Jan", 5, assigned_at=LATER),)


def test_upsert_replaces_existing_pair_in_place() -> None:
    original = (
        assignment("Req-Jan", 5),
        assignment("Bodega", 1, ContextKind.STOCK),
    )

    contexts = upsert_context(original, "Req-Jan", ContextKind.REQUEST, 8, now=LATER)

    assert [(a.name, a.quantity) for a in contexts] == [("Req-Jan", 8), ("Bodega", 1)]
    assert contexts[0].assigned_at == LATER
    assert original[0].quantity == 5


def test_upsert_keeps_assignment_when_quantity_is_unchanged() -> None:
    original = (assignment("Req-Jan", 5),)

    contexts = upsert_context(original, "Req-Jan", ContextKind.REQUEST, 5, now=LATER)

    assert contexts == original


def test_upsert_distinguishes_kinds_and_clips_negative_quantities() -> None:
    contexts = upsert_context(
        (assignment("Planta", 3),), "Planta", ContextKind.STOCK, -4, now=LATER
    )

    assert len(contexts) == 2
    assert contexts[1].kind is ContextKind.STOCK
    assert contexts[1].quantity == 0


def test_rename_touches_only_items_with_the_context() -> None:
    items = [
        make_item("a", contexts=(assignment("Req-Jan", 1),)),
        make_item("b", contexts=(assignment("Req-Feb", 1),)),
        make_item("c", contexts=(assignment("Req-Jan", 2, ContextKind.STOCK),)),
    ]

    updated = rename_context(items, "Req-Jan", "Req-2024-01", now=LATER)

    assert [item.id for item in updated] == ["a", "c"]
    assert all(item.has_context("Req-2024-01") for item in updated)
    assert not any(item.has_context("Req-Jan") for item in updated)
    assert updated[1].contexts[0].kind is ContextKind.STOCK
    assert updated[0].updated_at == LATER


def test_rename_onto_existing_pair_keeps_one_entry() -> None:
    item = make_item(
        unit_value=10,
        contexts=(assignment("Old", 3), assignment("New", 7)),
    )

    (updated,) = rename_context([item], "Old", "New", now=LATER)

    assert [(a.name, a.quantity) for a in updated.contexts] == [("New", 3)]
    assert updated.derived_total == Decimal(30)


def test_rename_to_same_name_is_a_no_op() -> None:
    item = make_item(contexts=(assignment("Req-Jan", 1),))

    assert rename_context([item], "Req-Jan", "Req-Jan") == []


def test_remove_context_recomputes_total() -> None:
    item = make_item(
        unit_value=2,
        contexts=(assignment("Req-Jan", 5), assignment("Req-Jan", 1, ContextKind.STOCK)),
    )

    (all_kinds,) = remove_context([item], "Req-Jan", now=LATER)
    (stock_only,) = remove_context([item], "Req-Jan", kind=ContextKind.STOCK, now=LATER)

    assert all_kinds.contexts == ()
    assert all_kinds.derived_total == 0
    assert [a.kind for a in stock_only.contexts] == [ContextKind.REQUEST]
    assert stock_only.derived_total == Decimal(10)
    assert remove_context([item], "Other") == []


def test_coerce_legacy_shapes() -> None:
    bare = coerce_context("Planta 2", now=FIXED_NOW)
    named = coerce_context(NamedContext("Planta 3"), now=FIXED_NOW)
    structured = assignment("Bodega", 4, ContextKind.STOCK)

    assert bare == ContextAssignment(
        name="Planta 2", kind=ContextKind.REQUEST, quantity=0, assigned_at=FIXED_NOW
    )
    assert named.kind is ContextKind.REQUEST
    assert named.quantity == 0
    assert coerce_context(structured) is structured


def test_coerce_rejects_unknown_shapes() -> None:
    with pytest.raises(TypeError):
        coerce_context(42)
    with pytest.raises(TypeError):
        coerce_context({"name": "A", "kind": "stock"})


def test_coerce_contexts_collapses_duplicates_last_wins() -> None:
    contexts = coerce_contexts(
        [assignment("A", 1), "B", assignment("A", 6)],
        now=FIXED_NOW,
    )

    assert [(a.name, a.quantity) for a in contexts] == [("B", 0), ("A", 6)]



def test_contexts_in_use_sorted_case_insensitively() -> None:
    items = [
        make_item("a", contexts=(assignment("beta", 1),)),
        make_item("b", contexts=(assignment("Alpha", 1), assignment("beta", 1))),
    ]

    assert contexts_in_use(items) == ["Alpha", "beta"]


def test_summarize_context() -> None:
    items = [
        make_item(
            "a",
            unit_value=10,
            contexts=(
                assignment("Planta", 2),
                assignment("Planta", 1, ContextKind.STOCK, assigned_at=LATER),
            ),
        ),
        make_item("b", unit_value=5, contexts=(assignment("Planta", 4),)),
        make_item("c", unit_value=5, contexts=(assignment("Other", 4),)),
    ]

    summary = summarize_context(items, "Planta")

    assert summary.item_count == 2
    assert summary.requested_qty == 6
    assert summary.stock_qty == 1
    assert summary.requested_value == Decimal(40)
    assert summary.stock_value == Decimal(10)
    assert summary.total_value == Decimal(50)
    assert summary.latest_assigned_at == LATER
    assert summary.kinds == {ContextKind.REQUEST, ContextKind.STOCK}


def test_migrate_legacy_quantities_never_overwrites() -> None:
    items = [
        make_item("a", unit_value=2, legacy_requested_qty=3, legacy_stock_qty=1),
        make_item(
            "b",
            legacy_requested_qty=5,
            contexts=(assignment("Legacy-Req", 9),),
        ),
        make_item("c"),
    ]

    updated = migrate_legacy_quantities(items, "Legacy-Req", "Legacy-Stock", now=LATER)

    assert [item.id for item in updated] == ["a"]
    migrated = updated[0]
    assert migrated.context("Legacy-Req", ContextKind.REQUEST) == assignment(
        "Legacy-Req", 3, assigned_at=LATER
    )
    assert migrated.context("Legacy-Stock", ContextKind.STOCK) is not None
    assert migrated.derived_total == Decimal(8)
