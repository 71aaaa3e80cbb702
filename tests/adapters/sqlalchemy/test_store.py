from __future__ import annotations

import json
from decimal import Decimal
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import insert, select

from sparetrack.adapters.sqlalchemy import SqlAlchemyDocumentStore, inventory_item_table
from sparetrack.domain.errors import ExternalStoreError
from sparetrack.domain.model import ContextKind, InventoryItem
from sparetrack.domain.ports import DocumentStore
from tests.helpers.items import FIXED_NOW, LATER, assignment, make_item

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.engine import Engine


def test_store_satisfies_port(sqlite_store: SqlAlchemyDocumentStore) -> None:
    assert isinstance(sqlite_store, DocumentStore)
    assert sqlite_store.max_batch_operations == 500


def test_created_items_round_trip(sqlite_store: SqlAlchemyDocumentStore) -> None:
    item = make_item(
        None,
        description="Rodamiento",
        unit_value="12.75",
        contexts=(assignment("Req-Jan", 2), assignment("Bodega", 1, ContextKind.STOCK)),
    )

    item_id = sqlite_store.add_document(item)
    (stored,) = sqlite_store.list_items()

    assert stored.id == item_id
    assert len(item_id) == 32
    assert stored.unit_value == Decimal("12.75")
    assert stored.derived_total == Decimal("38.25")
    assert stored.contexts == item.contexts
    assert stored.created_at == FIXED_NOW


def test_update_document_applies_patch(sqlite_store: SqlAlchemyDocumentStore) -> None:
    item_id = sqlite_store.add_document(make_item(None))

    sqlite_store.update_document(
        item_id,
        {"contexts": (assignment("Req-Feb", 4),), "updated_at": LATER},
    )

    stored = sqlite_store.get(item_id)
    assert stored is not None
    assert stored.contexts == (assignment("Req-Feb", 4),)
    assert stored.updated_at == LATER


def test_batch_commits_atomically(sqlite_store: SqlAlchemyDocumentStore) -> None:
    batch = sqlite_store.batch()
    batch.create(make_item(None, primary_code="S1"))
    batch.update("missing-id", {"description": "x"})
    assert len(batch) == 2

    with pytest.raises(ExternalStoreError, match="missing-id"):
        batch.commit()

    assert sqlite_store.list_items() == []


def test_batch_over_ceiling_is_rejected(sqlite_engine: Engine) -> None:
    store = SqlAlchemyDocumentStore(sqlite_engine, max_batch_operations=2)
    batch = store.batch()
    for code in ("S1", "S2", "S3"):
        batch.create(make_item(None, primary_code=code))

    with pytest.raises(ExternalStoreError, match="accepts 2"):
        batch.commit()

    assert store.list_items() == []


def test_batch_cannot_commit_twice(sqlite_store: SqlAlchemyDocumentStore) -> None:
    batch = sqlite_store.batch()
    batch.create(make_item(None))
    batch.commit()

    with pytest.raises(ExternalStoreError, match="already committed"):
        batch.commit()


def test_unknown_patch_fields_are_rejected(sqlite_store: SqlAlchemyDocumentStore) -> None:
    with pytest.raises(ValueError, match="colour"):
        sqlite_store.batch().update("a", {"colour": "red"})


def test_subscribers_see_every_commit(sqlite_store: SqlAlchemyDocumentStore) -> None:
    seen: list[int] = []

    def listener(items: Sequence[InventoryItem]) -> None:
        seen.append(len(items))

    unsubscribe = sqlite_store.subscribe(listener)
    sqlite_store.add_document(make_item(None, primary_code="S1"))
    sqlite_store.add_document(make_item(None, primary_code="S2"))
    unsubscribe()
    sqlite_store.add_document(make_item(None, primary_code="S3"))

    assert seen == [0, 1, 2]


def test_legacy_context_tags_are_read_as_assignments(
    sqlite_engine: Engine,
    sqlite_store: SqlAlchemyDocumentStore,
) -> None:
    legacy_tags = json.dumps(
        [
            "Planta 2",
            {"nombre": "Bodega", "tipo": "stock", "cantidad": 3, "fecha": LATER.isoformat()},
        ]
    )
    with sqlite_engine.begin() as connection:
        connection.execute(
            insert(inventory_item_table).values(
                id="legacy",
                primary_code="S1",
                secondary_code="B1",
                description="",
                unit_value=Decimal(2),
                legacy_requested_qty=0,
                legacy_stock_qty=0,
                contexts=(),
                derived_total=Decimal(0),
            )
        )
        connection.exec_driver_sql(
            "UPDATE inventory_item SET contexts = ? WHERE id = 'legacy'", (legacy_tags,)
        )

    stored = sqlite_store.get("legacy")

    assert stored is not None
    assert [(a.name, a.kind, a.quantity) for a in stored.contexts] == [
        ("Planta 2", ContextKind.REQUEST, 0),
        ("Bodega", ContextKind.STOCK, 3),
    ]
    with sqlite_engine.connect() as connection:
        contexts = connection.execute(select(inventory_item_table.c.contexts)).scalar_one()
    assert contexts[1].assigned_at == LATER


def test_commit_survives_failed_subscriber_refresh(
    sqlite_store: SqlAlchemyDocumentStore,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    seen: list[int] = []
    sqlite_store.subscribe(lambda items: seen.append(len(items)))

    def unreadable() -> list[InventoryItem]:
        raise ExternalStoreError("database is locked")

    monkeypatch.setattr(sqlite_store, "list_items", unreadable)
    batch = sqlite_store.batch()
    item_id = batch.create(make_item(None, primary_code="S1"))

    batch.commit()

    assert sqlite_store.get(item_id) is not None
    assert seen == [0]
    with pytest.raises(ExternalStoreError, match="already committed"):
        batch.commit()


def test_malformed_context_tag_is_a_store_error(
    sqlite_engine: Engine,
    sqlite_store: SqlAlchemyDocumentStore,
) -> None:
    item_id = sqlite_store.add_document(make_item(None))
    with sqlite_engine.begin() as connection:
        connection.exec_driver_sql(
            "UPDATE inventory_item SET contexts = ? WHERE id = ?",
            (json.dumps([{"tipo": "stock", "cantidad": 1}]), item_id),
        )

    with pytest.raises(ExternalStoreError, match="Could not read"):
        sqlite_store.get(item_id)
