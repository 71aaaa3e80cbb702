"""Document store over a single SQL table.

Each write batch commits in one transaction. Subscribers receive the full
collection when they subscribe and again after every successful commit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Final
from uuid import uuid4

from pydantic import ValidationError
from sqlalchemy import insert, select, update
from sqlalchemy.exc import SQLAlchemyError

from sparetrack.domain.errors import ExternalStoreError
from sparetrack.domain.model import InventoryItem

from .tables import ITEM_COLUMNS, inventory_item_table

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from sqlalchemy.engine import Connection, Engine

    from sparetrack.domain.ports import CollectionListener, ItemPatch, Unsubscribe

log = logging.getLogger(__name__)

DEFAULT_MAX_BATCH_OPERATIONS: Final[int] = 500


def _new_id() -> str:
    return uuid4().hex


@dataclass(frozen=True, slots=True)
class _Insert:
    item_id: str
    values: dict[str, object]


@dataclass(frozen=True, slots=True)
class _Update:
    item_id: str
    values: dict[str, object]


type _Write = _Insert | _Update


class SqlAlchemyWriteBatch:
    """Buffered writes applied atomically on ``commit``."""

    def __init__(self, store: SqlAlchemyDocumentStore) -> None:
        self._store = store
        self._writes: list[_Write] = []
        self._committed = False

    def create(self, item: InventoryItem) -> str:
        item_id = self._store.new_id()
        values = {name: getattr(item, name) for name in ITEM_COLUMNS}
        self._writes.append(_Insert(item_id, values))
        return item_id

    def update(self, item_id: str, patch: ItemPatch) -> None:
        unknown = set(patch) - ITEM_COLUMNS
        if unknown:
            raise ValueError(f"Unknown item fields in patch: {sorted(unknown)}")
        self._writes.append(_Update(item_id, dict(patch)))

    def __len__(self) -> int:
        return len(self._writes)

    def commit(self) -> None:
        if self._committed:
            raise ExternalStoreError("Write batch was already committed")
        ceiling = self._store.max_batch_operations
        if len(self._writes) > ceiling:
            raise ExternalStoreError(
                f"Write batch holds {len(self._writes)} operations; the store accepts {ceiling}"
            )
        self._store.apply(self._writes)
        self._committed = True
        self._store.notify_subscribers()


class SqlAlchemyDocumentStore:
    """Inventory collection persisted in ``inventory_item``."""

    def __init__(
        self,
        engine: Engine,
        *,
        max_batch_operations: int = DEFAULT_MAX_BATCH_OPERATIONS,
        id_factory: Callable[[], str] = _new_id,
    ) -> None:
        self._engine = engine
        self._max_batch_operations = max_batch_operations
        self._id_factory = id_factory
        self._listeners: list[CollectionListener] = []

    @property
    def max_batch_operations(self) -> int:
        return self._max_batch_operations

    def new_id(self) -> str:
        return self._id_factory()

    def add_document(self, item: InventoryItem) -> str:
        batch = self.batch()
        item_id = batch.create(item)
        batch.commit()
        return item_id

    def update_document(self, item_id: str, patch: ItemPatch) -> None:
        batch = self.batch()
        batch.update(item_id, patch)
        batch.commit()

    def batch(self) -> SqlAlchemyWriteBatch:
        return SqlAlchemyWriteBatch(self)

    def list_items(self) -> list[InventoryItem]:
        statement = select(inventory_item_table).order_by(
            inventory_item_table.c.primary_code, inventory_item_table.c.id
        )
        try:
            with self._engine.connect() as connection:
                rows = connection.execute(statement).mappings().all()
        except (SQLAlchemyError, ValidationError) as exc:
            raise ExternalStoreError(f"Could not read inventory items: {exc}") from exc
        return [InventoryItem(**dict(row)) for row in rows]

    def get(self, item_id: str) -> InventoryItem | None:
        statement = select(inventory_item_table).where(inventory_item_table.c.id == item_id)
        try:
            with self._engine.connect() as connection:
                row = connection.execute(statement).mappings().one_or_none()
        except (SQLAlchemyError, ValidationError) as exc:
            raise ExternalStoreError(f"Could not read inventory item {item_id}: {exc}") from exc
        return None if row is None else InventoryItem(**dict(row))

    def subscribe(self, listener: CollectionListener) -> Unsubscribe:
        self._listeners.append(listener)
        listener(self.list_items())

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def apply(self, writes: Sequence[_Write]) -> None:
        """Apply ``writes`` in one transaction."""

        try:
            with self._engine.begin() as connection:
                for write in writes:
                    self._apply_write(connection, write)
        except SQLAlchemyError as exc:
            raise ExternalStoreError(f"Write batch rejected by the database: {exc}") from exc
        log.debug("Committed write batch with %s operations", len(writes))

    def _apply_write(self, connection: Connection, write: _Write) -> None:
        match write:
            case _Insert(item_id=item_id, values=values):
                connection.execute(insert(inventory_item_table).values(id=item_id, **values))
            case _Update(item_id=item_id, values=values):
                if not values:
                    return
                result = connection.execute(
                    update(inventory_item_table)
                    .where(inventory_item_table.c.id == item_id)
                    .values(**values)
                )
                if result.rowcount == 0:
                    raise ExternalStoreError(f"No inventory item with id {item_id}")

    def notify_subscribers(self) -> None:
        """Push the collection to every subscriber after a commit.

        The commit is already durable here. Store errors raised while
        re-reading or inside a listener are logged, and subscribers keep their
        previous view until the next commit.
        """

        if not self._listeners:
            return
        try:
            items = self.list_items()
        except ExternalStoreError:
            log.exception("Write batch committed but subscribers could not be refreshed")
            return
        for listener in list(self._listeners):
            try:
                listener(items)
            except ExternalStoreError:
                log.exception("Subscriber failed to take the committed collection")
