"""SQLAlchemy adapters: the inventory document store and its change history."""

from __future__ import annotations

from sparetrack.adapters.sqlalchemy.engine import (
    StartupError,
    configured_engine,
    is_started,
    shutdown,
    startup,
)
from sparetrack.adapters.sqlalchemy.history import HistoryEntry, SqlAlchemyHistoryRecorder
from sparetrack.adapters.sqlalchemy.store import SqlAlchemyDocumentStore, SqlAlchemyWriteBatch
from sparetrack.adapters.sqlalchemy.tables import (
    inventory_item_table,
    item_history_table,
    metadata,
)

__all__ = [
    "HistoryEntry",
    "SqlAlchemyDocumentStore",
    "SqlAlchemyHistoryRecorder",
    "SqlAlchemyWriteBatch",
    "StartupError",
    "configured_engine",
    "inventory_item_table",
    "is_started",
    "item_history_table",
    "metadata",
    "shutdown",
    "startup",
]
