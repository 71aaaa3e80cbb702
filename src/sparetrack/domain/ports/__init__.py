"""Ports implemented by adapters."""

from __future__ import annotations

from .history import HistoryRecorder
from .store import CollectionListener, DocumentStore, ItemPatch, Unsubscribe, WriteBatch

__all__ = [
    "CollectionListener",
    "DocumentStore",
    "HistoryRecorder",
    "ItemPatch",
    "Unsubscribe",
    "WriteBatch",
]
