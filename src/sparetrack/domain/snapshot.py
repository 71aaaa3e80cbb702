"""Caller-owned view of the authoritative inventory collection."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sparetrack.domain.model import InventoryItem
    from sparetrack.domain.ports import DocumentStore, Unsubscribe

log = logging.getLogger(__name__)


@dataclass(slots=True)
class CatalogSnapshot:
    """Latest item collection pushed by the store's live subscription.

    The reconciler reads it once per operation to build a fresh index; it is
    never patched locally, only replaced by ``refresh``.
    """

    _items: tuple[InventoryItem, ...] = ()
    version: int = 0

    @property
    def items(self) -> tuple[InventoryItem, ...]:
        return self._items

    def refresh(self, items: Sequence[InventoryItem]) -> None:
        self._items = tuple(items)
        self.version += 1
        log.debug("Catalog snapshot refreshed: version=%s, items=%s", self.version, len(items))

    def attach(self, store: DocumentStore) -> Unsubscribe:
        """Subscribe to ``store`` so every committed write refreshes the snapshot."""

        return store.subscribe(self.refresh)
