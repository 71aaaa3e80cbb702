"""Ports for the document store holding the inventory collection."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

    from sparetrack.domain.model import InventoryItem

type ItemPatch = Mapping[str, object]
type CollectionListener = Callable[[Sequence[InventoryItem]], None]
type Unsubscribe = Callable[[], None]


@runtime_checkable
class WriteBatch(Protocol):
    """Atomic group of writes; nothing is applied until ``commit`` succeeds."""

    def create(self, item: InventoryItem) -> str: ...

    def update(self, item_id: str, patch: ItemPatch) -> None: ...

    def __len__(self) -> int: ...

    def commit(self) -> None: ...


@runtime_checkable
class DocumentStore(Protocol):
    """Persistence contract for the inventory collection.

    ``max_batch_operations`` is the hard per-batch ceiling; a batch holding more
    operations is rejected on commit. Listeners receive the full collection once
    on subscription and again after every committed write.
    """

    @property
    def max_batch_operations(self) -> int: ...

    def add_document(self, item: InventoryItem) -> str: ...

    def update_document(self, item_id: str, patch: ItemPatch) -> None: ...

    def batch(self) -> WriteBatch: ...

    def list_items(self) -> Sequence[InventoryItem]: ...

    def subscribe(self, listener: CollectionListener) -> Unsubscribe: ...
