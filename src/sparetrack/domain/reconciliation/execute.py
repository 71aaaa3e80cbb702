"""Write planned operations to the document store in bounded chunks.

Each chunk is committed as one atomic store batch. Chunks run strictly in
order and are not wrapped in an outer transaction: when chunk *k* fails,
chunks before it stay applied and chunks after it are never sent.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Final

from sparetrack.domain.errors import ExternalStoreError, PartialBatchError

from .plan import CreateItem, ItemOperation, UpdateItem

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from sparetrack.domain.ports import DocumentStore

log = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE: Final[int] = 400

type ChunkCallback = Callable[[int, Sequence[ItemOperation], dict[int, str]], None]


@dataclass(slots=True)
class BatchExecutionResult:
    """Operations durably applied by one ``execute`` call.

    ``created_ids`` maps the position of each create within ``committed`` to the
    id the store assigned.
    """

    committed: list[ItemOperation] = field(default_factory=list["ItemOperation"])
    created_ids: dict[int, str] = field(default_factory=dict["int", "str"])
    chunks: int = 0


def chunked(operations: Sequence[ItemOperation], size: int) -> list[Sequence[ItemOperation]]:
    if size <= 0:
        raise ValueError("Chunk size must be positive")
    return [operations[start : start + size] for start in range(0, len(operations), size)]


@dataclass(slots=True)
class BatchExecutor:
    """Commit operations chunk by chunk against ``store``."""

    store: DocumentStore
    chunk_size: int = DEFAULT_CHUNK_SIZE
    on_chunk_committed: ChunkCallback | None = None

    def __post_init__(self) -> None:
        if self.chunk_size <= 0:
            raise ValueError("Chunk size must be positive")
        ceiling = self.store.max_batch_operations
        if self.chunk_size >= ceiling:
            raise ValueError(
                f"Chunk size {self.chunk_size} must stay below the store limit of {ceiling}"
            )

    def execute(self, operations: Sequence[ItemOperation]) -> BatchExecutionResult:
        """Commit ``operations`` in order, one store batch per chunk.

        Raises :class:`PartialBatchError` when a chunk commit fails, or when
        ``on_chunk_committed`` fails after its chunk was applied. Either way
        ``committed`` holds exactly what the store kept.
        """

        result = BatchExecutionResult()
        chunks = chunked(operations, self.chunk_size)
        for number, chunk in enumerate(chunks, start=1):
            try:
                created_ids = self._commit_chunk(chunk)
            except ExternalStoreError as exc:
                log.warning("Chunk %d/%d failed: %s", number, len(chunks), exc)
                raise self._partial(
                    f"Chunk {number} of {len(chunks)} failed",
                    number=number,
                    total=len(chunks),
                    result=result,
                    operations=operations,
                ) from exc
            offset = len(result.committed)
            result.committed.extend(chunk)
            result.created_ids.update(
                {offset + position: item_id for position, item_id in created_ids.items()}
            )
            result.chunks = number
            log.info("Committed chunk %d/%d (%d operations)", number, len(chunks), len(chunk))
            if self.on_chunk_committed is None:
                continue
            try:
                self.on_chunk_committed(number, chunk, created_ids)
            except ExternalStoreError as exc:
                log.warning(
                    "Chunk %d/%d applied but its follow-up failed: %s", number, len(chunks), exc
                )
                raise self._partial(
                    f"Chunk {number} of {len(chunks)} was applied but its follow-up failed",
                    number=number,
                    total=len(chunks),
                    result=result,
                    operations=operations,
                ) from exc
        return result

    @staticmethod
    def _partial(
        message: str,
        *,
        number: int,
        total: int,
        result: BatchExecutionResult,
        operations: Sequence[ItemOperation],
    ) -> PartialBatchError:
        return PartialBatchError(
            message,
            failed_chunk=number,
            total_chunks=total,
            committed=tuple(result.committed),
            not_attempted=tuple(operations[len(result.committed) :]),
        )

    def _commit_chunk(self, chunk: Sequence[ItemOperation]) -> dict[int, str]:
        batch = self.store.batch()
        created_ids: dict[int, str] = {}
        for position, operation in enumerate(chunk):
            match operation:
                case CreateItem(item=item):
                    created_ids[position] = batch.create(item)
                case UpdateItem(item_id=item_id):
                    batch.update(item_id, operation.patch)
        batch.commit()
        return created_ids
