"""Errors surfaced by the reconciliation core to its callers."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sparetrack.domain.reconciliation.engine import ImportResult
    from sparetrack.domain.reconciliation.plan import ItemOperation


class ExternalStoreError(RuntimeError):
    """Raised when the document store rejects a write or cannot be reached."""


class PartialBatchError(ExternalStoreError):
    """A chunk commit failed after earlier chunks were durably applied.

    ``committed`` lists the operations already applied; ``not_attempted`` holds
    every operation after them. A chunk whose follow-up step failed counts as
    committed.
    """

    def __init__(
        self,
        message: str,
        *,
        failed_chunk: int,
        total_chunks: int,
        committed: tuple[ItemOperation, ...],
        not_attempted: tuple[ItemOperation, ...],
    ) -> None:
        super().__init__(message)
        self.failed_chunk = failed_chunk
        self.total_chunks = total_chunks
        self.committed = committed
        self.not_attempted = not_attempted


class PartialImportError(ExternalStoreError):
    """An import stopped at a chunk boundary; ``result`` counts what was applied."""

    def __init__(self, message: str, *, result: ImportResult) -> None:
        super().__init__(message)
        self.result = result
