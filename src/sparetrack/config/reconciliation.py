"""Reconciliation defaults: placeholder code and batch sizing."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Final

from .env import optional_env_int
from .errors import ConfigurationError

DEFAULT_PLACEHOLDER_CODE: Final[str] = "pendiente"
DEFAULT_CHUNK_SIZE: Final[int] = 400
DEFAULT_MAX_BATCH_OPERATIONS: Final[int] = 500


@dataclass(frozen=True, slots=True)
class ReconciliationConfig:
    """Settings for imports and batch writes.

    ``chunk_size`` must stay strictly below ``max_batch_operations``, the hard
    per-batch ceiling of the document store.
    """

    placeholder: str = DEFAULT_PLACEHOLDER_CODE
    chunk_size: int = DEFAULT_CHUNK_SIZE
    max_batch_operations: int = DEFAULT_MAX_BATCH_OPERATIONS

    def __post_init__(self) -> None:
        if not self.placeholder.strip():
            raise ConfigurationError("Placeholder code must not be blank")
        if self.chunk_size <= 0:
            raise ConfigurationError("Batch chunk size must be positive")
        if self.chunk_size >= self.max_batch_operations:
            raise ConfigurationError(
                f"Batch chunk size ({self.chunk_size}) must be below the store limit "
                f"({self.max_batch_operations})"
            )


def get_reconciliation_config() -> ReconciliationConfig:
    placeholder = os.getenv("SPARETRACK_PLACEHOLDER_CODE") or DEFAULT_PLACEHOLDER_CODE
    return ReconciliationConfig(
        placeholder=placeholder.strip(),
        chunk_size=optional_env_int("SPARETRACK_BATCH_CHUNK_SIZE", DEFAULT_CHUNK_SIZE),
        max_batch_operations=optional_env_int(
            "SPARETRACK_MAX_BATCH_OPERATIONS",
            DEFAULT_MAX_BATCH_OPERATIONS,
        ),
    )
