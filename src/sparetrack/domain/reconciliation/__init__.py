"""Multi-context inventory reconciliation.

Stages, each usable on its own:
1) normalize part codes into match keys (``keys``)
2) index the current catalog snapshot by primary and secondary code (``index``)
3) plan create/update operations for incoming rows (``plan``)
4) commit the operations in bounded, sequential chunks (``execute``)

``engine.InventoryReconciler`` runs the stages for one operator action.
"""

from __future__ import annotations

from .contexts import (
    ContextSummary,
    coerce_context,
    coerce_contexts,
    contexts_in_use,
    migrate_legacy_quantities,
    remove_context,
    rename_context,
    summarize_context,
    upsert_context,
)
from .engine import ImportResult, InventoryReconciler
from .execute import DEFAULT_CHUNK_SIZE, BatchExecutionResult, BatchExecutor, chunked
from .index import CatalogIndex, CatalogMatch, MatchKind, build_index
from .keys import DEFAULT_PLACEHOLDER, is_placeholder, match_key, normalize_code
from .plan import (
    ContextTarget,
    CreateItem,
    FieldChange,
    ImportPlan,
    ItemOperation,
    OperationKind,
    UpdateItem,
    plan_import,
    update_operation,
)
from .rows import row_from_record, rows_from_records
from .totals import derive_total, with_derived_total

__all__ = [
    "DEFAULT_CHUNK_SIZE",
    "DEFAULT_PLACEHOLDER",
    "BatchExecutionResult",
    "BatchExecutor",
    "CatalogIndex",
    "CatalogMatch",
    "ContextSummary",
    "ContextTarget",
    "CreateItem",
    "FieldChange",
    "ImportPlan",
    "ImportResult",
    "InventoryReconciler",
    "ItemOperation",
    "MatchKind",
    "OperationKind",
    "UpdateItem",
    "build_index",
    "chunked",
    "coerce_context",
    "coerce_contexts",
    "contexts_in_use",
    "derive_total",
    "is_placeholder",
    "match_key",
    "migrate_legacy_quantities",
    "normalize_code",
    "plan_import",
    "remove_context",
    "rename_context",
    "row_from_record",
    "rows_from_records",
    "summarize_context",
    "update_operation",
    "upsert_context",
    "with_derived_total",
]
