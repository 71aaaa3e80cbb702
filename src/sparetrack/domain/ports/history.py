"""Port for the audit trail collaborator."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sparetrack.domain.model import OriginSource
    from sparetrack.domain.reconciliation.plan import FieldChange


@runtime_checkable
class HistoryRecorder(Protocol):
    """Observe before/after values of committed mutations."""

    def record(
        self,
        item_id: str,
        changes: Sequence[FieldChange],
        *,
        origin: OriginSource,
    ) -> None: ...
