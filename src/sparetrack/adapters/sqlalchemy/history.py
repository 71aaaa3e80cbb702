"""Audit trail of committed item mutations."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy import insert, select
from sqlalchemy.exc import SQLAlchemyError

from sparetrack.domain.errors import ExternalStoreError
from sparetrack.domain.model import OriginSource, utcnow

from .tables import item_history_table, to_json_value

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from datetime import datetime

    from sqlalchemy.engine import Engine

    from sparetrack.domain.reconciliation.plan import FieldChange

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True, kw_only=True)
class HistoryEntry:
    item_id: str
    field: str
    before: object
    after: object
    origin: OriginSource
    recorded_at: datetime


class SqlAlchemyHistoryRecorder:
    """Persist field-level changes to ``item_history``.

    Changes replayed from a backup restore are not recorded again.
    """

    def __init__(self, engine: Engine, *, clock: Callable[[], datetime] = utcnow) -> None:
        self._engine = engine
        self._clock = clock

    def record(
        self,
        item_id: str,
        changes: Sequence[FieldChange],
        *,
        origin: OriginSource,
    ) -> None:
        if origin is OriginSource.RESTORE:
            log.debug("Skipping history for %s: restored change", item_id)
            return
        if not changes:
            return
        recorded_at = self._clock()
        rows = [
            {
                "item_id": item_id,
                "field": change.field,
                "before": _dump(change.before),
                "after": _dump(change.after),
                "origin": origin.value,
                "recorded_at": recorded_at,
            }
            for change in changes
        ]
        try:
            with self._engine.begin() as connection:
                connection.execute(insert(item_history_table), rows)
        except SQLAlchemyError as exc:
            raise ExternalStoreError(f"Could not record history for {item_id}: {exc}") from exc

    def entries_for(self, item_id: str) -> list[HistoryEntry]:
        """Recorded changes of one item, newest first."""

        table = item_history_table
        statement = (
            select(table)
            .where(table.c.item_id == item_id)
            .order_by(table.c.recorded_at.desc(), table.c.id.desc())
        )
        try:
            with self._engine.connect() as connection:
                rows = connection.execute(statement).mappings().all()
        except SQLAlchemyError as exc:
            raise ExternalStoreError(f"Could not read history of item {item_id}: {exc}") from exc
        return [
            HistoryEntry(
                item_id=row["item_id"],
                field=row["field"],
                before=_load(row["before"]),
                after=_load(row["after"]),
                origin=OriginSource(row["origin"]),
                recorded_at=row["recorded_at"],
            )
            for row in rows
        ]


def _dump(value: object) -> str | None:
    if value is None:
        return None
    return json.dumps(to_json_value(value))


def _load(value: str | None) -> object:
    if value is None:
        return None
    return json.loads(value)
