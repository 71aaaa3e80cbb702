"""SQLAlchemy table metadata for the inventory document store."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import (
    Column,
    DateTime,
    Dialect,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    TypeDecorator,
)

from sparetrack.domain.model import ZERO, ContextAssignment

from .schema import parse_stored_tags

if TYPE_CHECKING:
    from collections.abc import Sequence

log = logging.getLogger(__name__)


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


class DecimalText(TypeDecorator[Decimal]):
    """Exact decimal stored as text; SQLite has no native decimal type."""

    impl = String(64)
    cache_ok = True

    def process_bind_param(self, value: Decimal | None, dialect: Dialect) -> str | None:
        _ = dialect
        if value is None:
            return None
        return str(Decimal(value))

    def process_result_value(self, value: str | None, dialect: Dialect) -> Decimal:
        _ = dialect
        if value is None:
            return ZERO
        try:
            return Decimal(value)
        except InvalidOperation:
            log.warning("Unreadable decimal %r in store, using 0", value)
            return ZERO


class ContextListType(TypeDecorator[tuple[ContextAssignment, ...]]):
    """JSON list of context tags.

    Reading accepts the legacy shapes (bare names, Spanish keys) and always
    yields structured assignments. Tags that fail validation raise
    ``pydantic.ValidationError``.
    """

    impl = Text
    cache_ok = True

    def process_bind_param(
        self,
        value: Sequence[ContextAssignment] | None,
        dialect: Dialect,
    ) -> str:
        _ = dialect
        return json.dumps([context_to_json(assignment) for assignment in value or ()])

    def process_result_value(
        self,
        value: str | None,
        dialect: Dialect,
    ) -> tuple[ContextAssignment, ...]:
        _ = dialect
        if not value:
            return ()
        loaded = json.loads(value)
        if not isinstance(loaded, list):
            return ()
        return parse_stored_tags(cast(list[Any], loaded))


def context_to_json(assignment: ContextAssignment) -> dict[str, object]:
    return {
        "name": assignment.name,
        "kind": assignment.kind.value,
        "quantity": assignment.quantity,
        "assigned_at": assignment.assigned_at.isoformat(),
    }


def to_json_value(value: object) -> object:
    """JSON-friendly form of a domain field value (for the history table)."""

    match value:
        case ContextAssignment():
            return context_to_json(value)
        case tuple() | list():
            return [to_json_value(element) for element in cast("Sequence[object]", value)]
        case Decimal():
            return str(value)
        case datetime():
            return value.isoformat()
        case Enum():
            return value.value
        case _:
            return value


metadata = MetaData(
    naming_convention={
        "ix": "ix_%(column_0_label)s",
        "uq": "uq_%(table_name)s_%(column_0_label)s",
        "ck": "ck_%(table_name)s_%(constraint_name)s",
        "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
        "pk": "pk_%(table_name)s",
    }
)

inventory_item_table = Table(
    "inventory_item",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("primary_code", String, nullable=False, index=True),
    Column("secondary_code", String, nullable=False, index=True),
    Column("description", String, nullable=False, default=""),
    Column("unit_value", DecimalText, nullable=False, default=ZERO),
    Column("legacy_requested_qty", Integer, nullable=False, default=0),
    Column("legacy_stock_qty", Integer, nullable=False, default=0),
    Column("contexts", ContextListType, nullable=False),
    Column("derived_total", DecimalText, nullable=False, default=ZERO),
    Column("created_at", UTCDateTime, nullable=True),
    Column("updated_at", UTCDateTime, nullable=True),
)

item_history_table = Table(
    "item_history",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("item_id", String(32), nullable=False, index=True),
    Column("field", String, nullable=False),
    Column("before", Text, nullable=True),
    Column("after", Text, nullable=True),
    Column("origin", String(16), nullable=False),
    Column("recorded_at", UTCDateTime, nullable=False),
)

ITEM_COLUMNS = frozenset(column.name for column in inventory_item_table.columns) - {"id"}
