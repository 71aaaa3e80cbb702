"""Pydantic models describing context tags as stored in the ``contexts`` column."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Final, cast

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from sparetrack.domain.model import ContextAssignment, ContextKind, NamedContext, utcnow
from sparetrack.domain.reconciliation.contexts import coerce_contexts

if TYPE_CHECKING:
    from collections.abc import Sequence

log = logging.getLogger(__name__)

# Keys written by the Spanish-language releases of the catalog.
_LEGACY_KEYS: Final[dict[str, str]] = {
    "nombre": "name",
    "tipo": "kind",
    "cantidad": "quantity",
    "fecha": "assigned_at",
}


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


class StoredBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class StoredContextTag(StoredBaseModel):
    """One structured tag; bare-name tags never reach this model."""

    name: str
    kind: ContextKind = ContextKind.REQUEST
    quantity: int = 0
    assigned_at: datetime | None = None

    @model_validator(mode="before")
    @classmethod
    def _rename_legacy_keys(cls, value: object) -> object:
        if isinstance(value, Mapping):
            data: dict[str, object] = dict(cast(Mapping[str, object], value))
            for legacy, current in _LEGACY_KEYS.items():
                if legacy in data and current not in data:
                    data[current] = data.pop(legacy)
            return data
        return value

    _normalize_name = field_validator("name", mode="before")(_blank_to_none)

    @field_validator("kind", mode="before")
    @classmethod
    def _parse_kind(cls, value: object) -> object:
        if isinstance(value, str):
            return ContextKind(value)
        return value

    @field_validator("quantity", mode="before")
    @classmethod
    def _parse_quantity(cls, value: object) -> int:
        if isinstance(value, bool | int):
            return max(int(value), 0)
        if isinstance(value, float | str):
            try:
                return max(int(float(value)), 0)
            except (ValueError, OverflowError):
                log.debug("Reading unparseable context quantity %r as 0", value)
        return 0

    @field_validator("assigned_at", mode="before")
    @classmethod
    def _parse_timestamp(cls, value: object) -> object:
        value = _blank_to_none(value)
        if isinstance(value, str):
            try:
                return datetime.fromisoformat(value)
            except ValueError:
                log.debug("Ignoring unparseable context timestamp %r", value)
                return None
        return value

    def to_assignment(self, *, now: datetime) -> ContextAssignment:
        assigned_at = self.assigned_at or now
        if assigned_at.tzinfo is None:
            assigned_at = assigned_at.replace(tzinfo=UTC)
        return ContextAssignment(
            name=self.name,
            kind=self.kind,
            quantity=self.quantity,
            assigned_at=assigned_at,
        )


def parse_stored_tags(
    raw_tags: Sequence[object],
    *,
    now: datetime | None = None,
) -> tuple[ContextAssignment, ...]:
    """Validate decoded ``contexts`` JSON into assignments.

    Strings are legacy bare names. Anything else must validate as
    :class:`StoredContextTag`, otherwise pydantic's ``ValidationError`` is
    raised. Duplicate ``(name, kind)`` pairs collapse, last one wins.
    """

    stamp = now or utcnow()
    tags: list[NamedContext | ContextAssignment] = []
    for raw in raw_tags:
        if isinstance(raw, str):
            tags.append(NamedContext(raw))
        else:
            tags.append(StoredContextTag.model_validate(raw).to_assignment(now=stamp))
    return coerce_contexts(tags, now=stamp)
