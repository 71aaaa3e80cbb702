"""Lookup maps from normalized codes to catalog items."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from .keys import DEFAULT_PLACEHOLDER, match_key

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sparetrack.domain.model import InventoryItem

log = logging.getLogger(__name__)


class MatchKind(StrEnum):
    PRIMARY = "primary"
    SECONDARY = "secondary"
    NONE = "none"


@dataclass(slots=True, kw_only=True)
class CatalogMatch:
    """Result of looking up one pair of codes.

    ``shadowed`` is set when the secondary code points at a different item than
    the primary match; primary precedence discards it.
    """

    item: InventoryItem | None
    kind: MatchKind
    shadowed: InventoryItem | None = None


@dataclass(slots=True)
class CatalogIndex:
    """Primary-code and secondary-code lookup maps for one planning pass."""

    by_primary: dict[str, InventoryItem] = field(default_factory=dict["str", "InventoryItem"])
    by_secondary: dict[str, InventoryItem] = field(default_factory=dict["str", "InventoryItem"])
    placeholder: str = DEFAULT_PLACEHOLDER

    def register(self, item: InventoryItem) -> None:
        primary = match_key(item.primary_code, self.placeholder)
        if primary is not None:
            _put(self.by_primary, primary, item, "primary")
        secondary = match_key(item.secondary_code, self.placeholder)
        if secondary is not None:
            _put(self.by_secondary, secondary, item, "secondary")

    def lookup(self, primary_code: str | None, secondary_code: str | None) -> CatalogMatch:
        primary = match_key(primary_code, self.placeholder)
        secondary = match_key(secondary_code, self.placeholder)
        by_secondary = self.by_secondary.get(secondary) if secondary is not None else None

        by_primary = self.by_primary.get(primary) if primary is not None else None
        if by_primary is not None:
            shadowed = by_secondary if by_secondary is not by_primary else None
            return CatalogMatch(item=by_primary, kind=MatchKind.PRIMARY, shadowed=shadowed)
        if by_secondary is not None:
            return CatalogMatch(item=by_secondary, kind=MatchKind.SECONDARY)
        return CatalogMatch(item=None, kind=MatchKind.NONE)


def build_index(
    items: Iterable[InventoryItem],
    placeholder: str = DEFAULT_PLACEHOLDER,
) -> CatalogIndex:
    """Index ``items`` by their non-placeholder codes; last write wins on duplicates."""

    index = CatalogIndex(placeholder=placeholder)
    for item in items:
        index.register(item)
    return index


def _put(
    mapping: dict[str, InventoryItem],
    key: str,
    item: InventoryItem,
    label: str,
) -> None:
    previous = mapping.get(key)
    if previous is not None and previous is not item:
        log.debug(
            "Duplicate %s code %s: item %s replaces %s in index",
            label,
            key,
            item.id,
            previous.id,
        )
    mapping[key] = item
