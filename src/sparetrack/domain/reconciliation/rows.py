"""Map loosely formatted spreadsheet records onto :class:`ImportRow`.

Column headers vary between exports, so each field accepts several aliases.
Malformed values never fail the import: unreadable numbers become zero and
negative quantities are clipped.
"""

from __future__ import annotations

import math
import re
import unicodedata
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Final

from sparetrack.domain.model import ZERO, ImportRow

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

PRIMARY_CODE_HEADERS: Final[tuple[str, ...]] = ("codigo sap", "sap", "material", "primary code")
SECONDARY_CODE_HEADERS: Final[tuple[str, ...]] = (
    "codigo baader",
    "codigo proveedor",
    "n° parte",
    "no. parte",
    "part number",
    "secondary code",
)
DESCRIPTION_HEADERS: Final[tuple[str, ...]] = ("texto breve", "descripcion", "description")
QUANTITY_HEADERS: Final[tuple[str, ...]] = (
    "cantidad",
    "cant.",
    "cant",
    "qty",
    "quantity",
    "cantidad solicitada",
    "stock",
)
UNIT_VALUE_HEADERS: Final[tuple[str, ...]] = (
    "valor unitario",
    "valor unit.",
    "precio",
    "usd",
    "unit value",
)

_WHITESPACE = re.compile(r"\s+")


def normalize_header(header: object) -> str:
    """Fold a header for alias lookup: strip accents, case and extra blanks."""

    text = unicodedata.normalize("NFKD", str(header))
    text = "".join(char for char in text if not unicodedata.combining(char))
    return _WHITESPACE.sub(" ", text.replace("\ufeff", "")).strip().casefold()


def to_text(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and math.isnan(value):
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, str | int | float | Decimal):
        return str(value).strip()
    return ""


def to_decimal(value: object) -> Decimal:
    """Parse plain or locale-formatted numbers (``1.234,50``); zero on failure."""

    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        return value if value.is_finite() else ZERO
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        return Decimal(str(value)) if math.isfinite(value) else ZERO
    if not isinstance(value, str):
        return ZERO
    text = value.strip().replace(" ", "").lstrip("$")
    if not text:
        return ZERO
    if "," in text and "." in text:
        if text.rfind(",") > text.rfind("."):
            text = text.replace(".", "").replace(",", ".")
        else:
            text = text.replace(",", "")
    elif "," in text:
        text = text.replace(",", ".")
    elif text.count(".") > 1:
        text = text.replace(".", "")
    try:
        number = Decimal(text)
    except InvalidOperation:
        return ZERO
    return number if number.is_finite() else ZERO


def to_quantity(value: object) -> int:
    """Whole, non-negative quantity; fractions are truncated."""

    return max(int(to_decimal(value)), 0)


def row_from_record(record: Mapping[str, object], *, with_quantity: bool = True) -> ImportRow:
    """Build an :class:`ImportRow` from one spreadsheet record."""

    fields = {normalize_header(header): value for header, value in record.items()}
    primary = to_text(_first(fields, PRIMARY_CODE_HEADERS))
    secondary = to_text(_first(fields, SECONDARY_CODE_HEADERS))
    description = to_text(_first(fields, DESCRIPTION_HEADERS))
    unit_value = _first(fields, UNIT_VALUE_HEADERS)
    quantity = _first(fields, QUANTITY_HEADERS)
    return ImportRow(
        primary_code=primary or None,
        secondary_code=secondary or None,
        description=description or None,
        unit_value=max(to_decimal(unit_value), ZERO) if unit_value is not None else None,
        quantity=to_quantity(quantity) if with_quantity else None,
    )


def rows_from_records(
    records: Iterable[Mapping[str, object]],
    *,
    with_quantity: bool = True,
) -> list[ImportRow]:
    """Convert records, dropping rows that carry no code and no description."""

    rows: list[ImportRow] = []
    for record in records:
        row = row_from_record(record, with_quantity=with_quantity)
        if row.primary_code is None and row.secondary_code is None and row.description is None:
            continue
        rows.append(row)
    return rows


def _first(fields: Mapping[str, object], aliases: tuple[str, ...]) -> object | None:
    for alias in aliases:
        value = fields.get(alias)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None
