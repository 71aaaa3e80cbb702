"""Read CSV and Excel exports into import rows.

Cells are read as text (``dtype=str``, ``keep_default_na=False``) so part
codes keep their leading zeros and number parsing stays with
:mod:`sparetrack.domain.reconciliation.rows`.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Final

import pandas as pd

from sparetrack.domain.reconciliation.rows import rows_from_records

if TYPE_CHECKING:
    from sparetrack.domain.model import ImportRow

log = logging.getLogger(__name__)

CSV_SUFFIXES: Final[frozenset[str]] = frozenset({".csv", ".txt"})
EXCEL_SUFFIXES: Final[frozenset[str]] = frozenset({".xlsx", ".xlsm", ".xls"})
CSV_ENCODINGS: Final[tuple[str, ...]] = ("utf-8-sig", "cp1252", "latin-1")


class SpreadsheetError(ValueError):
    """The file cannot be read as a spreadsheet."""


def read_table(path: str | Path) -> pd.DataFrame:
    """Load the first sheet (or the CSV body) with the first row as header."""

    path = Path(path)
    if not path.exists():
        raise SpreadsheetError(f"File not found: {path}")
    suffix = path.suffix.lower()
    if suffix in EXCEL_SUFFIXES:
        frame = pd.read_excel(path, dtype=str, keep_default_na=False)
    elif suffix in CSV_SUFFIXES:
        frame = _read_csv(path)
    else:
        raise SpreadsheetError(f"Unsupported file type: {path.name}")
    frame.columns = [str(column).replace("\ufeff", "").strip() for column in frame.columns]
    log.debug("Read %s rows from %s", len(frame), path)
    return frame


def _read_csv(path: Path) -> pd.DataFrame:
    if path.stat().st_size == 0:
        raise SpreadsheetError(f"File is empty: {path}")
    for encoding in CSV_ENCODINGS:
        try:
            # sep=None sniffs ',' and ';' exports alike
            return pd.read_csv(
                path,
                dtype=str,
                keep_default_na=False,
                encoding=encoding,
                sep=None,
                engine="python",
            )
        except UnicodeDecodeError:
            log.debug("Decoding %s as %s failed", path, encoding)
    raise SpreadsheetError(f"Could not decode {path.name}")


def read_records(path: str | Path) -> list[dict[str, object]]:
    frame = read_table(path)
    return [
        {str(key): value for key, value in record.items()}
        for record in frame.to_dict(orient="records")
    ]


def read_import_rows(path: str | Path, *, with_quantity: bool = True) -> list[ImportRow]:
    """Rows of ``path`` ready for reconciliation; blank rows are dropped."""

    return rows_from_records(read_records(path), with_quantity=with_quantity)
