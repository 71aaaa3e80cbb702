"""Where the inventory catalog lives."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

DATA_DIR_ENV: Final[str] = "SPARETRACK_DATA_DIR"
DATABASE_URI_ENV: Final[str] = "DATABASE_URI"
CATALOG_FILENAME: Final[str] = "sparetrack.db"


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    """Connection target; ``catalog_path`` is set for the default SQLite file."""

    uri: str
    catalog_path: Path | None = None


def default_data_dir() -> Path:
    """Per-user data directory: LOCALAPPDATA on Windows, XDG_DATA_HOME elsewhere."""

    if os.name == "nt":
        root = os.getenv("LOCALAPPDATA") or str(Path.home() / "AppData" / "Local")
    else:
        root = os.getenv("XDG_DATA_HOME") or str(Path.home() / ".local" / "share")
    return Path(root) / "sparetrack"


def get_data_dir() -> Path:
    configured = os.getenv(DATA_DIR_ENV)
    data_dir = Path(configured) if configured else default_data_dir()
    return data_dir.expanduser().resolve()


def get_database_config() -> DatabaseConfig:
    """``DATABASE_URI`` wins; otherwise a SQLite catalog in the data directory.

    The data directory is created on demand for the SQLite default.
    """

    uri = os.getenv(DATABASE_URI_ENV)
    if uri:
        return DatabaseConfig(uri=uri)
    data_dir = get_data_dir()
    data_dir.mkdir(parents=True, exist_ok=True)
    catalog_path = data_dir / CATALOG_FILENAME
    return DatabaseConfig(uri=f"sqlite+pysqlite:///{catalog_path}", catalog_path=catalog_path)


def get_database_uri() -> str:
    return get_database_config().uri
