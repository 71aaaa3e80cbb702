"""Log level resolution and root logger setup for the command line."""

from __future__ import annotations

import logging
import os
from typing import Final

from .errors import ConfigurationError

LOG_LEVEL_ENV: Final[str] = "SPARETRACK_LOG_LEVEL"
LOG_FORMAT: Final[str] = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# Held at WARNING unless DEBUG output was asked for.
NOISY_LOGGERS: Final[tuple[str, ...]] = ("alembic", "sqlalchemy.engine")


def resolve_log_level(value: str | int | None = None) -> int:
    """Turn a level name or number into a ``logging`` level.

    ``None`` falls back to ``SPARETRACK_LOG_LEVEL`` and then to INFO.
    """

    if value is None:
        value = os.getenv(LOG_LEVEL_ENV, "").strip() or logging.INFO
    if isinstance(value, int):
        return value
    name = value.strip().upper()
    if name.isdigit():
        return int(name)
    level = logging.getLevelNamesMapping().get(name)
    if level is None:
        raise ConfigurationError(f"Unknown log level {value!r}")
    return level


def configure_logging(*, level: str | int | None = None, force: bool = False) -> int:
    """Set up the root logger for CLI output and return the level in effect."""

    resolved = resolve_log_level(level)
    logging.basicConfig(level=resolved, format=LOG_FORMAT, datefmt="%H:%M:%S", force=force)
    quiet = resolved if resolved <= logging.DEBUG else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(quiet)
    return resolved
