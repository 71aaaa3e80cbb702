from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine  # noqa: TC002

from sparetrack.adapters.sqlalchemy import (
    SqlAlchemyDocumentStore,
    SqlAlchemyHistoryRecorder,
    shutdown,
    startup,
)
from sparetrack.adapters.sqlalchemy.migrations import upgrade_head

os.environ.setdefault("DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Iterator


@pytest.fixture
def sqlite_engine() -> Iterator[Engine]:
    engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
    upgrade_head(engine=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def started_engine(sqlite_engine: Engine) -> Iterator[Engine]:
    startup(engine=sqlite_engine, force=True)
    try:
        yield sqlite_engine
    finally:
        shutdown()


@pytest.fixture
def sqlite_store(sqlite_engine: Engine) -> SqlAlchemyDocumentStore:
    return SqlAlchemyDocumentStore(sqlite_engine)


@pytest.fixture
def sqlite_history(sqlite_engine: Engine) -> SqlAlchemyHistoryRecorder:
    return SqlAlchemyHistoryRecorder(sqlite_engine)
