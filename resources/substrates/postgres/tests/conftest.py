"""Shared fixtures for data client tests backed by in-memory SQLite."""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from sqlalchemy import Engine, create_engine
from sqlalchemy.pool import StaticPool

from resources.substrates.postgres.runtime import DataRuntime


@pytest.fixture
def engine() -> Iterator[Engine]:
    """Single-connection in-memory SQLite engine shared across sessions."""
    db_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    try:
        yield db_engine
    finally:
        db_engine.dispose()


@pytest.fixture
def runtime(engine: Engine) -> DataRuntime:
    """Audited runtime with all tables created."""
    data_runtime = DataRuntime.from_engine(engine)
    data_runtime.create_schema()
    return data_runtime
