"""SQLAlchemy engine construction for the audited data client."""

from __future__ import annotations

from sqlalchemy import Engine, create_engine

from packages.taskosaur_shared.config import PostgresSettings


def create_postgres_engine(config: PostgresSettings) -> Engine:
    """Construct a pooled SQLAlchemy engine using psycopg."""
    return create_engine(
        config.url,
        pool_size=config.pool_size,
        max_overflow=config.max_overflow,
        pool_timeout=config.pool_timeout_seconds,
        pool_pre_ping=config.pool_pre_ping,
        echo=config.echo,
    )
