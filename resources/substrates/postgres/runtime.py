"""Runtime wiring for the audited data client."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import Engine
from sqlalchemy.orm import Session, sessionmaker

from packages.taskosaur_shared.config import TaskosaurSettings
from resources.substrates.postgres.audit import create_audit_middleware
from resources.substrates.postgres.client import DataClient
from resources.substrates.postgres.engine import create_postgres_engine
from resources.substrates.postgres.health import ping
from resources.substrates.postgres.schema import metadata
from resources.substrates.postgres.session import create_session_factory


@dataclass(frozen=True)
class DataRuntime:
    """Engine, session factory and audited client for one database."""

    engine: Engine
    session_factory: sessionmaker[Session]
    client: DataClient

    @classmethod
    def from_settings(cls, settings: TaskosaurSettings) -> "DataRuntime":
        """Build the runtime from typed application settings."""
        return cls.from_engine(create_postgres_engine(settings.postgres))

    @classmethod
    def from_engine(cls, engine: Engine) -> "DataRuntime":
        """Build the runtime around an existing engine."""
        session_factory = create_session_factory(engine)
        return cls(
            engine=engine,
            session_factory=session_factory,
            client=create_data_client(session_factory),
        )

    def create_schema(self) -> None:
        """Create any missing tables."""
        metadata.create_all(self.engine)

    def is_healthy(self) -> bool:
        return ping(self.engine)


def create_data_client(session_factory: sessionmaker[Session]) -> DataClient:
    """Return a client with the audit middleware registered."""
    client = DataClient(session_factory)
    client.use(create_audit_middleware())
    return client
