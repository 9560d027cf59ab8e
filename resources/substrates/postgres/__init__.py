"""Audited data access primitives for Taskosaur."""

from resources.substrates.postgres.audit import (
    AUDITABLE_MODELS,
    EXCLUDED_UPDATE_FIELDS,
    SYSTEM_USER_ID,
    create_audit_middleware,
    get_current_user_for_audit,
    has_audit_fields,
)
from resources.substrates.postgres.client import DataClient, ModelDelegate
from resources.substrates.postgres.engine import create_postgres_engine
from resources.substrates.postgres.health import ping
from resources.substrates.postgres.operations import (
    Action,
    Middleware,
    NextHandler,
    OperationParams,
)
from resources.substrates.postgres.runtime import DataRuntime, create_data_client
from resources.substrates.postgres.seed import clear_system_user, seed_system_user
from resources.substrates.postgres.session import (
    create_session_factory,
    transactional_session,
)

__all__ = [
    "AUDITABLE_MODELS",
    "Action",
    "DataClient",
    "DataRuntime",
    "EXCLUDED_UPDATE_FIELDS",
    "Middleware",
    "ModelDelegate",
    "NextHandler",
    "OperationParams",
    "SYSTEM_USER_ID",
    "clear_system_user",
    "create_audit_middleware",
    "create_data_client",
    "create_postgres_engine",
    "create_session_factory",
    "get_current_user_for_audit",
    "has_audit_fields",
    "ping",
    "seed_system_user",
    "transactional_session",
]
