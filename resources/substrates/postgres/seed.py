"""System user provisioning.

Writes made without an authenticated actor are attributed to
``SYSTEM_USER_ID``; this seeder creates the matching ``users`` row so the
audit foreign keys resolve.
"""

from __future__ import annotations

from typing import Any

from packages.taskosaur_shared.logging import get_logger
from resources.substrates.postgres.audit import SYSTEM_USER_ID
from resources.substrates.postgres.client import DataClient

_LOGGER = get_logger(__name__)

SYSTEM_USER_EMAIL = "system@taskosaur.internal"

SYSTEM_USER_DATA: dict[str, Any] = {
    "id": SYSTEM_USER_ID,
    "email": SYSTEM_USER_EMAIL,
    "username": "system",
    "first_name": "System",
    "last_name": "User",
    "role": "SUPER_ADMIN",
    # Inactive and passwordless: the row exists for attribution only.
    "status": "INACTIVE",
    "password": None,
    "bio": (
        "Internal system user for audit trails and automated operations. "
        "Cannot be used for authentication."
    ),
    "timezone": "UTC",
    "language": "en",
    "preferences": {"system": True, "internal": True, "audit_only": True},
}


def seed_system_user(client: DataClient) -> dict[str, Any]:
    """Create the system user unless it already exists; return the row."""
    users = client.model("User")
    existing = users.find_unique(where={"id": SYSTEM_USER_ID})
    if existing is not None:
        _LOGGER.info("system user already present", extra={"user_id": SYSTEM_USER_ID})
        return existing

    created = users.create(data=dict(SYSTEM_USER_DATA))
    _LOGGER.info(
        "system user created",
        extra={"user_id": created["id"], "email": created["email"]},
    )
    return created


def clear_system_user(client: DataClient) -> bool:
    """Delete the system user row; return whether it existed."""
    deleted = client.model("User").delete(where={"id": SYSTEM_USER_ID})
    if not deleted:
        _LOGGER.info("system user not found, nothing to clear")
    return deleted
