"""Actor attribution for writes against auditable models.

The middleware built here is registered once on a ``DataClient`` and stamps
``created_by``/``updated_by`` on every write, so call sites never set them by
hand. It mutates the operation arguments in place, always forwards to the
next handler and performs no I/O of its own.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, MutableMapping
from typing import Any

from packages.taskosaur_shared.logging import get_logger
from packages.taskosaur_shared.request_context import get_current_user_id
from resources.substrates.postgres.operations import (
    Action,
    Middleware,
    NextHandler,
    OperationParams,
)

_LOGGER = get_logger(__name__)

# Provisioned by ``seed.seed_system_user``.
SYSTEM_USER_ID = "00000000-0000-0000-0000-000000000000"

CREATED_BY = "created_by"
UPDATED_BY = "updated_by"

# Creating a user never stamps ``updated_by`` on itself.
IDENTITY_MODEL = "User"

AUDITABLE_MODELS: frozenset[str] = frozenset(
    {
        "User",
        "Organization",
        "OrganizationMember",
        "Workspace",
        "WorkspaceMember",
        "Project",
        "ProjectMember",
        "Task",
        "TaskDependency",
        "TaskLabel",
        "TaskWatcher",
        "TaskComment",
        "TaskAttachment",
        "TimeEntry",
        "Workflow",
        "TaskStatus",
        "StatusTransition",
        "Sprint",
        "Label",
        "CustomField",
        "Notification",
        "ActivityLog",
        "AutomationRule",
        "RuleExecution",
    }
)

# Updates touching only these keys are not attributed.
EXCLUDED_UPDATE_FIELDS: frozenset[str] = frozenset(
    {"created_at", "updated_at", "created_by"}
)


def create_audit_middleware(
    actor_resolver: Callable[[], str | None] = get_current_user_id,
) -> Middleware:
    """Build the audit middleware.

    ``actor_resolver`` returns the acting user id for the current context;
    when it returns nothing the write is attributed to ``SYSTEM_USER_ID``.
    """

    def audit_middleware(params: OperationParams, next_handler: NextHandler) -> Any:
        model = params.model
        if not model or model not in AUDITABLE_MODELS:
            return next_handler(params)

        actor_id = actor_resolver() or SYSTEM_USER_ID
        args = params.args

        if params.action == Action.CREATE:
            _stamp_create(args.get("data"), model=model, actor_id=actor_id)
        elif params.action in (Action.UPDATE, Action.UPDATE_MANY):
            _stamp_update(args.get("data"), actor_id=actor_id)
        elif params.action == Action.UPSERT:
            _stamp_create(args.get("create"), model=model, actor_id=actor_id)
            _stamp_update(args.get("update"), actor_id=actor_id)
        elif params.action == Action.CREATE_MANY:
            items = args.get("data")
            if isinstance(items, list):
                args["data"] = [
                    _stamped_item(item, model=model, actor_id=actor_id)
                    for item in items
                ]

        _LOGGER.debug(
            "audit fields resolved",
            extra={
                "model": model,
                "action": _action_name(params.action),
                "actor_id": actor_id,
            },
        )
        return next_handler(params)

    return audit_middleware


def has_audit_fields(model_name: str) -> bool:
    """Return whether ``model_name`` participates in audit tracking."""
    return model_name in AUDITABLE_MODELS


def get_current_user_for_audit() -> str | None:
    """Return the acting user id for manual attribution outside the client."""
    return get_current_user_id()


def is_meaningful_update(data: Mapping[str, Any]) -> bool:
    """Return whether ``data`` changes anything beyond timestamps/creator."""
    return any(key not in EXCLUDED_UPDATE_FIELDS for key in data)


def _action_name(action: object) -> str:
    return action.value if isinstance(action, Action) else str(action)


def _stamp_create(data: object, *, model: str, actor_id: str) -> None:
    if not isinstance(data, MutableMapping):
        return
    if CREATED_BY not in data:
        data[CREATED_BY] = actor_id
    if UPDATED_BY not in data and model != IDENTITY_MODEL:
        data[UPDATED_BY] = actor_id


def _stamp_update(data: object, *, actor_id: str) -> None:
    if not isinstance(data, MutableMapping):
        return
    if is_meaningful_update(data) and UPDATED_BY not in data:
        data[UPDATED_BY] = actor_id


def _stamped_item(item: Mapping[str, Any], *, model: str, actor_id: str) -> dict[str, Any]:
    """Copy one bulk-create item, defaulting missing or null audit fields."""
    stamped = dict(item)
    if stamped.get(CREATED_BY) is None:
        stamped[CREATED_BY] = actor_id
    if model != IDENTITY_MODEL and stamped.get(UPDATED_BY) is None:
        stamped[UPDATED_BY] = actor_id
    return stamped
