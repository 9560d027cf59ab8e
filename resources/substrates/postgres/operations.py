"""Operation descriptors passed through the data client middleware chain."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Action(str, Enum):
    """Operation kinds understood by the data client."""

    CREATE = "create"
    CREATE_MANY = "create_many"
    UPDATE = "update"
    UPDATE_MANY = "update_many"
    UPSERT = "upsert"
    DELETE = "delete"
    DELETE_MANY = "delete_many"
    FIND_UNIQUE = "find_unique"
    FIND_MANY = "find_many"


@dataclass
class OperationParams:
    """One intercepted operation.

    Middleware rewrites ``args`` in place and hands the same object to the
    next handler.
    """

    model: str | None
    action: Action
    args: dict[str, Any] = field(default_factory=dict)


NextHandler = Callable[[OperationParams], Any]
Middleware = Callable[[OperationParams, NextHandler], Any]
