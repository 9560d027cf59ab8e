"""Scoped fields attached to every record logged from the current context.

Only the fields the tooling actually scopes are exposed: the acting user,
the CLI command, and the npm/pm2 child being driven. Values live in a
``ContextVar``, so each thread and asyncio task sees its own set.
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator

from . import fields

_SCOPED_FIELDS: ContextVar[dict[str, str]] = ContextVar(
    "taskosaur_scoped_log_fields", default={}
)


def current_fields() -> dict[str, str]:
    """Return a copy of the fields bound in this context."""
    return dict(_SCOPED_FIELDS.get())


@contextmanager
def _scoped(updates: dict[str, str | None]) -> Iterator[None]:
    scoped = dict(_SCOPED_FIELDS.get())
    for key, value in updates.items():
        if value is None:
            scoped.pop(key, None)
        else:
            scoped[key] = value
    token = _SCOPED_FIELDS.set(scoped)
    try:
        yield
    finally:
        _SCOPED_FIELDS.reset(token)


def cli_command(command: str):
    """Tag records with the CLI command for as long as it runs."""
    return _scoped({fields.COMMAND: command})


def acting_user(user_id: str | None):
    """Attribute records in a block to ``user_id``; ``None`` hides an outer actor."""
    return _scoped({fields.USER_ID: user_id})


def child_process(
    *, command: str | None = None, process_name: str | None = None
):
    """Tag records in a block with the child command or supervised process."""
    updates: dict[str, str | None] = {}
    if command is not None:
        updates[fields.COMMAND] = command
    if process_name is not None:
        updates[fields.PROCESS_NAME] = process_name
    return _scoped(updates)
