"""Request-scoped actor identity.

The authenticated user for the current request, background job or seed run
is bound here and read back by the audit middleware when it stamps
``created_by``/``updated_by``. Storage is a ``ContextVar`` so each thread and
asyncio task sees its own value.
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar, Token
from typing import Iterator

from packages.taskosaur_shared.logging import acting_user

_CURRENT_USER_ID: ContextVar[str | None] = ContextVar(
    "taskosaur_current_user_id", default=None
)


def get_current_user_id() -> str | None:
    """Return the actor id bound to the current context, if any."""
    return _CURRENT_USER_ID.get()


def set_current_user_id(user_id: str | None) -> Token[str | None]:
    """Bind an actor id and return the token needed to undo it."""
    return _CURRENT_USER_ID.set(user_id)


def reset_current_user_id(token: Token[str | None]) -> None:
    """Restore the actor id that was bound before ``token`` was issued."""
    _CURRENT_USER_ID.reset(token)


@contextmanager
def request_context(user_id: str | None) -> Iterator[None]:
    """Bind ``user_id`` as the acting user for the duration of a block."""
    token = set_current_user_id(user_id)
    try:
        with acting_user(user_id):
            yield
    finally:
        reset_current_user_id(token)
