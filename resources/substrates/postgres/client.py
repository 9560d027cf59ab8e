"""Model-oriented data client with a middleware chain in front of SQL.

Each model operation is described as an ``OperationParams`` and passed
through registered middleware, outermost first, before the terminal handler
runs it against the mapped table in one transactional session.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from sqlalchemy import ColumnElement, Table, delete, insert, select, update
from sqlalchemy.orm import Session, sessionmaker

from packages.taskosaur_shared.logging import get_logger
from resources.substrates.postgres.operations import (
    Action,
    Middleware,
    NextHandler,
    OperationParams,
)
from resources.substrates.postgres.schema import MODEL_TABLES
from resources.substrates.postgres.session import transactional_session

_LOGGER = get_logger(__name__)

Row = dict[str, Any]


class DataClient:
    """Entry point for audited reads and writes against mapped tables."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        tables: Mapping[str, Table] | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._tables = dict(MODEL_TABLES if tables is None else tables)
        self._middlewares: list[Middleware] = []

    def use(self, middleware: Middleware) -> None:
        """Register middleware; earlier registrations wrap later ones."""
        self._middlewares.append(middleware)

    def model(self, name: str) -> ModelDelegate:
        """Return the operation delegate for one model name."""
        if name not in self._tables:
            raise KeyError(f"unknown model: {name}")
        return ModelDelegate(client=self, model=name)

    def dispatch(self, params: OperationParams) -> Any:
        """Run ``params`` through the middleware chain and the SQL executor."""
        return self._handler_at(0)(params)

    def _handler_at(self, index: int) -> NextHandler:
        if index >= len(self._middlewares):
            return self._execute
        middleware = self._middlewares[index]
        following = self._handler_at(index + 1)
        return lambda params: middleware(params, following)

    def _execute(self, params: OperationParams) -> Any:
        if params.model is None or params.model not in self._tables:
            raise KeyError(f"unknown model: {params.model}")
        table = self._tables[params.model]
        executor = _EXECUTORS[Action(params.action)]
        _LOGGER.debug(
            "data client operation",
            extra={"model": params.model, "action": Action(params.action).value},
        )
        with transactional_session(self._session_factory) as session:
            return executor(session, table, params.args)


class ModelDelegate:
    """Operations for one model, each dispatched through the client chain."""

    def __init__(self, *, client: DataClient, model: str) -> None:
        self._client = client
        self._model = model

    @property
    def name(self) -> str:
        return self._model

    def create(self, *, data: Mapping[str, Any]) -> Row:
        return self._run(Action.CREATE, data=dict(data))

    def create_many(self, *, data: list[Mapping[str, Any]]) -> int:
        return self._run(Action.CREATE_MANY, data=[dict(item) for item in data])

    def update(self, *, where: Mapping[str, Any], data: Mapping[str, Any]) -> Row | None:
        return self._run(Action.UPDATE, where=dict(where), data=dict(data))

    def update_many(
        self, *, data: Mapping[str, Any], where: Mapping[str, Any] | None = None
    ) -> int:
        return self._run(Action.UPDATE_MANY, where=dict(where or {}), data=dict(data))

    def upsert(
        self,
        *,
        where: Mapping[str, Any],
        create: Mapping[str, Any],
        update: Mapping[str, Any],
    ) -> Row:
        return self._run(
            Action.UPSERT, where=dict(where), create=dict(create), update=dict(update)
        )

    def delete(self, *, where: Mapping[str, Any]) -> bool:
        return self._run(Action.DELETE, where=dict(where))

    def delete_many(self, *, where: Mapping[str, Any] | None = None) -> int:
        return self._run(Action.DELETE_MANY, where=dict(where or {}))

    def find_unique(self, *, where: Mapping[str, Any]) -> Row | None:
        return self._run(Action.FIND_UNIQUE, where=dict(where))

    def find_many(self, *, where: Mapping[str, Any] | None = None) -> list[Row]:
        return self._run(Action.FIND_MANY, where=dict(where or {}))

    def _run(self, action: Action, **args: Any) -> Any:
        return self._client.dispatch(
            OperationParams(model=self._model, action=action, args=args)
        )


def _create(session: Session, table: Table, args: Mapping[str, Any]) -> Row:
    values = _checked_columns(table, args.get("data"), label="data")
    result = session.execute(insert(table).values(**values))
    return _fetch_by_key(session, table, tuple(result.inserted_primary_key))


def _create_many(session: Session, table: Table, args: Mapping[str, Any]) -> int:
    items = args.get("data")
    if not isinstance(items, list):
        raise ValueError(f"create_many on {table.name} requires a list of rows")
    rows = [_checked_columns(table, item, label="data") for item in items]
    for row in rows:
        session.execute(insert(table).values(**row))
    return len(rows)


def _update(session: Session, table: Table, args: Mapping[str, Any]) -> Row | None:
    conditions = _where(table, args.get("where"))
    values = _checked_columns(table, args.get("data"), label="data")
    key = _first_key(session, table, conditions)
    if key is None:
        return None
    if values:
        session.execute(update(table).where(*_key_match(table, key)).values(**values))
    return _fetch_by_key(session, table, key)


def _update_many(session: Session, table: Table, args: Mapping[str, Any]) -> int:
    conditions = _where(table, args.get("where"), allow_empty=True)
    values = _checked_columns(table, args.get("data"), label="data")
    if not values:
        return 0
    result = session.execute(update(table).where(*conditions).values(**values))
    return int(result.rowcount or 0)


def _upsert(session: Session, table: Table, args: Mapping[str, Any]) -> Row:
    conditions = _where(table, args.get("where"))
    create_values = _checked_columns(table, args.get("create"), label="create")
    update_values = _checked_columns(table, args.get("update"), label="update")
    key = _first_key(session, table, conditions)
    if key is None:
        result = session.execute(insert(table).values(**create_values))
        return _fetch_by_key(session, table, tuple(result.inserted_primary_key))
    if update_values:
        session.execute(
            update(table).where(*_key_match(table, key)).values(**update_values)
        )
    return _fetch_by_key(session, table, key)


def _delete(session: Session, table: Table, args: Mapping[str, Any]) -> bool:
    key = _first_key(session, table, _where(table, args.get("where")))
    if key is None:
        return False
    session.execute(delete(table).where(*_key_match(table, key)))
    return True


def _delete_many(session: Session, table: Table, args: Mapping[str, Any]) -> int:
    conditions = _where(table, args.get("where"), allow_empty=True)
    result = session.execute(delete(table).where(*conditions))
    return int(result.rowcount or 0)


def _find_unique(session: Session, table: Table, args: Mapping[str, Any]) -> Row | None:
    conditions = _where(table, args.get("where"))
    row = session.execute(select(table).where(*conditions)).mappings().first()
    return None if row is None else dict(row)


def _find_many(session: Session, table: Table, args: Mapping[str, Any]) -> list[Row]:
    conditions = _where(table, args.get("where"), allow_empty=True)
    rows = session.execute(select(table).where(*conditions)).mappings().all()
    return [dict(row) for row in rows]


_EXECUTORS: dict[Action, Callable[[Session, Table, Mapping[str, Any]], Any]] = {
    Action.CREATE: _create,
    Action.CREATE_MANY: _create_many,
    Action.UPDATE: _update,
    Action.UPDATE_MANY: _update_many,
    Action.UPSERT: _upsert,
    Action.DELETE: _delete,
    Action.DELETE_MANY: _delete_many,
    Action.FIND_UNIQUE: _find_unique,
    Action.FIND_MANY: _find_many,
}


def _checked_columns(table: Table, values: object, *, label: str) -> dict[str, Any]:
    """Return ``values`` as a dict after rejecting unknown column names."""
    if values is None:
        return {}
    if not isinstance(values, Mapping):
        raise ValueError(f"{label} for {table.name} must be a mapping")
    unknown = sorted(str(key) for key in values if key not in table.c)
    if unknown:
        raise ValueError(f"unknown column(s) for {table.name}: {', '.join(unknown)}")
    return dict(values)


def _where(
    table: Table, where: object, *, allow_empty: bool = False
) -> list[ColumnElement[bool]]:
    """Translate an equality mapping into SQL conditions."""
    criteria = _checked_columns(table, where, label="where")
    if not criteria and not allow_empty:
        raise ValueError(f"where for {table.name} must not be empty")
    return [table.c[name] == value for name, value in criteria.items()]


def _key_match(table: Table, key: tuple[Any, ...]) -> list[ColumnElement[bool]]:
    return [column == value for column, value in zip(table.primary_key.columns, key)]


def _first_key(
    session: Session, table: Table, conditions: list[ColumnElement[bool]]
) -> tuple[Any, ...] | None:
    row = session.execute(
        select(*table.primary_key.columns).where(*conditions)
    ).first()
    return None if row is None else tuple(row)


def _fetch_by_key(session: Session, table: Table, key: tuple[Any, ...]) -> Row:
    row = (
        session.execute(select(table).where(*_key_match(table, key))).mappings().one()
    )
    return dict(row)
