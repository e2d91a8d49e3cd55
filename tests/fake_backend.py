"""Scripted backend and driver-shaped errors for PostgreSQL/MySQL tests.

The fake records every statement and replays queued results, so dialect
behaviour (placeholders, RETURNING, value shapes, error shapes) can be tested
without a database server.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from pymysql.constants import CLIENT

from authsql.sql import ConnectionConfig, DatabaseDialect, Params, QueryResult


class FakeBackend:
    """Backend that replays queued results or raises queued errors."""

    def __init__(self, dialect: DatabaseDialect | str) -> None:
        self.dialect = DatabaseDialect(dialect)
        self.calls: list[tuple[str, str, list[Any]]] = []
        self.scripts: list[str] = []
        self._queue: list[QueryResult | BaseException] = []
        self.connected = False

    def push(self, *items: QueryResult | BaseException) -> None:
        self._queue.extend(items)

    def push_rows(self, *rows: dict[str, Any]) -> None:
        self._queue.append(QueryResult(rows=list(rows), row_count=len(rows)))

    def push_affected(self, count: int) -> None:
        self._queue.append(QueryResult(row_count=count, affected_rows=count))

    async def connect(self, config: ConnectionConfig) -> None:
        self.connected = True

    async def disconnect(self) -> None:
        self.connected = False

    async def query(self, sql: str, params: Params = None) -> QueryResult:
        self.calls.append(("query", sql, list(params or [])))
        return self._next()

    async def execute(self, sql: str, params: Params = None) -> QueryResult:
        self.calls.append(("execute", sql, list(params or [])))
        return self._next()

    async def execute_script(self, sql: str) -> None:
        self.scripts.append(sql)

    @property
    def last_sql(self) -> str:
        return self.calls[-1][1]

    @property
    def last_params(self) -> list[Any]:
        return self.calls[-1][2]

    def _next(self) -> QueryResult:
        if not self._queue:
            return QueryResult()
        item = self._queue.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item


class FakePostgresError(Exception):
    """Shaped like ``asyncpg.exceptions.PostgresError``."""

    def __init__(
        self,
        message: str,
        sqlstate: str,
        detail: str | None = None,
        constraint_name: str | None = None,
        table_name: str | None = None,
        column_name: str | None = None,
    ) -> None:
        super().__init__(message)
        self.sqlstate = sqlstate
        self.detail = detail
        self.constraint_name = constraint_name
        self.table_name = table_name
        self.column_name = column_name


class FakeMySQLError(Exception):
    """Shaped like ``pymysql.err.IntegrityError``: ``args == (errno, message)``."""

    def __init__(self, errno: int, message: str) -> None:
        super().__init__(errno, message)


def pg_unique(constraint: str, column: str, value: str, table: str) -> FakePostgresError:
    return FakePostgresError(
        f'duplicate key value violates unique constraint "{constraint}"',
        sqlstate="23505",
        detail=f"Key ({column})=({value}) already exists.",
        constraint_name=constraint,
        table_name=table,
    )


def pg_foreign_key_missing(value: str) -> FakePostgresError:
    return FakePostgresError(
        'insert or update on table "session" violates foreign key constraint '
        '"session_user_id_fkey"',
        sqlstate="23503",
        detail=f'Key (user_id)=({value}) is not present in table "user".',
        constraint_name="session_user_id_fkey",
        table_name="session",
    )


def pg_foreign_key_referenced(value: str) -> FakePostgresError:
    return FakePostgresError(
        'update or delete on table "user" violates foreign key constraint '
        '"session_user_id_fkey" on table "session"',
        sqlstate="23503",
        detail=f'Key (id)=({value}) is still referenced from table "session".',
        constraint_name="session_user_id_fkey",
        table_name="session",
    )


MYSQL_FK_MESSAGE = (
    "{verb}: a foreign key constraint fails (`auth`.`session`, CONSTRAINT "
    "`session_ibfk_1` FOREIGN KEY (`user_id`) REFERENCES `user` (`id`))"
)


def mysql_duplicate(value: str, key: str) -> FakeMySQLError:
    return FakeMySQLError(1062, f"Duplicate entry '{value}' for key '{key}'")


def mysql_foreign_key_missing() -> FakeMySQLError:
    return FakeMySQLError(1452, MYSQL_FK_MESSAGE.format(verb="Cannot add or update a child row"))


def mysql_foreign_key_referenced() -> FakeMySQLError:
    return FakeMySQLError(
        1451, MYSQL_FK_MESSAGE.format(verb="Cannot delete or update a parent row")
    )


# =============================================================================
# aiomysql stand-in
# =============================================================================


class FakeAiomysql:
    """Module-shaped aiomysql replacement that records pool settings.

    Cursors report affected rows the way a MySQL server does: rows whose
    values changed, or rows matched when the pool was opened with
    ``CLIENT.FOUND_ROWS``.
    """

    DictCursor = object()

    def __init__(self, matched: int = 1, changed: int = 1) -> None:
        self.matched = matched
        self.changed = changed
        self.pool_kwargs: dict[str, Any] = {}
        self.statements: list[tuple[str, Any]] = []

    async def create_pool(self, **kwargs: Any) -> FakeMySQLPool:
        self.pool_kwargs = kwargs
        return FakeMySQLPool(self)


class FakeMySQLPool:
    def __init__(self, module: FakeAiomysql) -> None:
        self.module = module
        self.closed = False

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[FakeMySQLConnection]:
        yield FakeMySQLConnection(self.module)

    def close(self) -> None:
        self.closed = True

    async def wait_closed(self) -> None:
        pass


class FakeMySQLConnection:
    def __init__(self, module: FakeAiomysql) -> None:
        self.module = module

    @asynccontextmanager
    async def cursor(self, cursor_cls: object = None) -> AsyncIterator[FakeMySQLCursor]:
        yield FakeMySQLCursor(self.module)


class FakeMySQLCursor:
    def __init__(self, module: FakeAiomysql) -> None:
        self.module = module
        self.rowcount = -1
        self.description: list[tuple[str]] | None = None

    async def execute(self, sql: str, params: Any = None) -> None:
        self.module.statements.append((sql, params))
        flags = self.module.pool_kwargs.get("client_flag", 0)
        self.rowcount = self.module.matched if flags & CLIENT.FOUND_ROWS else self.module.changed

    async def fetchall(self) -> list[dict[str, Any]]:
        return []
