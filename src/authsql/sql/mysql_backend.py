"""MySQL/MariaDB database backend implementation.

This module provides the MySQL backend using aiomysql for native async
operation with connection pooling.

Features:
    - Native async driver (aiomysql)
    - Connection pooling with configurable size
    - SSL/TLS support
    - Compatible with MySQL 5.7+ and MariaDB 10.2+

Note:
    Requires the 'aiomysql' package: pip install authsql[mysql]
"""

from __future__ import annotations

import logging
import ssl
from typing import TYPE_CHECKING, Any

from .backend import ConnectionConfig, DatabaseBackendBase, DatabaseDialect, Params, QueryResult

if TYPE_CHECKING:
    import aiomysql  # type: ignore[import-not-found]

logger = logging.getLogger(__name__)


def _import_aiomysql() -> Any:
    """Import aiomysql with helpful error message if not installed."""
    try:
        import aiomysql

        return aiomysql
    except ImportError as e:
        raise ImportError(
            "MySQL backend requires 'aiomysql' package. Install with: pip install authsql[mysql]"
        ) from e


class MySQLBackend(DatabaseBackendBase):
    """MySQL/MariaDB backend using aiomysql with connection pooling.

    The pool runs in autocommit mode, so every statement commits on its own.

    Attributes:
        dialect: DatabaseDialect.MYSQL

    Example:
        backend = MySQLBackend()
        await backend.connect(ConnectionConfig(
            dialect=DatabaseDialect.MYSQL,
            host="localhost",
            database="auth",
            username="user",
            password="pass"
        ))
        result = await backend.query("SELECT * FROM `user` WHERE `id` = %s", ("u1",))
        await backend.disconnect()
    """

    dialect = DatabaseDialect.MYSQL

    def __init__(self) -> None:
        """Initialize MySQL backend."""
        self._pool: aiomysql.Pool | None = None
        self._config: ConnectionConfig | None = None

    async def connect(self, config: ConnectionConfig) -> None:
        """Create connection pool.

        Pool settings:
            - client_flag: FOUND_ROWS, so UPDATE reports matched rows
            - minsize: 1
            - maxsize: config.pool_size
            - pool_recycle: 300s (prevent stale connections)
            - connect_timeout: config.connect_timeout

        Args:
            config: Connection configuration

        Raises:
            ImportError: If aiomysql is not installed
        """
        aiomysql = _import_aiomysql()
        from pymysql.constants import CLIENT

        self._config = config

        self._pool = await aiomysql.create_pool(
            host=config.host,
            port=config.port or 3306,
            db=config.database,
            user=config.username,
            password=config.password or "",
            ssl=ssl.create_default_context() if config.ssl else None,
            minsize=1,
            maxsize=config.pool_size,
            pool_recycle=300,
            connect_timeout=config.connect_timeout,
            autocommit=True,
            client_flag=CLIENT.FOUND_ROWS,
        )

        logger.debug(f"Connected to MySQL: {config.host}:{config.port}/{config.database}")

    async def disconnect(self) -> None:
        """Close connection pool gracefully.

        Waits for all connections to be released before closing.
        """
        if self._pool is not None:
            self._pool.close()
            await self._pool.wait_closed()
            self._pool = None

        logger.debug("Disconnected from MySQL")

    async def query(self, sql: str, params: Params = None) -> QueryResult:
        """Execute SELECT query and return results.

        Uses DictCursor for dict-based row results.

        Args:
            sql: SQL SELECT statement (use %s for params)
            params: Query parameters

        Returns:
            QueryResult with rows as list of dicts
        """
        aiomysql = _import_aiomysql()
        pool = self._ensure_connected()

        async with pool.acquire() as conn:
            async with conn.cursor(aiomysql.DictCursor) as cursor:
                await cursor.execute(sql, self._normalize_params(params))
                rows = await cursor.fetchall()
                columns = [desc[0] for desc in cursor.description] if cursor.description else []

        return QueryResult(rows=list(rows), row_count=len(rows), columns=columns)

    async def execute(self, sql: str, params: Params = None) -> QueryResult:
        """Execute INSERT/UPDATE/DELETE statement.

        Args:
            sql: SQL statement (use %s for params)
            params: Query parameters

        Returns:
            QueryResult with affected_rows
        """
        pool = self._ensure_connected()

        async with pool.acquire() as conn:
            async with conn.cursor() as cursor:
                await cursor.execute(sql, self._normalize_params(params))
                affected = cursor.rowcount

        return QueryResult(row_count=affected, affected_rows=affected)

    async def execute_script(self, sql: str) -> None:
        """Execute multi-statement SQL script.

        Statements are split on semicolons and executed one at a time, so a
        failing statement is reported on its own instead of after the results
        of earlier statements are drained.

        Args:
            sql: Multi-statement SQL script (semicolon-separated)
        """
        pool = self._ensure_connected()
        statements = [s.strip() for s in sql.split(";") if s.strip()]

        async with pool.acquire() as conn:
            async with conn.cursor() as cursor:
                for stmt in statements:
                    await cursor.execute(stmt)

        logger.debug("Executed MySQL SQL script")

    def _ensure_connected(self) -> aiomysql.Pool:
        """Return the pool, raising if not connected."""
        if self._pool is None:
            raise RuntimeError("Not connected to database. Call connect() first.")
        return self._pool

    def _normalize_params(self, params: Params) -> tuple[Any, ...] | dict[str, Any]:
        """Normalize parameters to aiomysql format.

        aiomysql accepts both tuples and dicts for parameters.
        %s for positional, %(name)s for named.
        """
        if params is None:
            return ()
        if isinstance(params, list):
            return tuple(params)
        return params
