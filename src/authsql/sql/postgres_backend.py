"""PostgreSQL database backend implementation.

This module provides the PostgreSQL backend using asyncpg for native async
operation with connection pooling.

Features:
    - Native async driver (asyncpg)
    - Connection pooling with configurable size
    - SSL/TLS support
    - Binary protocol, so BIGINT columns come back as Python int

Note:
    Requires the 'asyncpg' package: pip install authsql[postgresql]
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from .backend import ConnectionConfig, DatabaseBackendBase, DatabaseDialect, Params, QueryResult

if TYPE_CHECKING:
    import asyncpg  # type: ignore[import-not-found]

logger = logging.getLogger(__name__)

SSL_MODES = ("require", "verify-ca", "verify-full")


def _import_asyncpg() -> Any:
    """Import asyncpg with helpful error message if not installed."""
    try:
        import asyncpg

        return asyncpg
    except ImportError as e:
        raise ImportError(
            "PostgreSQL backend requires 'asyncpg' package. "
            "Install with: pip install authsql[postgresql]"
        ) from e


class PostgresBackend(DatabaseBackendBase):
    """PostgreSQL backend using asyncpg with connection pooling.

    Every statement runs on a pooled connection in autocommit mode.

    Attributes:
        dialect: DatabaseDialect.POSTGRESQL

    Example:
        backend = PostgresBackend()
        await backend.connect(ConnectionConfig(
            dialect=DatabaseDialect.POSTGRESQL,
            host="localhost",
            database="auth",
            username="user",
            password="pass"
        ))
        result = await backend.query('SELECT * FROM "user" WHERE "id" = $1', ("u1",))
        await backend.disconnect()
    """

    dialect = DatabaseDialect.POSTGRESQL

    def __init__(self) -> None:
        """Initialize PostgreSQL backend."""
        self._pool: asyncpg.Pool | None = None
        self._config: ConnectionConfig | None = None

    async def connect(self, config: ConnectionConfig) -> None:
        """Open an asyncpg pool sized by ``config.pool_size``.

        Idle connections are recycled after five minutes. ``config.timeout``
        bounds each statement and ``config.connect_timeout`` bounds the
        handshake.

        Raises:
            ImportError: If asyncpg is not installed
        """
        asyncpg = _import_asyncpg()
        self._config = config

        # asyncpg takes True or an sslmode name; anything else means no TLS
        ssl_context: bool | str | None = None
        if config.ssl is True or config.ssl in SSL_MODES:
            ssl_context = config.ssl

        self._pool = await asyncpg.create_pool(
            host=config.host,
            port=config.port,
            database=config.database,
            user=config.username,
            password=config.password,
            ssl=ssl_context,
            min_size=1,
            max_size=config.pool_size,
            max_inactive_connection_lifetime=300,
            command_timeout=config.timeout,
            timeout=config.connect_timeout,
        )

        logger.debug(f"Connected to PostgreSQL: {config.host}:{config.port}/{config.database}")

    async def disconnect(self) -> None:
        """Close connection pool gracefully."""
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

        logger.debug("Disconnected from PostgreSQL")

    async def query(self, sql: str, params: Params = None) -> QueryResult:
        """Execute SELECT query and return results.

        Args:
            sql: SQL SELECT statement (use $1, $2 for params)
            params: Query parameters

        Returns:
            QueryResult with rows as list of dicts
        """
        pool = self._ensure_connected()
        records = await pool.fetch(sql, *self._normalize_params(params))
        rows = [dict(record) for record in records]
        columns = list(records[0].keys()) if records else []

        return QueryResult(rows=rows, row_count=len(rows), columns=columns)

    async def execute(self, sql: str, params: Params = None) -> QueryResult:
        """Execute INSERT/UPDATE/DELETE statement.

        Statements with a RETURNING clause are run with fetch() so the
        returned rows are available.

        Args:
            sql: SQL statement (use $1, $2 for params)
            params: Query parameters

        Returns:
            QueryResult with affected_rows
        """
        pool = self._ensure_connected()
        normalized = self._normalize_params(params)

        if self.has_returning(sql):
            result = await self.query(sql, normalized)
            result.affected_rows = result.row_count
            return result

        status = await pool.execute(sql, *normalized)
        affected = self._parse_affected_rows(status)

        return QueryResult(row_count=affected, affected_rows=affected)

    async def execute_script(self, sql: str) -> None:
        """Execute multi-statement SQL script.

        asyncpg runs parameterless multi-statement strings with the simple
        query protocol.

        Args:
            sql: Multi-statement SQL script
        """
        pool = self._ensure_connected()
        await pool.execute(sql)
        logger.debug("Executed PostgreSQL SQL script")

    def _ensure_connected(self) -> asyncpg.Pool:
        """Return the pool, raising if not connected."""
        if self._pool is None:
            raise RuntimeError("Not connected to database. Call connect() first.")
        return self._pool

    def _normalize_params(self, params: Params) -> tuple[Any, ...]:
        """Flatten parameters into the positional tuple asyncpg expects."""
        if params is None:
            return ()
        if isinstance(params, dict):
            return tuple(params.values())
        return tuple(params)

    def _parse_affected_rows(self, status: str) -> int:
        """Read the row count off a command tag such as ``UPDATE 1``."""
        count = status.rsplit(" ", 1)[-1] if status else ""
        return int(count) if count.isdigit() else 0
