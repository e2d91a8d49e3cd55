"""SQLite database backend implementation.

This module provides the SQLite backend using the stdlib sqlite3 module
with asyncio run_in_executor for async operation.

Features:
    - WAL mode by default for concurrent reads
    - Automatic busy_timeout for lock contention handling
    - Foreign key enforcement enabled (required for session.user_id)
    - Path validation and parent directory creation
    - PRAGMA configuration via options
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

from .backend import ConnectionConfig, DatabaseBackendBase, DatabaseDialect, Params, QueryResult

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SqliteBackend(DatabaseBackendBase):
    """SQLite backend using stdlib sqlite3 with async executor.

    This backend wraps the synchronous sqlite3 module in asyncio's
    run_in_executor. All statements share one connection, so they are
    serialized through an asyncio.Lock.

    Attributes:
        dialect: DatabaseDialect.SQLITE
        DEFAULT_PRAGMAS: Default PRAGMA settings applied on connection

    Example:
        backend = SqliteBackend()
        await backend.connect(ConnectionConfig(
            dialect=DatabaseDialect.SQLITE,
            path="/data/auth.db"
        ))
        result = await backend.query('SELECT * FROM "user" WHERE "id" = ?', ("u1",))
        await backend.disconnect()
    """

    dialect = DatabaseDialect.SQLITE

    DEFAULT_PRAGMAS: dict[str, str | int] = {
        "journal_mode": "WAL",
        "busy_timeout": 30000,
        "synchronous": "NORMAL",
        "foreign_keys": "ON",
    }

    def __init__(self) -> None:
        """Initialize SQLite backend."""
        self._conn: sqlite3.Connection | None = None
        self._config: ConnectionConfig | None = None
        self._lock = asyncio.Lock()

    async def connect(self, config: ConnectionConfig) -> None:
        """Connect to SQLite database.

        Creates the database file and parent directories if they don't exist.
        Applies PRAGMA settings from config.options or defaults.

        Args:
            config: Connection configuration with path
        """
        self._config = config

        def _connect() -> sqlite3.Connection:
            path = config.path
            if path is None:
                raise ValueError("SQLite requires 'path' parameter")

            if path != ":memory:" and not path.startswith(":"):
                Path(path).parent.mkdir(parents=True, exist_ok=True)

            conn = sqlite3.connect(path, check_same_thread=False)
            conn.row_factory = sqlite3.Row

            pragmas = {**self.DEFAULT_PRAGMAS}
            if config.options.get("sqlite_pragmas"):
                pragmas.update(config.options["sqlite_pragmas"])

            if config.timeout:
                pragmas["busy_timeout"] = config.timeout * 1000  # Convert to ms

            for pragma, value in pragmas.items():
                try:
                    conn.execute(f"PRAGMA {pragma}={value}")
                except sqlite3.Error as e:
                    logger.warning(f"Failed to set PRAGMA {pragma}={value}: {e}")

            logger.debug(f"Connected to SQLite database: {path}")
            return conn

        loop = asyncio.get_running_loop()
        self._conn = await loop.run_in_executor(None, _connect)

    async def disconnect(self) -> None:
        """Close SQLite connection.

        Safe to call multiple times or if not connected.
        """
        if self._conn is None:
            return

        conn = self._conn
        self._conn = None
        await self._run(conn.close)
        logger.debug("Disconnected from SQLite database")

    async def query(self, sql: str, params: Params = None) -> QueryResult:
        """Execute SELECT query and return results.

        Args:
            sql: SQL SELECT statement
            params: Query parameters (tuple, list, or dict)

        Returns:
            QueryResult with rows as list of dicts
        """
        conn = self._ensure_connected()

        def _query() -> QueryResult:
            cursor = conn.execute(sql, self._normalize_params(params))
            rows = [dict(row) for row in cursor.fetchall()]
            columns = [desc[0] for desc in cursor.description] if cursor.description else []
            return QueryResult(rows=rows, row_count=len(rows), columns=columns)

        return await self._run(_query)

    async def execute(self, sql: str, params: Params = None) -> QueryResult:
        """Execute INSERT/UPDATE/DELETE statement and commit.

        Handles RETURNING clause by fetching result rows. A failed statement
        is rolled back before the error propagates.

        Args:
            sql: SQL statement
            params: Query parameters

        Returns:
            QueryResult with affected_rows and rows (if RETURNING)
        """
        conn = self._ensure_connected()
        returning = self.has_returning(sql)

        def _execute() -> QueryResult:
            try:
                cursor = conn.execute(sql, self._normalize_params(params))
                if returning and cursor.description:
                    rows = [dict(row) for row in cursor.fetchall()]
                    columns = [desc[0] for desc in cursor.description]
                else:
                    rows = []
                    columns = []
                conn.commit()
            except sqlite3.Error:
                conn.rollback()
                raise

            affected = len(rows) if returning else cursor.rowcount
            return QueryResult(
                rows=rows,
                row_count=affected,
                columns=columns,
                affected_rows=affected,
            )

        return await self._run(_execute)

    async def execute_script(self, sql: str) -> None:
        """Execute multi-statement SQL script.

        Uses sqlite3.executescript() which commits any pending transaction,
        executes the script, and implicitly commits.

        Args:
            sql: Multi-statement SQL script
        """
        conn = self._ensure_connected()
        await self._run(lambda: conn.executescript(sql))
        logger.debug("Executed SQL script")

    async def _run(self, func: Callable[[], T]) -> T:
        """Run a blocking sqlite3 call in the default executor, one at a time."""
        loop = asyncio.get_running_loop()
        async with self._lock:
            return await loop.run_in_executor(None, func)

    def _ensure_connected(self) -> sqlite3.Connection:
        """Return the open connection.

        Raises:
            RuntimeError: If not connected
        """
        if self._conn is None:
            raise RuntimeError("Not connected to database. Call connect() first.")
        return self._conn

    def _normalize_params(self, params: Params) -> tuple[Any, ...] | dict[str, Any]:
        """Normalize parameters to sqlite3-compatible format."""
        if params is None:
            return ()
        if isinstance(params, dict):
            return params
        if isinstance(params, list):
            return tuple(params)
        return params
