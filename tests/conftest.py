"""Shared test configuration for authsql tests.

Provides:
- In-memory SQLite backends with the auth tables created
- Adapters bound to them, with and without cascading session deletion
- Scripted fake backends for PostgreSQL and MySQL
"""

from collections.abc import AsyncIterator

import pytest
from fake_backend import FakeBackend

from authsql import AuthAdapter, AuthSchema, create_adapter
from authsql.sql import ConnectionConfig, DatabaseDialect, SqliteBackend


@pytest.fixture
async def sqlite_backend() -> AsyncIterator[SqliteBackend]:
    """Connected in-memory SQLite backend."""
    backend = SqliteBackend()
    await backend.connect(ConnectionConfig(dialect=DatabaseDialect.SQLITE, path=":memory:"))
    yield backend
    await backend.disconnect()


@pytest.fixture
async def adapter(sqlite_backend: SqliteBackend) -> AuthAdapter:
    """SQLite adapter over the default schema (no cascade)."""
    adapter = create_adapter(sqlite_backend, "better-sqlite3")
    await adapter.create_tables()
    return adapter


@pytest.fixture
async def cascade_adapter(sqlite_backend: SqliteBackend) -> AuthAdapter:
    """SQLite adapter whose session table cascades on user deletion."""
    adapter = create_adapter(
        sqlite_backend, "better-sqlite3", AuthSchema.default(on_delete="cascade")
    )
    await adapter.create_tables()
    return adapter


@pytest.fixture
def pg_backend() -> FakeBackend:
    return FakeBackend(DatabaseDialect.POSTGRESQL)


@pytest.fixture
def mysql_backend() -> FakeBackend:
    return FakeBackend(DatabaseDialect.MYSQL)
