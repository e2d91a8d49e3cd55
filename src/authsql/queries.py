"""User and session storage operations.

Each method issues exactly one parameterized statement through the bound
backend and returns raw driver rows (dicts), an affected-row count, or None.
There are no implicit multi-statement transactions and no value coercion
here; the adapter facade decodes rows and normalizes errors.
"""

from __future__ import annotations

from typing import Any

from .schema import AuthSchema
from .sql.backend import DatabaseBackend, DatabaseDialect
from .sql.query_builder import QueryBuilder

# Prefix for session columns in the session/user JOIN, keeping them apart
# from user columns of the same name.
SESSION_ALIAS_PREFIX = "session__"


class AuthQueries:
    """CRUD statements for the user and session tables.

    Attributes:
        backend: Connected backend statements run on
        schema: Validated table binding
        returning: Whether INSERT can use ``RETURNING *``
    """

    def __init__(
        self,
        backend: DatabaseBackend,
        schema: AuthSchema,
        dialect: DatabaseDialect,
        returning: bool,
    ) -> None:
        self.backend = backend
        self.schema = schema
        self.returning = returning
        self.users = QueryBuilder(schema.user, dialect)
        self.sessions = QueryBuilder(schema.session, dialect)

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def get_user(self, user_id: str) -> dict[str, Any] | None:
        sql, params = self.users.select(where={"id": user_id})
        return await self._fetch_one(sql, params)

    async def get_user_by_provider_id(self, provider_id: str) -> dict[str, Any] | None:
        sql, params = self.users.select(where={"provider_id": provider_id})
        return await self._fetch_one(sql, params)

    async def create_user(self, fields: dict[str, Any]) -> dict[str, Any]:
        """Insert a user and return the stored row.

        Without RETURNING support (MySQL) the row is the inserted values,
        including any generated id.
        """
        return await self._insert(self.users, fields)

    async def update_user(self, user_id: str, fields: dict[str, Any]) -> int:
        if not fields:
            return 0
        sql, params = self.users.update(where={"id": user_id}, data=fields)
        result = await self.backend.execute(sql, params)
        return result.affected_rows

    async def delete_user(self, user_id: str) -> int:
        sql, params = self.users.delete(where={"id": user_id})
        result = await self.backend.execute(sql, params)
        return result.affected_rows

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def get_session(self, session_id: str) -> dict[str, Any] | None:
        sql, params = self.sessions.select(where={"id": session_id})
        return await self._fetch_one(sql, params)

    async def get_sessions_by_user_id(self, user_id: str) -> list[dict[str, Any]]:
        sql, params = self.sessions.select(where={"user_id": user_id})
        result = await self.backend.query(sql, params)
        return result.rows

    async def create_session(self, fields: dict[str, Any]) -> dict[str, Any]:
        return await self._insert(self.sessions, fields)

    async def update_session(self, session_id: str, fields: dict[str, Any]) -> int:
        if not fields:
            return 0
        sql, params = self.sessions.update(where={"id": session_id}, data=fields)
        result = await self.backend.execute(sql, params)
        return result.affected_rows

    async def delete_session(self, session_id: str) -> int:
        sql, params = self.sessions.delete(where={"id": session_id})
        result = await self.backend.execute(sql, params)
        return result.affected_rows

    async def delete_sessions_by_user_id(self, user_id: str) -> int:
        sql, params = self.sessions.delete(where={"user_id": user_id})
        result = await self.backend.execute(sql, params)
        return result.affected_rows

    async def get_session_and_user(
        self, session_id: str
    ) -> tuple[dict[str, Any], dict[str, Any]] | None:
        """Fetch a session and its user with a single JOIN.

        Only session columns declared in the binding are returned; user
        columns come back in full.
        """
        users, sessions = self.users, self.sessions
        session_columns = ", ".join(
            f"s.{sessions.quote(name)} AS {sessions.quote(SESSION_ALIAS_PREFIX + name)}"
            for name in self.schema.session.column_names()
        )
        sql = (
            f"SELECT u.*, {session_columns} "
            f"FROM {sessions.table} s "
            f"INNER JOIN {users.table} u ON u.{users.quote('id')} = s.{sessions.quote('user_id')} "
            f"WHERE s.{sessions.quote('id')} = {sessions.placeholder(0)}"
        )
        row = await self._fetch_one(sql, [session_id])
        if row is None:
            return None

        session: dict[str, Any] = {}
        user: dict[str, Any] = {}
        for key, value in row.items():
            if key.startswith(SESSION_ALIAS_PREFIX):
                session[key[len(SESSION_ALIAS_PREFIX) :]] = value
            else:
                user[key] = value
        return session, user

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _fetch_one(self, sql: str, params: list[Any]) -> dict[str, Any] | None:
        result = await self.backend.query(sql, params)
        return result.rows[0] if result.rows else None

    async def _insert(self, builder: QueryBuilder, fields: dict[str, Any]) -> dict[str, Any]:
        sql, params, row = builder.insert(fields, returning=self.returning)
        result = await self.backend.execute(sql, params)
        if self.returning and result.rows:
            return result.rows[0]
        return row
