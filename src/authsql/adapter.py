"""Auth storage adapter facade.

The adapter is the single object an authentication library talks to. It is
bound to one dialect at construction time; that choice is resolved once into
a ``DialectStrategy`` carrying the dialect's error classifier and statement
capabilities, so no per-call branching on the dialect tag happens.

Every call:
    1. validates field names and encodes canonical timestamps for the driver
    2. runs exactly one statement through ``AuthQueries``
    3. decodes driver rows (timestamps back to canonical int) into row models
    4. on failure, classifies the driver error:
         recognized   -> ConstraintViolationError, raised from the original
         unrecognized -> the original exception, re-raised with a note

The adapter holds no state besides its configuration and is safe to share
across concurrent requests.

Example:
    backend = SqliteBackend()
    await backend.connect(ConnectionConfig(dialect="better-sqlite3", path="auth.db"))
    adapter = create_adapter(backend, "better-sqlite3")

    user = await adapter.create_user({"id": "u1", "provider_id": "email:a@b.com"})
    session = await adapter.create_session(
        {"id": "s1", "user_id": user.id, "expires": 1000, "idle_expires": 500}
    )
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Iterator, Mapping
from contextlib import asynccontextmanager, contextmanager
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

from .classifier import ConstraintKind, ErrorClassifier, Violation, get_classifier
from .errors import AdapterError, ConstraintViolationError, ViolationReason
from .queries import AuthQueries
from .schema import AuthSchema, SessionRow, UserRow
from .sql import ConnectionConfig, DatabaseBackend, DatabaseDialect, create_backend
from .sql.model import ModelSchema, quote_identifier
from .timestamps import to_canonical, to_driver

logger = logging.getLogger(__name__)

Fields = Mapping[str, Any] | BaseModel


@dataclass(frozen=True)
class DialectStrategy:
    """Everything dialect-specific the facade needs, resolved once.

    Attributes:
        dialect: Bound dialect
        classifier: Native error -> Violation rules for the dialect
        returning: Whether INSERT ... RETURNING is available
    """

    dialect: DatabaseDialect
    classifier: ErrorClassifier
    returning: bool

    def decode_row(self, row: Mapping[str, Any], timestamps: frozenset[str]) -> dict[str, Any]:
        """Driver row -> canonical values."""
        return {
            key: to_canonical(value) if key in timestamps and value is not None else value
            for key, value in row.items()
        }

    def encode_fields(
        self, fields: Mapping[str, Any], timestamps: frozenset[str]
    ) -> dict[str, Any]:
        """Canonical values -> driver parameters."""
        return {
            key: to_driver(value) if key in timestamps and value is not None else value
            for key, value in fields.items()
        }


_STRATEGIES: dict[DatabaseDialect, DialectStrategy] = {
    DatabaseDialect.POSTGRESQL: DialectStrategy(
        DatabaseDialect.POSTGRESQL, get_classifier(DatabaseDialect.POSTGRESQL), returning=True
    ),
    # MySQL has no INSERT ... RETURNING
    DatabaseDialect.MYSQL: DialectStrategy(
        DatabaseDialect.MYSQL, get_classifier(DatabaseDialect.MYSQL), returning=False
    ),
    DatabaseDialect.SQLITE: DialectStrategy(
        DatabaseDialect.SQLITE, get_classifier(DatabaseDialect.SQLITE), returning=True
    ),
}


def resolve_dialect(dialect: DatabaseDialect | str) -> DatabaseDialect:
    """Resolve a dialect tag, rejecting anything outside the supported set.

    Raises:
        ValueError: If the tag is not a supported dialect
    """
    try:
        return DatabaseDialect(dialect)
    except ValueError:
        supported = ", ".join(repr(d.value) for d in DatabaseDialect)
        raise ValueError(f"Unsupported dialect {dialect!r}; expected one of {supported}") from None


class AuthAdapter:
    """User and session persistence bound to one backend and dialect.

    Attributes:
        dialect: Bound dialect
        schema: Validated table binding
        strategy: Dialect strategy resolved at construction
    """

    def __init__(
        self,
        backend: DatabaseBackend,
        dialect: DatabaseDialect | str,
        schema: AuthSchema | None = None,
    ) -> None:
        """Bind the adapter.

        Raises:
            ValueError: If the dialect tag is unknown or does not match the backend
        """
        self.dialect = resolve_dialect(dialect)
        backend_dialect = getattr(backend, "dialect", None)
        if backend_dialect is not None and resolve_dialect(backend_dialect) != self.dialect:
            raise ValueError(
                f"Backend speaks {resolve_dialect(backend_dialect).value!r}, "
                f"adapter was configured for {self.dialect.value!r}"
            )

        self.backend = backend
        self.schema = schema or AuthSchema.default()
        self.strategy = _STRATEGIES[self.dialect]
        self._queries = AuthQueries(backend, self.schema, self.dialect, self.strategy.returning)
        self._user_timestamps = self.schema.timestamp_columns(self.schema.user)
        self._session_timestamps = self.schema.timestamp_columns(self.schema.session)

    def __repr__(self) -> str:
        return (
            f"AuthAdapter(dialect={self.dialect.value!r}, user={self.schema.user.table!r}, "
            f"session={self.schema.session.table!r})"
        )

    async def create_tables(self) -> None:
        """Create the bound tables if they do not exist."""
        await self.backend.execute_script(self.schema.to_sql(self.dialect))

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def get_user(self, user_id: str) -> UserRow | None:
        with self._translate_errors("get_user", self.schema.user):
            row = await self._queries.get_user(user_id)
        return self._user(row) if row is not None else None

    async def get_user_by_provider_id(self, provider_id: str) -> UserRow | None:
        with self._translate_errors("get_user_by_provider_id", self.schema.user):
            row = await self._queries.get_user_by_provider_id(provider_id)
        return self._user(row) if row is not None else None

    async def create_user(self, fields: Fields) -> UserRow:
        """Insert a user. A missing ``id`` is generated.

        Raises:
            ConstraintViolationError: ``id`` or ``provider_id`` already exists
        """
        values = self._prepare(fields, self._user_timestamps)
        with self._translate_errors("create_user", self.schema.user):
            row = await self._queries.create_user(values)
        return self._user(row)

    async def update_user(self, user_id: str, fields: Fields) -> int:
        """Partially update a user.

        Returns:
            Number of rows changed; 0 means no such user
        """
        values = self._prepare(fields, self._user_timestamps, immutable=("id",))
        with self._translate_errors("update_user", self.schema.user):
            return await self._queries.update_user(user_id, values)

    async def delete_user(self, user_id: str) -> int:
        """Delete a user. Sessions are only removed if the schema cascades.

        Raises:
            ConstraintViolationError: Sessions still reference the user
        """
        with self._translate_errors("delete_user", self.schema.user):
            return await self._queries.delete_user(user_id)

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def get_session(self, session_id: str) -> SessionRow | None:
        with self._translate_errors("get_session", self.schema.session):
            row = await self._queries.get_session(session_id)
        return self._session(row) if row is not None else None

    async def get_sessions_by_user_id(self, user_id: str) -> list[SessionRow]:
        with self._translate_errors("get_sessions_by_user_id", self.schema.session):
            rows = await self._queries.get_sessions_by_user_id(user_id)
        return [self._session(row) for row in rows]

    async def create_session(self, fields: Fields) -> SessionRow:
        """Insert a session.

        Raises:
            ConstraintViolationError: ``id`` already exists or ``user_id`` has no user
        """
        values = self._prepare(fields, self._session_timestamps)
        with self._translate_errors("create_session", self.schema.session):
            row = await self._queries.create_session(values)
        return self._session(row)

    async def update_session(self, session_id: str, fields: Fields) -> int:
        """Partially update a session's expiry columns (and extension columns).

        Returns:
            Number of rows changed; 0 means no such session
        """
        values = self._prepare(fields, self._session_timestamps, immutable=("id", "user_id"))
        with self._translate_errors("update_session", self.schema.session):
            return await self._queries.update_session(session_id, values)

    async def delete_session(self, session_id: str) -> int:
        with self._translate_errors("delete_session", self.schema.session):
            return await self._queries.delete_session(session_id)

    async def delete_sessions_by_user_id(self, user_id: str) -> int:
        with self._translate_errors("delete_sessions_by_user_id", self.schema.session):
            return await self._queries.delete_sessions_by_user_id(user_id)

    async def get_session_and_user(self, session_id: str) -> tuple[SessionRow, UserRow] | None:
        """Fetch a session together with its user in one statement."""
        with self._translate_errors("get_session_and_user", self.schema.session):
            found = await self._queries.get_session_and_user(session_id)
        if found is None:
            return None
        session, user = found
        return self._session(session), self._user(user)

    # ------------------------------------------------------------------
    # Boundary conversion
    # ------------------------------------------------------------------

    def _prepare(
        self,
        fields: Fields,
        timestamps: frozenset[str],
        immutable: tuple[str, ...] = (),
    ) -> dict[str, Any]:
        values = fields.model_dump() if isinstance(fields, BaseModel) else dict(fields)
        for name in values:
            quote_identifier(name, self.dialect)
            if name in immutable:
                raise ValueError(f"Column '{name}' cannot be updated")
        return self.strategy.encode_fields(values, timestamps)

    def _user(self, row: Mapping[str, Any]) -> UserRow:
        return UserRow.model_validate(self.strategy.decode_row(row, self._user_timestamps))

    def _session(self, row: Mapping[str, Any]) -> SessionRow:
        return SessionRow.model_validate(self.strategy.decode_row(row, self._session_timestamps))

    # ------------------------------------------------------------------
    # Error normalization
    # ------------------------------------------------------------------

    @contextmanager
    def _translate_errors(self, operation: str, table: ModelSchema) -> Iterator[None]:
        try:
            yield
        except AdapterError:
            raise
        except Exception as exc:
            violation = self.strategy.classifier.classify(exc)
            if violation is None:
                logger.warning(
                    f"Unrecognized {self.dialect.value} error during {operation}: "
                    f"{type(exc).__name__}: {exc}"
                )
                exc.add_note(f"authsql: {operation} failed on dialect {self.dialect.value!r}")
                raise
            error = self._violation_error(violation, operation, table)
            logger.debug(f"{operation} rejected: {error}")
            raise error from exc

    def _violation_error(
        self, violation: Violation, operation: str, table: ModelSchema
    ) -> ConstraintViolationError:
        column = violation.columns[0] if violation.columns else None
        if column is None and violation.primary_key:
            pk = table.get_primary_key()
            column = pk.name if pk else None

        return ConstraintViolationError(
            kind=violation.kind,
            reason=self._reason(violation.kind, column, table),
            dialect=self.dialect,
            operation=operation,
            table=table.table,
            column=column,
            constraint=violation.constraint,
        )

    def _reason(
        self, kind: ConstraintKind, column: str | None, table: ModelSchema
    ) -> ViolationReason:
        on_user = table is self.schema.user

        if kind is ConstraintKind.UNIQUE:
            if on_user and column == "provider_id":
                return ViolationReason.DUPLICATE_PROVIDER_ID
            if column == "id":
                return (
                    ViolationReason.DUPLICATE_USER_ID
                    if on_user
                    else ViolationReason.DUPLICATE_SESSION_ID
                )
        elif kind is ConstraintKind.FOREIGN_KEY:
            # A session write points at a missing user; a user write is
            # blocked by sessions that still point at it.
            return ViolationReason.USER_REFERENCED if on_user else ViolationReason.INVALID_USER_ID

        return ViolationReason.UNKNOWN


def create_adapter(
    backend: DatabaseBackend,
    dialect: DatabaseDialect | str,
    schema: AuthSchema | None = None,
) -> AuthAdapter:
    """Bind an adapter to a connected backend.

    Args:
        backend: Connected backend (the query layer statements run on)
        dialect: "pg", "mysql" or "better-sqlite3" (aliases accepted)
        schema: Table binding; defaults to the minimal user/session tables

    Raises:
        ValueError: Unknown dialect, or dialect/backend mismatch
        SchemaBindingError: ``schema`` lacks required columns
    """
    return AuthAdapter(backend, dialect, schema)


@asynccontextmanager
async def open_adapter(
    config: ConnectionConfig,
    schema: AuthSchema | None = None,
    create_tables: bool = False,
) -> AsyncIterator[AuthAdapter]:
    """Connect a backend for ``config`` and yield an adapter bound to it.

    The backend is disconnected when the context exits.

    Example:
        async with open_adapter(ConnectionConfig.from_env(), create_tables=True) as adapter:
            user = await adapter.get_user("u1")
    """
    backend = create_backend(config.dialect)
    await backend.connect(config)
    try:
        adapter = AuthAdapter(backend, config.dialect, schema)
        if create_tables:
            await adapter.create_tables()
        yield adapter
    finally:
        await backend.disconnect()
