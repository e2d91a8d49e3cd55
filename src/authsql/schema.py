"""Schema binding for the user and session tables.

The adapter depends on a fixed minimal shape:

    user:    id (PK), provider_id (unique, not null), hashed_password (nullable)
    session: id (PK), user_id (FK -> user.id, not null),
             expires (bigint, not null), idle_expires (bigint, not null)

Callers may add columns to either table. Extension columns are never
interpreted here; they flow through reads and writes verbatim. An
``AuthSchema`` validates the required shape once, when the adapter is
configured, so a mismatched table never surfaces as a runtime error.

Example:
    schema = AuthSchema(
        user=user_schema(extra_columns={"email": {"type": "varchar", "unique": True}}),
        session=session_schema(on_delete="cascade"),
    )
    await backend.execute_script(schema.to_sql(DatabaseDialect.SQLITE))
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict

from .errors import SchemaBindingError
from .sql.backend import DatabaseDialect
from .sql.model import ColumnDef, ModelSchema

TEXT_TYPES = frozenset({"text", "varchar"})
TIMESTAMP_TYPE = "bigint"


# ============================================================================
# Row models
# ============================================================================


class UserRow(BaseModel):
    """A row of the user table.

    Extension attributes are kept as extra fields; ``model_dump()`` returns
    them alongside the required columns.
    """

    model_config = ConfigDict(extra="allow")

    id: str
    provider_id: str
    hashed_password: str | None = None

    @property
    def attributes(self) -> dict[str, Any]:
        """Extension columns only."""
        return dict(self.model_extra or {})


class SessionRow(BaseModel):
    """A row of the session table. Timestamps are canonical ints."""

    model_config = ConfigDict(extra="allow")

    id: str
    user_id: str
    expires: int
    idle_expires: int


# ============================================================================
# Table shapes
# ============================================================================


def user_schema(
    table: str = "user", extra_columns: dict[str, dict[str, Any]] | None = None
) -> ModelSchema:
    """Build the minimal user table, optionally with extension columns."""
    columns: dict[str, dict[str, Any]] = {
        "id": {"type": "varchar", "primary": True, "auto": "uuid"},
        "provider_id": {"type": "varchar", "required": True, "unique": True},
        "hashed_password": {"type": "text"},
    }
    columns.update(extra_columns or {})
    return ModelSchema.from_dict({"table": table, "columns": columns})


def session_schema(
    table: str = "session",
    user_table: str = "user",
    on_delete: Literal["cascade", "set_null", "restrict"] | None = None,
    extra_columns: dict[str, dict[str, Any]] | None = None,
) -> ModelSchema:
    """Build the minimal session table.

    ``on_delete`` is the only way to get cascading session deletion; without
    it, deleting a user that still has sessions is rejected by the backend.
    """
    columns: dict[str, dict[str, Any]] = {
        "id": {"type": "varchar", "primary": True},
        "user_id": {
            "type": "varchar",
            "required": True,
            "references": f"{user_table}.id",
            "on_delete": on_delete,
        },
        "expires": {"type": TIMESTAMP_TYPE, "required": True},
        "idle_expires": {"type": TIMESTAMP_TYPE, "required": True},
    }
    columns.update(extra_columns or {})
    return ModelSchema.from_dict(
        {"table": table, "columns": columns, "indexes": [{"columns": ["user_id"]}]}
    )


@dataclass(frozen=True)
class _Requirement:
    name: str
    types: frozenset[str]
    primary: bool = False
    required: bool = False
    unique: bool = False
    nullable: bool = False

    def problems(self, column: ColumnDef | None) -> list[str]:
        if column is None:
            return [f"missing column '{self.name}'"]
        found = []
        if column.type not in self.types:
            expected = " or ".join(sorted(self.types))
            found.append(f"column '{self.name}' must be {expected}, got {column.type}")
        if self.primary and not column.primary:
            found.append(f"column '{self.name}' must be the primary key")
        if self.required and column.nullable:
            found.append(f"column '{self.name}' must be NOT NULL")
        if self.unique and not (column.unique or column.primary):
            found.append(f"column '{self.name}' must be UNIQUE")
        if self.nullable and not column.nullable:
            found.append(f"column '{self.name}' must be nullable")
        return found


_USER_REQUIREMENTS = (
    _Requirement("id", TEXT_TYPES, primary=True),
    _Requirement("provider_id", TEXT_TYPES, required=True, unique=True),
    _Requirement("hashed_password", TEXT_TYPES, nullable=True),
)

_SESSION_REQUIREMENTS = (
    _Requirement("id", TEXT_TYPES, primary=True),
    _Requirement("user_id", TEXT_TYPES, required=True),
    _Requirement("expires", frozenset({TIMESTAMP_TYPE}), required=True),
    _Requirement("idle_expires", frozenset({TIMESTAMP_TYPE}), required=True),
)


def _validate(schema: ModelSchema, requirements: tuple[_Requirement, ...]) -> list[str]:
    problems: list[str] = []
    for requirement in requirements:
        problems.extend(requirement.problems(schema.get_column(requirement.name)))
    return problems


@dataclass(frozen=True)
class AuthSchema:
    """Validated binding of the user and session tables.

    Raises:
        SchemaBindingError: If a table lacks a required column, or a required
            column has an incompatible type or constraint
    """

    user: ModelSchema
    session: ModelSchema

    def __post_init__(self) -> None:
        for schema, requirements in (
            (self.user, _USER_REQUIREMENTS),
            (self.session, _SESSION_REQUIREMENTS),
        ):
            problems = _validate(schema, requirements)
            if problems:
                raise SchemaBindingError(schema.table, problems)

        user_id = self.session.get_column("user_id")
        assert user_id is not None
        if user_id.reference_target() != (self.user.table, "id"):
            raise SchemaBindingError(
                self.session.table,
                [f"column 'user_id' must reference {self.user.table}.id"],
            )

    @classmethod
    def default(
        cls,
        user_table: str = "user",
        session_table: str = "session",
        on_delete: Literal["cascade", "set_null", "restrict"] | None = None,
    ) -> AuthSchema:
        """The minimal schema with no extension columns."""
        return cls(
            user=user_schema(user_table),
            session=session_schema(session_table, user_table=user_table, on_delete=on_delete),
        )

    def timestamp_columns(self, schema: ModelSchema) -> frozenset[str]:
        """Columns of a table that hold canonical 64-bit timestamps."""
        return frozenset(schema.columns_of_type(TIMESTAMP_TYPE))

    def to_sql(self, dialect: DatabaseDialect) -> str:
        """DDL for both tables, user first so the foreign key resolves."""
        return "\n".join(
            schema.to_full_schema_sql(dialect) for schema in (self.user, self.session)
        )


__all__ = [
    "AuthSchema",
    "SessionRow",
    "UserRow",
    "session_schema",
    "user_schema",
]
