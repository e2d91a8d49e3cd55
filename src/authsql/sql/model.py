"""Model schema and DDL generation for the auth tables.

This module provides declarative table definitions that generate database DDL
(CREATE TABLE, CREATE INDEX) for every supported dialect, plus the identifier
quoting shared with the query builder.

Example model definition:
    model = {
        "table": "session",
        "columns": {
            "id": {"type": "varchar", "primary": True},
            "user_id": {"type": "varchar", "required": True, "references": "user.id"},
            "expires": {"type": "bigint", "required": True},
            "idle_expires": {"type": "bigint", "required": True},
        },
        "indexes": [{"columns": ["user_id"]}],
    }

Usage:
    schema = ModelSchema.from_dict(model)
    ddl = schema.to_full_schema_sql(DatabaseDialect.SQLITE)
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Literal

from .backend import DatabaseDialect

IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Column type mapping per dialect
TYPE_MAPPING: dict[str, dict[DatabaseDialect, str]] = {
    "text": {
        DatabaseDialect.SQLITE: "TEXT",
        DatabaseDialect.POSTGRESQL: "TEXT",
        DatabaseDialect.MYSQL: "TEXT",
    },
    "varchar": {
        DatabaseDialect.SQLITE: "TEXT",
        DatabaseDialect.POSTGRESQL: "VARCHAR(255)",
        DatabaseDialect.MYSQL: "VARCHAR(255)",
    },
    "integer": {
        DatabaseDialect.SQLITE: "INTEGER",
        DatabaseDialect.POSTGRESQL: "INTEGER",
        DatabaseDialect.MYSQL: "INT",
    },
    "bigint": {
        DatabaseDialect.SQLITE: "INTEGER",
        DatabaseDialect.POSTGRESQL: "BIGINT",
        DatabaseDialect.MYSQL: "BIGINT",
    },
    "real": {
        DatabaseDialect.SQLITE: "REAL",
        DatabaseDialect.POSTGRESQL: "DOUBLE PRECISION",
        DatabaseDialect.MYSQL: "DOUBLE",
    },
    "boolean": {
        DatabaseDialect.SQLITE: "INTEGER",
        DatabaseDialect.POSTGRESQL: "BOOLEAN",
        DatabaseDialect.MYSQL: "TINYINT(1)",
    },
    "json": {
        DatabaseDialect.SQLITE: "JSON TEXT",
        DatabaseDialect.POSTGRESQL: "JSONB",
        DatabaseDialect.MYSQL: "JSON",
    },
    "blob": {
        DatabaseDialect.SQLITE: "BLOB",
        DatabaseDialect.POSTGRESQL: "BYTEA",
        DatabaseDialect.MYSQL: "BLOB",
    },
}


def quote_identifier(name: str, dialect: DatabaseDialect) -> str:
    """Validate and quote a table or column name for the dialect.

    Identifiers are the only caller-influenced text ever placed in SQL, so
    anything outside ``[A-Za-z_][A-Za-z0-9_]*`` is rejected.

    Raises:
        ValueError: If the name is not a plain identifier
    """
    if not isinstance(name, str) or not IDENTIFIER_PATTERN.match(name):
        raise ValueError(f"Invalid SQL identifier: {name!r}")
    if dialect == DatabaseDialect.MYSQL:
        return f"`{name}`"
    return f'"{name}"'


@dataclass
class ColumnDef:
    """Column definition for a database table.

    Attributes:
        name: Column name
        type: Column type (text, varchar, integer, bigint, real, boolean, json, blob)
        primary: Whether this is the primary key
        required: Whether the column is NOT NULL
        unique: Whether the column carries a UNIQUE constraint
        default: Default value
        auto: Auto-generation type (uuid) applied on insert when the value is missing
        references: Foreign key reference (table.column)
        on_delete: Foreign key on delete action (cascade, set_null, restrict)
    """

    name: str
    type: str
    primary: bool = False
    required: bool = False
    unique: bool = False
    default: Any = None
    auto: Literal["uuid"] | None = None
    references: str | None = None
    on_delete: Literal["cascade", "set_null", "restrict"] | None = None

    @classmethod
    def from_dict(cls, name: str, spec: dict[str, Any]) -> ColumnDef:
        """Create ColumnDef from dictionary specification."""
        return cls(
            name=name,
            type=spec.get("type", "text"),
            primary=spec.get("primary", False),
            required=spec.get("required", False),
            unique=spec.get("unique", False),
            default=spec.get("default"),
            auto=spec.get("auto"),
            references=spec.get("references"),
            on_delete=spec.get("on_delete"),
        )

    @property
    def nullable(self) -> bool:
        return not (self.primary or self.required)

    def reference_target(self) -> tuple[str, str] | None:
        """Split ``references`` into (table, column)."""
        if not self.references:
            return None
        if "." not in self.references:
            raise ValueError(
                f"Invalid reference format '{self.references}'. Expected 'table.column'"
            )
        table, column = self.references.split(".", 1)
        return table, column

    def to_sql(self, dialect: DatabaseDialect) -> str:
        """Generate column definition SQL for the specified dialect."""
        type_map = TYPE_MAPPING.get(self.type)
        if not type_map:
            raise ValueError(f"Unknown column type: {self.type}")

        parts = [quote_identifier(self.name, dialect), type_map[dialect]]

        if self.primary:
            parts.append("PRIMARY KEY")

        # SQLite allows NULL in non-INTEGER primary keys unless told otherwise
        if self.required or self.primary:
            parts.append("NOT NULL")

        if self.unique and not self.primary:
            parts.append("UNIQUE")

        if self.default is not None:
            parts.append(f"DEFAULT {self._format_default(self.default, dialect)}")

        return " ".join(parts)

    def _format_default(self, value: Any, dialect: DatabaseDialect) -> str:
        """Format default value for SQL."""
        if isinstance(value, bool):
            if dialect == DatabaseDialect.POSTGRESQL:
                return str(value).upper()
            return "1" if value else "0"
        if isinstance(value, (int, float)):
            return str(value)
        escaped = str(value).replace("'", "''")
        return f"'{escaped}'"

    def foreign_key_sql(self, dialect: DatabaseDialect) -> str | None:
        """Generate FOREIGN KEY constraint SQL if this column has a reference."""
        target = self.reference_target()
        if target is None:
            return None

        ref_table, ref_column = target
        fk_sql = (
            f"FOREIGN KEY ({quote_identifier(self.name, dialect)}) "
            f"REFERENCES {quote_identifier(ref_table, dialect)}"
            f"({quote_identifier(ref_column, dialect)})"
        )

        if self.on_delete:
            action = self.on_delete.upper().replace("_", " ")
            fk_sql += f" ON DELETE {action}"

        return fk_sql


@dataclass
class IndexDef:
    """Index definition for a database table.

    Attributes:
        columns: List of column names in the index
        name: Optional explicit index name (auto-generated if not provided)
        unique: Whether this is a unique index
    """

    columns: list[str]
    name: str | None = None
    unique: bool = False

    @classmethod
    def from_dict(cls, spec: dict[str, Any]) -> IndexDef:
        """Create IndexDef from dictionary specification."""
        columns = spec.get("columns", [])
        if isinstance(columns, str):
            columns = [columns]
        return cls(columns=columns, name=spec.get("name"), unique=spec.get("unique", False))

    def index_name(self, table_name: str) -> str:
        return self.name or f"idx_{table_name}_{'_'.join(self.columns)}"

    def _column_list(self, dialect: DatabaseDialect) -> str:
        return ", ".join(quote_identifier(col, dialect) for col in self.columns)

    def to_sql(self, table_name: str, dialect: DatabaseDialect) -> str:
        """Generate CREATE INDEX IF NOT EXISTS SQL."""
        unique_clause = "UNIQUE " if self.unique else ""
        return (
            f"CREATE {unique_clause}INDEX IF NOT EXISTS "
            f"{quote_identifier(self.index_name(table_name), dialect)} "
            f"ON {quote_identifier(table_name, dialect)} ({self._column_list(dialect)})"
        )

    def to_inline_sql(self, table_name: str, dialect: DatabaseDialect) -> str:
        """Generate an index clause for use inside CREATE TABLE (MySQL)."""
        keyword = "UNIQUE KEY" if self.unique else "INDEX"
        return (
            f"{keyword} {quote_identifier(self.index_name(table_name), dialect)} "
            f"({self._column_list(dialect)})"
        )


@dataclass
class ModelSchema:
    """Complete table schema definition.

    Generates DDL for creating tables and indexes across different dialects.

    Attributes:
        table: Table name
        columns: List of column definitions
        indexes: List of index definitions
    """

    table: str
    columns: list[ColumnDef] = field(default_factory=list)
    indexes: list[IndexDef] = field(default_factory=list)

    @classmethod
    def from_dict(cls, spec: dict[str, Any]) -> ModelSchema:
        """Create ModelSchema from dictionary specification.

        Args:
            spec: Model specification dictionary with:
                - table: Table name (required)
                - columns: Dict of column_name -> column_spec
                - indexes: List of index specifications

        Raises:
            ValueError: If table name is missing or columns is empty
        """
        table = spec.get("table")
        if not table:
            raise ValueError("Model must have a 'table' name")

        columns_spec = spec.get("columns", {})
        if not columns_spec:
            raise ValueError("Model must have at least one column")

        columns = [ColumnDef.from_dict(name, col_spec) for name, col_spec in columns_spec.items()]
        indexes = [IndexDef.from_dict(idx_spec) for idx_spec in spec.get("indexes", [])]

        return cls(table=table, columns=columns, indexes=indexes)

    def get_primary_key(self) -> ColumnDef | None:
        """Get the primary key column, if any."""
        for col in self.columns:
            if col.primary:
                return col
        return None

    def get_column(self, name: str) -> ColumnDef | None:
        for col in self.columns:
            if col.name == name:
                return col
        return None

    def columns_of_type(self, column_type: str) -> list[str]:
        return [col.name for col in self.columns if col.type == column_type]

    def to_create_sql(self, dialect: DatabaseDialect) -> str:
        """Generate CREATE TABLE IF NOT EXISTS SQL.

        MySQL has no CREATE INDEX IF NOT EXISTS, so its indexes are declared
        inline here instead of by ``to_index_sql``.
        """
        definitions = [col.to_sql(dialect) for col in self.columns]

        for col in self.columns:
            fk_sql = col.foreign_key_sql(dialect)
            if fk_sql:
                definitions.append(fk_sql)

        if dialect == DatabaseDialect.MYSQL:
            definitions.extend(idx.to_inline_sql(self.table, dialect) for idx in self.indexes)

        columns_sql = ",\n    ".join(definitions)
        return (
            f"CREATE TABLE IF NOT EXISTS {quote_identifier(self.table, dialect)} (\n"
            f"    {columns_sql}\n)"
        )

    def to_index_sql(self, dialect: DatabaseDialect) -> list[str]:
        """Generate CREATE INDEX IF NOT EXISTS statements."""
        if dialect == DatabaseDialect.MYSQL:
            return []
        return [idx.to_sql(self.table, dialect) for idx in self.indexes]

    def to_full_schema_sql(self, dialect: DatabaseDialect) -> str:
        """Generate complete schema SQL (table + indexes)."""
        statements = [self.to_create_sql(dialect)]
        statements.extend(self.to_index_sql(dialect))
        return ";\n".join(statements) + ";"

    def column_names(self) -> list[str]:
        """Get list of all column names."""
        return [col.name for col in self.columns]
