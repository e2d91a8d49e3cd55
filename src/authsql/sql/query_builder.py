"""Query builder for model-based CRUD operations.

This module generates parameterized SQL statements for insert, select, update
and delete operations based on model schemas.

Example:
    schema = ModelSchema.from_dict(model_spec)
    builder = QueryBuilder(schema, DatabaseDialect.SQLITE)

    # Insert
    sql, params, row = builder.insert({"id": "u1", "provider_id": "email:a@b.com"})
    # -> INSERT INTO "user" ("id", "provider_id") VALUES (?, ?)
    # -> ["u1", "email:a@b.com"]

    # Select with filters
    sql, params = builder.select(where={"user_id": "u1"})
    # -> SELECT * FROM "session" WHERE "user_id" = ?
    # -> ["u1"]
"""

from __future__ import annotations

import secrets
from typing import Any

from .backend import DatabaseDialect
from .model import ModelSchema, quote_identifier


class QueryBuilder:
    """Builds parameterized SQL queries from model schemas.

    Values always travel as parameters. Table and column names are validated
    and quoted by ``quote_identifier``.

    Attributes:
        schema: The model schema defining the table structure
        dialect: Target database dialect for placeholder and quoting differences
    """

    def __init__(self, schema: ModelSchema, dialect: DatabaseDialect):
        """Initialize query builder.

        Args:
            schema: Model schema for the table
            dialect: Target database dialect
        """
        self.schema = schema
        self.dialect = dialect

    @property
    def table(self) -> str:
        """Quoted table name."""
        return self.quote(self.schema.table)

    def quote(self, identifier: str) -> str:
        return quote_identifier(identifier, self.dialect)

    def placeholder(self, index: int) -> str:
        """Get parameter placeholder for the dialect.

        Args:
            index: 0-based parameter index

        Returns:
            Placeholder string (?, $1, %s depending on dialect)
        """
        if self.dialect == DatabaseDialect.SQLITE:
            return "?"
        elif self.dialect == DatabaseDialect.POSTGRESQL:
            return f"${index + 1}"
        else:  # MYSQL
            return "%s"

    def with_auto_values(self, data: dict[str, Any]) -> dict[str, Any]:
        """Return a copy of an insert row with missing auto-generated ids filled in."""
        result = dict(data)

        for col in self.schema.columns:
            if col.auto == "uuid" and result.get(col.name) is None:
                result[col.name] = secrets.token_hex(16)

        return result

    def insert(
        self, data: dict[str, Any], returning: bool = False
    ) -> tuple[str, list[Any], dict[str, Any]]:
        """Generate INSERT statement.

        Args:
            data: Row data to insert
            returning: Append ``RETURNING *`` (PostgreSQL and SQLite only)

        Returns:
            Tuple of (SQL statement, parameter list, row as inserted)
        """
        row = self.with_auto_values(data)
        if not row:
            raise ValueError("INSERT requires at least one column")

        columns = list(row.keys())
        values = list(row.values())

        col_list = ", ".join(self.quote(c) for c in columns)
        val_list = ", ".join(self.placeholder(i) for i in range(len(values)))

        sql = f"INSERT INTO {self.table} ({col_list}) VALUES ({val_list})"
        if returning:
            sql += " RETURNING *"

        return sql, values, row

    def select(
        self,
        where: dict[str, Any] | None = None,
        columns: list[str] | None = None,
    ) -> tuple[str, list[Any]]:
        """Generate SELECT statement.

        Args:
            where: Equality filter conditions (optional)
            columns: Specific columns to select (optional, default all)

        Returns:
            Tuple of (SQL statement, parameter list)
        """
        col_list = ", ".join(self.quote(c) for c in columns) if columns else "*"

        sql = f"SELECT {col_list} FROM {self.table}"
        params: list[Any] = []

        if where:
            where_sql, params = self._build_where(where, 0)
            sql += f" WHERE {where_sql}"

        return sql, params

    def update(self, where: dict[str, Any], data: dict[str, Any]) -> tuple[str, list[Any]]:
        """Generate UPDATE statement.

        Args:
            where: Filter conditions (required)
            data: Column values to update

        Returns:
            Tuple of (SQL statement, parameter list)
        """
        if not where:
            raise ValueError("UPDATE requires a WHERE clause for safety")
        if not data:
            raise ValueError("UPDATE requires data to update")

        set_parts = []
        params: list[Any] = []
        for col, value in data.items():
            set_parts.append(f"{self.quote(col)} = {self.placeholder(len(params))}")
            params.append(value)

        where_sql, where_params = self._build_where(where, len(params))
        params.extend(where_params)

        sql = f"UPDATE {self.table} SET {', '.join(set_parts)} WHERE {where_sql}"

        return sql, params

    def delete(self, where: dict[str, Any]) -> tuple[str, list[Any]]:
        """Generate DELETE statement.

        Args:
            where: Filter conditions (required)

        Returns:
            Tuple of (SQL statement, parameter list)
        """
        if not where:
            raise ValueError("DELETE requires a WHERE clause for safety")

        where_sql, params = self._build_where(where, 0)
        sql = f"DELETE FROM {self.table} WHERE {where_sql}"

        return sql, params

    def _build_where(self, where: dict[str, Any], param_offset: int = 0) -> tuple[str, list[Any]]:
        """Build WHERE clause from equality conditions.

        ``None`` values become ``IS NULL``; everything else is bound.

        Args:
            where: Condition dictionary
            param_offset: Starting index for parameters

        Returns:
            Tuple of (WHERE clause SQL, parameter list)
        """
        conditions = []
        params: list[Any] = []

        for col, value in where.items():
            if value is None:
                conditions.append(f"{self.quote(col)} IS NULL")
            else:
                conditions.append(
                    f"{self.quote(col)} = {self.placeholder(param_offset + len(params))}"
                )
                params.append(value)

        return " AND ".join(conditions), params
