"""Dialect error classification.

Each driver reports the same logical failure (duplicate key, missing foreign
key row, NULL in a NOT NULL column) with a different native error shape:

    PostgreSQL (asyncpg)   exc.sqlstate "23505" + exc.detail "Key (col)=(...) ..."
    MySQL (PyMySQL)        exc.args == (1062, "Duplicate entry '...' for key 'tbl.key'")
    SQLite (sqlite3)       exc.sqlite_errorname "SQLITE_CONSTRAINT_UNIQUE"
                           + "UNIQUE constraint failed: tbl.col"

A classifier is a per-dialect rule table from native code to ConstraintKind,
plus a parser that extracts whatever table/column/constraint detail the
backend exposes. ``classify`` is a pure function of the error value; it
returns None for anything it does not recognize so the caller can re-raise
the original error untouched.

Example:
    >>> classifier = get_classifier(DatabaseDialect.SQLITE)
    >>> violation = classifier.classify(exc)
    >>> violation.kind, violation.table, violation.columns
    (<ConstraintKind.UNIQUE: 'unique'>, 'user', ('provider_id',))
"""

from __future__ import annotations

import re
import sqlite3
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import ClassVar

from .sql.backend import DatabaseDialect


class ConstraintKind(str, Enum):
    """Normalized constraint families."""

    UNIQUE = "unique"
    FOREIGN_KEY = "foreign_key"
    NOT_NULL = "not_null"


@dataclass(frozen=True)
class Violation:
    """A recognized constraint failure.

    Attributes:
        kind: Normalized constraint family
        code: Native error code the rule matched
        table: Table named by the backend, if any
        columns: Columns named by the backend (empty when not exposed)
        constraint: Constraint or index name, if any
        primary_key: Backend reported the primary key rather than a named column
    """

    kind: ConstraintKind
    code: str
    table: str | None = None
    columns: tuple[str, ...] = ()
    constraint: str | None = None
    primary_key: bool = False


class ErrorClassifier(ABC):
    """Maps one dialect's native errors onto ConstraintKind."""

    dialect: ClassVar[DatabaseDialect]
    RULES: ClassVar[dict[str, ConstraintKind]]

    def classify(self, error: BaseException) -> Violation | None:
        """Classify a backend error, or return None if it is not recognized."""
        code = self.error_code(error)
        if code is None:
            return None
        kind = self.RULES.get(code)
        if kind is None:
            return None
        return self.describe(error, kind, code)

    @abstractmethod
    def error_code(self, error: BaseException) -> str | None:
        """Extract the native error code, if the error has the dialect's shape."""
        ...

    @abstractmethod
    def describe(self, error: BaseException, kind: ConstraintKind, code: str) -> Violation:
        """Build a Violation with whatever detail the error exposes."""
        ...


# ============================================================================
# PostgreSQL
# ============================================================================

_PG_DETAIL_KEY = re.compile(r"Key \((?P<columns>.+?)\)=\(")


class PostgresErrorClassifier(ErrorClassifier):
    """SQLSTATE-based rules for asyncpg (and psycopg-style ``pgcode``)."""

    dialect = DatabaseDialect.POSTGRESQL
    RULES = {
        "23505": ConstraintKind.UNIQUE,
        "23503": ConstraintKind.FOREIGN_KEY,
        "23502": ConstraintKind.NOT_NULL,
    }

    def error_code(self, error: BaseException) -> str | None:
        code = getattr(error, "sqlstate", None) or getattr(error, "pgcode", None)
        return str(code) if code else None

    def describe(self, error: BaseException, kind: ConstraintKind, code: str) -> Violation:
        constraint = getattr(error, "constraint_name", None)
        table = getattr(error, "table_name", None)

        columns: tuple[str, ...] = ()
        column = getattr(error, "column_name", None)
        if column:
            columns = (column,)
        else:
            match = _PG_DETAIL_KEY.search(getattr(error, "detail", None) or "")
            if match:
                columns = tuple(c.strip().strip('"') for c in match.group("columns").split(","))

        return Violation(
            kind=kind,
            code=code,
            table=table,
            columns=columns,
            constraint=constraint,
            primary_key=bool(constraint and constraint.endswith("_pkey")),
        )


# ============================================================================
# MySQL / MariaDB
# ============================================================================

_MYSQL_DUPLICATE_KEY = re.compile(r"for key '(?P<key>[^']+)'")
_MYSQL_FOREIGN_KEY = re.compile(
    r"\(`[^`]+`\.`(?P<table>[^`]+)`, CONSTRAINT `(?P<constraint>[^`]+)` "
    r"FOREIGN KEY \((?P<columns>[^)]+)\)"
)
_MYSQL_NOT_NULL = re.compile(r"Column '(?P<column>[^']+)' cannot be null")


class MySQLErrorClassifier(ErrorClassifier):
    """Errno-based rules for PyMySQL errors raised through aiomysql."""

    dialect = DatabaseDialect.MYSQL
    RULES = {
        "1062": ConstraintKind.UNIQUE,  # ER_DUP_ENTRY
        "1586": ConstraintKind.UNIQUE,  # ER_DUP_ENTRY_WITH_KEY_NAME
        "1452": ConstraintKind.FOREIGN_KEY,  # ER_NO_REFERENCED_ROW_2
        "1216": ConstraintKind.FOREIGN_KEY,  # ER_NO_REFERENCED_ROW
        "1451": ConstraintKind.FOREIGN_KEY,  # ER_ROW_IS_REFERENCED_2
        "1217": ConstraintKind.FOREIGN_KEY,  # ER_ROW_IS_REFERENCED
        "1048": ConstraintKind.NOT_NULL,  # ER_BAD_NULL_ERROR
    }

    def error_code(self, error: BaseException) -> str | None:
        args = getattr(error, "args", ())
        if args and isinstance(args[0], int) and not isinstance(args[0], bool):
            return str(args[0])
        return None

    def describe(self, error: BaseException, kind: ConstraintKind, code: str) -> Violation:
        message = str(error.args[1]) if len(error.args) > 1 else ""

        if kind is ConstraintKind.UNIQUE:
            match = _MYSQL_DUPLICATE_KEY.search(message)
            if not match:
                return Violation(kind=kind, code=code)
            # MySQL 8.0.19+ reports 'table.key', older servers just 'key'
            table, _, key = match.group("key").rpartition(".")
            if key == "PRIMARY":
                return Violation(
                    kind=kind, code=code, table=table or None, constraint=key, primary_key=True
                )
            # Single-column unique keys are named after their column by default
            return Violation(
                kind=kind, code=code, table=table or None, columns=(key,), constraint=key
            )

        if kind is ConstraintKind.FOREIGN_KEY:
            match = _MYSQL_FOREIGN_KEY.search(message)
            if not match:
                return Violation(kind=kind, code=code)
            columns = tuple(c.strip().strip("`") for c in match.group("columns").split(","))
            return Violation(
                kind=kind,
                code=code,
                table=match.group("table"),
                columns=columns,
                constraint=match.group("constraint"),
            )

        match = _MYSQL_NOT_NULL.search(message)
        return Violation(kind=kind, code=code, columns=(match.group("column"),) if match else ())


# ============================================================================
# SQLite
# ============================================================================

_SQLITE_MESSAGE_CODES = {
    "UNIQUE constraint failed": "SQLITE_CONSTRAINT_UNIQUE",
    "FOREIGN KEY constraint failed": "SQLITE_CONSTRAINT_FOREIGNKEY",
    "NOT NULL constraint failed": "SQLITE_CONSTRAINT_NOTNULL",
}


class SqliteErrorClassifier(ErrorClassifier):
    """Extended result code rules for the stdlib sqlite3 driver."""

    dialect = DatabaseDialect.SQLITE
    RULES = {
        "SQLITE_CONSTRAINT_UNIQUE": ConstraintKind.UNIQUE,
        "SQLITE_CONSTRAINT_PRIMARYKEY": ConstraintKind.UNIQUE,
        "SQLITE_CONSTRAINT_FOREIGNKEY": ConstraintKind.FOREIGN_KEY,
        "SQLITE_CONSTRAINT_NOTNULL": ConstraintKind.NOT_NULL,
    }

    def error_code(self, error: BaseException) -> str | None:
        name = getattr(error, "sqlite_errorname", None)
        if name:
            return str(name)
        if isinstance(error, sqlite3.IntegrityError):
            message = str(error)
            for prefix, code in _SQLITE_MESSAGE_CODES.items():
                if message.startswith(prefix):
                    return code
        return None

    def describe(self, error: BaseException, kind: ConstraintKind, code: str) -> Violation:
        # "UNIQUE constraint failed: user.provider_id" (comma-separated when composite)
        _, _, detail = str(error).partition(": ")
        table: str | None = None
        columns: list[str] = []
        for qualified in filter(None, (part.strip() for part in detail.split(","))):
            owner, _, column = qualified.rpartition(".")
            table = owner or table
            columns.append(column)

        return Violation(
            kind=kind,
            code=code,
            table=table,
            columns=tuple(columns),
            primary_key=code == "SQLITE_CONSTRAINT_PRIMARYKEY",
        )


_CLASSIFIERS: dict[DatabaseDialect, ErrorClassifier] = {
    cls.dialect: cls()
    for cls in (PostgresErrorClassifier, MySQLErrorClassifier, SqliteErrorClassifier)
}


def get_classifier(dialect: DatabaseDialect | str) -> ErrorClassifier:
    """Return the classifier for a dialect.

    Raises:
        ValueError: If the dialect is not supported
    """
    return _CLASSIFIERS[DatabaseDialect(dialect)]


__all__ = [
    "ConstraintKind",
    "ErrorClassifier",
    "MySQLErrorClassifier",
    "PostgresErrorClassifier",
    "SqliteErrorClassifier",
    "Violation",
    "get_classifier",
]
