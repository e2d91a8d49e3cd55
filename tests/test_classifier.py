"""Tests for per-dialect error classification."""

from __future__ import annotations

import sqlite3

import pytest
from fake_backend import (
    FakeMySQLError,
    FakePostgresError,
    mysql_duplicate,
    mysql_foreign_key_missing,
    mysql_foreign_key_referenced,
    pg_foreign_key_missing,
    pg_unique,
)

from authsql import ConstraintKind, get_classifier
from authsql.classifier import (
    MySQLErrorClassifier,
    PostgresErrorClassifier,
    SqliteErrorClassifier,
)
from authsql.sql import DatabaseDialect

# ============================================================================
# Registry
# ============================================================================


class TestGetClassifier:
    @pytest.mark.parametrize(
        ("dialect", "classifier_cls"),
        [
            ("pg", PostgresErrorClassifier),
            ("mysql", MySQLErrorClassifier),
            ("better-sqlite3", SqliteErrorClassifier),
            ("mariadb", MySQLErrorClassifier),
        ],
    )
    def test_one_classifier_per_dialect(self, dialect: str, classifier_cls: type) -> None:
        assert isinstance(get_classifier(dialect), classifier_cls)

    def test_classifiers_are_shared(self) -> None:
        assert get_classifier("pg") is get_classifier(DatabaseDialect.POSTGRESQL)

    def test_unknown_dialect_raises(self) -> None:
        with pytest.raises(ValueError):
            get_classifier("oracle")


# ============================================================================
# PostgreSQL
# ============================================================================


class TestPostgresErrorClassifier:
    classifier = PostgresErrorClassifier()

    def test_unique_on_named_column(self) -> None:
        error = pg_unique("user_provider_id_key", "provider_id", "email:a@b.com", "user")

        violation = self.classifier.classify(error)

        assert violation is not None
        assert violation.kind is ConstraintKind.UNIQUE
        assert violation.code == "23505"
        assert violation.table == "user"
        assert violation.columns == ("provider_id",)
        assert violation.constraint == "user_provider_id_key"
        assert violation.primary_key is False

    def test_unique_on_primary_key(self) -> None:
        violation = self.classifier.classify(pg_unique("user_pkey", "id", "u1", "user"))

        assert violation is not None
        assert violation.primary_key is True
        assert violation.columns == ("id",)

    def test_composite_key_detail(self) -> None:
        error = FakePostgresError(
            "duplicate", sqlstate="23505", detail='Key (a, "b")=(1, 2) already exists.'
        )
        violation = self.classifier.classify(error)
        assert violation is not None
        assert violation.columns == ("a", "b")

    def test_foreign_key(self) -> None:
        violation = self.classifier.classify(pg_foreign_key_missing("nope"))

        assert violation is not None
        assert violation.kind is ConstraintKind.FOREIGN_KEY
        assert violation.columns == ("user_id",)
        assert violation.table == "session"

    def test_not_null_uses_column_name(self) -> None:
        error = FakePostgresError(
            'null value in column "expires" violates not-null constraint',
            sqlstate="23502",
            table_name="session",
            column_name="expires",
        )
        violation = self.classifier.classify(error)
        assert violation is not None
        assert violation.kind is ConstraintKind.NOT_NULL
        assert violation.columns == ("expires",)

    def test_psycopg_pgcode(self) -> None:
        error = Exception("duplicate")
        error.pgcode = "23505"  # type: ignore[attr-defined]
        violation = self.classifier.classify(error)
        assert violation is not None
        assert violation.kind is ConstraintKind.UNIQUE
        assert violation.columns == ()

    @pytest.mark.parametrize(
        "error",
        [
            FakePostgresError("could not serialize access", sqlstate="40001"),
            FakePostgresError("check constraint", sqlstate="23514"),
            ConnectionRefusedError("connection refused"),
            FakeMySQLError(1062, "Duplicate entry 'x' for key 'PRIMARY'"),
        ],
    )
    def test_unrecognized(self, error: Exception) -> None:
        assert self.classifier.classify(error) is None


# ============================================================================
# MySQL
# ============================================================================


class TestMySQLErrorClassifier:
    classifier = MySQLErrorClassifier()

    def test_duplicate_named_key_mysql8(self) -> None:
        violation = self.classifier.classify(mysql_duplicate("email:a@b.com", "user.provider_id"))

        assert violation is not None
        assert violation.kind is ConstraintKind.UNIQUE
        assert violation.code == "1062"
        assert violation.table == "user"
        assert violation.columns == ("provider_id",)
        assert violation.primary_key is False

    def test_duplicate_named_key_older_server(self) -> None:
        violation = self.classifier.classify(mysql_duplicate("email:a@b.com", "provider_id"))

        assert violation is not None
        assert violation.table is None
        assert violation.columns == ("provider_id",)

    def test_duplicate_primary(self) -> None:
        violation = self.classifier.classify(mysql_duplicate("u1", "user.PRIMARY"))

        assert violation is not None
        assert violation.primary_key is True
        assert violation.columns == ()
        assert violation.constraint == "PRIMARY"

    def test_duplicate_with_unparseable_message(self) -> None:
        violation = self.classifier.classify(FakeMySQLError(1586, "Duplicate entry"))
        assert violation is not None
        assert violation.kind is ConstraintKind.UNIQUE
        assert violation.columns == ()

    @pytest.mark.parametrize(
        "error", [mysql_foreign_key_missing(), mysql_foreign_key_referenced()]
    )
    def test_foreign_key(self, error: FakeMySQLError) -> None:
        violation = self.classifier.classify(error)

        assert violation is not None
        assert violation.kind is ConstraintKind.FOREIGN_KEY
        assert violation.table == "session"
        assert violation.constraint == "session_ibfk_1"
        assert violation.columns == ("user_id",)

    def test_not_null(self) -> None:
        error = FakeMySQLError(1048, "Column 'expires' cannot be null")
        violation = self.classifier.classify(error)
        assert violation is not None
        assert violation.kind is ConstraintKind.NOT_NULL
        assert violation.columns == ("expires",)

    @pytest.mark.parametrize(
        "error",
        [
            FakeMySQLError(2003, "Can't connect to MySQL server"),
            FakeMySQLError(1213, "Deadlock found"),
            Exception("no errno"),
            Exception(True, "bool is not an errno"),
            FakePostgresError("duplicate", sqlstate="23505"),
        ],
    )
    def test_unrecognized(self, error: Exception) -> None:
        assert self.classifier.classify(error) is None


# ============================================================================
# SQLite
# ============================================================================


class TestSqliteErrorClassifier:
    classifier = SqliteErrorClassifier()

    @pytest.fixture
    def conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(":memory:")
        conn.execute("PRAGMA foreign_keys=ON")
        conn.executescript(
            """
            CREATE TABLE "user" (id TEXT PRIMARY KEY, provider_id TEXT NOT NULL UNIQUE);
            CREATE TABLE "session" (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL REFERENCES "user"(id)
            );
            INSERT INTO "user" VALUES ('u1', 'p1');
            """
        )
        return conn

    def _error(self, conn: sqlite3.Connection, sql: str) -> sqlite3.IntegrityError:
        with pytest.raises(sqlite3.IntegrityError) as exc_info:
            conn.execute(sql)
        return exc_info.value

    def test_unique_from_driver(self, conn: sqlite3.Connection) -> None:
        error = self._error(conn, "INSERT INTO \"user\" VALUES ('u2', 'p1')")

        violation = self.classifier.classify(error)

        assert violation is not None
        assert violation.kind is ConstraintKind.UNIQUE
        assert violation.table == "user"
        assert violation.columns == ("provider_id",)
        assert violation.primary_key is False

    def test_primary_key_from_driver(self, conn: sqlite3.Connection) -> None:
        error = self._error(conn, "INSERT INTO \"user\" VALUES ('u1', 'p2')")

        violation = self.classifier.classify(error)

        assert violation is not None
        assert violation.kind is ConstraintKind.UNIQUE
        assert violation.columns == ("id",)
        assert violation.primary_key is True

    def test_foreign_key_from_driver(self, conn: sqlite3.Connection) -> None:
        error = self._error(conn, "INSERT INTO \"session\" VALUES ('s1', 'nope')")

        violation = self.classifier.classify(error)

        assert violation is not None
        assert violation.kind is ConstraintKind.FOREIGN_KEY
        assert violation.columns == ()

    def test_not_null_from_driver(self, conn: sqlite3.Connection) -> None:
        error = self._error(conn, "INSERT INTO \"user\" (id) VALUES ('u3')")

        violation = self.classifier.classify(error)

        assert violation is not None
        assert violation.kind is ConstraintKind.NOT_NULL
        assert violation.columns == ("provider_id",)

    def test_message_fallback_without_errorname(self) -> None:
        error = sqlite3.IntegrityError("UNIQUE constraint failed: user.provider_id")

        violation = self.classifier.classify(error)

        assert violation is not None
        assert violation.code == "SQLITE_CONSTRAINT_UNIQUE"
        assert violation.columns == ("provider_id",)

    def test_composite_columns(self) -> None:
        error = sqlite3.IntegrityError("UNIQUE constraint failed: t.a, t.b")
        violation = self.classifier.classify(error)
        assert violation is not None
        assert violation.table == "t"
        assert violation.columns == ("a", "b")

    @pytest.mark.parametrize(
        "error",
        [
            sqlite3.OperationalError("database is locked"),
            sqlite3.IntegrityError("CHECK constraint failed: age > 0"),
            ValueError("UNIQUE constraint failed: user.id"),
        ],
    )
    def test_unrecognized(self, error: Exception) -> None:
        assert self.classifier.classify(error) is None
