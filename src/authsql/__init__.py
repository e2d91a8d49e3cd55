"""Multi-dialect user and session storage for authentication libraries.

Key Components:

- AuthAdapter: Facade bound to one backend and dialect (create_adapter, open_adapter)
- AuthSchema: Validated binding of the user and session tables
- UserRow/SessionRow: Pydantic v2 row models, extension columns kept as extras
- ErrorClassifier: Per-dialect native error -> ConstraintKind rules
- ConstraintViolationError: Normalized constraint failure with a ViolationReason
- sql: Async backends (SQLite, PostgreSQL, MySQL), DDL and query builder
"""

from .adapter import AuthAdapter, DialectStrategy, create_adapter, open_adapter
from .classifier import ConstraintKind, ErrorClassifier, Violation, get_classifier
from .errors import (
    AdapterError,
    ConstraintViolationError,
    SchemaBindingError,
    TimestampRangeError,
    ViolationReason,
)
from .schema import AuthSchema, SessionRow, UserRow, session_schema, user_schema
from .sql import ConnectionConfig, DatabaseDialect
from .timestamps import INT64_MAX, INT64_MIN, to_canonical, to_driver

__version__ = "0.1.0"

__all__ = [
    # Facade
    "AuthAdapter",
    "DialectStrategy",
    "create_adapter",
    "open_adapter",
    # Schema
    "AuthSchema",
    "SessionRow",
    "UserRow",
    "session_schema",
    "user_schema",
    # Errors
    "AdapterError",
    "ConstraintKind",
    "ConstraintViolationError",
    "ErrorClassifier",
    "SchemaBindingError",
    "TimestampRangeError",
    "Violation",
    "ViolationReason",
    "get_classifier",
    # Configuration
    "ConnectionConfig",
    "DatabaseDialect",
    # Timestamps
    "INT64_MAX",
    "INT64_MIN",
    "to_canonical",
    "to_driver",
]
