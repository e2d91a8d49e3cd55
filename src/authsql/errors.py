"""Exceptions raised by the auth storage adapter.

Exception Hierarchy:
    AdapterError (base)
    ├── SchemaBindingError (table shape unusable, raised at configuration time)
    ├── TimestampRangeError (value not representable as a 64-bit timestamp)
    └── ConstraintViolationError (unique / foreign key / not-null failure)

Errors the dialect classifier does not recognize are not wrapped: the
driver's own exception propagates unchanged, with a note naming the dialect
and the adapter operation.

Example:
    >>> try:
    ...     await adapter.create_user({"id": "u1", "provider_id": "email:a@b.com"})
    ... except ConstraintViolationError as e:
    ...     if e.reason is ViolationReason.DUPLICATE_PROVIDER_ID:
    ...         ...  # "account already exists"
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .classifier import ConstraintKind
    from .sql.backend import DatabaseDialect


class ViolationReason(str, Enum):
    """Backend-agnostic reason codes an auth library can branch on."""

    DUPLICATE_USER_ID = "AUTH_DUPLICATE_USER_ID"
    DUPLICATE_PROVIDER_ID = "AUTH_DUPLICATE_PROVIDER_ID"
    DUPLICATE_SESSION_ID = "AUTH_DUPLICATE_SESSION_ID"
    INVALID_USER_ID = "AUTH_INVALID_USER_ID"
    USER_REFERENCED = "AUTH_USER_REFERENCED"
    UNKNOWN = "UNKNOWN_CONSTRAINT_VIOLATION"


class AdapterError(Exception):
    """Base exception for all adapter errors."""

    pass


class SchemaBindingError(AdapterError, ValueError):
    """A table shape does not satisfy the columns the adapter relies on.

    Attributes:
        table: Table whose binding failed
        problems: One message per missing or incompatible column
    """

    def __init__(self, table: str, problems: list[str]) -> None:
        self.table = table
        self.problems = problems
        super().__init__(f"Invalid schema for table '{table}': " + "; ".join(problems))


class TimestampRangeError(AdapterError, ValueError):
    """A timestamp cannot be represented as a signed 64-bit integer.

    Attributes:
        value: The offending value
    """

    def __init__(self, value: object, reason: str) -> None:
        self.value = value
        super().__init__(f"Invalid timestamp {value!r}: {reason}")


class ConstraintViolationError(AdapterError):
    """A write was rejected by a unique, foreign key or not-null constraint.

    This is a recoverable, user-facing condition (e.g. "account already
    exists"). The driver exception is kept as ``__cause__``.

    Attributes:
        kind: Constraint family reported by the backend
        reason: Stable reason code for the auth library
        dialect: Dialect the adapter is bound to
        operation: Adapter operation that failed (e.g. "create_user")
        table: Table the operation wrote to
        column: Offending column, when the backend exposes it
        constraint: Backend constraint or index name, when exposed
    """

    def __init__(
        self,
        kind: ConstraintKind,
        reason: ViolationReason,
        dialect: DatabaseDialect,
        operation: str,
        table: str,
        column: str | None = None,
        constraint: str | None = None,
    ) -> None:
        self.kind = kind
        self.reason = reason
        self.dialect = dialect
        self.operation = operation
        self.table = table
        self.column = column
        self.constraint = constraint

        target = f"{table}.{column}" if column else table
        super().__init__(
            f"{reason.value}: {kind.value} constraint failed on {target} "
            f"during {operation} ({dialect.value})"
        )

    def __repr__(self) -> str:
        """Developer-friendly representation."""
        return (
            f"ConstraintViolationError(reason={self.reason.value!r}, kind={self.kind.value!r}, "
            f"table={self.table!r}, column={self.column!r})"
        )
