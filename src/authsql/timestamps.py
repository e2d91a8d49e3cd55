"""Canonical 64-bit timestamp conversion.

Session expiry columns are signed 64-bit integers in every dialect, but the
values drivers hand back differ: asyncpg and sqlite3 return ``int``, PyMySQL
returns ``int`` for BIGINT yet ``Decimal`` for DECIMAL columns and ``str``
or ``bytes`` for columns declared as text. The canonical in-process form is
a plain ``int`` within [INT64_MIN, INT64_MAX].

Conversion is exact: strings are parsed as integers, never through float,
so values near 2**63 survive unchanged.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

from .errors import TimestampRangeError

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1


def _check_range(value: int, original: object) -> int:
    if not INT64_MIN <= value <= INT64_MAX:
        raise TimestampRangeError(original, "outside the signed 64-bit range")
    return value


def to_canonical(value: object) -> int:
    """Convert a driver value read from a timestamp column to canonical int.

    Raises:
        TimestampRangeError: If the value is not an integral int64
    """
    if isinstance(value, bool):
        raise TimestampRangeError(value, "booleans are not timestamps")
    if isinstance(value, int):
        return _check_range(value, value)
    if isinstance(value, (bytes, bytearray)):
        try:
            value = value.decode("ascii")
        except UnicodeDecodeError:
            raise TimestampRangeError(value, "not an integer string") from None
    if isinstance(value, str):
        try:
            return _check_range(int(value.strip()), value)
        except ValueError:
            raise TimestampRangeError(value, "not an integer string") from None
    if isinstance(value, Decimal):
        if not value.is_finite():
            raise TimestampRangeError(value, "not a finite number")
        try:
            integral = value.to_integral_exact()
        except InvalidOperation:
            raise TimestampRangeError(value, "not a finite number") from None
        if integral != value:
            raise TimestampRangeError(value, "has a fractional part")
        return _check_range(int(integral), value)
    if isinstance(value, float):
        if not value.is_integer():
            raise TimestampRangeError(value, "has a fractional part")
        return _check_range(int(value), value)
    raise TimestampRangeError(value, f"unsupported type {type(value).__name__}")


def to_driver(value: object) -> int:
    """Convert a caller-supplied timestamp to the value bound on write.

    All three drivers bind a Python ``int`` to a 64-bit integer parameter
    without loss, so the write form is the canonical form, validated.

    Raises:
        TimestampRangeError: If the value is not an integral int64
    """
    if isinstance(value, float):
        # floats above 2**53 have already lost precision
        raise TimestampRangeError(value, "floats are not accepted on write")
    return to_canonical(value)
