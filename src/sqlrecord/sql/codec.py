# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Value typecasting and SQL literal rendering.

Statements built by QueryBuilder carry their values inline as literals.
ValueCodec is the only place where a Python value becomes SQL text, and
text always goes through the adapter's connection-aware escaping.

Value types accepted by ValueCodec.to_sql():
    INT, FLOAT, BOOL: numeric literals
    DATE, DATETIME, UNIXTS: quoted UTC timestamps ('YYYY-MM-DD HH:MM:SS')
    TIME: quoted 'HH:MM:SS'
    TEXT (default): escaped string literal
"""

from __future__ import annotations

import math
import re
from datetime import date, datetime, time, timezone
from typing import TYPE_CHECKING, Any

from .column import Integer, SchemaError, normalize_type

if TYPE_CHECKING:
    from .adapters import DbAdapter

INT = "int"
FLOAT = "float"
BOOL = "bool"
TEXT = "text"
DATE = "date"
DATETIME = "datetime"
UNIXTS = "unixts"
TIME = "time"

DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"
DATE_FORMAT = "%Y-%m-%d"
TIME_FORMAT = "%H:%M:%S"

_INT_PREFIX = re.compile(r"\s*([+-]?\d+)")
_FALSE_STRINGS = frozenset({"", "0", "false", "no", "off"})


def parse_int(value: Any) -> int:
    """Parse an integer leniently: leading digits win, garbage is 0.

    Examples: "12" → 12, "12.7" → 12, "12abc" → 12, "abc" → 0, True → 1.
    """
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else 0
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    match = _INT_PREFIX.match(str(value))
    return int(match.group(1)) if match else 0


def parse_float(value: Any) -> float:
    """Parse a float accepting a decimal comma; non-finite or garbage is 0.0."""
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        result = float(value)
    else:
        text = str(value).strip().replace(",", ".")
        try:
            result = float(text)
        except ValueError:
            return 0.0
    return result if math.isfinite(result) else 0.0


def to_text(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, bool):
        return "1" if value else ""
    return str(value)


def typecast_value(value: Any, type_: str) -> Any:
    """Cast a raw value to the Python type of a column type.

    None stays None (absent value).

    Raises:
        SchemaError: If type_ is neither an integer nor a text type.
    """
    canonical = normalize_type(type_)
    if value is None:
        return None
    if canonical == Integer:
        return parse_int(value)
    return to_text(value)


class ValueCodec:
    """Render Python values as SQL literals for one connection.

    Args:
        adapter: Adapter providing escape rules and the zero datetime.
        conn: Active connection (escaping may depend on its encoding).
    """

    def __init__(self, adapter: DbAdapter, conn: Any) -> None:
        self.adapter = adapter
        self.conn = conn

    def escape(self, text: str) -> str:
        return self.adapter.escape_string(self.conn, text)

    def to_sql(self, value: Any, value_type: str = TEXT, empty_as: Any = None) -> str:
        """Render a value as a SQL literal of the given type.

        Args:
            value: Value to render.
            value_type: One of INT, FLOAT, BOOL, DATE, DATETIME, UNIXTS, TIME, TEXT.
            empty_as: Substitute rendered in place of None (default: NULL).

        Returns:
            SQL literal text.

        Raises:
            ValueError: If a date/time string cannot be parsed.
        """
        if value is None:
            if empty_as is None:
                return "NULL"
            value = empty_as

        if value_type == INT:
            return str(parse_int(value))
        if value_type == FLOAT:
            return repr(parse_float(value))
        if value_type == BOOL:
            if isinstance(value, str):
                truthy = value.strip().lower() not in _FALSE_STRINGS
            else:
                truthy = bool(value)
            return "TRUE" if truthy else "FALSE"
        if value_type in (DATE, DATETIME, UNIXTS):
            fmt = DATE_FORMAT if value_type == DATE else DATETIME_FORMAT
            return self.escape(self._format_datetime(value, fmt))
        if value_type == TIME:
            return self.escape(self._format_time(value))
        return self.escape(to_text(value))

    def literal(self, value: Any) -> str:
        """Render a value choosing the type from its Python type.

        bool → 1/0, int → integer, float → float, None → NULL, anything else → text.
        """
        if value is None:
            return "NULL"
        if isinstance(value, bool):
            return "1" if value else "0"
        if isinstance(value, int):
            return self.to_sql(value, INT)
        if isinstance(value, float):
            return self.to_sql(value, FLOAT)
        if isinstance(value, datetime):
            return self.to_sql(value, DATETIME)
        if isinstance(value, date):
            return self.to_sql(value, DATE)
        return self.to_sql(value, TEXT)

    # -------------------------------------------------------------------------
    # Date/time helpers
    # -------------------------------------------------------------------------

    def _zero(self, fmt: str) -> str:
        zero = self.adapter.zero_datetime
        return zero[:10] if fmt == DATE_FORMAT else zero

    def _format_datetime(self, value: Any, fmt: str) -> str:
        if isinstance(value, datetime):
            if value.tzinfo is not None:
                value = value.astimezone(timezone.utc)
            return value.strftime(fmt)
        if isinstance(value, date):
            return datetime(value.year, value.month, value.day).strftime(fmt)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return self._from_timestamp(value, fmt)
        text = to_text(value).strip()
        if text in ("", "0") or text == self.adapter.zero_datetime:
            return self._zero(fmt)
        if re.fullmatch(r"[+-]?\d+(\.\d+)?", text):
            return self._from_timestamp(float(text), fmt)
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError as e:
            raise ValueError(f"Cannot parse date value: {value!r}") from e
        return self._format_datetime(parsed, fmt)

    def _from_timestamp(self, ts: float, fmt: str) -> str:
        if not math.isfinite(ts) or ts <= 0:
            return self._zero(fmt)
        return datetime.fromtimestamp(ts, timezone.utc).strftime(fmt)

    def _format_time(self, value: Any) -> str:
        if isinstance(value, (datetime, time)):
            return value.strftime(TIME_FORMAT)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            if not math.isfinite(value) or value <= 0:
                return "00:00:00"
            return datetime.fromtimestamp(value, timezone.utc).strftime(TIME_FORMAT)
        text = to_text(value).strip()
        if text in ("", "0"):
            return "00:00:00"
        try:
            return time.fromisoformat(text).strftime(TIME_FORMAT)
        except ValueError:
            pass
        try:
            return datetime.fromisoformat(text).strftime(TIME_FORMAT)
        except ValueError as e:
            raise ValueError(f"Cannot parse time value: {value!r}") from e


__all__ = [
    "BOOL",
    "DATE",
    "DATETIME",
    "FLOAT",
    "INT",
    "TEXT",
    "TIME",
    "UNIXTS",
    "SchemaError",
    "ValueCodec",
    "parse_float",
    "parse_int",
    "typecast_value",
]
