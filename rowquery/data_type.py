"""Logical column types: parsing type declarations and validating values."""

from __future__ import annotations

import decimal
import enum
import re
from dataclasses import dataclass

_C_SPACE = " \t\n\v\f\r"
_DIGITS = frozenset("0123456789")
_SIZE_MAX = 2**64 - 1
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1

# Magnitude limits of an x87 80-bit long double.
_LDBL_MAX = decimal.Decimal("1.18973149535723176502e4932")
_LDBL_MIN = decimal.Decimal("3.36210314311209350626e-4932")

_SIGNED_INT_RE = re.compile(r"[+-]?[0-9]+")
_DEC_FLOAT_RE = re.compile(r"[+-]?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")
_HEX_FLOAT_RE = re.compile(
    r"[+-]?0[xX](?:[0-9a-fA-F]+\.?[0-9a-fA-F]*|\.[0-9a-fA-F]+)(?:[pP][+-]?[0-9]+)?"
)
_SPECIAL_FLOAT_RE = re.compile(
    r"[+-]?(?:inf(?:inity)?|nan(?:\([0-9A-Za-z_]*\))?)", re.IGNORECASE
)

_DAYS_IN_MONTH = (31, 28, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31)

_SUPPORTED = "INT, VARCHAR, TEXT, BOOLEAN, FLOAT, DOUBLE, TIMESTAMP, ENUM"


class LogicalTypeKind(enum.Enum):
    """The family a column type belongs to."""

    UNKNOWN = "UNKNOWN"
    INT = "INT"
    VARCHAR = "VARCHAR"
    TEXT = "TEXT"
    BOOLEAN = "BOOLEAN"
    FLOAT = "FLOAT"
    DOUBLE = "DOUBLE"
    TIMESTAMP = "TIMESTAMP"
    ENUM = "ENUM"


@dataclass(frozen=True)
class LogicalType:
    """A parsed column type with its canonical spelling."""

    kind: LogicalTypeKind = LogicalTypeKind.UNKNOWN
    normalized_name: str = ""
    width: int = 0
    enum_values: tuple[str, ...] = ()


def _trim(text: str) -> str:
    return text.strip(_C_SPACE)


def _parse_positive_int(raw: str, context: str) -> int:
    text = _trim(raw)
    if not text:
        raise ValueError(f"Expected positive integer in {context}")
    if not all(c in _DIGITS for c in text):
        raise ValueError(f"Expected positive integer in {context}: '{raw}'")
    number = int(text)
    if number == 0 or number > _SIZE_MAX:
        raise ValueError(f"Out-of-range integer in {context}: '{raw}'")
    return number


def _is_signed_integer(raw: str) -> bool:
    text = _trim(raw)
    if not _SIGNED_INT_RE.fullmatch(text):
        return False
    return _INT64_MIN <= int(text) <= _INT64_MAX


def _is_floating_number(raw: str) -> bool:
    text = _trim(raw)
    if not text:
        return False
    if _SPECIAL_FLOAT_RE.fullmatch(text):
        return True
    if _HEX_FLOAT_RE.fullmatch(text):
        try:
            float.fromhex(text)
        except (OverflowError, ValueError):
            return False
        return True
    if not _DEC_FLOAT_RE.fullmatch(text):
        return False
    magnitude = abs(decimal.Decimal(text))
    if magnitude == 0:
        return True
    return _LDBL_MIN <= magnitude <= _LDBL_MAX


def _is_leap_year(year: int) -> bool:
    return (year % 4 == 0 and year % 100 != 0) or year % 400 == 0


def _all_digits(text: str) -> bool:
    return bool(text) and all(c in _DIGITS for c in text)


def _is_valid_date(raw: str) -> bool:
    s = _trim(raw)
    if len(s) != 10 or s[4] != "-" or s[7] != "-":
        return False
    year_text, month_text, day_text = s[:4], s[5:7], s[8:10]
    if not (_all_digits(year_text) and _all_digits(month_text) and _all_digits(day_text)):
        return False
    year, month, day = int(year_text), int(month_text), int(day_text)
    if not 1 <= month <= 12 or day < 1:
        return False
    max_day = _DAYS_IN_MONTH[month - 1]
    if month == 2 and _is_leap_year(year):
        max_day = 29
    return day <= max_day


def _is_valid_time(raw: str) -> bool:
    """Accept HH:MM or HH:MM:SS with an optional fractional part."""
    s = _trim(raw)
    if len(s) < 5 or s[2] != ":":
        return False
    hh, mm = s[0:2], s[3:5]
    if not (_all_digits(hh) and _all_digits(mm)):
        return False
    if int(hh) > 23 or int(mm) > 59:
        return False
    if len(s) == 5:
        return True
    if len(s) < 8 or s[5] != ":":
        return False
    ss = s[6:8]
    if not _all_digits(ss) or int(ss) > 59:
        return False
    if len(s) == 8:
        return True
    if s[8] != ".":
        return False
    return _all_digits(s[9:])


def _is_valid_timestamp(raw: str) -> bool:
    s = _trim(raw)
    if len(s) < 16:
        return False
    match = re.search(r"[ T]", s)
    if match is None:
        return False
    pos = match.start()
    return _is_valid_date(s[:pos]) and _is_valid_time(_trim(s[pos + 1 :]))


def _parse_boolean(raw: str) -> bool | None:
    upper = _trim(raw).upper()
    if upper in ("TRUE", "T", "1"):
        return True
    if upper in ("FALSE", "F", "0"):
        return False
    return None


def _unquote_sql_token(raw: str) -> str | None:
    text = _trim(raw)
    if len(text) < 2 or text[0] != "'" or text[-1] != "'":
        return None
    return text[1:-1].replace("''", "'")


def _split_comma_top_level(text: str) -> list[str]:
    parts: list[str] = []
    current: list[str] = []
    in_single = False
    i = 0
    while i < len(text):
        c = text[i]
        if in_single:
            current.append(c)
            if c == "'" and i + 1 < len(text) and text[i + 1] == "'":
                current.append("'")
                i += 2
                continue
            if c == "'":
                in_single = False
        elif c == "'":
            in_single = True
            current.append(c)
        elif c == ",":
            parts.append(_trim("".join(current)))
            current = []
        else:
            current.append(c)
        i += 1
    if in_single:
        raise ValueError(f"Malformed ENUM list: {text}")
    parts.append(_trim("".join(current)))
    return parts


def _parse_enum_values(inside: str) -> tuple[str, ...]:
    values = []
    for token in _split_comma_top_level(inside):
        value = _unquote_sql_token(token)
        if value is None:
            raise ValueError(f"ENUM values must be SQL strings: {token}")
        values.append(value)
    return tuple(values)


def _compact(text: str) -> str:
    """Drop whitespace outside single-quoted strings."""
    out: list[str] = []
    in_single = False
    i = 0
    while i < len(text):
        c = text[i]
        if c == "'":
            out.append(c)
            if in_single and i + 1 < len(text) and text[i + 1] == "'":
                out.append("'")
                i += 2
                continue
            in_single = not in_single
        elif in_single or c not in _C_SPACE:
            out.append(c)
        i += 1
    return "".join(out)


_SIMPLE_TYPES = {
    "INT": (LogicalTypeKind.INT, "INT"),
    "INTEGER": (LogicalTypeKind.INT, "INT"),
    "TEXT": (LogicalTypeKind.TEXT, "TEXT"),
    "BOOLEAN": (LogicalTypeKind.BOOLEAN, "BOOLEAN"),
    "BOOL": (LogicalTypeKind.BOOLEAN, "BOOLEAN"),
    "FLOAT": (LogicalTypeKind.FLOAT, "FLOAT"),
    "REAL": (LogicalTypeKind.FLOAT, "FLOAT"),
    "DOUBLE": (LogicalTypeKind.DOUBLE, "DOUBLE"),
    "DOUBLEPRECISION": (LogicalTypeKind.DOUBLE, "DOUBLE"),
    "TIMESTAMP": (LogicalTypeKind.TIMESTAMP, "TIMESTAMP"),
}


def parse_logical_type(raw_type: str) -> LogicalType:
    """Parse a column type declaration such as ``VARCHAR(20)`` or ``ENUM('a','b')``."""
    trimmed = _trim(raw_type)
    if not trimmed:
        raise ValueError("Column type is empty")

    compact = _compact(trimmed)
    upper = compact.upper()

    if upper in _SIMPLE_TYPES:
        kind, name = _SIMPLE_TYPES[upper]
        return LogicalType(kind=kind, normalized_name=name)

    if upper == "VARCHAR":
        return LogicalType(LogicalTypeKind.VARCHAR, "VARCHAR(255)", width=255)

    if upper.startswith("VARCHAR(") and upper.endswith(")"):
        width = _parse_positive_int(compact[8:-1], "VARCHAR(n)")
        return LogicalType(LogicalTypeKind.VARCHAR, f"VARCHAR({width})", width=width)

    if upper.startswith("ENUM(") and upper.endswith(")"):
        values = _parse_enum_values(compact[5:-1])
        name = "ENUM(" + ",".join(f"'{v}'" for v in values) + ")"
        return LogicalType(LogicalTypeKind.ENUM, name, enum_values=values)

    raise ValueError(f"Unsupported type '{raw_type}'. Supported: {_SUPPORTED}")


def is_supported_logical_type(raw_type: str) -> bool:
    """Return whether ``raw_type`` parses as a supported column type."""
    try:
        parse_logical_type(raw_type)
    except ValueError:
        return False
    return True


def validate_typed_value(logical_type: LogicalType, value: str, column_name: str) -> None:
    """Raise ``ValueError`` if ``value`` does not fit the column type; empty means NULL."""
    if not value:
        return
    kind = logical_type.kind
    if kind is LogicalTypeKind.INT:
        if not _is_signed_integer(value):
            raise ValueError(f"Column '{column_name}' expects INT, got: '{value}'")
    elif kind is LogicalTypeKind.VARCHAR:
        if len(value.encode("utf-8")) > logical_type.width:
            raise ValueError(
                f"Column '{column_name}' exceeds VARCHAR({logical_type.width}) limit"
            )
    elif kind is LogicalTypeKind.TEXT:
        pass
    elif kind is LogicalTypeKind.BOOLEAN:
        if _parse_boolean(value) is None:
            raise ValueError(f"Column '{column_name}' expects BOOLEAN, got: '{value}'")
    elif kind in (LogicalTypeKind.FLOAT, LogicalTypeKind.DOUBLE):
        if not _is_floating_number(value):
            raise ValueError(
                f"Column '{column_name}' expects numeric value, got: '{value}'"
            )
    elif kind is LogicalTypeKind.TIMESTAMP:
        if not _is_valid_timestamp(value):
            raise ValueError(
                f"Column '{column_name}' expects TIMESTAMP (YYYY-MM-DD HH:MM[:SS]), "
                f"got: '{value}'"
            )
    elif kind is LogicalTypeKind.ENUM:
        if value not in logical_type.enum_values:
            raise ValueError(f"Column '{column_name}' expects ENUM value, got: '{value}'")
    else:
        raise ValueError(f"Unsupported type for column '{column_name}'")


def normalize_typed_value(logical_type: LogicalType, value: str, column_name: str) -> str:
    """Validate ``value`` and return its canonical form (booleans become true/false)."""
    validate_typed_value(logical_type, value, column_name)
    if value and logical_type.kind is LogicalTypeKind.BOOLEAN:
        return "true" if _parse_boolean(value) else "false"
    return value