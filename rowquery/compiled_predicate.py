"""Predicates compiled once into closures and then evaluated against many rows."""

from __future__ import annotations

import decimal
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass

from .expression import BinaryExpr, Column, Expr, InListExpr, Literal, try_parse_int64

Row = Mapping[str, str]

_C_SPACE = " \t\n\v\f\r"

# Magnitude limits of an x87 80-bit long double.
_LDBL_MAX = decimal.Decimal("1.18973149535723176502e4932")
_LDBL_MIN = decimal.Decimal("3.36210314311209350626e-4932")

_DEC_FLOAT_RE = re.compile(r"[+-]?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")
_HEX_FLOAT_RE = re.compile(
    r"[+-]?0[xX](?:[0-9a-fA-F]+\.?[0-9a-fA-F]*|\.[0-9a-fA-F]+)(?:[pP][+-]?[0-9]+)?"
)
_SPECIAL_FLOAT_RE = re.compile(
    r"([+-]?)(inf(?:inity)?|nan(?:\([0-9A-Za-z_]*\))?)", re.IGNORECASE
)

_FALSE_TOKENS = frozenset({"", "0", "false", "f"})

_COMPARISONS: dict[str, Callable[[int], bool]] = {
    "=": lambda c: c == 0,
    "==": lambda c: c == 0,
    "!=": lambda c: c != 0,
    "<>": lambda c: c != 0,
    ">": lambda c: c > 0,
    "<": lambda c: c < 0,
    ">=": lambda c: c >= 0,
    "<=": lambda c: c <= 0,
}


def parse_int64(text: str) -> int | None:
    """Parse the whole string as a signed 64-bit integer, or return None."""
    return try_parse_int64(text)


def parse_number(text: str) -> decimal.Decimal | None:
    """Parse the whole string as a floating-point number, or return None.

    Leading whitespace, hexadecimal floats, ``inf`` and ``nan`` are accepted;
    values outside the long double range are rejected.
    """
    body = text.lstrip(_C_SPACE)
    if not body:
        return None

    special = _SPECIAL_FLOAT_RE.fullmatch(body)
    if special:
        sign, word = special.groups()
        name = "NaN" if word.lower().startswith("nan") else "Infinity"
        return decimal.Decimal(sign + name)

    if _HEX_FLOAT_RE.fullmatch(body):
        try:
            return decimal.Decimal(float.fromhex(body))
        except (OverflowError, ValueError):
            return None

    if not _DEC_FLOAT_RE.fullmatch(body):
        return None
    value = decimal.Decimal(body)
    magnitude = value.copy_abs()
    if magnitude and not _LDBL_MIN <= magnitude <= _LDBL_MAX:
        return None
    return value


def _three_way(left, right) -> int:
    return (left > right) - (left < right)


def _compare_numbers(left: decimal.Decimal, right: decimal.Decimal) -> int:
    if left.is_nan() or right.is_nan():
        return 0
    return _three_way(left, right)


def compare_values(left: str, op: str, right: str) -> bool:
    """Compare as integers, then as numbers, then as strings."""
    li = parse_int64(left)
    ri = parse_int64(right)
    if li is not None and ri is not None:
        cmp = _three_way(li, ri)
    else:
        ln = parse_number(left)
        rn = parse_number(right)
        if ln is not None and rn is not None:
            cmp = _compare_numbers(ln, rn)
        else:
            cmp = _three_way(left, right)

    try:
        test = _COMPARISONS[op]
    except KeyError:
        raise ValueError(f"CompiledPredicate: unsupported comparison operator: {op}") from None
    return test(cmp)


def truthy(value: str) -> bool:
    """A value is false when, ignoring whitespace and case, it is empty, 0, false or f."""
    token = "".join(c for c in value if c not in _C_SPACE).lower()
    return token not in _FALSE_TOKENS


@dataclass(frozen=True)
class _Node:
    scalar: Callable[[Row], str]
    predicate: Callable[[Row], bool]


def _column_node(name: str) -> _Node:
    dot = name.rfind(".")
    bare = name[dot + 1 :] if 0 <= dot < len(name) - 1 else None

    def scalar(row: Row) -> str:
        if name in row:
            return row[name]
        if bare is not None and bare in row:
            return row[bare]
        raise ValueError(f"Unknown column referenced: '{name}'")

    return _Node(scalar, lambda row: truthy(scalar(row)))


def _literal_node(value: str) -> _Node:
    parsed = parse_int64(value)
    text = str(parsed) if parsed is not None else value
    return _Node(lambda _row: text, lambda _row: truthy(text))


def _from_predicate(predicate: Callable[[Row], bool]) -> _Node:
    return _Node(lambda row: "1" if predicate(row) else "0", predicate)


def _binary_node(expr: BinaryExpr) -> _Node:
    op = expr.op
    left = _compile_node(expr.left)
    right = _compile_node(expr.right)

    if op == "NOT":
        return _from_predicate(lambda row: not left.predicate(row))
    if op == "AND":
        return _from_predicate(lambda row: left.predicate(row) and right.predicate(row))
    if op == "OR":
        return _from_predicate(lambda row: left.predicate(row) or right.predicate(row))
    return _from_predicate(
        lambda row: compare_values(left.scalar(row), op, right.scalar(row))
    )


def _in_list_node(expr: InListExpr) -> _Node:
    value = _compile_node(expr.value)
    items = [_compile_node(item) for item in expr.items]

    def predicate(row: Row) -> bool:
        lhs = value.scalar(row)
        return any(lhs == item.scalar(row) for item in items)

    return _from_predicate(predicate)


def _compile_node(expr: Expr | None) -> _Node:
    if expr is None:
        raise ValueError("CompiledPredicate: cannot compile null expression node")
    if isinstance(expr, Column):
        return _column_node(expr.name)
    if isinstance(expr, Literal):
        return _literal_node(expr.value)
    if isinstance(expr, BinaryExpr):
        return _binary_node(expr)
    if isinstance(expr, InListExpr):
        return _in_list_node(expr)
    raise TypeError("CompiledPredicate: unsupported expression type for compilation")


class CompiledPredicate:
    """An expression prepared once for repeated evaluation against rows."""

    __slots__ = ("_root",)

    def __init__(self) -> None:
        self._root: _Node | None = None

    @classmethod
    def compile(cls, expr: Expr | None) -> CompiledPredicate:
        """Compile ``expr``; a missing expression yields an always-true predicate."""
        compiled = cls()
        if expr is not None:
            compiled._root = _compile_node(expr)
        return compiled

    def evaluate_predicate(self, row: Row) -> bool:
        """Evaluate as a condition."""
        if self._root is None:
            return True
        return self._root.predicate(row)

    def evaluate_scalar(self, row: Row) -> str:
        """Evaluate to a string value."""
        if self._root is None:
            raise ValueError("CompiledPredicate: cannot scalar-evaluate empty expression")
        return self._root.scalar(row)