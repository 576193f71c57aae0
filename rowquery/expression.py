"""Expression tree nodes and their evaluation against a row of strings."""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

Row = Mapping[str, str]

_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1
_INT_RE = re.compile(r"[ \t\n\v\f\r]*[+-]?[0-9]+")


class Expr:
    """Base class of all expression nodes."""


@dataclass(frozen=True)
class Column(Expr):
    """Reference to a column of the current row."""

    name: str


@dataclass(frozen=True)
class Literal(Expr):
    """A constant string value."""

    value: str


@dataclass(frozen=True)
class BinaryExpr(Expr):
    """Binary operator; for ``NOT`` only ``left`` is used."""

    left: Expr | None
    op: str
    right: Expr | None = None


@dataclass(frozen=True)
class InListExpr(Expr):
    """``value IN (item, ...)``."""

    value: Expr
    items: Sequence[Expr] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "items", tuple(self.items))


def try_parse_int64(text: str) -> int | None:
    """Parse a whole string as a signed 64-bit integer, or return None."""
    if not _INT_RE.fullmatch(text):
        return None
    number = int(text)
    if not _INT64_MIN <= number <= _INT64_MAX:
        return None
    return number


def compare_values(left: str, op: str, right: str) -> bool:
    """Compare as integers when both sides are integers, otherwise as strings."""
    li = try_parse_int64(left)
    ri = try_parse_int64(right)
    if li is not None and ri is not None:
        cmp = (li > ri) - (li < ri)
    else:
        cmp = (left > right) - (left < right)

    if op in ("=", "=="):
        return cmp == 0
    if op in ("!=", "<>"):
        return cmp != 0
    if op == ">":
        return cmp > 0
    if op == "<":
        return cmp < 0
    if op == ">=":
        return cmp >= 0
    if op == "<=":
        return cmp <= 0
    raise ValueError(f"Unsupported comparison operator: {op}")


def evaluate(expr: Expr | None, row: Row) -> str:
    """Evaluate ``expr`` to a string value."""
    if expr is None:
        raise ValueError("Cannot evaluate a null expression")
    return _eval_scalar(expr, row)


def evaluate_predicate(expr: Expr | None, row: Row) -> bool:
    """Evaluate ``expr`` as a condition; a missing expression is true."""
    if expr is None:
        return True

    if isinstance(expr, InListExpr):
        value = _eval_scalar(expr.value, row)
        return any(value == _eval_scalar(item, row) for item in expr.items)

    if isinstance(expr, BinaryExpr):
        if expr.op == "NOT":
            return not evaluate_predicate(expr.left, row)
        if expr.op == "AND":
            return evaluate_predicate(expr.left, row) and evaluate_predicate(expr.right, row)
        if expr.op == "OR":
            return evaluate_predicate(expr.left, row) or evaluate_predicate(expr.right, row)
        lhs = _eval_scalar(expr.left, row)
        rhs = _eval_scalar(expr.right, row)
        return compare_values(lhs, expr.op, rhs)

    value = _eval_scalar(expr, row)
    return bool(value) and value != "0"


def _eval_scalar(expr: Expr | None, row: Row) -> str:
    if isinstance(expr, Column):
        try:
            return row[expr.name]
        except KeyError:
            raise ValueError(f"Unknown column referenced: '{expr.name}'") from None
    if isinstance(expr, Literal):
        return expr.value
    if isinstance(expr, (BinaryExpr, InListExpr)):
        return "1" if evaluate_predicate(expr, row) else "0"
    raise TypeError("Unsupported expression type in scalar evaluation")