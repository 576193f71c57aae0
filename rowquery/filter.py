"""Row filtering, including EXISTS and IN predicates over subqueries."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from .compiled_predicate import CompiledPredicate
from .expression import (
    BinaryExpr,
    Column,
    Expr,
    InListExpr,
    compare_values,
    evaluate,
    evaluate_predicate,
)
from .operators import Executor, Row

SubqueryRunner = Callable[[Any, Mapping[str, str]], Iterable[Mapping[str, str]]]


@dataclass(frozen=True)
class ExistsExpr(Expr):
    """``EXISTS (subquery)``."""

    subquery: Any


@dataclass(frozen=True)
class InExpr(Expr):
    """``value IN (subquery)``."""

    value: Expr
    subquery: Any


def _contains_subquery(expr: Expr | None) -> bool:
    if expr is None:
        return False
    if isinstance(expr, (ExistsExpr, InExpr)):
        return True
    if isinstance(expr, BinaryExpr):
        return _contains_subquery(expr.left) or _contains_subquery(expr.right)
    if isinstance(expr, InListExpr):
        return _contains_subquery(expr.value) or any(
            _contains_subquery(item) for item in expr.items
        )
    return False


def _first_selected_value(row: Mapping[str, str], subquery: Any) -> str:
    columns = getattr(subquery, "columns", None) or ()
    if columns and isinstance(columns[0], Column) and columns[0].name in row:
        return row[columns[0].name]
    if len(row) == 1:
        return next(iter(row.values()))
    if not row:
        return ""
    raise ValueError("FilterExecutor: subquery IN expects a single selected column")


class FilterExecutor(Executor):
    """Pass through the child rows for which the predicate holds.

    Subqueries are executed by ``run_subquery(subquery, outer_row)``, which is
    responsible for binding outer-row references and returns the result rows.
    Without a runner, EXISTS and IN-subquery predicates are false.
    """

    def __init__(
        self,
        child: Executor | None,
        predicate: Expr | None,
        run_subquery: SubqueryRunner | None = None,
    ) -> None:
        if child is None:
            raise ValueError("FilterExecutor: null child executor")
        self._child = child
        self._predicate = predicate
        self._run_subquery = run_subquery
        self._has_subquery = _contains_subquery(predicate)
        self._compiled = None if self._has_subquery else CompiledPredicate.compile(predicate)

    def open(self) -> None:
        self._child.open()

    def next(self) -> Row | None:
        while (row := self._child.next()) is not None:
            if self._has_subquery:
                passed = self._eval_with_subqueries(self._predicate, row)
            else:
                passed = self._compiled.evaluate_predicate(row)
            if passed:
                return row
        return None

    def close(self) -> None:
        self._child.close()

    def _eval_with_subqueries(self, expr: Expr | None, row: Row) -> bool:
        if expr is None:
            return True

        if isinstance(expr, ExistsExpr):
            if self._run_subquery is None or expr.subquery is None:
                return False
            for _ in self._run_subquery(expr.subquery, row):
                return True
            return False

        if isinstance(expr, InExpr):
            if self._run_subquery is None or expr.subquery is None:
                return False
            value = evaluate(expr.value, row)
            return any(
                value == _first_selected_value(sub_row, expr.subquery)
                for sub_row in self._run_subquery(expr.subquery, row)
            )

        if isinstance(expr, InListExpr):
            value = evaluate(expr.value, row)
            return any(value == evaluate(item, row) for item in expr.items)

        if isinstance(expr, BinaryExpr):
            if expr.op == "NOT":
                return not self._eval_with_subqueries(expr.left, row)
            if expr.op == "AND":
                return self._eval_with_subqueries(expr.left, row) and self._eval_with_subqueries(
                    expr.right, row
                )
            if expr.op == "OR":
                return self._eval_with_subqueries(expr.left, row) or self._eval_with_subqueries(
                    expr.right, row
                )
            return compare_values(evaluate(expr.left, row), expr.op, evaluate(expr.right, row))

        return evaluate_predicate(expr, row)