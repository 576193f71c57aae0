"""Grouped aggregation: COUNT, SUM, AVG, MIN, MAX and COUNT_DISTINCT."""

from __future__ import annotations

import decimal
import enum
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field

from .compiled_predicate import parse_number
from .expression import BinaryExpr, Column, Expr, evaluate, evaluate_predicate
from .operators import Executor, Row, compare_for_sort

_GLOBAL_GROUP = "__global_group__"
_SEP = "\x1f"


class _AggFn(enum.Enum):
    COUNT = "COUNT"
    SUM = "SUM"
    AVG = "AVG"
    MIN = "MIN"
    MAX = "MAX"
    COUNT_DISTINCT = "COUNT_DISTINCT"


@dataclass(frozen=True)
class _AggregateSpec:
    fn: _AggFn
    arg: str
    args: tuple[str, ...]
    output_name: str


@dataclass
class _AggregateState:
    count: int = 0
    total: decimal.Decimal = decimal.Decimal(0)
    min_value: str | None = None
    max_value: str | None = None
    distinct: set[str] = field(default_factory=set)


def _parse_aggregate_ref(name: str) -> _AggregateSpec | None:
    lp = name.find("(")
    rp = name.rfind(")")
    if lp < 0 or rp < 0 or rp <= lp + 1:
        return None
    try:
        fn = _AggFn(name[:lp])
    except ValueError:
        return None
    arg = name[lp + 1 : rp]
    args = tuple(p.strip(" \t") for p in arg.split(",") if p.strip(" \t"))
    return _AggregateSpec(fn, arg, args, name)


def _collect_refs(expr: Expr | None, specs: dict[str, _AggregateSpec]) -> None:
    if isinstance(expr, Column):
        spec = _parse_aggregate_ref(expr.name)
        if spec is not None:
            specs.setdefault(spec.output_name, spec)
    elif isinstance(expr, BinaryExpr):
        _collect_refs(expr.left, specs)
        _collect_refs(expr.right, specs)


def _resolve(row: Row, name: str) -> str:
    try:
        return row[name]
    except KeyError:
        raise ValueError(
            f"AggregationExecutor: unknown column in aggregate: '{name}'"
        ) from None


def _to_numeric_string(value: decimal.Decimal) -> str:
    if value.is_nan():
        return "nan"
    if value.is_infinite():
        return "-inf" if value < 0 else "inf"
    rounded = value.to_integral_value(rounding=decimal.ROUND_HALF_UP)
    if abs(value - rounded) < decimal.Decimal("1e-12"):
        return str(int(rounded))
    text = f"{float(value):.6f}".rstrip("0").rstrip(".")
    return text or "0"


def _finalize(spec: _AggregateSpec, state: _AggregateState) -> str:
    if spec.fn is _AggFn.COUNT:
        return str(state.count)
    if spec.fn is _AggFn.COUNT_DISTINCT:
        return str(len(state.distinct))
    if spec.fn is _AggFn.SUM:
        return _to_numeric_string(state.total)
    if spec.fn is _AggFn.AVG:
        if state.count == 0:
            return "0"
        return _to_numeric_string(state.total / state.count)
    if spec.fn is _AggFn.MIN:
        return state.min_value or ""
    return state.max_value or ""


def _accumulate(spec: _AggregateSpec, state: _AggregateState, row: Row) -> None:
    if spec.fn is _AggFn.COUNT:
        if spec.arg != "*":
            _resolve(row, spec.arg)
        state.count += 1
        return

    if spec.fn is _AggFn.COUNT_DISTINCT:
        if spec.arg == "*":
            raise ValueError("COUNT_DISTINCT(*) is not supported")
        state.distinct.add(_SEP.join(_resolve(row, a) for a in spec.args))
        return

    value = _resolve(row, spec.arg)
    if not value:
        return  # empty means NULL

    if spec.fn is _AggFn.MIN:
        if state.min_value is None or compare_for_sort(value, state.min_value) < 0:
            state.min_value = value
        return
    if spec.fn is _AggFn.MAX:
        if state.max_value is None or compare_for_sort(value, state.max_value) > 0:
            state.max_value = value
        return

    number = parse_number(value)
    if number is None:
        raise ValueError(
            f"Non-numeric value for aggregate on column '{spec.arg}': '{value}'"
        )
    state.total += number
    state.count += 1


class AggregationExecutor(Executor):
    """Group child rows and compute the aggregates referenced by the query.

    Aggregates are column references named like ``SUM(price)`` found in
    ``select_exprs``, ``having`` and ``order_by``. Each output row is the first
    row of its group extended with the aggregate values.
    """

    def __init__(
        self,
        child: Executor | None,
        select_exprs: Iterable[Expr] = (),
        group_exprs: Iterable[Expr] = (),
        having: Expr | None = None,
        order_by: str = "",
    ) -> None:
        if child is None:
            raise ValueError("AggregationExecutor: null child executor")
        self._child = child
        self._select_exprs = tuple(select_exprs)
        self._group_exprs = tuple(group_exprs)
        self._having = having
        self._order_by = order_by
        self._pending: Iterator[Row] = iter(())

    def _specs(self) -> list[_AggregateSpec]:
        specs: dict[str, _AggregateSpec] = {}
        for expr in self._select_exprs:
            _collect_refs(expr, specs)
        _collect_refs(self._having, specs)
        if self._order_by:
            spec = _parse_aggregate_ref(self._order_by)
            if spec is not None:
                specs.setdefault(spec.output_name, spec)
        return list(specs.values())

    def build_group_key(self, row: Row) -> str:
        """The grouping key of ``row``: each group expression's value plus a separator."""
        return "".join(evaluate(expr, row) + _SEP for expr in self._group_exprs)

    def open(self) -> None:
        self._child.open()
        specs = self._specs()
        groups: dict[str, tuple[Row, list[_AggregateState]]] = {}

        while (row := self._child.next()) is not None:
            key = self.build_group_key(row) if self._group_exprs else _GLOBAL_GROUP
            if key not in groups:
                groups[key] = (dict(row), [_AggregateState() for _ in specs])
            _, states = groups[key]
            for spec, state in zip(specs, states):
                _accumulate(spec, state, row)

        if not groups and not self._group_exprs and specs:
            groups[_GLOBAL_GROUP] = ({}, [_AggregateState() for _ in specs])

        results: list[Row] = []
        for exemplar, states in groups.values():
            out = dict(exemplar)
            for spec, state in zip(specs, states):
                out[spec.output_name] = _finalize(spec, state)
            results.append(out)

        if self._having is not None:
            results = [r for r in results if evaluate_predicate(self._having, r)]
        self._pending = iter(results)

    def next(self) -> Row | None:
        return next(self._pending, None)

    def close(self) -> None:
        self._child.close()
        self._pending = iter(())