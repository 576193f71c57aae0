"""Joins of two child executors: nested-loop, hash and merge algorithms."""

from __future__ import annotations

import enum
import functools
from collections.abc import Iterable, Mapping, Sequence

from .compiled_predicate import CompiledPredicate
from .expression import BinaryExpr, Column, Expr, evaluate_predicate, try_parse_int64
from .operators import Executor, Row


class JoinType(enum.Enum):
    """Which unmatched rows a join keeps."""

    INNER = "INNER"
    LEFT = "LEFT"
    RIGHT = "RIGHT"
    FULL = "FULL"
    CROSS = "CROSS"


class JoinAlgorithm(enum.Enum):
    """How a join is carried out; HASH lets the executor choose."""

    HASH = "HASH"
    NESTED_LOOP = "NESTED_LOOP"
    MERGE = "MERGE"


def _cmp_values(left: str, right: str) -> int:
    """Integers by value, integers before other text, other text by code point."""
    li = try_parse_int64(left)
    ri = try_parse_int64(right)
    if li is not None and ri is not None:
        return (li > ri) - (li < ri)
    if (li is None) != (ri is None):
        return -1 if li is not None else 1
    return (left > right) - (left < right)


def _resolve_column(row: Mapping[str, str], column: str, bare_map: Mapping[str, str]) -> str:
    if column in row:
        return row[column]
    if "." not in column:
        qualified = bare_map.get(column)
        if qualified is not None and qualified in row:
            return row[qualified]
    raise ValueError(f"JoinExecutor: unknown column: {column}")


def _is_non_decreasing(rows: Sequence[Row], key: str, bare_map: Mapping[str, str]) -> bool:
    values = [_resolve_column(row, key, bare_map) for row in rows]
    return all(_cmp_values(a, b) <= 0 for a, b in zip(values, values[1:]))


def _compile_condition(condition: Expr | None) -> CompiledPredicate | None:
    try:
        return CompiledPredicate.compile(condition)
    except TypeError:
        return None


class JoinExecutor(Executor):
    """Join the rows of two executors on a condition.

    ``left_columns`` and ``right_columns`` are the qualified column names each
    side produces; merged rows carry these plus unambiguous bare-name aliases.
    """

    def __init__(
        self,
        left: Executor | None,
        right: Executor | None,
        join_type: JoinType = JoinType.INNER,
        algorithm: JoinAlgorithm = JoinAlgorithm.HASH,
        condition: Expr | None = None,
        left_columns: Iterable[str] = (),
        right_columns: Iterable[str] = (),
    ) -> None:
        if left is None:
            raise ValueError("JoinExecutor: null left executor")
        if right is None:
            raise ValueError("JoinExecutor: null right executor")
        self._left_columns = list(left_columns)
        self._right_columns = list(right_columns)
        if not self._left_columns:
            raise ValueError("JoinExecutor: empty left schema")
        if not self._right_columns:
            raise ValueError("JoinExecutor: empty right schema")

        self._left = left
        self._right = right
        self._join_type = join_type
        self._algorithm = algorithm
        self._condition = condition
        self._left_set = frozenset(self._left_columns)
        self._right_set = frozenset(self._right_columns)
        self._bare_to_qualified = self._build_unique_bare_map()
        self._qualified_to_bare = {q: b for b, q in self._bare_to_qualified.items()}
        self._compiled = _compile_condition(condition)
        self._output: list[Row] = []
        self._cursor = 0

    def _build_unique_bare_map(self) -> dict[str, str]:
        found: dict[str, str | None] = {}
        for qualified in (*self._left_columns, *self._right_columns):
            dot = qualified.rfind(".")
            if dot < 0:
                continue
            bare = qualified[dot + 1 :]
            found[bare] = None if bare in found else qualified
        return {bare: q for bare, q in found.items() if q is not None}

    def _null_side(self, columns: Sequence[str]) -> Row:
        return dict.fromkeys(columns, "")

    def _merge(self, left_row: Mapping[str, str], right_row: Mapping[str, str]) -> Row:
        merged: Row = {}
        for columns, source in ((self._left_columns, left_row), (self._right_columns, right_row)):
            for column in columns:
                value = source.get(column, "")
                merged.setdefault(column, value)
                alias = self._qualified_to_bare.get(column)
                if alias is not None:
                    merged.setdefault(alias, value)
        return merged

    def _matches(self, merged: Row) -> bool:
        if self._compiled is not None:
            return self._compiled.evaluate_predicate(merged)
        return evaluate_predicate(self._condition, merged)

    def _key_value(self, row: Mapping[str, str], column: str) -> str:
        return _resolve_column(row, column, self._bare_to_qualified)

    def _side(self, column: str) -> int:
        if column in self._left_set:
            return 0
        if column in self._right_set:
            return 1
        qualified = self._bare_to_qualified.get(column)
        if qualified is not None:
            if qualified in self._left_set:
                return 0
            if qualified in self._right_set:
                return 1
        return -1

    def extract_equi_join_keys(self) -> tuple[str, str] | None:
        """Return ``(left_key, right_key)`` for a ``column = column`` condition, else None."""
        expr = self._condition
        if not isinstance(expr, BinaryExpr) or expr.op not in ("=", "=="):
            return None
        if not isinstance(expr.left, Column) or not isinstance(expr.right, Column):
            return None
        ls = self._side(expr.left.name)
        rs = self._side(expr.right.name)
        if ls == 0 and rs == 1:
            return expr.left.name, expr.right.name
        if ls == 1 and rs == 0:
            return expr.right.name, expr.left.name
        return None

    @property
    def _keeps_left(self) -> bool:
        return self._join_type in (JoinType.LEFT, JoinType.FULL)

    @property
    def _keeps_right(self) -> bool:
        return self._join_type in (JoinType.RIGHT, JoinType.FULL)

    def _nested_loop(self, left_rows: Sequence[Row], right_rows: Sequence[Row]) -> None:
        null_left = self._null_side(self._left_columns)
        null_right = self._null_side(self._right_columns)
        right_matched = [False] * len(right_rows)

        for left_row in left_rows:
            matched = False
            for index, right_row in enumerate(right_rows):
                merged = self._merge(left_row, right_row)
                if self._matches(merged):
                    matched = True
                    right_matched[index] = True
                    self._output.append(merged)
            if not matched and self._keeps_left:
                self._output.append(self._merge(left_row, null_right))

        if self._keeps_right:
            self._output.extend(
                self._merge(null_left, row)
                for row, hit in zip(right_rows, right_matched)
                if not hit
            )

    def _hash_join(self, left_rows: Sequence[Row], right_rows: Sequence[Row]) -> None:
        keys = self.extract_equi_join_keys()
        if self._join_type is JoinType.CROSS or keys is None:
            self._nested_loop(left_rows, right_rows)
            return
        left_key, right_key = keys

        build_on_right = self._keeps_left or (
            self._join_type is JoinType.INNER and len(right_rows) <= len(left_rows)
        )
        if build_on_right:
            build, probe, build_key, probe_key = right_rows, left_rows, right_key, left_key
            null_build = self._null_side(self._right_columns)
            null_probe = self._null_side(self._left_columns)
        else:
            build, probe, build_key, probe_key = left_rows, right_rows, left_key, right_key
            null_build = self._null_side(self._left_columns)
            null_probe = self._null_side(self._right_columns)

        def combine(probe_row: Row, build_row: Row) -> Row:
            if build_on_right:
                return self._merge(probe_row, build_row)
            return self._merge(build_row, probe_row)

        buckets: dict[str, list[int]] = {}
        for index, row in enumerate(build):
            buckets.setdefault(self._key_value(row, build_key), []).append(index)

        # extract_equi_join_keys succeeded, so the condition is a plain column equality.
        track_build = self._keeps_right
        build_matched = [False] * len(build)
        emit_outer = (build_on_right and self._keeps_left) or (
            not build_on_right and self._keeps_right
        )

        for probe_row in probe:
            matched = False
            for index in buckets.get(self._key_value(probe_row, probe_key), ()):
                matched = True
                build_matched[index] = True
                self._output.append(combine(probe_row, build[index]))
            if not matched and emit_outer:
                self._output.append(combine(probe_row, null_build))

        if track_build:
            for row, hit in zip(build, build_matched):
                if not hit:
                    self._output.append(combine(null_probe, row))

    def _merge_join(self, left_rows: Sequence[Row], right_rows: Sequence[Row]) -> None:
        keys = self.extract_equi_join_keys()
        if self._join_type is JoinType.CROSS or keys is None:
            self._nested_loop(left_rows, right_rows)
            return
        left_key, right_key = keys

        null_left = self._null_side(self._left_columns)
        null_right = self._null_side(self._right_columns)
        lkeys = [self._key_value(row, left_key) for row in left_rows]
        rkeys = [self._key_value(row, right_key) for row in right_rows]
        li = sorted(range(len(left_rows)), key=functools.cmp_to_key(lambda a, b: _cmp_values(lkeys[a], lkeys[b])))
        ri = sorted(range(len(right_rows)), key=functools.cmp_to_key(lambda a, b: _cmp_values(rkeys[a], rkeys[b])))
        right_matched = [False] * len(right_rows)

        def group_end(order: list[int], values: list[str], start: int, value: str) -> int:
            end = start
            while end < len(order) and _cmp_values(values[order[end]], value) == 0:
                end += 1
            return end

        i = j = 0
        while i < len(li) and j < len(ri):
            lv = lkeys[li[i]]
            rv = rkeys[ri[j]]
            cmp = _cmp_values(lv, rv)
            if cmp == 0:
                i2 = group_end(li, lkeys, i, lv)
                j2 = group_end(ri, rkeys, j, rv)
                for left_index in li[i:i2]:
                    matched = False
                    for right_index in ri[j:j2]:
                        merged = self._merge(left_rows[left_index], right_rows[right_index])
                        if self._matches(merged):
                            matched = True
                            right_matched[right_index] = True
                            self._output.append(merged)
                    if not matched and self._keeps_left:
                        self._output.append(self._merge(left_rows[left_index], null_right))
                i, j = i2, j2
            elif cmp < 0:
                if self._keeps_left:
                    i2 = group_end(li, lkeys, i, lv)
                    for left_index in li[i:i2]:
                        self._output.append(self._merge(left_rows[left_index], null_right))
                    i = i2
                else:
                    i += 1
            else:
                j2 = group_end(ri, rkeys, j, rv)
                if self._keeps_right:
                    for right_index in ri[j:j2]:
                        right_matched[right_index] = True
                        self._output.append(self._merge(null_left, right_rows[right_index]))
                j = j2

        if self._keeps_left:
            for left_index in li[i:]:
                self._output.append(self._merge(left_rows[left_index], null_right))

        if self._keeps_right:
            for right_index in ri[j:]:
                self._output.append(self._merge(null_left, right_rows[right_index]))
            for right_row, hit in zip(right_rows, right_matched):
                if not hit:
                    self._output.append(self._merge(null_left, right_row))

    def choose_algorithm(self, left_rows: Sequence[Row], right_rows: Sequence[Row]) -> JoinAlgorithm:
        """Pick the algorithm for these inputs; non-HASH settings are respected as given."""
        if self._algorithm is not JoinAlgorithm.HASH:
            return self._algorithm

        keys = self.extract_equi_join_keys()
        if self._join_type is JoinType.CROSS or keys is None:
            return JoinAlgorithm.NESTED_LOOP
        if self._join_type is not JoinType.INNER:
            return JoinAlgorithm.HASH

        left_n, right_n = len(left_rows), len(right_rows)
        if left_n == 0 or right_n == 0:
            return JoinAlgorithm.NESTED_LOOP
        min_side = min(left_n, right_n)
        if min_side <= 32 or left_n * right_n <= 4096:
            return JoinAlgorithm.NESTED_LOOP

        left_key, right_key = keys
        if (
            min_side >= 256
            and _is_non_decreasing(left_rows, left_key, self._bare_to_qualified)
            and _is_non_decreasing(right_rows, right_key, self._bare_to_qualified)
        ):
            return JoinAlgorithm.MERGE
        return JoinAlgorithm.HASH

    def open(self) -> None:
        self._output = []
        self._cursor = 0
        left_rows = list(self._left)
        right_rows = list(self._right)

        selected = self.choose_algorithm(left_rows, right_rows)
        if selected is JoinAlgorithm.HASH:
            self._hash_join(left_rows, right_rows)
        elif selected is JoinAlgorithm.NESTED_LOOP:
            self._nested_loop(left_rows, right_rows)
        elif selected is JoinAlgorithm.MERGE:
            self._merge_join(left_rows, right_rows)
        else:
            raise ValueError("JoinExecutor: unsupported algorithm")

    def next(self) -> Row | None:
        if self._cursor >= len(self._output):
            return None
        row = self._output[self._cursor]
        self._cursor += 1
        return row

    def close(self) -> None:
        self._output = []
        self._cursor = 0