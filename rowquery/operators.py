"""Pull-based executors: scans, limit, projection, distinct and sort."""

from __future__ import annotations

import abc
import functools
from collections.abc import Iterable, Iterator, Mapping, Sequence
from typing import Protocol

from .compiled_predicate import CompiledPredicate, parse_number
from .expression import Expr

Row = dict[str, str]
Table = Sequence[Mapping[str, str]]


class _Database(Protocol):
    def has_table(self, name: str) -> bool: ...

    def has_schema(self, name: str) -> bool: ...

    def get_schema(self, name: str) -> Sequence[str]: ...

    def get_table(self, name: str) -> Table: ...

    def get_or_build_hash_index(
        self, table: str, column: str
    ) -> Mapping[str, Sequence[int]]: ...


class Executor(abc.ABC):
    """An operator producing rows one at a time between ``open`` and ``close``."""

    @abc.abstractmethod
    def open(self) -> None:
        """Prepare to produce rows."""

    @abc.abstractmethod
    def next(self) -> Row | None:
        """Return the next row, or None when exhausted."""

    @abc.abstractmethod
    def close(self) -> None:
        """Release state gathered since ``open``."""

    def __iter__(self) -> Iterator[Row]:
        self.open()
        try:
            while (row := self.next()) is not None:
                yield row
        finally:
            self.close()


def _prune(columns: list[str], required: Iterable[str]) -> list[str]:
    keep = set(required)
    if not keep:
        return columns
    pruned = [c for c in columns if c in keep]
    return pruned or columns


def _emit(source: Mapping[str, str], columns: list[str], qualified: list[str]) -> Row:
    row: Row = {}
    for column, qualified_name in zip(columns, qualified):
        value = source.get(column, "")
        row[column] = value
        row[qualified_name] = value
    return row


class SeqScanExecutor(Executor):
    """Scan a table in order, emitting bare and qualified column names."""

    def __init__(
        self,
        table: Table | None,
        schema: Sequence[str] | None,
        qualifier: str,
        required_columns: Iterable[str] = (),
        pushed_predicate: Expr | None = None,
        always_empty: bool = False,
    ) -> None:
        if table is None:
            raise ValueError("SeqScanExecutor: null table")
        if not qualifier:
            raise ValueError("SeqScanExecutor: empty table qualifier")
        self._table = table
        self._always_empty = always_empty

        if schema:
            columns = list(schema)
        elif table:
            columns = sorted(table[0])
        else:
            columns = []
        self._columns = _prune(columns, required_columns)
        self._qualified = [f"{qualifier}.{c}" for c in self._columns]
        self._predicate = CompiledPredicate.compile(pushed_predicate)
        self._index = 0

    def open(self) -> None:
        self._index = 0

    def next(self) -> Row | None:
        if self._always_empty:
            return None
        while self._index < len(self._table):
            source = self._table[self._index]
            self._index += 1
            if self._predicate.evaluate_predicate(source):
                return _emit(source, self._columns, self._qualified)
        return None

    def close(self) -> None:
        self._index = 0


class IndexScanExecutor(Executor):
    """Fetch the rows whose ``lookup_column`` equals ``lookup_value`` via a hash index."""

    def __init__(
        self,
        db: _Database | None,
        table: str,
        qualifier: str,
        lookup_column: str,
        lookup_value: str,
        required_columns: Iterable[str] = (),
        pushed_predicate: Expr | None = None,
        always_empty: bool = False,
    ) -> None:
        if db is None:
            raise ValueError("IndexScanExecutor: null database")
        if not db.has_table(table):
            raise ValueError(f"IndexScanExecutor: unknown table: {table}")
        self._db = db
        self._table = table
        self._lookup_column = lookup_column
        self._lookup_value = lookup_value
        self._always_empty = always_empty

        if db.has_schema(table):
            columns = list(db.get_schema(table))
        else:
            data = db.get_table(table)
            columns = sorted(data[0]) if data else []
        self._columns = _prune(columns, required_columns)
        self._qualified = [f"{qualifier}.{c}" for c in self._columns]
        self._predicate = CompiledPredicate.compile(pushed_predicate)
        self._row_ids: Iterator[int] = iter(())

    def open(self) -> None:
        self._row_ids = iter(())
        if self._always_empty:
            return
        index = self._db.get_or_build_hash_index(self._table, self._lookup_column)
        self._row_ids = iter(list(index.get(self._lookup_value, ())))

    def next(self) -> Row | None:
        if self._always_empty:
            return None
        source_table = self._db.get_table(self._table)
        for row_id in self._row_ids:
            if not 0 <= row_id < len(source_table):
                continue
            source = source_table[row_id]
            if self._predicate.evaluate_predicate(source):
                return _emit(source, self._columns, self._qualified)
        return None

    def close(self) -> None:
        self._row_ids = iter(())


class LimitExecutor(Executor):
    """Pass through at most ``limit_count`` rows."""

    def __init__(self, child: Executor | None, limit_count: int) -> None:
        if child is None:
            raise ValueError("LimitExecutor: null child executor")
        if limit_count < 0:
            raise ValueError("LimitExecutor: negative LIMIT value")
        self._child = child
        self._limit = limit_count
        self._emitted = 0

    def open(self) -> None:
        self._child.open()
        self._emitted = 0

    def next(self) -> Row | None:
        if self._emitted >= self._limit:
            return None
        row = self._child.next()
        if row is None:
            return None
        self._emitted += 1
        return row

    def close(self) -> None:
        self._child.close()
        self._emitted = 0


class ProjectionExecutor(Executor):
    """Keep only the named columns, or every column when ``select_all``."""

    def __init__(
        self, child: Executor | None, columns: Iterable[str], select_all: bool = False
    ) -> None:
        if child is None:
            raise ValueError("ProjectionExecutor: null child executor")
        self._columns = list(columns)
        if not select_all and not self._columns:
            raise ValueError("ProjectionExecutor: no columns specified")
        self._child = child
        self._select_all = select_all

    def open(self) -> None:
        self._child.open()

    def next(self) -> Row | None:
        source = self._child.next()
        if source is None:
            return None
        if self._select_all:
            return source
        row: Row = {}
        for column in self._columns:
            if column not in source:
                raise ValueError(f"Projected column not found in row: '{column}'")
            row[column] = source[column]
        return row

    def close(self) -> None:
        self._child.close()


class DistinctExecutor(Executor):
    """Drop rows identical to an earlier one, keeping first occurrences in order."""

    def __init__(self, child: Executor | None) -> None:
        if child is None:
            raise ValueError("DistinctExecutor: null child executor")
        self._child = child
        self._pending: Iterator[Row] = iter(())

    @staticmethod
    def row_signature(row: Mapping[str, str]) -> str:
        """An unambiguous key for a row that ignores column order."""
        return "".join(
            f"{len(name)}#{name}={len(value)}#{value}|" for name, value in sorted(row.items())
        )

    def open(self) -> None:
        seen: set[str] = set()
        rows: list[Row] = []
        self._child.open()
        while (row := self._child.next()) is not None:
            signature = self.row_signature(row)
            if signature not in seen:
                seen.add(signature)
                rows.append(row)
        self._child.close()
        self._pending = iter(rows)

    def next(self) -> Row | None:
        return next(self._pending, None)

    def close(self) -> None:
        self._pending = iter(())


def compare_for_sort(a: str, b: str) -> int:
    """Three-way comparison: numbers by value, numbers before text, text by code point."""
    an = parse_number(a)
    bn = parse_number(b)
    if an is not None and bn is not None:
        if an.is_nan() or bn.is_nan():
            return 0
        return (an > bn) - (an < bn)
    if (an is None) != (bn is None):
        return -1 if an is not None else 1
    return (a > b) - (a < b)


class SortExecutor(Executor):
    """Stable sort of all child rows by one column."""

    def __init__(self, child: Executor | None, column: str, ascending: bool = True) -> None:
        if child is None:
            raise ValueError("SortExecutor: null child executor")
        if not column:
            raise ValueError("SortExecutor: ORDER BY column must not be empty")
        self._child = child
        self._column = column
        self._ascending = ascending
        self._pending: Iterator[Row] = iter(())

    def open(self) -> None:
        self._child.open()
        keyed: list[tuple[str, Row]] = []
        while (row := self._child.next()) is not None:
            if self._column not in row:
                raise ValueError(f"ORDER BY column missing in row: {self._column}")
            keyed.append((row[self._column], row))
        sort_key = functools.cmp_to_key(lambda x, y: compare_for_sort(x[0], y[0]))
        ordered = sorted(keyed, key=sort_key, reverse=not self._ascending)
        self._pending = iter([row for _, row in ordered])

    def next(self) -> Row | None:
        return next(self._pending, None)

    def close(self) -> None:
        self._child.close()
        self._pending = iter(())