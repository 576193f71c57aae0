# rowquery

Query execution operators for in-memory tables. A table is a sequence of
rows, and a row is a dictionary mapping column names to string values. The
empty string stands for NULL.

## Modules

- `rowquery.data_type`: column types. `parse_logical_type` reads a
  declaration such as `INT`, `INTEGER`, `VARCHAR`, `VARCHAR(20)`, `TEXT`,
  `BOOL`/`BOOLEAN`, `FLOAT`/`REAL`, `DOUBLE`/`DOUBLE PRECISION`, `TIMESTAMP`
  or `ENUM('a','b')` and returns a frozen `LogicalType` (its
  `LogicalTypeKind`, `normalized_name`, `width` and `enum_values`).
  `is_supported_logical_type` tells whether a declaration parses.
  `validate_typed_value` raises `ValueError` when a value does not fit the
  type; `normalize_typed_value` also validates and turns booleans into
  `true`/`false`.
- `rowquery.expression`: expression nodes `Column`, `Literal`, `BinaryExpr`
  (comparisons, `AND`, `OR`, `NOT`) and `InListExpr`, evaluated with
  `evaluate` (to a string) and `evaluate_predicate` (to a bool).
  `compare_values` compares two values as 64-bit integers when both parse as
  integers and as strings otherwise.
- `rowquery.compiled_predicate`: `CompiledPredicate.compile(expr)` prepares
  an expression once; `evaluate_predicate(row)` and `evaluate_scalar(row)`
  then run it against many rows. Its `compare_values` tries integers, then
  floating-point numbers, then strings. A qualified column such as `u.id`
  falls back to the bare name `id` when only that is present in the row.
- `rowquery.operators`: the `Executor` base class (`open`, `next`, `close`;
  iterating an executor opens it, yields every row and closes it) and the
  operators `SeqScanExecutor`, `IndexScanExecutor`, `LimitExecutor`,
  `ProjectionExecutor`, `DistinctExecutor` and `SortExecutor`. Scans emit
  each column under its bare name and under `qualifier.column`.
  `compare_for_sort` orders numbers by value and before text.
- `rowquery.filter`: `FilterExecutor`, plus the `ExistsExpr` and `InExpr`
  nodes for subquery predicates.
- `rowquery.aggregation`: `AggregationExecutor` for `COUNT`, `SUM`, `AVG`,
  `MIN`, `MAX` and `COUNT_DISTINCT`, with grouping and a `HAVING` predicate.
- `rowquery.join`: `JoinExecutor` for `JoinType.INNER`, `LEFT`, `RIGHT`,
  `FULL` and `CROSS`, run as `JoinAlgorithm.NESTED_LOOP`, `HASH` or `MERGE`.

## Examples

```python
from rowquery.expression import BinaryExpr, Column, Literal
from rowquery.filter import FilterExecutor
from rowquery.operators import ProjectionExecutor, SeqScanExecutor, SortExecutor

users = [
    {"id": "1", "name": "ada", "age": "36"},
    {"id": "2", "name": "bob", "age": "17"},
    {"id": "3", "name": "cy", "age": "52"},
]

scan = SeqScanExecutor(users, None, "users")
adults = FilterExecutor(scan, BinaryExpr(Column("age"), ">=", Literal("18")))
ordered = SortExecutor(adults, "age", ascending=False)
names = ProjectionExecutor(ordered, ["name"])

print(list(names))  # [{'name': 'cy'}, {'name': 'ada'}]
```

```python
from rowquery.data_type import normalize_typed_value, parse_logical_type

flag = parse_logical_type("bool")
assert normalize_typed_value(flag, "T", "active") == "true"
assert parse_logical_type("varchar ( 20 )").normalized_name == "VARCHAR(20)"
```

### Aggregation

Aggregates are written as column references named after the call, such as
`Column("SUM(total)")`. They are collected from `select_exprs`, `having` and
the `order_by` name. Each output row is the first row of its group with the
aggregate values added under those names. `SUM`, `AVG`, `MIN` and `MAX`
skip empty values; `COUNT(*)` counts every row.

```python
from rowquery.aggregation import AggregationExecutor
from rowquery.expression import Column

agg = AggregationExecutor(
    SeqScanExecutor(users, None, "users"),
    select_exprs=[Column("COUNT(*)")],
)
print(next(iter(agg))["COUNT(*)"])  # 3
```

### Joins

`JoinExecutor` takes the two child executors and the qualified column names
each side produces. Merged rows hold those columns plus their bare names
where the bare name is unambiguous. With the default `JoinAlgorithm.HASH`
the executor picks nested-loop, hash or merge join from the condition and
the input sizes; other settings are used as given. Conditions that are not
a plain `column = column` equality run as a nested loop.

### Subqueries

`FilterExecutor` takes an optional `run_subquery(subquery, outer_row)`
callable that returns the subquery's rows; binding outer-row references is
up to that callable. `ExistsExpr` is true when it returns any row, and
`InExpr` compares the value with each row's first selected column. Without
a runner both are false.

## What this package does not do

There is no SQL text parser, no query planner, no table storage or catalog
and no command-line program. Callers build expression trees and executor
trees themselves. `IndexScanExecutor` needs a database object supplied by
the caller with `has_table`, `has_schema`, `get_schema`, `get_table` and
`get_or_build_hash_index` methods.

## Installing and testing

```
pip install .
pip install ".[test]"
pytest
```