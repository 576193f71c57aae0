import pytest

from rowquery.expression import BinaryExpr, Column, Literal
from rowquery.join import JoinAlgorithm, JoinExecutor, JoinType
from rowquery.operators import SeqScanExecutor

USERS = [
    {"id": "1", "name": "alice"},
    {"id": "2", "name": "bob"},
    {"id": "3", "name": "carol"},
]
ORDERS = [
    {"uid": "1", "item": "book"},
    {"uid": "1", "item": "pen"},
    {"uid": "2", "item": "cup"},
    {"uid": "9", "item": "lamp"},
]
LEFT_COLS = ["u.id", "u.name"]
RIGHT_COLS = ["o.item", "o.uid"]
EQUI = BinaryExpr(Column("u.id"), "=", Column("o.uid"))


def make_join(join_type=JoinType.INNER, algorithm=JoinAlgorithm.HASH, condition=EQUI,
              users=USERS, orders=ORDERS):
    return JoinExecutor(
        SeqScanExecutor(users, None, "u"),
        SeqScanExecutor(orders, None, "o"),
        join_type,
        algorithm,
        condition,
        LEFT_COLS,
        RIGHT_COLS,
    )


def pairs(rows):
    return sorted((r["u.name"], r["o.item"]) for r in rows)


@pytest.mark.parametrize("algorithm", list(JoinAlgorithm))
def test_inner_join_same_result_for_every_algorithm(algorithm):
    rows = list(make_join(algorithm=algorithm))
    assert pairs(rows) == [("alice", "book"), ("alice", "pen"), ("bob", "cup")]


@pytest.mark.parametrize("algorithm", list(JoinAlgorithm))
def test_left_join_keeps_unmatched_left(algorithm):
    rows = list(make_join(JoinType.LEFT, algorithm))
    assert pairs(rows) == [("alice", "book"), ("alice", "pen"), ("bob", "cup"), ("carol", "")]


@pytest.mark.parametrize("algorithm", [JoinAlgorithm.HASH, JoinAlgorithm.NESTED_LOOP])
def test_full_join_keeps_both_sides(algorithm):
    rows = list(make_join(JoinType.FULL, algorithm))
    assert pairs(rows) == [
        ("", "lamp"),
        ("alice", "book"),
        ("alice", "pen"),
        ("bob", "cup"),
        ("carol", ""),
    ]


def test_right_join_nested_loop():
    rows = list(make_join(JoinType.RIGHT, JoinAlgorithm.NESTED_LOOP))
    assert pairs(rows) == [("", "lamp"), ("alice", "book"), ("alice", "pen"), ("bob", "cup")]


def test_cross_join_produces_every_pair():
    rows = list(make_join(JoinType.CROSS, condition=None))
    assert len(rows) == len(USERS) * len(ORDERS)
    assert len(set(pairs(rows))) == len(USERS) * len(ORDERS)


def test_merged_row_has_unique_bare_aliases():
    row = list(make_join())[0]
    assert set(row) == {"u.id", "u.name", "o.item", "o.uid", "id", "name", "item", "uid"}
    assert row["name"] == row["u.name"]


def test_ambiguous_bare_names_are_not_aliased():
    users = [{"id": "1"}]
    others = [{"id": "1"}]
    join = JoinExecutor(
        SeqScanExecutor(users, None, "a"),
        SeqScanExecutor(others, None, "b"),
        JoinType.INNER,
        JoinAlgorithm.HASH,
        BinaryExpr(Column("a.id"), "=", Column("b.id")),
        ["a.id"],
        ["b.id"],
    )
    rows = list(join)
    assert rows == [{"a.id": "1", "b.id": "1"}]


def test_extract_equi_join_keys_orders_sides():
    swapped = BinaryExpr(Column("o.uid"), "==", Column("u.id"))
    assert make_join(condition=swapped).extract_equi_join_keys() == ("u.id", "o.uid")
    bare = BinaryExpr(Column("uid"), "=", Column("id"))
    assert make_join(condition=bare).extract_equi_join_keys() == ("id", "uid")


def test_extract_equi_join_keys_rejects_other_conditions():
    assert make_join(condition=None).extract_equi_join_keys() is None
    lit = BinaryExpr(Column("u.id"), "=", Literal("1"))
    assert make_join(condition=lit).extract_equi_join_keys() is None
    same_side = BinaryExpr(Column("u.id"), "=", Column("u.name"))
    assert make_join(condition=same_side).extract_equi_join_keys() is None


def _key_rows(column, values):
    return [{column: str(v)} for v in values]


def test_choose_algorithm_rules():
    join = make_join()
    small_l = _key_rows("u.id", range(5))
    small_r = _key_rows("o.uid", range(5))
    assert join.choose_algorithm(small_l, small_r) is JoinAlgorithm.NESTED_LOOP
    assert join.choose_algorithm([], small_r) is JoinAlgorithm.NESTED_LOOP

    big_l = _key_rows("u.id", range(300))
    big_r = _key_rows("o.uid", range(300))
    assert join.choose_algorithm(big_l, big_r) is JoinAlgorithm.MERGE
    assert join.choose_algorithm(big_l, list(reversed(big_r))) is JoinAlgorithm.HASH

    assert make_join(JoinType.LEFT).choose_algorithm(small_l, small_r) is JoinAlgorithm.HASH
    cross = make_join(JoinType.CROSS, condition=None)
    assert cross.choose_algorithm(big_l, big_r) is JoinAlgorithm.NESTED_LOOP
    explicit = make_join(algorithm=JoinAlgorithm.MERGE)
    assert explicit.choose_algorithm(small_l, small_r) is JoinAlgorithm.MERGE


def test_large_sorted_inner_join_matches_nested_loop():
    users = [{"id": str(i), "name": f"n{i}"} for i in range(300)]
    orders = [{"uid": str(i), "item": f"i{i}"} for i in range(0, 600, 2)]
    merged = list(make_join(users=users, orders=orders))
    nested = list(make_join(algorithm=JoinAlgorithm.NESTED_LOOP, users=users, orders=orders))
    assert pairs(merged) == pairs(nested)
    assert len(merged) == 150


def test_next_exhausts_and_close_resets():
    join = make_join()
    join.open()
    rows = []
    while (row := join.next()) is not None:
        rows.append(row)
    assert len(rows) == 3
    assert join.next() is None
    join.close()
    assert join.next() is None


def test_unknown_column_in_condition_raises():
    cond = BinaryExpr(Column("missing"), "=", Literal("1"))
    with pytest.raises(ValueError):
        list(make_join(condition=cond))


def test_constructor_errors():
    scan = SeqScanExecutor(USERS, None, "u")
    with pytest.raises(ValueError):
        JoinExecutor(None, scan, left_columns=LEFT_COLS, right_columns=RIGHT_COLS)
    with pytest.raises(ValueError):
        JoinExecutor(scan, None, left_columns=LEFT_COLS, right_columns=RIGHT_COLS)
    with pytest.raises(ValueError):
        JoinExecutor(scan, scan, left_columns=[], right_columns=RIGHT_COLS)
    with pytest.raises(ValueError):
        JoinExecutor(scan, scan, left_columns=LEFT_COLS, right_columns=[])