import pytest

from rowquery.data_type import (
    LogicalType,
    LogicalTypeKind,
    is_supported_logical_type,
    normalize_typed_value,
    parse_logical_type,
    validate_typed_value,
)


@pytest.mark.parametrize(
    "raw, kind, name",
    [
        ("int", LogicalTypeKind.INT, "INT"),
        ("  Integer ", LogicalTypeKind.INT, "INT"),
        ("text", LogicalTypeKind.TEXT, "TEXT"),
        ("bool", LogicalTypeKind.BOOLEAN, "BOOLEAN"),
        ("real", LogicalTypeKind.FLOAT, "FLOAT"),
        ("double precision", LogicalTypeKind.DOUBLE, "DOUBLE"),
        ("timestamp", LogicalTypeKind.TIMESTAMP, "TIMESTAMP"),
        ("varchar", LogicalTypeKind.VARCHAR, "VARCHAR(255)"),
    ],
)
def test_simple_types(raw, kind, name):
    parsed = parse_logical_type(raw)
    assert parsed.kind is kind
    assert parsed.normalized_name == name


def test_varchar_width_with_spaces():
    parsed = parse_logical_type("varchar ( 40 )")
    assert parsed.kind is LogicalTypeKind.VARCHAR
    assert parsed.width == 40
    assert parsed.normalized_name == f"VARCHAR({parsed.width})"


def test_enum_values_keep_quoted_whitespace_and_escapes():
    parsed = parse_logical_type("enum('a', 'b c', 'it''s')")
    assert parsed.kind is LogicalTypeKind.ENUM
    assert parsed.enum_values == ("a", "b c", "it's")
    assert parsed.normalized_name == "ENUM('a','b c','it's')"


@pytest.mark.parametrize(
    "raw, message",
    [
        ("", "Column type is empty"),
        ("VARCHAR(0)", "Out-of-range integer"),
        ("VARCHAR(x)", "Expected positive integer"),
        ("VARCHAR()", "Expected positive integer"),
        ("ENUM(a)", "ENUM values must be SQL strings"),
        ("ENUM('a)", "Malformed ENUM list"),
        ("BLOB", "Unsupported type 'BLOB'"),
    ],
)
def test_parse_errors(raw, message):
    with pytest.raises(ValueError, match=message):
        parse_logical_type(raw)


def test_is_supported():
    assert is_supported_logical_type("VARCHAR(10)") is True
    assert is_supported_logical_type("BLOB") is False


def test_empty_value_is_always_accepted():
    for raw in ("INT", "BOOLEAN", "TIMESTAMP", "ENUM('x')"):
        assert normalize_typed_value(parse_logical_type(raw), "", "c") == ""


@pytest.mark.parametrize("value", ["42", " -7 ", "+3"])
def test_int_accepts(value):
    assert normalize_typed_value(parse_logical_type("INT"), value, "n") == value


@pytest.mark.parametrize("value", ["4.2", "abc", "99999999999999999999"])
def test_int_rejects(value):
    with pytest.raises(ValueError, match="expects INT"):
        validate_typed_value(parse_logical_type("INT"), value, "n")


def test_varchar_limit():
    t = parse_logical_type("VARCHAR(3)")
    assert normalize_typed_value(t, "abc", "s") == "abc"
    with pytest.raises(ValueError, match=r"exceeds VARCHAR\(3\)"):
        validate_typed_value(t, "abcd", "s")


@pytest.mark.parametrize(
    "value, expected",
    [("T", "true"), ("true", "true"), ("1", "true"), ("0", "false"), ("f", "false")],
)
def test_boolean_normalization(value, expected):
    assert normalize_typed_value(parse_logical_type("BOOLEAN"), value, "b") == expected


def test_boolean_rejects():
    with pytest.raises(ValueError, match="expects BOOLEAN"):
        validate_typed_value(parse_logical_type("BOOLEAN"), "yes", "b")


@pytest.mark.parametrize("value", ["1e3", "-.5", "inf", "3", "0x1p3"])
def test_float_accepts(value):
    assert normalize_typed_value(parse_logical_type("FLOAT"), value, "x") == value


@pytest.mark.parametrize("value", ["abc", "1e99999", "1.2.3"])
def test_float_rejects(value):
    with pytest.raises(ValueError, match="expects numeric value"):
        validate_typed_value(parse_logical_type("DOUBLE"), value, "x")


@pytest.mark.parametrize(
    "value", ["2024-02-29 12:30", "2024-02-29T12:30:45.123", "2000-01-31 23:59:59"]
)
def test_timestamp_accepts(value):
    assert normalize_typed_value(parse_logical_type("TIMESTAMP"), value, "ts") == value


@pytest.mark.parametrize(
    "value",
    [
        "2023-02-29 12:00",
        "2024-13-01 00:00",
        "2024-01-01 24:00",
        "2024-01-01 12:00:00.",
        "2024-01-01",
        "1900-02-29 01:00",
    ],
)
def test_timestamp_rejects(value):
    with pytest.raises(ValueError, match="expects TIMESTAMP"):
        validate_typed_value(parse_logical_type("TIMESTAMP"), value, "ts")


def test_enum_membership_is_exact():
    t = parse_logical_type("ENUM('a','b')")
    assert normalize_typed_value(t, "b", "e") == "b"
    with pytest.raises(ValueError, match="expects ENUM value"):
        validate_typed_value(t, "A", "e")


def test_unknown_kind_rejected():
    with pytest.raises(ValueError, match="Unsupported type for column 'c'"):
        validate_typed_value(LogicalType(), "x", "c")