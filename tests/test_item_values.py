"""Tests for attribute value conversion and row/table construction."""
from __future__ import annotations

import pytest

from item_values import (
    BooleanValue,
    ConversionError,
    IntegerValue,
    ListValue,
    MapValue,
    NullValue,
    Row,
    StringValue,
    Table,
    convert,
)


@pytest.mark.parametrize(
    "attr, expected",
    [
        ({"S": "hello world"}, "hello world"),
        ({"S": ""}, ""),
        ({"N": "42"}, "42"),
        ({"N": "-7"}, "-7"),
        ({"N": "007"}, "7"),
        ({"BOOL": True}, "true"),
        ({"BOOL": False}, "false"),
        ({"NULL": True}, "null"),
    ],
)
def test_scalar_text_form(attr, expected):
    """Converted scalars render in their canonical text form."""
    assert str(convert(attr)) == expected


def test_scalar_types():
    assert convert({"S": "x"}) == StringValue("x")
    assert convert({"N": "3"}) == IntegerValue(3)
    assert convert({"BOOL": True}) == BooleanValue(True)
    assert convert({"NULL": True}) == NullValue()


def test_containers_text_form():
    assert convert({"M": {}}).to_text() == "Map..."
    assert convert({"L": []}).to_text() == "List..."


def test_nested_conversion_preserves_depth():
    """A value three levels down stays three levels down."""
    attr = {"M": {"outer": {"L": [{"M": {"inner": {"N": "1"}}}]}}}
    value = convert(attr)

    assert isinstance(value, MapValue)
    lst = value.entries["outer"]
    assert isinstance(lst, ListValue)
    inner_map = lst.items[0]
    assert isinstance(inner_map, MapValue)
    assert inner_map.entries["inner"] == IntegerValue(1)


def test_map_keeps_key_order():
    value = convert({"M": {"z": {"S": "1"}, "a": {"S": "2"}}})
    assert list(value.entries) == ["z", "a"]


@pytest.mark.parametrize(
    "attr",
    [
        {"B": b"\x00"},
        {"SS": ["a", "b"]},
        {"NS": ["1"]},
        {"XX": "?"},
        {},
        {"S": "a", "N": "1"},
        "not a dict",
    ],
)
def test_unrecognized_attribute_raises(attr):
    with pytest.raises(ConversionError):
        convert(attr)


@pytest.mark.parametrize("raw", ["1.5", "1E-1", "NaN", "Infinity", "abc", ""])
def test_non_integral_number_raises(raw):
    with pytest.raises(ConversionError):
        convert({"N": raw})


@pytest.mark.parametrize(
    "raw, expected",
    [("1E+2", 100), ("-3e1", -30), ("2.0", 2), ("1.50E1", 15)],
)
def test_integral_number_in_exponent_form(raw, expected):
    """DynamoDB may hand back integral numbers in scientific or trailing-zero form."""
    assert convert({"N": raw}) == IntegerValue(expected)
    assert convert({"N": raw}).to_text() == str(expected)


def test_to_plain():
    value = convert({"M": {"a": {"L": [{"N": "1"}, {"NULL": True}, {"BOOL": False}]}}})
    assert value.to_plain() == {"a": [1, None, False]}


def test_row_keeps_source_order():
    row = Row.from_item({"name": {"S": "bob"}, "id": {"N": "2"}, "active": {"BOOL": True}})
    assert row.columns == ["name", "id", "active"]
    assert row.get("id") == IntegerValue(2)
    assert row.get("missing") is None


def test_table_headers_from_first_row():
    items = [
        {"pk": {"S": "a"}, "count": {"N": "1"}},
        {"pk": {"S": "b"}, "other": {"S": "x"}, "count": {"N": "2"}},
    ]
    table = Table.from_items(items)

    assert table.headers == ("pk", "count")
    assert len(table.rows) == 2
    assert table.rows[1].columns == ["pk", "other", "count"]
    assert not table.is_empty


def test_table_from_no_items():
    table = Table.from_items([])
    assert table.headers == ()
    assert table.rows == ()
    assert table.is_empty


def test_table_conversion_failure_propagates():
    with pytest.raises(ConversionError):
        Table.from_items([{"pk": {"S": "a"}}, {"pk": {"SS": ["x"]}}])
