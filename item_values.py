# item_values.py
"""
Item values — local model of DynamoDB's self-describing attribute values.

The low-level attribute encoding returned by the boto3 client is a single-key
dict per value ({"S": "abc"}, {"N": "42"}, {"M": {...}}, ...). convert() maps
it onto a closed set of value types so the dashboard never has to inspect raw
attribute dicts.

Supported tags: S, N (integral only), BOOL, NULL, M, L. Anything else raises
ConversionError.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple


class ConversionError(ValueError):
    """Raised for an attribute value that has no local representation."""


# --------------------
# Value types
# --------------------

class Value:
    def to_text(self) -> str:
        raise NotImplementedError

    def to_plain(self) -> Any:
        raise NotImplementedError

    def __str__(self) -> str:
        return self.to_text()


@dataclass(frozen=True)
class NullValue(Value):
    def to_text(self) -> str:
        return "null"

    def to_plain(self) -> Any:
        return None


@dataclass(frozen=True)
class StringValue(Value):
    value: str

    def to_text(self) -> str:
        return self.value

    def to_plain(self) -> Any:
        return self.value


@dataclass(frozen=True)
class IntegerValue(Value):
    value: int

    def to_text(self) -> str:
        return str(self.value)

    def to_plain(self) -> Any:
        return self.value


@dataclass(frozen=True)
class BooleanValue(Value):
    value: bool

    def to_text(self) -> str:
        return "true" if self.value else "false"

    def to_plain(self) -> Any:
        return self.value


@dataclass(frozen=True)
class MapValue(Value):
    entries: Dict[str, Value] = field(default_factory=dict)

    def to_text(self) -> str:
        return "Map..."

    def to_plain(self) -> Any:
        return {k: v.to_plain() for k, v in self.entries.items()}


@dataclass(frozen=True)
class ListValue(Value):
    items: Tuple[Value, ...] = ()

    def to_text(self) -> str:
        return "List..."

    def to_plain(self) -> Any:
        return [v.to_plain() for v in self.items]


# --------------------
# Conversion
# --------------------

def _parse_integer(raw: Any) -> int:
    """Number attributes are decimal text; exponent forms like "1E+2" are fine if integral."""
    try:
        number = Decimal(str(raw).strip())
        if number.as_integer_ratio()[1] == 1:
            return int(number)
    except (InvalidOperation, ValueError, OverflowError):
        pass
    raise ConversionError(f"non-integral number attribute: {raw!r}")


def convert(attr: Mapping[str, Any]) -> Value:
    """Convert one attribute value dict into a Value."""
    if not isinstance(attr, Mapping) or len(attr) != 1:
        raise ConversionError(f"unexpected attribute value: {attr!r}")

    (tag, raw), = attr.items()
    if tag == "S":
        return StringValue(raw)
    if tag == "N":
        return IntegerValue(_parse_integer(raw))
    if tag == "BOOL":
        return BooleanValue(bool(raw))
    if tag == "NULL":
        return NullValue()
    if tag == "M":
        return MapValue({k: convert(v) for k, v in raw.items()})
    if tag == "L":
        return ListValue(tuple(convert(v) for v in raw))
    raise ConversionError(f"unexpected attribute value: {attr!r}")


# --------------------
# Rows & tables
# --------------------

@dataclass(frozen=True)
class Row:
    cells: Tuple[Tuple[str, Value], ...] = ()

    @classmethod
    def from_item(cls, item: Mapping[str, Mapping[str, Any]]) -> "Row":
        # keep the record's own key order; do not sort
        return cls(tuple((k, convert(v)) for k, v in item.items()))

    @property
    def columns(self) -> List[str]:
        return [k for k, _ in self.cells]

    def get(self, column: str) -> Optional[Value]:
        for k, v in self.cells:
            if k == column:
                return v
        return None

    def to_plain(self) -> Dict[str, Any]:
        return {k: v.to_plain() for k, v in self.cells}


@dataclass(frozen=True)
class Table:
    headers: Tuple[str, ...] = ()
    rows: Tuple[Row, ...] = ()

    @classmethod
    def from_items(cls, items: Iterable[Mapping[str, Mapping[str, Any]]]) -> "Table":
        """Build a table from raw scan records; headers come from the first record only."""
        rows = tuple(Row.from_item(i) for i in items)
        headers = tuple(rows[0].columns) if rows else ()
        return cls(headers=headers, rows=rows)

    @property
    def is_empty(self) -> bool:
        return not self.rows
