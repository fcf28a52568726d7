"""
esindex Columns — Field Definitions and Value Conversion
========================================================

Every indexed property becomes a column. A column stores its raw value
under its own name plus three shadow fields that Elasticsearch cannot
compute at query time:

    length_<name>       length of the canonical string form
    lowercase_<name>    lower-cased canonical string form
    uppercase_<name>    upper-cased canonical string form

Queries on LENGTH(x), LOWER(x) and UPPER(x) are routed to those shadow
fields, so the backend only ever sees plain term/range/match predicates.
"""

import base64
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Optional

from .exceptions import ColumnConflictError

LENGTH_PREFIX = "length_"
LOWERCASE_PREFIX = "lowercase_"
UPPERCASE_PREFIX = "uppercase_"

# Checked in this order when stripping a derivation prefix.
DERIVED_PREFIXES = (LENGTH_PREFIX, LOWERCASE_PREFIX, UPPERCASE_PREFIX)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

WHITESPACE_TEXT = {"type": "text", "analyzer": "whitespace"}


class PropertyType(Enum):
    """Semantic type of an indexed property."""

    STRING = "string"
    LONG = "long"
    DECIMAL = "decimal"
    DOUBLE = "double"
    BOOLEAN = "boolean"
    DATE = "date"
    BINARY = "binary"
    NAME = "name"
    PATH = "path"
    REFERENCE = "reference"
    WEAKREFERENCE = "weakreference"
    SIMPLEREFERENCE = "simplereference"
    URI = "uri"

    @classmethod
    def value_for(cls, value) -> "PropertyType":
        """Accept a PropertyType, or its name/value in any case."""
        if isinstance(value, cls):
            return value
        text = str(value).strip().lower()
        for member in cls:
            if member.value == text:
                return member
        raise ValueError(f"Unknown property type: {value!r}")


TEXTUAL_TYPES = frozenset({
    PropertyType.STRING,
    PropertyType.NAME,
    PropertyType.PATH,
    PropertyType.REFERENCE,
    PropertyType.WEAKREFERENCE,
    PropertyType.SIMPLEREFERENCE,
    PropertyType.URI,
})

ES_TYPES = {
    PropertyType.BINARY: "binary",
    PropertyType.BOOLEAN: "boolean",
    PropertyType.DATE: "date",
    PropertyType.LONG: "long",
    PropertyType.DECIMAL: "long",
    PropertyType.DOUBLE: "double",
}


def string_value(value: Any) -> str:
    """
    Canonical string form of any value, independent of column type.

    This is the text the lowercase/uppercase/length shadow fields are
    derived from.
    """
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    return str(value)


def _to_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, bool):
        raise ValueError(f"Cannot convert {value!r} to a date")
    if isinstance(value, (int, float, Decimal)):
        return datetime.fromtimestamp(float(value) / 1000.0, tz=timezone.utc)
    text = string_value(value).strip()
    if text.lstrip("-").isdigit():
        return datetime.fromtimestamp(int(text) / 1000.0, tz=timezone.utc)
    # fromisoformat() only learned the "Z" suffix in 3.11
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return _to_datetime(datetime.fromisoformat(text))


def epoch_millis(value: Any) -> int:
    """Convert a date-like value to milliseconds since the epoch (UTC)."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    delta = _to_datetime(value) - _EPOCH
    return (delta.days * 86_400_000) + (delta.seconds * 1000) + (delta.microseconds // 1000)


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return bool(value)


def to_long(value: Any) -> int:
    """Convert a number, numeric string or date to an int."""
    if isinstance(value, (datetime, date)):
        return epoch_millis(value)
    if isinstance(value, str):
        return int(Decimal(value.strip()))
    return int(value)


def _to_bytes(value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    return string_value(value).encode("utf-8")


_CASTS = {
    PropertyType.LONG: to_long,
    PropertyType.DECIMAL: lambda v: v if isinstance(v, Decimal) else Decimal(string_value(v).strip()),
    PropertyType.DOUBLE: lambda v: float(v),
    PropertyType.BOOLEAN: _to_bool,
    PropertyType.DATE: _to_datetime,
    PropertyType.BINARY: _to_bytes,
}


class IndexColumn:
    """
    Elasticsearch field definition for one indexed property.

    Converts values between the repository's representation and the one
    stored in Elasticsearch according to the column's PropertyType.

    Example:
        col = IndexColumn("title", PropertyType.STRING)
        col.column_value(42)        # "42"
        col.derived_values("Foo")   # {"length_title": 3, ...}
    """

    __slots__ = ("_name", "_type")

    def __init__(self, name: str, type: PropertyType):
        if not name:
            raise ValueError("Column name must not be empty")
        self._name = name
        self._type = PropertyType.value_for(type)

    @property
    def name(self) -> str:
        return self._name

    @property
    def type(self) -> PropertyType:
        return self._type

    @property
    def length_field(self) -> str:
        return LENGTH_PREFIX + self._name

    @property
    def lowercase_field(self) -> str:
        return LOWERCASE_PREFIX + self._name

    @property
    def uppercase_field(self) -> str:
        return UPPERCASE_PREFIX + self._name

    def field_names(self) -> List[str]:
        """The raw field followed by the three derived fields."""
        return [self._name, self.length_field, self.lowercase_field, self.uppercase_field]

    @property
    def es_type(self) -> str:
        """Elasticsearch core type used for the raw field."""
        return ES_TYPES.get(self._type, "text")

    def mapping(self) -> Dict[str, dict]:
        """Mapping entries for the raw field and its derived fields."""
        es_type = self.es_type
        raw = dict(WHITESPACE_TEXT) if es_type == "text" else {"type": es_type}
        return {
            self._name: raw,
            self.length_field: {"type": "long"},
            self.lowercase_field: dict(WHITESPACE_TEXT),
            self.uppercase_field: dict(WHITESPACE_TEXT),
        }

    def column_value(self, value: Any) -> Any:
        """Convert a domain value to the form stored in the raw field."""
        if self._type in TEXTUAL_TYPES:
            return string_value(value)
        if self._type is PropertyType.DATE:
            return epoch_millis(value)
        if self._type is PropertyType.BINARY and isinstance(value, (bytes, bytearray)):
            return base64.b64encode(bytes(value)).decode("ascii")
        return value

    def column_values(self, values: Iterable[Any]) -> List[Any]:
        return [self.column_value(v) for v in values]

    def cast(self, value: Any) -> Any:
        """
        Convert a literal or bound value to this column's domain type.

        Lists, tuples and sets are cast element-wise into a list.
        """
        if isinstance(value, (list, tuple, set, frozenset)):
            return [self.cast(v) for v in value]
        if self._type in TEXTUAL_TYPES:
            return string_value(value)
        converter = _CASTS.get(self._type)
        return converter(value) if converter else value

    def derived_values(self, value: Any) -> Dict[str, Any]:
        """Shadow field values for a single raw value."""
        text = string_value(value)
        return {
            self.length_field: len(text),
            self.lowercase_field: text.lower(),
            self.uppercase_field: text.upper(),
        }

    def derived_values_many(self, values: Iterable[Any]) -> Dict[str, List[Any]]:
        """Shadow field values for a multi-valued property, element-wise."""
        texts = [string_value(v) for v in values]
        return {
            self.length_field: [len(t) for t in texts],
            self.lowercase_field: [t.lower() for t in texts],
            self.uppercase_field: [t.upper() for t in texts],
        }

    def __eq__(self, other):
        if not isinstance(other, IndexColumn):
            return NotImplemented
        return self._name == other._name and self._type is other._type

    def __hash__(self):
        return hash((self._name, self._type))

    def __repr__(self):
        return f"IndexColumn({self._name!r}, {self._type.name})"


class IndexColumns:
    """
    Read-only registry of the columns of one index.

    A column is reachable by its own name and by each derived field name.
    """

    def __init__(self, *cols: IndexColumn):
        self._columns: Dict[str, IndexColumn] = {}
        seen: Dict[str, IndexColumn] = {}

        for col in cols:
            for field_name in col.field_names():
                owner = seen.get(field_name)
                if owner is not None:
                    raise ColumnConflictError(
                        f"Field '{field_name}' of {col!r} collides with {owner!r}"
                    )
                seen[field_name] = col
            self._columns[col.name] = col

    def column(self, name: str) -> Optional[IndexColumn]:
        """
        Get the column for a raw or derived field name.

        Returns None when no declared column owns the field.
        """
        col = self._columns.get(name)
        if col is not None:
            return col
        for prefix in DERIVED_PREFIXES:
            if name.startswith(prefix):
                return self._columns.get(name[len(prefix):])
        return None

    def prefix_of(self, name: str) -> Optional[str]:
        """Derivation prefix of a field name, or None for raw/unknown fields."""
        if name in self._columns:
            return None
        for prefix in DERIVED_PREFIXES:
            if name.startswith(prefix) and name[len(prefix):] in self._columns:
                return prefix
        return None

    def columns(self) -> List[IndexColumn]:
        return list(self._columns.values())

    def mapping(self) -> Dict[str, dict]:
        """Elasticsearch ``mappings`` body covering every column."""
        properties: Dict[str, dict] = {}
        for col in self._columns.values():
            properties.update(col.mapping())
        return {"properties": properties}

    def __contains__(self, name) -> bool:
        return self.column(name) is not None

    def __iter__(self) -> Iterator[IndexColumn]:
        return iter(self._columns.values())

    def __len__(self) -> int:
        return len(self._columns)
