"""
Unit tests for column definitions, the column registry and value casting.
"""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from esindex.columns import (
    IndexColumn,
    IndexColumns,
    PropertyType,
    epoch_millis,
    string_value,
)
from esindex.definition import IndexColumnDefinition, IndexDefinition
from esindex.exceptions import ColumnConflictError


class TestPropertyType:

    def test_value_for_accepts_names_in_any_case(self):
        assert PropertyType.value_for("STRING") is PropertyType.STRING
        assert PropertyType.value_for("WeakReference") is PropertyType.WEAKREFERENCE
        assert PropertyType.value_for(PropertyType.DATE) is PropertyType.DATE

    def test_value_for_rejects_unknown(self):
        with pytest.raises(ValueError):
            PropertyType.value_for("float")


class TestIndexColumn:

    def test_derived_field_names(self):
        col = IndexColumn("title", PropertyType.STRING)
        assert col.length_field == "length_title"
        assert col.lowercase_field == "lowercase_title"
        assert col.uppercase_field == "uppercase_title"
        assert col.field_names() == ["title", "length_title", "lowercase_title", "uppercase_title"]

    @pytest.mark.parametrize("type_,es_type", [
        (PropertyType.BINARY, "binary"),
        (PropertyType.BOOLEAN, "boolean"),
        (PropertyType.DATE, "date"),
        (PropertyType.LONG, "long"),
        (PropertyType.DECIMAL, "long"),
        (PropertyType.DOUBLE, "double"),
        (PropertyType.STRING, "text"),
        (PropertyType.PATH, "text"),
        (PropertyType.URI, "text"),
    ])
    def test_es_type(self, type_, es_type):
        assert IndexColumn("f", type_).es_type == es_type

    def test_mapping_uses_whitespace_analyzer_for_text(self):
        mapping = IndexColumn("title", PropertyType.STRING).mapping()
        assert mapping["title"] == {"type": "text", "analyzer": "whitespace"}
        assert mapping["length_title"] == {"type": "long"}
        assert mapping["lowercase_title"]["analyzer"] == "whitespace"
        assert mapping["uppercase_title"]["analyzer"] == "whitespace"

    def test_mapping_for_numeric_column(self):
        mapping = IndexColumn("year", PropertyType.LONG).mapping()
        assert mapping["year"] == {"type": "long"}

    def test_textual_column_value_is_string(self):
        assert IndexColumn("n", PropertyType.NAME).column_value(42) == "42"
        assert IndexColumn("r", PropertyType.REFERENCE).column_value("abc") == "abc"

    def test_date_column_value_is_epoch_millis(self):
        col = IndexColumn("d", PropertyType.DATE)
        when = datetime(2020, 1, 1, tzinfo=timezone.utc)
        assert col.column_value(when) == 1577836800000

    def test_naive_datetime_is_utc(self):
        assert epoch_millis(datetime(1970, 1, 1, 0, 0, 1)) == 1000

    def test_epoch_millis_before_epoch(self):
        assert epoch_millis(datetime(1969, 12, 31, 23, 59, 59, tzinfo=timezone.utc)) == -1000

    def test_epoch_millis_from_iso_string(self):
        assert epoch_millis("1970-01-01T00:00:02Z") == 2000

    def test_other_types_pass_through(self):
        assert IndexColumn("l", PropertyType.LONG).column_value(7) == 7
        assert IndexColumn("b", PropertyType.BOOLEAN).column_value(True) is True

    def test_binary_is_base64_encoded(self):
        assert IndexColumn("bin", PropertyType.BINARY).column_value(b"hi") == "aGk="

    def test_column_values_maps_element_wise(self):
        col = IndexColumn("d", PropertyType.DATE)
        assert col.column_values([0, datetime(1970, 1, 1, 0, 0, 3)]) == [0, 3000]

    def test_cast_to_domain_types(self):
        assert IndexColumn("l", PropertyType.LONG).cast("42") == 42
        assert IndexColumn("d", PropertyType.DECIMAL).cast("1.50") == Decimal("1.50")
        assert IndexColumn("x", PropertyType.DOUBLE).cast("2.5") == 2.5
        assert IndexColumn("x", PropertyType.DOUBLE).cast(" 1e3 ") == 1000.0
        assert IndexColumn("x", PropertyType.DOUBLE).cast(7) == 7.0
        assert IndexColumn("b", PropertyType.BOOLEAN).cast("TRUE") is True
        assert IndexColumn("b", PropertyType.BOOLEAN).cast("no") is False
        assert IndexColumn("s", PropertyType.STRING).cast(3) == "3"
        assert IndexColumn("p", PropertyType.PATH).cast("/a/b") == "/a/b"

    def test_cast_date(self):
        col = IndexColumn("d", PropertyType.DATE)
        assert col.cast("2020-01-01T00:00:00+00:00") == datetime(2020, 1, 1, tzinfo=timezone.utc)
        assert col.cast(date(2020, 1, 1)) == datetime(2020, 1, 1, tzinfo=timezone.utc)
        assert col.cast(1000) == datetime(1970, 1, 1, 0, 0, 1, tzinfo=timezone.utc)

    def test_cast_collection_element_wise(self):
        assert IndexColumn("l", PropertyType.LONG).cast(("1", "2")) == [1, 2]

    def test_derived_values(self):
        col = IndexColumn("title", PropertyType.STRING)
        assert col.derived_values("MiXed") == {
            "length_title": 5,
            "lowercase_title": "mixed",
            "uppercase_title": "MIXED",
        }

    def test_derived_values_many(self):
        col = IndexColumn("tags", PropertyType.STRING)
        assert col.derived_values_many(["Ab", "cde"]) == {
            "length_tags": [2, 3],
            "lowercase_tags": ["ab", "cde"],
            "uppercase_tags": ["AB", "CDE"],
        }

    def test_derived_values_ignore_column_type(self):
        col = IndexColumn("flag", PropertyType.BOOLEAN)
        assert col.derived_values(True)["uppercase_flag"] == "TRUE"

    def test_empty_name_rejected(self):
        with pytest.raises(ValueError):
            IndexColumn("", PropertyType.STRING)


class TestStringValue:

    def test_canonical_forms(self):
        assert string_value("x") == "x"
        assert string_value(False) == "false"
        assert string_value(12) == "12"
        assert string_value(b"caf\xc3\xa9") == "café"
        assert string_value(date(2021, 3, 4)) == "2021-03-04"


class TestIndexColumns:

    @pytest.fixture
    def columns(self):
        return IndexColumns(
            IndexColumn("title", PropertyType.STRING),
            IndexColumn("year", PropertyType.LONG),
        )

    @pytest.mark.parametrize("name", ["title", "year"])
    def test_derived_names_resolve_to_same_column(self, columns, name):
        col = columns.column(name)
        assert col is not None
        for prefix in ("length_", "lowercase_", "uppercase_"):
            assert columns.column(prefix + name) is col

    def test_unknown_name(self, columns):
        assert columns.column("missing") is None
        assert columns.column("lowercase_missing") is None

    def test_only_one_prefix_is_stripped(self, columns):
        assert columns.column("lowercase_uppercase_title") is None

    def test_prefix_of(self, columns):
        assert columns.prefix_of("title") is None
        assert columns.prefix_of("length_title") == "length_"
        assert columns.prefix_of("uppercase_year") == "uppercase_"
        assert columns.prefix_of("lowercase_missing") is None

    def test_column_named_like_a_derived_field(self):
        columns = IndexColumns(IndexColumn("length_x", PropertyType.LONG))
        col = columns.column("length_x")
        assert col.name == "length_x"
        assert columns.column("lowercase_length_x") is col

    def test_colliding_derived_names_rejected(self):
        with pytest.raises(ColumnConflictError):
            IndexColumns(
                IndexColumn("x", PropertyType.STRING),
                IndexColumn("lowercase_x", PropertyType.STRING),
            )

    def test_duplicate_names_rejected(self):
        with pytest.raises(ColumnConflictError):
            IndexColumns(
                IndexColumn("x", PropertyType.STRING),
                IndexColumn("x", PropertyType.LONG),
            )

    def test_mapping_covers_all_physical_fields(self, columns):
        properties = columns.mapping()["properties"]
        assert set(properties) == {
            "title", "length_title", "lowercase_title", "uppercase_title",
            "year", "length_year", "lowercase_year", "uppercase_year",
        }

    def test_container_protocol(self, columns):
        assert len(columns) == 2
        assert "lowercase_title" in columns
        assert [c.name for c in columns] == ["title", "year"]


class TestIndexDefinition:

    def test_of_pairs(self):
        defn = IndexDefinition.of("idx", [("a", "string"), ("b", PropertyType.LONG)])
        assert len(defn) == 2
        assert defn.columns[1] == IndexColumnDefinition("b", PropertyType.LONG)

    def test_index_columns(self):
        defn = IndexDefinition.of("idx", [("a", "date")])
        assert defn.index_columns().column("a").type is PropertyType.DATE
