"""
VALUES-list tokenizer and literal coercion used by the SQL import format.
"""

from datetime import datetime, timezone

import pytest

from markermap.services.sql_values import (
    coerce_sql_value,
    quote_sql_value,
    split_sql_values,
    unescape_sql_string,
)


class TestSplit:
    def test_plain_values(self):
        assert split_sql_values("51.5, -0.09, 'Test'") == ["51.5", "-0.09", "'Test'"]

    def test_comma_inside_quotes(self):
        assert split_sql_values("1, 'Cafe, Bar', 2") == ["1", "'Cafe, Bar'", "2"]

    def test_escaped_quote_does_not_close(self):
        tokens = split_sql_values(r"'It\'s, fine', NULL")
        assert tokens == [r"'It\'s, fine'", "NULL"]

    def test_double_quotes(self):
        assert split_sql_values('"a, b", \'c\'') == ['"a, b"', "'c'"]

    def test_other_quote_inside_string(self):
        assert split_sql_values("'say \"hi\", ok', 3") == ["'say \"hi\", ok'", "3"]

    def test_escaped_backslash_before_closing_quote(self):
        assert split_sql_values(r"'C:\\', 'x'") == [r"'C:\\'", "'x'"]

    def test_single_value(self):
        assert split_sql_values("42") == ["42"]


class TestCoerce:
    @pytest.mark.parametrize("token,expected", [
        ("NULL", None),
        ("42", 42),
        ("-7", -7),
        ("51.5", 51.5),
        ("-0.09", -0.09),
        ("1e3", 1000.0),
        ("true", True),
        ("false", False),
        ("'Test'", "Test"),
        ('"Test"', "Test"),
        ("''", ""),
        ("CURRENT_TIMESTAMP", "CURRENT_TIMESTAMP"),
    ])
    def test_coerce(self, token, expected):
        assert coerce_sql_value(token) == expected

    def test_integer_vs_float_types(self):
        assert isinstance(coerce_sql_value("3"), int)
        assert isinstance(coerce_sql_value("3.0"), float)

    def test_quoted_escapes_unescaped(self):
        assert coerce_sql_value(r"'It\'s\nhere'") == "It's\nhere"

    def test_quoted_null_is_text(self):
        assert coerce_sql_value("'NULL'") == "NULL"

    def test_unescape_unknown_sequence(self):
        assert unescape_sql_string(r"a\%b") == "a%b"


class TestQuote:
    def test_scalars(self):
        assert quote_sql_value(None) == "NULL"
        assert quote_sql_value(True) == "true"
        assert quote_sql_value(3) == "3"
        assert quote_sql_value(51.5) == "51.5"

    def test_string_escaping(self):
        assert quote_sql_value("It's \"ok\"\n") == r"'It\'s \"ok\"\n'"

    def test_datetime_as_iso(self):
        value = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)
        assert quote_sql_value(value) == "'2026-05-01T12:00:00+00:00'"

    @pytest.mark.parametrize("value", ["Cafe, Bar", "back\\slash", "line\r\nbreak", "quote'", None, 0.1])
    def test_quoted_values_read_back(self, value):
        line = f"{quote_sql_value(value)}, 1"
        assert coerce_sql_value(split_sql_values(line)[0]) == value
