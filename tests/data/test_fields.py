# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Tests for field kinds, coercion rules and the Fields container."""

from __future__ import annotations

import time
from datetime import date, datetime

import pytest
from dateutil.relativedelta import relativedelta

from graphite_data.data.errors import SchemaError
from graphite_data.data.fields import (
    REJECTED,
    Array,
    Boolean,
    DateTime,
    Email,
    Enumeration,
    Field,
    FieldKind,
    Fields,
    Float,
    Integer,
    IpAddress,
    Json,
    Object,
    String,
    Timestamp,
    encode_json,
    is_numeric,
    resolve_time,
)


def _identity(value: str) -> str:
    return value


def _escape(value: str) -> str:
    return value.replace("'", "\\'")


# ---------------------------------------------------------------------------
# FieldKind Tests
# ---------------------------------------------------------------------------


class TestFieldKind:
    """Test kind resolution."""

    def test_short_codes(self):
        """Short codes resolve to members."""
        assert FieldKind.parse("i") is FieldKind.INTEGER
        assert FieldKind.parse("ts") is FieldKind.TIMESTAMP
        assert FieldKind.parse("em") is FieldKind.EMAIL

    def test_long_names(self):
        """Long names resolve case-insensitively."""
        assert FieldKind.parse("Integer") is FieldKind.INTEGER
        assert FieldKind.parse("serialized-array") is FieldKind.ARRAY
        assert FieldKind.parse("serialized-object") is FieldKind.OBJECT
        assert FieldKind.parse("ip-address") is FieldKind.IP

    def test_member_passthrough(self):
        """Members are returned unchanged."""
        assert FieldKind.parse(Json) is FieldKind.JSON

    def test_unknown_kind(self):
        """Unknown kinds raise ValueError."""
        with pytest.raises(ValueError, match="Unknown field kind"):
            FieldKind.parse("blob")


# ---------------------------------------------------------------------------
# Time Expression Tests
# ---------------------------------------------------------------------------


class TestResolveTime:
    """Test resolve_time()."""

    NOW = 1_700_000_000

    def test_epoch_numbers(self):
        """Numbers and numeric strings are epochs."""
        assert resolve_time(1234) == 1234
        assert resolve_time(12.9) == 12
        assert resolve_time("1234") == 1234

    def test_now(self):
        """'now' is the reference time."""
        assert resolve_time("now", now=self.NOW) == self.NOW

    def test_today(self):
        """'today' is local midnight of the reference day."""
        expected = datetime.fromtimestamp(self.NOW).replace(hour=0, minute=0, second=0)
        assert resolve_time("today", now=self.NOW) == int(expected.timestamp())

    def test_relative_past(self):
        """'N units ago' moves back."""
        expected = datetime.fromtimestamp(self.NOW) - relativedelta(days=5)
        assert resolve_time("5 days ago", now=self.NOW) == int(expected.timestamp())

    def test_relative_future(self):
        """'+N units' moves forward."""
        expected = datetime.fromtimestamp(self.NOW) + relativedelta(weeks=1)
        assert resolve_time("+1 week", now=self.NOW) == int(expected.timestamp())

    def test_absolute_date(self):
        """Absolute dates go through dateutil."""
        expected = int(datetime(2024, 1, 31, 12, 0, 0).timestamp())
        assert resolve_time("2024-01-31 12:00:00") == expected

    def test_date_objects(self):
        """datetime and date objects are accepted."""
        moment = datetime(2024, 1, 31, 8, 30)
        assert resolve_time(moment) == int(moment.timestamp())
        assert resolve_time(date(2024, 1, 31)) == int(datetime(2024, 1, 31).timestamp())

    def test_garbage(self):
        """Unparseable input raises ValueError."""
        with pytest.raises(ValueError):
            resolve_time("not a date at all")
        with pytest.raises(ValueError):
            resolve_time(True)
        with pytest.raises(ValueError):
            resolve_time([1])


class TestIsNumeric:
    """Test is_numeric()."""

    def test_numbers(self):
        assert is_numeric(3)
        assert is_numeric(2.5)
        assert is_numeric("42")
        assert is_numeric(" -1.5 ")

    def test_non_numbers(self):
        assert not is_numeric("x")
        assert not is_numeric(None)
        assert not is_numeric(True)
        assert not is_numeric(float("nan"))


# ---------------------------------------------------------------------------
# Field Definition Tests
# ---------------------------------------------------------------------------


class TestFieldDefinition:
    """Test Field construction."""

    def test_kind_from_code(self):
        """Kind given as code is resolved."""
        assert Field("n", "i").kind is FieldKind.INTEGER

    def test_enum_requires_values(self):
        """Enum fields without values are invalid."""
        with pytest.raises(ValueError, match="requires values"):
            Field("state", Enumeration)

    def test_invalid_default(self):
        """A default the kind rejects is invalid."""
        with pytest.raises(ValueError, match="not a valid integer"):
            Field("n", Integer, default="abc")

    def test_time_bounds_resolved(self):
        """Date expressions in bounds become epochs."""
        field = Field("since", Timestamp, min="2000-01-01")
        assert field.min == int(datetime(2000, 1, 1).timestamp())

    def test_default_value(self):
        """default_value() returns the stored form."""
        assert Field("flag", Boolean, default=False).default_value() is False
        assert Field("ip", IpAddress, default="127.0.0.1").default_value() == 2130706433
        assert Field("n", Integer).default_value() is None


# ---------------------------------------------------------------------------
# Coercion Tests
# ---------------------------------------------------------------------------


class TestIntegerCoercion:
    """Test integer and float coercion."""

    def test_numeric_strings(self):
        field = Field("n", Integer)
        assert field.coerce("42") == 42
        assert field.coerce(7.9) == 7

    def test_lenient_clamps(self):
        """Lenient fields clamp to bounds."""
        field = Field("n", Integer, min=1, max=10)
        assert field.coerce(20) == 10
        assert field.coerce(-3) == 1

    def test_strict_rejects(self):
        """Strict fields reject out-of-bounds and non-integral values."""
        field = Field("n", Integer, min=1, max=10, strict=True)
        assert field.coerce(20) is REJECTED
        assert field.coerce(0) is REJECTED
        assert field.coerce(4.5) is REJECTED
        assert field.coerce(True) is REJECTED
        assert field.coerce(5) == 5

    def test_unbounded(self):
        """bounded=False skips bounds."""
        field = Field("n", Integer, max=10, strict=True)
        assert field.coerce(20, bounded=False) == 20

    def test_garbage(self):
        assert Field("n", Integer).coerce("abc") is REJECTED
        assert Field("n", Integer).coerce([1]) is REJECTED

    def test_none_passes(self):
        """None always means NULL."""
        assert Field("n", Integer, strict=True).coerce(None) is None

    def test_float(self):
        field = Field("ratio", Float, min=0, max=1)
        assert field.coerce("0.25") == 0.25
        assert field.coerce(3) == 1.0
        assert field.coerce("x") is REJECTED


class TestTimeCoercion:
    """Test timestamp and datetime coercion."""

    def test_timestamp_now(self):
        before = int(time.time())
        value = Field("at", Timestamp).coerce("now")
        assert before <= value <= int(time.time())

    def test_timestamp_expression(self):
        expected = int(datetime(2024, 1, 31, 12, 0).timestamp())
        assert Field("at", Timestamp).coerce("2024-01-31 12:00:00") == expected

    def test_timestamp_rejects_bool(self):
        assert Field("at", Timestamp).coerce(True) is REJECTED

    def test_datetime_text(self):
        """Datetimes are stored as 'YYYY-MM-DD HH:MM:SS'."""
        field = Field("at", DateTime)
        assert field.coerce(datetime(2024, 1, 31, 12, 30, 15, 999)) == "2024-01-31 12:30:15"
        assert field.coerce("2024-01-31") == "2024-01-31 00:00:00"
        assert field.coerce(b"2024-01-31 08:00:00") == "2024-01-31 08:00:00"
        assert field.coerce(date(2024, 2, 1)) == "2024-02-01 00:00:00"

    def test_datetime_from_epoch(self):
        epoch = int(datetime(2024, 1, 31, 12, 0).timestamp())
        assert Field("at", DateTime).coerce(epoch) == "2024-01-31 12:00:00"

    def test_datetime_garbage(self):
        assert Field("at", DateTime).coerce("yesterday-ish?") is REJECTED

    def test_datetime_bounds(self):
        """Datetime bounds compare as epochs."""
        lenient = Field("at", DateTime, min="2020-01-01")
        strict = Field("at", DateTime, min="2020-01-01", strict=True)
        assert lenient.coerce("2019-06-01") == "2020-01-01 00:00:00"
        assert strict.coerce("2019-06-01") is REJECTED
        assert strict.coerce("2021-06-01") == "2021-06-01 00:00:00"


class TestBooleanCoercion:
    """Test boolean coercion."""

    def test_bit_bytes(self):
        """bit(1) values come back as bytes."""
        field = Field("flag", Boolean)
        assert field.coerce(b"\x01") is True
        assert field.coerce(b"\x00") is False

    def test_text_flags(self):
        field = Field("flag", Boolean)
        assert field.coerce("0") is False
        assert field.coerce("1") is True
        assert field.coerce("true") is True
        assert field.coerce(0) is False

    def test_strict_rejects_other(self):
        assert Field("flag", Boolean, strict=True).coerce("maybe") is REJECTED

    def test_lenient_truthiness(self):
        assert Field("flag", Boolean).coerce("maybe") is True
        assert Field("flag", Boolean).coerce("") is False


class TestStringCoercion:
    """Test string and email coercion."""

    def test_lenient_truncates(self):
        assert Field("s", String, max=3).coerce("abcdef") == "abc"

    def test_strict_length(self):
        field = Field("s", String, min=3, max=5, strict=True)
        assert field.coerce("abcdef") is REJECTED
        assert field.coerce("ab") is REJECTED
        assert field.coerce("abcd") == "abcd"

    def test_numbers(self):
        """Lenient strings accept numbers, strict ones do not."""
        assert Field("s", String).coerce(42) == "42"
        assert Field("s", String, strict=True).coerce(42) is REJECTED
        assert Field("s", String).coerce(True) is REJECTED

    def test_bytes_decoded(self):
        assert Field("s", String).coerce(b"caf\xc3\xa9") == "café"

    def test_email(self):
        field = Field("email", Email, max=255)
        assert field.coerce(" ada@example.com ") == "ada@example.com"
        assert field.coerce("not-an-email") is REJECTED
        assert field.coerce("") == ""

    def test_strict_email_empty(self):
        assert Field("email", Email, strict=True).coerce("") is REJECTED

    def test_email_never_truncated(self):
        assert Field("email", Email, max=8).coerce("ada@example.com") is REJECTED


class TestIpCoercion:
    """Test ip-address coercion."""

    def test_dotted_quad(self):
        field = Field("ip", IpAddress)
        assert field.coerce("10.0.0.1") == 167772161
        assert field.to_public(167772161) == "10.0.0.1"

    def test_integer(self):
        field = Field("ip", IpAddress)
        assert field.coerce(167772161) == 167772161
        assert field.coerce("167772161") == 167772161

    def test_out_of_range(self):
        field = Field("ip", IpAddress)
        assert field.coerce("256.1.1.1") is REJECTED
        assert field.coerce(-1) is REJECTED
        assert field.coerce(0x1_0000_0000) is REJECTED
        assert field.coerce("::1") is REJECTED


class TestEnumCoercion:
    """Test enum coercion."""

    def test_allowed_values(self):
        field = Field("state", Enumeration, values=("draft", "live"))
        assert field.coerce("draft") == "draft"
        assert field.coerce("gone") is REJECTED
        assert field.coerce(True) is REJECTED


class TestCompositeCoercion:
    """Test array, object and json coercion."""

    def test_array_from_json_text(self):
        field = Field("tags", Array)
        assert field.coerce('["a","b"]') == ["a", "b"]
        assert field.coerce(("a", "b")) == ["a", "b"]
        assert field.coerce("not json") is REJECTED
        assert field.coerce(5) is REJECTED

    def test_array_max_length(self):
        """max bounds the encoded length."""
        field = Field("tags", Array, max=5)
        assert field.coerce(["abcdef"]) is REJECTED
        assert field.coerce(["a"]) == ["a"]

    def test_object(self):
        field = Field("meta", Object)
        assert field.coerce('{"a": 1}') == {"a": 1}
        assert field.coerce([1, 2]) is REJECTED

    def test_json(self):
        field = Field("doc", Json)
        assert field.coerce("3") == 3
        assert field.coerce({"k": [1, 2]}) == {"k": [1, 2]}
        assert field.coerce({"k": {1, 2}}) is REJECTED

    def test_encode(self):
        assert encode_json({"a": "è", "b": [1, 2]}) == '{"a":"è","b":[1,2]}'
        assert Field("meta", Object).encode({"a": 1}) == '{"a":1}'


# ---------------------------------------------------------------------------
# SQL Literal Tests
# ---------------------------------------------------------------------------


class TestToSql:
    """Test Field.to_sql()."""

    def test_null(self):
        assert Field("s", String).to_sql(None, _identity) == "NULL"

    def test_boolean_bits(self):
        field = Field("flag", Boolean)
        assert field.to_sql(True, _identity) == "b'1'"
        assert field.to_sql(False, _identity) == "b'0'"

    def test_numeric_unquoted(self):
        assert Field("n", Integer).to_sql(5, _identity) == "5"
        assert Field("ip", IpAddress).to_sql(167772161, _identity) == "167772161"

    def test_text_escaped(self):
        assert Field("s", String).to_sql("O'Reilly", _escape) == "'O\\'Reilly'"

    def test_composite_encoded(self):
        assert Field("tags", Array).to_sql(["a"], _identity) == "'[\"a\"]'"


# ---------------------------------------------------------------------------
# Fields Container Tests
# ---------------------------------------------------------------------------


class TestFields:
    """Test the Fields container."""

    def test_declaration_order(self):
        fields = Fields("Model")
        fields.field("b", Integer)
        fields.field("a", String, guard=True)
        assert fields.names() == ["b", "a"]
        assert list(fields) == ["b", "a"]
        assert len(fields) == 2
        assert "a" in fields
        assert fields.guarded() == ["a"]

    def test_duplicate(self):
        fields = Fields("Model")
        fields.field("a", Integer)
        with pytest.raises(SchemaError, match="declared twice"):
            fields.field("a", String)

    def test_frozen(self):
        fields = Fields("Model").freeze()
        assert fields.frozen
        with pytest.raises(SchemaError, match="frozen"):
            fields.field("a", Integer)

    def test_invalid_field(self):
        """Construction errors surface as SchemaError naming the model."""
        fields = Fields("Model")
        with pytest.raises(SchemaError, match="Model: Unknown field kind"):
            fields.field("a", "blob")
        with pytest.raises(SchemaError):
            fields.field("b", Integer, colour="red")

    def test_get(self):
        fields = Fields("Model")
        fields.field("a", Integer)
        assert fields.get("a").kind is FieldKind.INTEGER
        assert fields.get("missing") is None
        assert fields["a"].name == "a"
