from __future__ import annotations

import pandas as pd
import pytest

from influxdb2_toolkit.codec import (
    encode_field_value,
    encode_string_field,
    encode_tag_value,
    escape_key,
    escape_measurement,
    format_duration,
    format_float,
    format_rfc3339,
    format_value,
    parse_duration,
    parse_rfc3339,
    parse_value,
)
from influxdb2_toolkit.exceptions import DataPointError, ValueParseError
from influxdb2_toolkit.value import DataType, Value


@pytest.mark.parametrize(
    "cell, data_type",
    [
        ("12.34", DataType.DOUBLE),
        ("-0.5", DataType.DOUBLE),
        ("33", DataType.LONG),
        ("-9223372036854775808", DataType.LONG),
        ("18446744073709551615", DataType.UNSIGNED_LONG),
        ("true", DataType.BOOL),
        ("false", DataType.BOOL),
        ("hello, world", DataType.STRING),
        ("1h2m3.5s", DataType.DURATION),
        ("-150ms", DataType.DURATION),
        ("aGVsbG8=", DataType.BASE64_BINARY),
        ("2020-02-18T10:34:08.135814545Z", DataType.TIME_RFC),
        ("2020-02-18T10:34:08+02:00", DataType.TIME_RFC),
    ],
)
def test_cells_format_back_to_their_text(cell: str, data_type: DataType) -> None:
    assert format_value(parse_value(cell, data_type)) == cell


def test_parse_value_examples() -> None:
    assert parse_value("12.34", DataType.DOUBLE) == Value.double(12.34)
    assert parse_value("33", DataType.LONG) == Value.long(33)
    assert parse_value("33", DataType.UNSIGNED_LONG) == Value.unsigned_long(33)
    assert parse_value("aGVsbG8=", DataType.BASE64_BINARY) == Value.base64_binary(b"hello")


@pytest.mark.parametrize(
    "cell, data_type",
    [
        ("abc", DataType.DOUBLE),
        ("1.5", DataType.LONG),
        (" 7", DataType.LONG),
        ("1_000", DataType.LONG),
        ("9223372036854775808", DataType.LONG),
        ("-1", DataType.UNSIGNED_LONG),
        ("5 parsecs", DataType.DURATION),
        ("not base64!", DataType.BASE64_BINARY),
        ("2020-02-18 10:34:08", DataType.TIME_RFC),
        ("2020-02-18T10:34:08", DataType.TIME_RFC),
    ],
)
def test_parse_value_failures_name_the_column(cell: str, data_type: DataType) -> None:
    with pytest.raises(ValueParseError) as excinfo:
        parse_value(cell, data_type, "_value")
    assert excinfo.value.column == "_value"
    assert excinfo.value.cell == cell
    assert "name: _value" in str(excinfo.value)


def test_parse_duration_go_grammar() -> None:
    assert parse_duration("0") == 0
    assert parse_duration("1.5h") == 5_400_000_000_000
    assert parse_duration("2µs") == 2_000
    assert parse_duration("2us") == 2_000
    assert parse_duration("-1m30s") == -90_000_000_000
    assert parse_duration("+10ns") == 10


@pytest.mark.parametrize("text", ["", "5", "h", "1x", "-", "3000000h"])
def test_parse_duration_rejects(text: str) -> None:
    with pytest.raises(ValueError):
        parse_duration(text)


def test_format_duration_like_go() -> None:
    assert format_duration(0) == "0s"
    assert format_duration(3_600_000_000_000) == "1h0m0s"
    assert format_duration(1_500) == "1.5µs"
    assert format_duration(-2_500_000) == "-2.5ms"
    assert format_duration(61_000_000_000) == "1m1s"


def test_rfc3339_keeps_nanoseconds() -> None:
    ts = parse_rfc3339("2020-02-18T10:34:08.135814545Z")
    assert ts.nanosecond == 545
    assert format_rfc3339(ts) == "2020-02-18T10:34:08.135814545Z"
    assert format_rfc3339(pd.Timestamp("2020-02-18T10:34:08.100Z")) == "2020-02-18T10:34:08.1Z"


def test_format_float_special_values() -> None:
    assert format_float(float("nan")) == "NaN"
    assert format_float(float("inf")) == "+Inf"
    assert format_float(float("-inf")) == "-Inf"
    assert format_float(2.0) == "2"
    assert format_float(0.5) == "0.5"


def test_field_literals() -> None:
    assert encode_field_value(Value.double(0.5)) == "0.5"
    assert encode_field_value(Value.long(33)) == "33i"
    assert encode_field_value(Value.unsigned_long(32)) == "32u"
    assert encode_field_value(Value.boolean(True)) == "t"
    assert encode_field_value(Value.boolean(False)) == "f"
    assert encode_field_value(Value.string("hello")) == '"hello"'


def test_string_field_escapes_quotes_and_backslashes() -> None:
    assert encode_string_field('say "hi" \\o/') == '"say \\"hi\\" \\\\o/"'


def test_field_literals_reject_unwritable_values() -> None:
    with pytest.raises(DataPointError):
        encode_field_value(Value.double(float("nan")))
    with pytest.raises(DataPointError):
        encode_field_value(Value.duration(5))
    with pytest.raises(DataPointError):
        encode_field_value(Value.unknown())


def test_tag_values_and_escaping() -> None:
    assert encode_tag_value("server01") == "server01"
    assert encode_tag_value(Value.long(7)) == "7"
    with pytest.raises(DataPointError):
        encode_tag_value(Value.boolean(True))
    assert escape_measurement("cpu load,x") == "cpu\\ load\\,x"
    assert escape_key("a=b c,d") == "a\\=b\\ c\\,d"
