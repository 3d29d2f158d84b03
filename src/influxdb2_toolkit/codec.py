"""Conversions between raw text and typed values.

Two directions live here:

* decoding annotated CSV cells into ``Value`` objects (``parse_value``) and
  the inverse cell formatting (``format_value``);
* formatting ``Value`` objects as line protocol literals
  (``encode_field_value`` and friends).
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Callable, Dict, Union
import base64
import binascii
import math
import re

import pandas as pd

from .exceptions import DataPointError, ValueParseError
from .value import I64_MAX, DataType, Value

_NANOS_PER_SECOND = 1_000_000_000

_UNIT_NANOS: Dict[str, int] = {
    "ns": 1,
    "us": 1_000,
    "µs": 1_000,  # U+00B5
    "μs": 1_000,  # U+03BC
    "ms": 1_000_000,
    "s": _NANOS_PER_SECOND,
    "m": 60 * _NANOS_PER_SECOND,
    "h": 3600 * _NANOS_PER_SECOND,
}

_DURATION_PART = re.compile(r"(\d*\.?\d*)(ns|us|µs|μs|ms|s|m|h)")

_RFC3339 = re.compile(
    r"^\d{4}-\d{2}-\d{2}[Tt]\d{2}:\d{2}:\d{2}(\.\d{1,9})?([Zz]|[+-]\d{2}:\d{2})$"
)

_MEASUREMENT_ESCAPES = str.maketrans({",": r"\,", " ": r"\ "})
_KEY_ESCAPES = str.maketrans({",": r"\,", "=": r"\=", " ": r"\ "})


# -------------------- Decoding --------------------

def parse_value(cell: str, data_type: DataType, column: str = "") -> Value:
    """Parse one annotated CSV cell as ``data_type``.

    Any failure is reported as ``ValueParseError`` naming the column.
    """
    parser = _PARSERS.get(data_type)
    if parser is None:
        raise ValueParseError(f"cannot parse cells of type {data_type.value}", column=column, cell=cell)
    try:
        return parser(cell)
    except ValueError as exc:
        raise ValueParseError(
            f"invalid {data_type.value}: {cell}, name: {column}", column=column, cell=cell
        ) from exc


def parse_duration(text: str) -> int:
    """Parse a Go style duration (``"1h2m3.5s"``, ``"-150ms"``) into nanoseconds."""
    original = text
    negative = False
    if text[:1] in ("+", "-"):
        negative = text[0] == "-"
        text = text[1:]
    if text == "0":
        return 0
    if not text:
        raise ValueError(f"invalid duration: {original!r}")

    total = 0
    pos = 0
    while pos < len(text):
        match = _DURATION_PART.match(text, pos)
        if match is None or match.group(1) in ("", "."):
            raise ValueError(f"invalid duration: {original!r}")
        number, unit = match.groups()
        try:
            total += int(Decimal(number) * _UNIT_NANOS[unit])
        except InvalidOperation as exc:
            raise ValueError(f"invalid duration: {original!r}") from exc
        pos = match.end()

    limit = I64_MAX + 1 if negative else I64_MAX
    if total > limit:
        raise ValueError(f"invalid duration: {original!r} overflows")
    return -total if negative else total


def format_duration(nanoseconds: int) -> str:
    """Format nanoseconds the way Go's ``Duration.String`` does."""
    if nanoseconds == 0:
        return "0s"
    sign = "-" if nanoseconds < 0 else ""
    magnitude = abs(nanoseconds)
    if magnitude < _NANOS_PER_SECOND:
        if magnitude < 1_000:
            return f"{sign}{magnitude}ns"
        if magnitude < 1_000_000:
            return f"{sign}{_decimal(magnitude, 1_000)}µs"
        return f"{sign}{_decimal(magnitude, 1_000_000)}ms"

    hours, rest = divmod(magnitude, _UNIT_NANOS["h"])
    minutes, rest = divmod(rest, _UNIT_NANOS["m"])
    text = f"{_decimal(rest, _NANOS_PER_SECOND)}s"
    if hours or minutes:
        text = f"{minutes}m{text}"
    if hours:
        text = f"{hours}h{text}"
    return sign + text


def parse_rfc3339(text: str) -> pd.Timestamp:
    """Strict RFC3339 parsing with up to nanosecond precision."""
    if not _RFC3339.match(text):
        raise ValueError(f"invalid RFC3339 timestamp: {text!r}")
    return pd.Timestamp(text.upper())


def format_rfc3339(timestamp: pd.Timestamp) -> str:
    """RFC3339Nano text: trailing fraction zeros trimmed, ``Z`` for UTC."""
    ts = pd.Timestamp(timestamp)
    text = ts.strftime("%Y-%m-%dT%H:%M:%S")
    nanos = ts.microsecond * 1_000 + ts.nanosecond
    if nanos:
        text += f".{nanos:09d}".rstrip("0")
    offset = ts.utcoffset()
    if not offset:
        return text + "Z"
    minutes = int(offset.total_seconds()) // 60
    sign = "+" if minutes >= 0 else "-"
    hours, minutes = divmod(abs(minutes), 60)
    return f"{text}{sign}{hours:02d}:{minutes:02d}"


def format_float(number: float) -> str:
    if math.isnan(number):
        return "NaN"
    if math.isinf(number):
        return "+Inf" if number > 0 else "-Inf"
    if number.is_integer() and abs(number) < 1e16:
        return str(int(number))
    return repr(number)


def format_value(value: Value) -> str:
    """Render ``value`` as the annotated CSV cell it would be decoded from."""
    kind = value.kind
    if kind is DataType.STRING:
        return value.data
    if kind is DataType.DOUBLE:
        return format_float(value.data)
    if kind is DataType.BOOL:
        return "true" if value.data else "false"
    if kind in (DataType.LONG, DataType.UNSIGNED_LONG):
        return str(value.data)
    if kind is DataType.DURATION:
        return format_duration(value.data)
    if kind is DataType.BASE64_BINARY:
        return base64.b64encode(value.data).decode("ascii")
    if kind is DataType.TIME_RFC:
        return format_rfc3339(value.data)
    return ""


def _decimal(value: int, scale: int) -> str:
    whole, fraction = divmod(value, scale)
    if not fraction:
        return str(whole)
    digits = str(fraction).rjust(len(str(scale)) - 1, "0").rstrip("0")
    return f"{whole}.{digits}"


def _strict(cell: str) -> str:
    # float()/int() accept surrounding whitespace and digit separators
    if "_" in cell or cell != cell.strip():
        raise ValueError(f"invalid number: {cell!r}")
    return cell


def _parse_base64(cell: str) -> Value:
    try:
        return Value.base64_binary(base64.b64decode(cell, validate=True))
    except binascii.Error as exc:
        raise ValueError(str(exc)) from exc


_PARSERS: Dict[DataType, Callable[[str], Value]] = {
    DataType.STRING: Value.string,
    DataType.DOUBLE: lambda cell: Value.double(float(_strict(cell))),
    DataType.BOOL: lambda cell: Value.boolean(cell.lower() != "false"),
    DataType.LONG: lambda cell: Value.long(int(_strict(cell))),
    DataType.UNSIGNED_LONG: lambda cell: Value.unsigned_long(int(_strict(cell))),
    DataType.DURATION: lambda cell: Value.duration(parse_duration(cell)),
    DataType.BASE64_BINARY: _parse_base64,
    DataType.TIME_RFC: lambda cell: Value.time_rfc(parse_rfc3339(cell)),
}


# -------------------- Line protocol literals --------------------

def encode_float(number: float) -> str:
    if not math.isfinite(number):
        raise DataPointError(f"line protocol cannot represent float value {number}")
    return format_float(number)


def encode_integer(number: int) -> str:
    return f"{number}i"


def encode_unsigned(number: int) -> str:
    return f"{number}u"


def encode_boolean(flag: bool) -> str:
    return "t" if flag else "f"


def encode_string_field(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def encode_timestamp(timestamp: int) -> str:
    return str(int(timestamp))


def encode_field_value(value: Value) -> str:
    """Line protocol literal for a field value."""
    kind = value.kind
    if kind is DataType.DOUBLE:
        return encode_float(value.data)
    if kind is DataType.LONG:
        return encode_integer(value.data)
    if kind is DataType.UNSIGNED_LONG:
        return encode_unsigned(value.data)
    if kind is DataType.BOOL:
        return encode_boolean(value.data)
    if kind is DataType.STRING:
        return encode_string_field(value.data)
    raise DataPointError(f"{kind.value} values cannot be written as line protocol fields")


def encode_tag_value(value: Union[Value, str]) -> str:
    """Tag values are written verbatim; integers are rendered in decimal."""
    if isinstance(value, str):
        return value
    if value.kind in (DataType.STRING, DataType.LONG, DataType.UNSIGNED_LONG):
        return str(value.data)
    raise DataPointError(f"{value.kind.value} values cannot be written as tag values")


def escape_measurement(name: str) -> str:
    """Escape commas and spaces for use as a measurement name."""
    return name.translate(_MEASUREMENT_ESCAPES)


def escape_key(text: str) -> str:
    """Escape commas, equals signs and spaces for tag keys, tag values and field keys."""
    return text.translate(_KEY_ESCAPES)
