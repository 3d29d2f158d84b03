"""Typed wire values shared by the query decoder and the line protocol encoder."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Any, Callable, Dict, Optional
import math

import pandas as pd

from .exceptions import UnknownDataTypeError

I64_MIN = -(2**63)
I64_MAX = 2**63 - 1
U64_MAX = 2**64 - 1


class DataType(str, Enum):
    """Column types announced by the ``#datatype`` annotation."""

    UNKNOWN = "unknown"
    STRING = "string"
    DOUBLE = "double"
    BOOL = "boolean"
    LONG = "long"
    UNSIGNED_LONG = "unsignedLong"
    DURATION = "duration"
    BASE64_BINARY = "base64Binary"
    TIME_RFC = "dateTime:RFC3339"

    @classmethod
    def from_annotation(cls, token: str) -> "DataType":
        """Resolve a ``#datatype`` cell. ``UNKNOWN`` is never a valid annotation."""
        if token == "dateTime:RFC3339Nano":
            return cls.TIME_RFC
        try:
            data_type = cls(token)
        except ValueError:
            data_type = cls.UNKNOWN
        if data_type is cls.UNKNOWN:
            raise UnknownDataTypeError(f"unknown datatype: {token}")
        return data_type


@dataclass(frozen=True, eq=False)
class Value:
    """A single primitive value as it travels over the wire.

    Build instances through the per-variant constructors (``Value.double(1.5)``)
    or through ``Value.of(kind, data)`` when the type tag is only known at run
    time. Doubles compare under a total order (every NaN equals every other
    NaN) so values can be used inside grouping keys.
    """

    kind: DataType
    data: Any = None

    # -------------------- Constructors --------------------

    @classmethod
    def unknown(cls) -> "Value":
        return cls(DataType.UNKNOWN, None)

    @classmethod
    def string(cls, text: str) -> "Value":
        if not isinstance(text, str):
            raise TypeError(f"string value expected, got {type(text).__name__}")
        return cls(DataType.STRING, text)

    @classmethod
    def double(cls, number: float) -> "Value":
        if isinstance(number, bool) or not isinstance(number, (int, float)):
            raise TypeError(f"double value expected, got {type(number).__name__}")
        return cls(DataType.DOUBLE, float(number))

    @classmethod
    def boolean(cls, flag: bool) -> "Value":
        if not isinstance(flag, bool):
            raise TypeError(f"bool value expected, got {type(flag).__name__}")
        return cls(DataType.BOOL, flag)

    @classmethod
    def long(cls, number: int) -> "Value":
        _check_int(number, I64_MIN, I64_MAX, "long")
        return cls(DataType.LONG, int(number))

    @classmethod
    def unsigned_long(cls, number: int) -> "Value":
        _check_int(number, 0, U64_MAX, "unsignedLong")
        return cls(DataType.UNSIGNED_LONG, int(number))

    @classmethod
    def duration(cls, nanoseconds: int | timedelta) -> "Value":
        """Signed duration, stored as integer nanoseconds."""
        if isinstance(nanoseconds, timedelta):
            nanoseconds = pd.Timedelta(nanoseconds).value
        _check_int(nanoseconds, I64_MIN, I64_MAX, "duration")
        return cls(DataType.DURATION, int(nanoseconds))

    @classmethod
    def base64_binary(cls, payload: bytes) -> "Value":
        if not isinstance(payload, (bytes, bytearray, memoryview)):
            raise TypeError(f"bytes value expected, got {type(payload).__name__}")
        return cls(DataType.BASE64_BINARY, bytes(payload))

    @classmethod
    def time_rfc(cls, timestamp: Any) -> "Value":
        ts = pd.Timestamp(timestamp)
        if ts.tzinfo is None:
            raise ValueError("timestamp values must carry a UTC offset")
        return cls(DataType.TIME_RFC, ts)

    @classmethod
    def of(cls, kind: DataType | str, data: Any) -> "Value":
        """Construct the variant selected by ``kind``."""
        kind = DataType(kind)
        if kind is DataType.UNKNOWN:
            return cls.unknown()
        return _CONSTRUCTORS[kind](data)

    # -------------------- Accessors --------------------

    def as_f64(self) -> Optional[float]:
        return self.data if self.kind is DataType.DOUBLE else None

    def as_i64(self) -> Optional[int]:
        return self.data if self.kind is DataType.LONG else None

    def as_u64(self) -> Optional[int]:
        return self.data if self.kind is DataType.UNSIGNED_LONG else None

    def as_bool(self) -> Optional[bool]:
        return self.data if self.kind is DataType.BOOL else None

    def as_str(self) -> Optional[str]:
        return self.data if self.kind is DataType.STRING else None

    def as_bytes(self) -> Optional[bytes]:
        return self.data if self.kind is DataType.BASE64_BINARY else None

    def as_timestamp(self) -> Optional[pd.Timestamp]:
        return self.data if self.kind is DataType.TIME_RFC else None

    def as_duration(self) -> Optional[pd.Timedelta]:
        if self.kind is not DataType.DURATION:
            return None
        return pd.Timedelta(self.data, unit="ns")

    def to_python(self) -> Any:
        """Plain Python payload (durations as ``pd.Timedelta``)."""
        if self.kind is DataType.DURATION:
            return self.as_duration()
        return self.data

    # -------------------- Identity --------------------

    def _key(self) -> tuple:
        if self.kind is DataType.DOUBLE and math.isnan(self.data):
            return (self.kind, "NaN")
        if self.kind is DataType.TIME_RFC:
            return (self.kind, self.data.value)
        return (self.kind, self.data)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Value):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __repr__(self) -> str:
        if self.kind is DataType.UNKNOWN:
            return "Value.unknown()"
        return f"Value.{_CONSTRUCTOR_NAMES[self.kind]}({self.data!r})"


GenericMap = Dict[str, Value]


def _check_int(number: Any, low: int, high: int, label: str) -> None:
    if isinstance(number, bool) or not isinstance(number, int):
        raise TypeError(f"{label} value expected an int, got {type(number).__name__}")
    if not low <= number <= high:
        raise ValueError(f"{label} value out of range: {number}")


_CONSTRUCTOR_NAMES: Dict[DataType, str] = {
    DataType.STRING: "string",
    DataType.DOUBLE: "double",
    DataType.BOOL: "boolean",
    DataType.LONG: "long",
    DataType.UNSIGNED_LONG: "unsigned_long",
    DataType.DURATION: "duration",
    DataType.BASE64_BINARY: "base64_binary",
    DataType.TIME_RFC: "time_rfc",
}

_CONSTRUCTORS: Dict[DataType, Callable[[Any], Value]] = {
    kind: getattr(Value, name) for kind, name in _CONSTRUCTOR_NAMES.items()
}
