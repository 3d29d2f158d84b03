"""Line protocol encoding for writes.

    measurement,tag1=v1,tag2=v2 field1=v1,field2=v2 timestamp\\n

Tags and fields are written in the order they were declared. Identifiers
are written verbatim; use ``codec.escape_key`` / ``codec.escape_measurement``
when they may contain commas, spaces or equals signs.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import (
    Any,
    AsyncIterable,
    AsyncIterator,
    Callable,
    Iterable,
    Iterator,
    List,
    Optional,
    Tuple,
    Union,
)

import pandas as pd

from .codec import encode_field_value, encode_tag_value, encode_timestamp
from .exceptions import DataPointError
from .value import DataType, Value


class WritePrecision(str, Enum):
    """Timestamp precision of a write call, as sent in the ``precision`` parameter."""

    S = "s"
    MS = "ms"
    US = "us"
    NS = "ns"

    @property
    def nanoseconds(self) -> int:
        return _PRECISION_NANOS[self]


_PRECISION_NANOS = {
    WritePrecision.S: 1_000_000_000,
    WritePrecision.MS: 1_000_000,
    WritePrecision.US: 1_000,
    WritePrecision.NS: 1,
}


def to_timestamp(value: Any, precision: Union[WritePrecision, str] = WritePrecision.NS) -> int:
    """Convert ``value`` into an integer timestamp in ``precision`` units.

    Integers are taken as already expressed in ``precision``. Naive datetimes
    are interpreted as UTC.
    """
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    ts = pd.Timestamp(value)
    if ts.tzinfo is None:
        ts = ts.tz_localize("UTC")
    return ts.value // WritePrecision(precision).nanoseconds


@dataclass(frozen=True)
class DataPoint:
    """One point ready to be written."""

    measurement: str
    tags: Tuple[Tuple[str, str], ...] = ()
    fields: Tuple[Tuple[str, Value], ...] = ()
    timestamp: Optional[int] = None

    def __post_init__(self) -> None:
        if not self.measurement:
            raise DataPointError("measurement must not be empty")
        tags = tuple(
            (key, _tag_text(key, value)) for key, value in self.tags if value is not None
        )
        fields = tuple(
            (key, _checked_field_value(key, value)) for key, value in self.fields if value is not None
        )
        if not fields:
            raise DataPointError("a data point needs at least one field")
        object.__setattr__(self, "tags", tags)
        object.__setattr__(self, "fields", fields)

    @staticmethod
    def builder(measurement: str) -> "DataPointBuilder":
        return DataPointBuilder(measurement)

    def to_line_protocol(self) -> str:
        return encode_point(self)


class DataPointBuilder:
    """Fluent construction of a ``DataPoint``::

        DataPoint.builder("cpu").tag("host", "server01").field("usage", 0.5).build()
    """

    def __init__(self, measurement: str) -> None:
        self._measurement = measurement
        self._tags: List[Tuple[str, str]] = []
        self._fields: List[Tuple[str, Value]] = []
        self._timestamp: Optional[int] = None

    def tag(self, key: str, value: Union[str, Value, None]) -> "DataPointBuilder":
        if value is not None:
            self._tags.append((key, encode_tag_value(value)))
        return self

    def field(
        self,
        key: str,
        value: Any,
        kind: Union[DataType, str, None] = None,
    ) -> "DataPointBuilder":
        """Add a field. ``kind`` forces the wire type, e.g. ``"unsignedLong"``."""
        if value is not None:
            self._fields.append((key, _field_value(value, kind)))
        return self

    def timestamp(
        self, value: Any, precision: Union[WritePrecision, str] = WritePrecision.NS
    ) -> "DataPointBuilder":
        self._timestamp = to_timestamp(value, precision)
        return self

    def build(self) -> DataPoint:
        return DataPoint(
            measurement=self._measurement,
            tags=tuple(self._tags),
            fields=tuple(self._fields),
            timestamp=self._timestamp,
        )


def _field_value(value: Any, kind: Union[DataType, str, None]) -> Value:
    if isinstance(value, Value):
        return value
    if kind is not None:
        return Value.of(kind, value)
    if isinstance(value, bool):
        return Value.boolean(value)
    if isinstance(value, int):
        return Value.long(value)
    if isinstance(value, float):
        return Value.double(value)
    if isinstance(value, str):
        return Value.string(value)
    raise DataPointError(f"cannot infer a field type for {type(value).__name__}; pass kind=")


def _checked_field_value(key: str, value: Any) -> Value:
    try:
        return _field_value(value, None)
    except (TypeError, ValueError) as exc:
        raise DataPointError(f"field {key}: {exc}") from exc


def _tag_text(key: str, value: Any) -> str:
    if isinstance(value, (str, Value)):
        return encode_tag_value(value)
    raise DataPointError(f"tag {key} must be a string, got {type(value).__name__}")


def encode_point(point: DataPoint) -> str:
    parts = [point.measurement]
    for key, value in point.tags:
        parts.append(f",{key}={value}")
    parts.append(" ")
    parts.append(",".join(f"{key}={encode_field_value(value)}" for key, value in point.fields))
    if point.timestamp is not None:
        parts.append(" ")
        parts.append(encode_timestamp(point.timestamp))
    parts.append("\n")
    return "".join(parts)


def encode_points(points: Iterable[DataPoint]) -> str:
    return "".join(encode_point(p) for p in points)


def iter_line_protocol(
    points: Iterable[Any],
    to_point: Optional[Callable[[Any], DataPoint]] = None,
) -> Iterator[bytes]:
    """Yield one encoded chunk per point, pulling points lazily."""
    for item in points:
        point = to_point(item) if to_point is not None else item
        yield encode_point(point).encode("utf-8")


async def aiter_line_protocol(
    points: Union[Iterable[Any], AsyncIterable[Any]],
    to_point: Optional[Callable[[Any], DataPoint]] = None,
) -> AsyncIterator[bytes]:
    """Async variant of ``iter_line_protocol``.

    Suspends only while waiting on the point source; every chunk holds one
    complete point.
    """
    if hasattr(points, "__aiter__"):
        async for item in points:
            point = to_point(item) if to_point is not None else item
            yield encode_point(point).encode("utf-8")
    else:
        for item in points:
            point = to_point(item) if to_point is not None else item
            yield encode_point(point).encode("utf-8")
