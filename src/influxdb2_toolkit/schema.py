"""Declarative mapping between composite records and caller types.

A schema is a static list of ``FieldSpec`` entries, each naming an
attribute, its wire type and its role in a point. ``RecordSchema`` projects
query results onto a target type; ``PointSchema`` additionally knows the
measurement and turns objects into line protocol.

Schemas are usually derived from a dataclass::

    @dataclass
    class Cpu:
        host: str = field(metadata={"influxdb": "tag"})
        usage: float = 0.0
        time: int = field(default=0, metadata={"influxdb": "timestamp"})

    reader = RecordSchema.from_dataclass(Cpu)
    writer = PointSchema.from_dataclass(Cpu, measurement="cpu")
"""

from __future__ import annotations

from dataclasses import dataclass, fields as dataclass_fields, is_dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union
import types
import typing

from .exceptions import MappingError, SchemaError
from .line_protocol import DataPoint, WritePrecision, encode_point, to_timestamp
from .value import DataType, GenericMap, Value

METADATA_ROLE = "influxdb"
METADATA_KIND = "kind"
METADATA_COLUMN = "column"


class Role(str, Enum):
    TAG = "tag"
    FIELD = "field"
    TIMESTAMP = "timestamp"
    IGNORE = "ignore"


@dataclass(frozen=True)
class FieldSpec:
    """One declared attribute: ``name`` on the target, ``column`` in the record."""

    name: str
    kind: DataType
    role: Role = Role.FIELD
    column: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", DataType(self.kind))
        object.__setattr__(self, "role", Role(self.role))

    @property
    def key(self) -> str:
        return self.column or self.name


class RecordSchema:
    """Projection of composite records onto ``factory(**values)``."""

    def __init__(self, fields: Iterable[FieldSpec], factory: Callable[..., Any] = dict) -> None:
        self.fields: List[FieldSpec] = list(fields)
        self.factory = factory
        names = [f.name for f in self.fields]
        if len(set(names)) != len(names):
            raise SchemaError(f"duplicate field names in schema: {names}")

    @classmethod
    def from_dataclass(cls, klass: type) -> "RecordSchema":
        return cls(_specs_from_dataclass(klass), factory=klass)

    def from_map(self, values: Mapping[str, Value]) -> Any:
        """Build one target object. Every declared attribute must be present."""
        kwargs = {}
        for spec in self.fields:
            if spec.role is Role.IGNORE:
                continue
            kwargs[spec.name] = _extract(values, spec)
        return self.factory(**kwargs)

    def from_maps(self, records: Iterable[Mapping[str, Value]]) -> List[Any]:
        return [self.from_map(r) for r in records]

    def to_map(self, obj: Any) -> GenericMap:
        """Inverse of ``from_map``; attributes holding ``None`` are left out."""
        values: GenericMap = {}
        for spec in self.fields:
            if spec.role is Role.IGNORE:
                continue
            raw = _read(obj, spec.name)
            if raw is None:
                continue
            values[spec.key] = _to_value(spec, raw)
        return values


class PointSchema(RecordSchema):
    """Writer schema: measurement plus tag, field and timestamp roles.

    Checked once here: at least one tag, exactly one timestamp and at least
    one field.
    """

    def __init__(
        self,
        measurement: str,
        fields: Iterable[FieldSpec],
        factory: Callable[..., Any] = dict,
    ) -> None:
        super().__init__(fields, factory=factory)
        if not measurement:
            raise SchemaError("measurement must not be empty")
        self.measurement = measurement
        self.tags = [f for f in self.fields if f.role is Role.TAG]
        self.values = [f for f in self.fields if f.role is Role.FIELD]
        timestamps = [f for f in self.fields if f.role is Role.TIMESTAMP]

        if not self.tags:
            raise SchemaError("You have to specify at least one tag field.")
        if len(timestamps) != 1:
            raise SchemaError("You have to specify exactly one timestamp field.")
        if not self.values:
            raise SchemaError("You have to specify at least one field.")
        for spec in self.tags:
            if spec.kind is not DataType.STRING:
                raise SchemaError(f"tag {spec.name} cannot be of type {spec.kind.value}")
        for spec in self.values:
            if spec.kind not in _FIELD_KINDS:
                raise SchemaError(f"field {spec.name} cannot be of type {spec.kind.value}")
        self.timestamp = timestamps[0]
        if self.timestamp.kind not in _TIMESTAMP_KINDS:
            raise SchemaError(
                f"timestamp {self.timestamp.name} cannot be of type {self.timestamp.kind.value}"
            )

    @classmethod
    def from_dataclass(cls, klass: type, measurement: Optional[str] = None) -> "PointSchema":
        return cls(measurement or klass.__name__, _specs_from_dataclass(klass), factory=klass)

    def to_point(
        self, obj: Any, precision: Union[WritePrecision, str] = WritePrecision.NS
    ) -> DataPoint:
        tags = []
        for spec in self.tags:
            raw = _read(obj, spec.name)
            if raw is not None:
                tags.append((spec.key, _to_value(spec, raw).data))
        fields = []
        for spec in self.values:
            raw = _read(obj, spec.name)
            if raw is not None:
                fields.append((spec.key, _to_value(spec, raw)))

        raw_time = _read(obj, self.timestamp.name)
        timestamp = None
        if raw_time is not None:
            if self.timestamp.kind is DataType.TIME_RFC:
                timestamp = to_timestamp(raw_time, precision)
            else:
                timestamp = _to_value(self.timestamp, raw_time).data
        return DataPoint(self.measurement, tuple(tags), tuple(fields), timestamp)

    def encode(self, obj: Any, precision: Union[WritePrecision, str] = WritePrecision.NS) -> str:
        return encode_point(self.to_point(obj, precision))


_FIELD_KINDS = {DataType.DOUBLE, DataType.LONG, DataType.UNSIGNED_LONG, DataType.BOOL, DataType.STRING}
_TIMESTAMP_KINDS = {DataType.LONG, DataType.UNSIGNED_LONG, DataType.TIME_RFC}


def _extract(values: Mapping[str, Value], spec: FieldSpec) -> Any:
    key = spec.key
    if key not in values:
        key = f"_{key}"
    value = values.get(key)
    if value is None:
        raise MappingError(f"Cannot parse out map entry, key: {spec.key}")
    if value.kind is not spec.kind:
        raise MappingError(
            f"column {key} holds a {value.kind.value} value, expected {spec.kind.value}"
        )
    return value.to_python()


def _read(obj: Any, name: str) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name)


def _to_value(spec: FieldSpec, raw: Any) -> Value:
    try:
        return Value.of(spec.kind, raw)
    except (TypeError, ValueError) as exc:
        raise MappingError(f"{spec.name}: {exc}") from exc


# -------------------- Dataclass introspection --------------------

_ANNOTATION_KINDS: Dict[Any, DataType] = {
    str: DataType.STRING,
    float: DataType.DOUBLE,
    bool: DataType.BOOL,
    int: DataType.LONG,
    bytes: DataType.BASE64_BINARY,
}


def _specs_from_dataclass(klass: type) -> List[FieldSpec]:
    if not is_dataclass(klass):
        raise SchemaError(f"{klass!r} is not a dataclass")
    hints = typing.get_type_hints(klass)
    specs = []
    for item in dataclass_fields(klass):
        role = Role(item.metadata.get(METADATA_ROLE, Role.FIELD))
        kind = item.metadata.get(METADATA_KIND)
        if kind is None:
            kind = _kind_for(hints.get(item.name), item.name) if role is not Role.IGNORE else DataType.UNKNOWN
        specs.append(
            FieldSpec(
                name=item.name,
                kind=DataType(kind),
                role=role,
                column=item.metadata.get(METADATA_COLUMN),
            )
        )
    return specs


def _kind_for(annotation: Any, name: str) -> DataType:
    annotation = _strip_optional(annotation)
    if annotation in _ANNOTATION_KINDS:
        return _ANNOTATION_KINDS[annotation]
    if isinstance(annotation, type):
        if issubclass(annotation, datetime):
            return DataType.TIME_RFC
        if issubclass(annotation, timedelta):
            return DataType.DURATION
    raise SchemaError(f"{name}: cannot map annotation {annotation!r}; set metadata kind=")


def _strip_optional(annotation: Any) -> Any:
    origin = typing.get_origin(annotation)
    if origin is Union or origin is types.UnionType:
        args = [a for a in typing.get_args(annotation) if a is not type(None)]
        if len(args) == 1:
            return args[0]
    return annotation
