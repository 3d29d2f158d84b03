"""influxdb2_toolkit package."""

from .async_client import AsyncInfluxDBClient
from .client import InfluxDBClient
from .config import V2Config, load_env, v2_from_env
from .exceptions import (
    ColumnCountMismatchError,
    DataPointError,
    FluxCsvParserError,
    FluxQueryError,
    InfluxDBAuthenticationError,
    InfluxDBConnectionError,
    InfluxDBError,
    InfluxDBQueryError,
    InfluxDBRequestError,
    MalformedAnnotationError,
    MappingError,
    SchemaError,
    UnknownDataTypeError,
    UnsafeOperationError,
    ValueParseError,
)
from .line_protocol import DataPoint, WritePrecision, encode_point, encode_points
from .models import FluxColumn, FluxRecord, FluxTableMetadata, MeasurementSchema, WriteResult
from .schema import FieldSpec, PointSchema, RecordSchema, Role
from .value import DataType, GenericMap, Value

__all__ = [
    "AsyncInfluxDBClient",
    "InfluxDBClient",
    "V2Config",
    "load_env",
    "v2_from_env",
    "ColumnCountMismatchError",
    "DataPointError",
    "FluxCsvParserError",
    "FluxQueryError",
    "InfluxDBAuthenticationError",
    "InfluxDBConnectionError",
    "InfluxDBError",
    "InfluxDBQueryError",
    "InfluxDBRequestError",
    "MalformedAnnotationError",
    "MappingError",
    "SchemaError",
    "UnknownDataTypeError",
    "UnsafeOperationError",
    "ValueParseError",
    "DataPoint",
    "WritePrecision",
    "encode_point",
    "encode_points",
    "FluxColumn",
    "FluxRecord",
    "FluxTableMetadata",
    "MeasurementSchema",
    "WriteResult",
    "FieldSpec",
    "PointSchema",
    "RecordSchema",
    "Role",
    "DataType",
    "GenericMap",
    "Value",
]
