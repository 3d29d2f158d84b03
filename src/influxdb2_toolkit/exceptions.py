"""Exceptions for influxdb2_toolkit."""

from __future__ import annotations

from typing import Optional


class InfluxDBError(Exception):
    """Base exception for influxdb2_toolkit."""


class InfluxDBConnectionError(InfluxDBError):
    """Connection to InfluxDB failed."""


class InfluxDBAuthenticationError(InfluxDBError):
    """Authentication failed."""


class InfluxDBRequestError(InfluxDBError):
    """The server answered with an unexpected HTTP status."""

    def __init__(self, status: int, text: str) -> None:
        super().__init__(f"HTTP request returned an error: {status}, `{text}`")
        self.status = status
        self.text = text


class InfluxDBQueryError(InfluxDBError):
    """Query execution failed."""


class FluxQueryError(InfluxDBQueryError):
    """The query response carried an error table instead of data."""

    def __init__(self, message: str, reference: Optional[str] = None) -> None:
        text = f"{message},{reference}" if reference else message
        super().__init__(text)
        self.message = message
        self.reference = reference


class FluxCsvParserError(InfluxDBQueryError):
    """The annotated CSV response could not be decoded."""


class MalformedAnnotationError(FluxCsvParserError):
    """Annotation rows are missing or out of place."""


class UnknownDataTypeError(FluxCsvParserError):
    """A #datatype annotation named a type we do not know."""


class ColumnCountMismatchError(FluxCsvParserError):
    """A row does not have as many cells as its table has columns."""


class ValueParseError(FluxCsvParserError):
    """A cell could not be parsed as its declared data type."""

    def __init__(self, message: str, column: str = "", cell: str = "") -> None:
        super().__init__(message)
        self.column = column
        self.cell = cell


class MappingError(InfluxDBError):
    """A record could not be projected onto a declared schema."""


class SchemaError(InfluxDBError):
    """A schema declaration is invalid for the requested use."""


class DataPointError(InfluxDBError):
    """A data point is structurally invalid for line protocol."""


class UnsafeOperationError(InfluxDBError):
    """Raised when a write operation is blocked by safety rules."""
