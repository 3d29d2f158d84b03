"""Data models for influxdb2_toolkit."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .value import DataType, Value


@dataclass
class FluxColumn:
    """One column of an annotated CSV table.

    Mutated while the table's annotation rows are read, left alone once data
    rows start.
    """

    name: str = ""
    data_type: DataType = DataType.STRING
    group: bool = False
    default_value: str = ""


@dataclass
class FluxTableMetadata:
    """Schema of one annotated table block.

    ``position`` counts blocks in order of appearance; it is unrelated to the
    ``table`` column the server writes into data rows.
    """

    position: int
    columns: List[FluxColumn] = field(default_factory=list)

    @property
    def group_key(self) -> List[str]:
        return [c.name for c in self.columns if c.group]


@dataclass(frozen=True)
class FluxRecord:
    """One decoded data row."""

    table: int
    values: Dict[str, Value]

    def get(self, column: str) -> Optional[Value]:
        return self.values.get(column)

    @property
    def field(self) -> Optional[str]:
        value = self.values.get("_field")
        return value.as_str() if value is not None else None

    @property
    def value(self) -> Any:
        value = self.values.get("_value")
        return value.to_python() if value is not None else None

    @property
    def measurement(self) -> Optional[str]:
        value = self.values.get("_measurement")
        return value.as_str() if value is not None else None


@dataclass(frozen=True)
class MeasurementSchema:
    """Schema information for a measurement."""

    measurement: str
    tags: List[str]
    fields: List[str]
    bucket: Optional[str] = None


@dataclass(frozen=True)
class WriteResult:
    """Result of a write operation."""

    success: bool
    message: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
