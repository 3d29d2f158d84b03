"""Flux query builder."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional, Union

SCHEMA_FUNCTIONS = (
    "measurements",
    "measurementFieldKeys",
    "measurementTagKeys",
    "measurementTagValues",
)

TimeBound = Union[datetime, str]


def build_flux_query(
    bucket: str,
    measurement: str,
    fields: List[str],
    start: TimeBound,
    end: TimeBound,
    tags: Optional[Dict[str, str]] = None,
    interval: Optional[str] = None,
    aggregation: Optional[str] = None,
) -> str:
    field_filter = " or ".join([f'r._field == "{f}"' for f in fields])
    query = [
        f'from(bucket: "{bucket}")',
        f'  |> range(start: {fmt_time(start)}, stop: {fmt_time(end)})',
        f'  |> filter(fn: (r) => r._measurement == "{measurement}")',
        f'  |> filter(fn: (r) => {field_filter})',
    ]
    if tags:
        for k, v in tags.items():
            query.append(f'  |> filter(fn: (r) => r["{k}"] == "{v}")')
    if aggregation and interval:
        query.append(f'  |> aggregateWindow(every: {interval}, fn: {aggregation}, createEmpty: false)')
    query.append('  |> yield(name: "result")')
    return "\n".join(query)


def build_schema_query(
    function: str,
    bucket: str,
    measurement: Optional[str] = None,
    tag: Optional[str] = None,
    start: Optional[TimeBound] = None,
    stop: Optional[TimeBound] = None,
) -> str:
    """Query for one of the ``schema.measurement*`` listing functions.

    ``start``/``stop`` accept datetimes or raw Flux expressions such as
    ``-30d``; the server defaults apply when they are omitted.
    """
    if function not in SCHEMA_FUNCTIONS:
        raise ValueError(f"unsupported schema function: {function}")
    if function != "measurements" and not measurement:
        raise ValueError(f"measurement is required for schema.{function}")
    if function == "measurementTagValues" and not tag:
        raise ValueError("tag is required for schema.measurementTagValues")

    params = [f'bucket: "{bucket}"']
    if measurement and function != "measurements":
        params.append(f'measurement: "{measurement}"')
    if tag and function == "measurementTagValues":
        params.append(f'tag: "{tag}"')
    if start is not None:
        params.append(f"start: {fmt_time(start)}")
    if stop is not None:
        params.append(f"stop: {fmt_time(stop)}")
    return "\n".join([
        'import "influxdata/influxdb/schema"',
        "",
        f"schema.{function}({', '.join(params)})",
    ])


def fmt_time(value: TimeBound) -> str:
    if isinstance(value, str):
        return value
    if value.tzinfo is None:
        return value.isoformat() + "Z"
    return value.isoformat()
