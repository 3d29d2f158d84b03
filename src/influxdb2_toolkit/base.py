"""State and request building shared by the sync and async clients."""

from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union
from urllib.parse import urlencode
import json

import pandas as pd

from .exceptions import InfluxDBAuthenticationError, InfluxDBRequestError, UnsafeOperationError
from .flux.grouping import IGNORED_COLUMNS
from .line_protocol import DataPoint, WritePrecision
from .models import FluxRecord, WriteResult
from .transport import TransportResponse
from .value import GenericMap

QUERY_PATH = "/api/v2/query"
WRITE_PATH = "/api/v2/write"
PING_PATH = "/ping"

# columns reported by schema.measurementTagKeys that are not real tags
SCHEMA_SYSTEM_COLUMNS = frozenset({"_start", "_stop", "_measurement", "_field"})

DIALECT = {
    "annotations": ["datatype", "group", "default"],
    "delimiter": ",",
    "header": True,
}


class InfluxDBClientBase:
    """Connection settings, write guard and request construction."""

    def __init__(
        self,
        url: str,
        token: str,
        org: str,
        bucket: Optional[str] = None,
        allow_write: bool = False,
        precision: Union[WritePrecision, str] = WritePrecision.NS,
    ) -> None:
        if not url:
            raise ValueError("url is required")
        self.config: Dict[str, Any] = {
            "url": url,
            "org": org,
            "bucket": bucket,
        }
        self.connected = False
        self._url = url.rstrip("/")
        self._token = token
        self._org = org
        self._bucket = bucket
        self._allow_write = allow_write
        self._precision = WritePrecision(precision)

    # -------------------- Requests --------------------

    def _headers(self, content_type: Optional[str] = None) -> Dict[str, str]:
        headers = {"Authorization": f"Token {self._token}"}
        if content_type:
            headers["Content-Type"] = content_type
        return headers

    def _query_request(self, flux: str) -> Tuple[str, Dict[str, str], str]:
        url = f"{self._url}{QUERY_PATH}?{urlencode({'org': self._org})}"
        headers = self._headers("application/json")
        headers["Accept"] = "application/csv"
        headers["Accept-Encoding"] = "identity"
        body = json.dumps({"query": flux, "type": "flux", "dialect": DIALECT})
        return url, headers, body

    def _write_request(
        self, bucket: Optional[str], precision: Union[WritePrecision, str, None]
    ) -> Tuple[str, Dict[str, str]]:
        params = {
            "bucket": self._resolve_bucket(bucket, "writes"),
            "org": self._org,
            "precision": self._resolve_precision(precision).value,
        }
        url = f"{self._url}{WRITE_PATH}?{urlencode(params)}"
        return url, self._headers("text/plain; charset=utf-8")

    def _resolve_bucket(self, bucket: Optional[str], purpose: str) -> str:
        bucket = bucket or self._bucket
        if not bucket:
            raise ValueError(f"bucket is required for v2 {purpose}")
        return bucket

    def _resolve_precision(self, precision: Union[WritePrecision, str, None]) -> WritePrecision:
        return WritePrecision(precision) if precision is not None else self._precision

    def _point_converter(
        self, schema: Optional[Any], precision: WritePrecision
    ) -> Optional[Callable[[Any], DataPoint]]:
        if schema is None:
            return None
        return lambda obj: schema.to_point(obj, precision)

    # -------------------- Write guard --------------------

    def _ensure_writes_allowed(self, op: str) -> None:
        if not self._allow_write:
            raise UnsafeOperationError(
                f"{op} blocked. Set INFLUXDB_ALLOW_WRITE=true or allow_write=True in config."
            )

    def __repr__(self) -> str:
        status = "connected" if self.connected else "disconnected"
        writes = "writes_enabled" if self._allow_write else "read_only"
        return f"{type(self).__name__}({self._url}, {status}, {writes})"


# -------------------- Helper functions --------------------

def _check_response(response: TransportResponse, expected: int) -> TransportResponse:
    if response.status == expected:
        return response
    if response.status in (401, 403):
        raise InfluxDBAuthenticationError(
            f"InfluxDB rejected the token ({response.status}): {response.text}"
        )
    raise InfluxDBRequestError(response.status, response.text)


def _write_result(points: int, batch_size: Optional[int], batches: int) -> WriteResult:
    return WriteResult(
        success=True,
        details={"points": points, "batch_size": batch_size, "batches": batches},
    )


def _validate_batch_size(batch_size: Optional[int]) -> None:
    if batch_size is not None and batch_size <= 0:
        raise ValueError("batch_size must be greater than zero")


def _chunk_points(points: List[Any], batch_size: Optional[int]) -> List[List[Any]]:
    if not batch_size:
        return [points]
    return [points[i : i + batch_size] for i in range(0, len(points), batch_size)]


def _composites_to_dataframe(
    composites: List[GenericMap], timezone: str, pivot: bool = True
) -> pd.DataFrame:
    """Tabulate composite records; ``pivot`` drops the per-field bookkeeping columns."""
    rows = []
    for composite in composites:
        rows.append({
            name: value.to_python()
            for name, value in composite.items()
            if not (pivot and (name in IGNORED_COLUMNS or name == "result"))
        })
    df = pd.DataFrame(rows)
    if df.empty:
        return df
    if "_time" in df.columns:
        df = df.rename(columns={"_time": "time"})
    if "time" in df.columns:
        df["time"] = pd.to_datetime(df["time"], utc=True)
        if timezone and timezone.upper() != "UTC":
            df["time"] = df["time"].dt.tz_convert(timezone)
            df["time"] = df["time"].dt.tz_localize(None)
        df = _move_time_first(df)
    return df


def _move_time_first(df: pd.DataFrame) -> pd.DataFrame:
    cols = list(df.columns)
    if cols and cols[0] != "time" and "time" in cols:
        cols = ["time"] + [c for c in cols if c != "time"]
        return df.reindex(columns=cols)
    return df


def _schema_values(records: Iterable[FluxRecord]) -> List[str]:
    values = []
    for record in records:
        value = record.get("_value")
        text = value.as_str() if value is not None else None
        if text is not None and text not in values:
            values.append(text)
    return values
