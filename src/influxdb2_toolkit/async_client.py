"""Coroutine flavour of ``InfluxDBClient`` built on an ``AsyncTransport``."""

from __future__ import annotations

from typing import Any, AsyncIterable, AsyncIterator, Dict, Iterable, List, Mapping, Optional, Union
import logging

import pandas as pd

from .base import (
    InfluxDBClientBase,
    PING_PATH,
    SCHEMA_SYSTEM_COLUMNS,
    _check_response,
    _chunk_points,
    _composites_to_dataframe,
    _schema_values,
    _validate_batch_size,
    _write_result,
)
from .config import V2Config, resolve_v2_config, v2_from_env
from .exceptions import InfluxDBConnectionError
from .flux.csv_reader import FluxResponse
from .flux.grouping import group_records
from .line_protocol import WritePrecision, aiter_line_protocol, encode_points
from .models import FluxRecord, MeasurementSchema, WriteResult
from .query_builder import TimeBound, build_flux_query, build_schema_query
from .schema import PointSchema, RecordSchema
from .transport import AsyncTransport, HttpxAsyncTransport

logger = logging.getLogger(__name__)


class AsyncInfluxDBClient(InfluxDBClientBase):
    """Async InfluxDB v2 client.

    ``write`` accepts plain or async iterables and streams them into a single
    request without buffering the whole body.
    """

    def __init__(
        self,
        url: str,
        token: str,
        org: str,
        bucket: Optional[str] = None,
        allow_write: bool = False,
        precision: Union[WritePrecision, str] = WritePrecision.NS,
        transport: Optional[AsyncTransport] = None,
        timeout: float = 10.0,
    ) -> None:
        super().__init__(url, token, org, bucket=bucket, allow_write=allow_write, precision=precision)
        self._transport = transport or HttpxAsyncTransport(timeout=timeout)

    @classmethod
    def from_config(
        cls, config: V2Config | Mapping[str, Any], transport: Optional[AsyncTransport] = None
    ) -> "AsyncInfluxDBClient":
        cfg = resolve_v2_config(config)
        return cls(
            url=cfg.url,
            token=cfg.token,
            org=cfg.org,
            bucket=cfg.bucket,
            allow_write=cfg.allow_write,
            precision=cfg.precision,
            transport=transport,
            timeout=cfg.timeout,
        )

    @classmethod
    def from_env(cls, transport: Optional[AsyncTransport] = None) -> "AsyncInfluxDBClient":
        return cls.from_config(v2_from_env(), transport=transport)

    async def connect(self) -> None:
        if not await self.ping():
            self.connected = False
            raise InfluxDBConnectionError("Ping failed")
        self.connected = True

    async def close(self) -> None:
        await self._transport.aclose()
        self.connected = False

    async def ping(self) -> bool:
        try:
            response = await self._transport.send("GET", f"{self._url}{PING_PATH}", self._headers())
        except InfluxDBConnectionError as exc:
            logger.debug("Ping failed: %s", exc)
            return False
        return 200 <= response.status < 300

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        await self.close()
        return False

    # -------------------- Query methods --------------------

    async def query_raw_iter(self, flux: str) -> FluxResponse:
        url, headers, body = self._query_request(flux)
        logger.debug("Flux query: %s", flux)
        response = _check_response(await self._transport.send("POST", url, headers, body), 200)
        return FluxResponse(response.text)

    async def query_raw(self, flux: str) -> List[FluxRecord]:
        return list(await self.query_raw_iter(flux))

    async def query(self, flux: str, schema: Optional[RecordSchema] = None) -> List[Any]:
        composites = group_records(await self.query_raw_iter(flux))
        if schema is None:
            return composites
        return schema.from_maps(composites)

    async def query_data_frame(self, flux: str, timezone: str = "UTC") -> pd.DataFrame:
        composites = group_records(await self.query_raw_iter(flux))
        return _composites_to_dataframe(composites, timezone)

    async def get_timeseries(
        self,
        measurement: str,
        fields: Iterable[str],
        start: TimeBound,
        end: TimeBound,
        tags: Optional[Dict[str, str]] = None,
        interval: Optional[str] = None,
        aggregation: Optional[str] = None,
        timezone: str = "UTC",
    ) -> pd.DataFrame:
        bucket = self._resolve_bucket(None, "queries")
        fields_list = [f for f in list(fields) if f]
        if not fields_list:
            raise ValueError("fields must contain at least one field name")
        query = build_flux_query(
            bucket=bucket,
            measurement=measurement,
            fields=fields_list,
            start=start,
            end=end,
            tags=tags,
            interval=interval,
            aggregation=aggregation,
        )
        return await self.query_data_frame(query, timezone=timezone)

    # -------------------- Exploration methods --------------------

    async def list_measurements(
        self,
        bucket: Optional[str] = None,
        start: Optional[TimeBound] = None,
        stop: Optional[TimeBound] = None,
    ) -> List[str]:
        return await self._schema_query("measurements", bucket, start=start, stop=stop)

    async def list_measurement_field_keys(
        self,
        measurement: str,
        bucket: Optional[str] = None,
        start: Optional[TimeBound] = None,
        stop: Optional[TimeBound] = None,
    ) -> List[str]:
        return await self._schema_query(
            "measurementFieldKeys", bucket, measurement=measurement, start=start, stop=stop
        )

    async def list_measurement_tag_keys(
        self,
        measurement: str,
        bucket: Optional[str] = None,
        start: Optional[TimeBound] = None,
        stop: Optional[TimeBound] = None,
    ) -> List[str]:
        return await self._schema_query(
            "measurementTagKeys", bucket, measurement=measurement, start=start, stop=stop
        )

    async def list_measurement_tag_values(
        self,
        measurement: str,
        tag: str,
        bucket: Optional[str] = None,
        start: Optional[TimeBound] = None,
        stop: Optional[TimeBound] = None,
    ) -> List[str]:
        return await self._schema_query(
            "measurementTagValues", bucket, measurement=measurement, tag=tag, start=start, stop=stop
        )

    async def get_measurement_schema(
        self, measurement: str, bucket: Optional[str] = None
    ) -> MeasurementSchema:
        bucket = self._resolve_bucket(bucket, "queries")
        tags = await self.list_measurement_tag_keys(measurement, bucket=bucket)
        return MeasurementSchema(
            measurement=measurement,
            tags=[t for t in tags if t not in SCHEMA_SYSTEM_COLUMNS],
            fields=await self.list_measurement_field_keys(measurement, bucket=bucket),
            bucket=bucket,
        )

    async def _schema_query(self, function: str, bucket: Optional[str], **kwargs: Any) -> List[str]:
        query = build_schema_query(function, self._resolve_bucket(bucket, "queries"), **kwargs)
        return _schema_values(await self.query_raw_iter(query))

    # -------------------- Write methods (protected) --------------------

    async def write(
        self,
        points: Union[Iterable[Any], AsyncIterable[Any]],
        bucket: Optional[str] = None,
        precision: Union[WritePrecision, str, None] = None,
        schema: Optional[PointSchema] = None,
        batch_size: Optional[int] = None,
    ) -> WriteResult:
        self._ensure_writes_allowed("write")
        _validate_batch_size(batch_size)
        resolved = self._resolve_precision(precision)
        url, headers = self._write_request(bucket, resolved)
        to_point = self._point_converter(schema, resolved)

        if batch_size:
            items = await _collect(points)
            chunks = _chunk_points(items, batch_size)
            for index, chunk in enumerate(chunks):
                body = encode_points(to_point(p) if to_point else p for p in chunk)
                logger.debug("Writing batch %d/%d (%d points)", index + 1, len(chunks), len(chunk))
                _check_response(await self._transport.send("POST", url, headers, body), 204)
            logger.info("Wrote %d points in %d batches", len(items), len(chunks))
            return _write_result(len(items), batch_size, len(chunks))

        counted: List[int] = []

        async def stream() -> AsyncIterator[bytes]:
            async for chunk in aiter_line_protocol(points, to_point):
                counted.append(1)
                yield chunk

        _check_response(await self._transport.send("POST", url, headers, stream()), 204)
        logger.info("Wrote %d points", len(counted))
        return _write_result(len(counted), None, 1)

    async def write_line_protocol(
        self,
        body: Union[str, bytes],
        bucket: Optional[str] = None,
        precision: Union[WritePrecision, str, None] = None,
    ) -> WriteResult:
        self._ensure_writes_allowed("write_line_protocol")
        url, headers = self._write_request(bucket, precision)
        _check_response(await self._transport.send("POST", url, headers, body), 204)
        return WriteResult(success=True)


async def _collect(points: Union[Iterable[Any], AsyncIterable[Any]]) -> List[Any]:
    if hasattr(points, "__aiter__"):
        return [p async for p in points]
    return list(points)
