from datetime import UTC, datetime

import pytest

from influxdb2_toolkit.query_builder import build_flux_query, build_schema_query, fmt_time


def test_flux_query_builder():
    q = build_flux_query(
        bucket="b",
        measurement="m",
        fields=["f1", "f2"],
        start=datetime(2026, 2, 1),
        end=datetime(2026, 2, 2),
        tags={"k": "v"},
        interval="5m",
        aggregation="mean",
    )
    assert 'from(bucket: "b")' in q
    assert 'range(start: 2026-02-01T00:00:00Z, stop: 2026-02-02T00:00:00Z)' in q
    assert 'r._measurement == "m"' in q
    assert 'r._field == "f1" or r._field == "f2"' in q
    assert 'r["k"] == "v"' in q
    assert 'aggregateWindow(every: 5m, fn: mean, createEmpty: false)' in q


def test_flux_query_builder_accepts_relative_range():
    q = build_flux_query(bucket="b", measurement="m", fields=["f"], start="-1h", end="now()")
    assert "range(start: -1h, stop: now())" in q
    assert "aggregateWindow" not in q


def test_fmt_time():
    assert fmt_time(datetime(2026, 2, 1, 12, 0)) == "2026-02-01T12:00:00Z"
    assert fmt_time(datetime(2026, 2, 1, 12, 0, tzinfo=UTC)) == "2026-02-01T12:00:00+00:00"
    assert fmt_time("-30d") == "-30d"


def test_schema_query_measurements():
    q = build_schema_query("measurements", "b")
    assert q.startswith('import "influxdata/influxdb/schema"')
    assert q.endswith('schema.measurements(bucket: "b")')


def test_schema_query_tag_values_with_range():
    q = build_schema_query("measurementTagValues", "b", measurement="cpu", tag="host", start="-1d", stop="now()")
    assert 'schema.measurementTagValues(bucket: "b", measurement: "cpu", tag: "host", start: -1d, stop: now())' in q


def test_schema_query_validation():
    with pytest.raises(ValueError, match="unsupported"):
        build_schema_query("tagKeys", "b")
    with pytest.raises(ValueError, match="measurement is required"):
        build_schema_query("measurementFieldKeys", "b")
    with pytest.raises(ValueError, match="tag is required"):
        build_schema_query("measurementTagValues", "b", measurement="cpu")
